import anyio
import pytest

from shellcache import BackgroundTasks


@pytest.mark.anyio
async def test_exit_waits_for_spawned_tasks():
    done = []

    async def work(value: int) -> None:
        await anyio.sleep(0.01)
        done.append(value)

    async with BackgroundTasks() as tasks:
        tasks.start_soon(work, 1)
        tasks.start_soon(work, 2, name="second")
        assert tasks.running

    assert sorted(done) == [1, 2]
    assert not tasks.running


@pytest.mark.anyio
async def test_failures_are_logged_not_raised(caplog):
    async def explode() -> None:
        raise RuntimeError("boom")

    async with BackgroundTasks() as tasks:
        tasks.start_soon(explode, name="explode")

    assert "Background task explode failed" in caplog.text


def test_spawn_outside_context():
    with pytest.raises(RuntimeError, match="async with BackgroundTasks"):
        BackgroundTasks().start_soon(anyio.sleep, 0)
