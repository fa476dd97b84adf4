from __future__ import annotations

import logging
import types
import typing as tp

import anyio
from anyio.abc import TaskGroup

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("shellcache.tasks")

__all__ = ("BackgroundTasks",)


class BackgroundTasks:
    """
    Fire-and-forget tasks with no result channel.

    A failing task is logged and otherwise ignored. Leaving the context waits for
    every spawned task to finish.
    """

    def __init__(self) -> None:
        self._task_group: tp.Optional[TaskGroup] = None

    @property
    def running(self) -> bool:
        return self._task_group is not None

    def start_soon(
        self,
        func: tp.Callable[..., tp.Awaitable[tp.Any]],
        *args: tp.Any,
        name: tp.Optional[str] = None,
    ) -> None:
        if self._task_group is None:
            raise RuntimeError("Background tasks can only be spawned inside `async with BackgroundTasks()`")
        self._task_group.start_soon(self._run, func, args, name, name=name)

    async def _run(
        self,
        func: tp.Callable[..., tp.Awaitable[tp.Any]],
        args: tp.Tuple[tp.Any, ...],
        name: tp.Optional[str],
    ) -> None:
        try:
            await func(*args)
        except Exception:
            logger.exception(f"Background task {name or repr(func)} failed")

    async def __aenter__(self) -> "Self":
        task_group = anyio.create_task_group()
        await task_group.__aenter__()
        self._task_group = task_group
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> tp.Optional[bool]:
        task_group, self._task_group = self._task_group, None
        assert task_group is not None
        return await task_group.__aexit__(exc_type, exc_value, traceback)
