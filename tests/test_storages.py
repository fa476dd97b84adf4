import typing as tp

import anysqlite
import pytest

from shellcache import AsyncBaseStorage, AsyncFileStorage, AsyncInMemoryStorage, AsyncSQLiteStorage, CacheEntry


async def make_storage(kind: str) -> AsyncBaseStorage:
    if kind == "memory":
        return AsyncInMemoryStorage()
    if kind == "sqlite":
        return AsyncSQLiteStorage(connection=await anysqlite.connect(":memory:"))
    return AsyncFileStorage()


STORAGE_KINDS = ["memory", "sqlite", "file"]


def entry(key: str, stored_at: float, content: bytes = b"test", **extra: tp.Any) -> CacheEntry:
    return CacheEntry(
        key=key,
        status_code=200,
        headers=[("Content-Type", "text/plain")],
        content=content,
        stored_at=stored_at,
        extra=extra,
    )


@pytest.mark.anyio
@pytest.mark.parametrize("kind", STORAGE_KINDS)
async def test_store_and_retrieve(kind, use_temp_dir):
    storage = await make_storage(kind)

    await storage.store("fonts", entry("GET https://example.com/a", 100.0, revision="abc"))

    stored = await storage.retrieve("fonts", "GET https://example.com/a")
    assert stored is not None
    assert stored.status_code == 200
    assert stored.headers == [("Content-Type", "text/plain")]
    assert stored.content == b"test"
    assert stored.stored_at == 100.0
    assert stored.extra == {"revision": "abc"}


@pytest.mark.anyio
@pytest.mark.parametrize("kind", STORAGE_KINDS)
async def test_partitions_are_isolated(kind, use_temp_dir):
    storage = await make_storage(kind)

    await storage.store("fonts", entry("GET https://example.com/a", 100.0))

    assert await storage.retrieve("images", "GET https://example.com/a") is None
    assert await storage.list_keys("images") == []


@pytest.mark.anyio
@pytest.mark.parametrize("kind", STORAGE_KINDS)
async def test_same_key_replaces_entry(kind, use_temp_dir):
    storage = await make_storage(kind)

    await storage.store("fonts", entry("GET https://example.com/a", 100.0, content=b"old"))
    await storage.store("fonts", entry("GET https://example.com/a", 200.0, content=b"new"))

    stored = await storage.retrieve("fonts", "GET https://example.com/a")
    assert stored is not None
    assert stored.content == b"new"
    assert await storage.list_keys("fonts") == [("GET https://example.com/a", 200.0)]


@pytest.mark.anyio
@pytest.mark.parametrize("kind", STORAGE_KINDS)
async def test_list_keys_oldest_first(kind, use_temp_dir):
    storage = await make_storage(kind)

    await storage.store("fonts", entry("GET https://example.com/b", 300.0))
    await storage.store("fonts", entry("GET https://example.com/a", 100.0))
    await storage.store("fonts", entry("GET https://example.com/c", 200.0))

    assert await storage.list_keys("fonts") == [
        ("GET https://example.com/a", 100.0),
        ("GET https://example.com/c", 200.0),
        ("GET https://example.com/b", 300.0),
    ]


@pytest.mark.anyio
@pytest.mark.parametrize("kind", STORAGE_KINDS)
async def test_remove(kind, use_temp_dir):
    storage = await make_storage(kind)

    await storage.store("fonts", entry("GET https://example.com/a", 100.0))
    await storage.remove("fonts", "GET https://example.com/a")
    await storage.remove("fonts", "GET https://example.com/missing")

    assert await storage.retrieve("fonts", "GET https://example.com/a") is None


@pytest.mark.anyio
async def test_inmemory_storage_returns_copies():
    storage = AsyncInMemoryStorage()
    await storage.store("fonts", entry("GET https://example.com/a", 100.0, revision="abc"))

    stored = await storage.retrieve("fonts", "GET https://example.com/a")
    assert stored is not None
    stored.extra["revision"] = "changed"

    again = await storage.retrieve("fonts", "GET https://example.com/a")
    assert again is not None
    assert again.extra == {"revision": "abc"}


@pytest.mark.anyio
async def test_filestorage_creates_gitignore(use_temp_dir, tmp_path):
    AsyncFileStorage(base_path=tmp_path / "cache")

    assert (tmp_path / "cache" / ".gitignore").read_text() == "# Automatically created by shellcache\n*"
