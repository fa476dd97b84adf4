from __future__ import annotations

import json
import typing as tp
from pathlib import Path

import anyio
import anysqlite

from ._files import AsyncFileManager
from ._utils import ensure_cache_dict

__all__ = (
    "AsyncBaseVersionStore",
    "AsyncInMemoryVersionStore",
    "AsyncSQLiteVersionStore",
    "AsyncFileVersionStore",
)


class AsyncBaseVersionStore:
    """A durable key-value store that survives worker restarts."""

    async def get(self, key: str) -> tp.Optional[str]:
        raise NotImplementedError()

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError()

    async def aclose(self) -> None:
        raise NotImplementedError()


class AsyncInMemoryVersionStore(AsyncBaseVersionStore):
    def __init__(self, initial: tp.Optional[tp.Mapping[str, str]] = None) -> None:
        self._values: tp.Dict[str, str] = dict(initial or {})
        self._lock = anyio.Lock()

    async def get(self, key: str) -> tp.Optional[str]:
        async with self._lock:
            return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            self._values[key] = value

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncSQLiteVersionStore(AsyncBaseVersionStore):
    """
    A version store kept in a sqlite table.

    :param connection: A connection for sqlite, defaults to None
    :type connection: tp.Optional[anysqlite.Connection], optional
    """

    def __init__(
        self,
        connection: tp.Optional[anysqlite.Connection] = None,
        database_path: tp.Union[str, Path] = "shellcache.sqlite",
    ) -> None:
        self._connection: tp.Optional[anysqlite.Connection] = connection or None
        self._database_path = Path(database_path)
        self._setup_lock = anyio.Lock()
        self._setup_completed = False
        self._lock = anyio.Lock()

    async def _setup(self) -> anysqlite.Connection:
        async with self._setup_lock:
            if not self._setup_completed:
                if not self._connection:  # pragma: no cover
                    parent = self._database_path.parent if self._database_path.parent != Path(".") else None
                    full_path = ensure_cache_dict(parent) / self._database_path.name
                    self._connection = await anysqlite.connect(str(full_path), check_same_thread=False)
                await self._connection.execute("CREATE TABLE IF NOT EXISTS keyval(key TEXT PRIMARY KEY, value TEXT)")
                await self._connection.commit()
                self._setup_completed = True
        assert self._connection
        return self._connection

    async def get(self, key: str) -> tp.Optional[str]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute("SELECT value FROM keyval WHERE key = ?", [key])
            row = await cursor.fetchone()
        return None if row is None else tp.cast(str, row[0])

    async def set(self, key: str, value: str) -> None:
        connection = await self._setup()

        async with self._lock:
            await connection.execute("INSERT OR REPLACE INTO keyval(key, value) VALUES(?, ?)", [key, value])
            await connection.commit()

    async def aclose(self) -> None:  # pragma: no cover
        if self._connection is not None:
            await self._connection.close()


class AsyncFileVersionStore(AsyncBaseVersionStore):
    """
    A version store kept in a single JSON file.

    :param path: The JSON file, created on first write
    :type path: tp.Union[str, Path]
    """

    def __init__(self, path: tp.Union[str, Path]) -> None:
        self._path = Path(path)
        self._file_manager = AsyncFileManager(is_binary=False)
        self._lock = anyio.Lock()

    async def _read(self) -> tp.Dict[str, str]:
        if not self._path.is_file():
            return {}
        data = await self._file_manager.read_from(str(self._path))
        return tp.cast(tp.Dict[str, str], json.loads(data)) if data else {}

    async def get(self, key: str) -> tp.Optional[str]:
        async with self._lock:
            return (await self._read()).get(key)

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            values = await self._read()
            values[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            await self._file_manager.write_to(str(self._path), json.dumps(values))

    async def aclose(self) -> None:  # pragma: no cover
        return
