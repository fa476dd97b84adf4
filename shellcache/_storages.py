from __future__ import annotations

import logging
import os
import typing as tp
from dataclasses import replace
from pathlib import Path

import anyio
import anysqlite

from ._files import AsyncFileManager
from ._models import CacheEntry
from ._serializers import BaseSerializer, JSONSerializer
from ._utils import ensure_cache_dict, hash_key

logger = logging.getLogger("shellcache.storages")

__all__ = (
    "AsyncBaseStorage",
    "AsyncFileStorage",
    "AsyncInMemoryStorage",
    "AsyncSQLiteStorage",
)


class AsyncBaseStorage:
    """
    A collection of named cache partitions.

    Every method takes the partition name first; a key is unique inside its partition.
    """

    def __init__(self, serializer: tp.Optional[BaseSerializer] = None) -> None:
        self._serializer = serializer or JSONSerializer()

    async def store(self, cache_name: str, entry: CacheEntry) -> None:
        raise NotImplementedError()

    async def retrieve(self, cache_name: str, key: str) -> tp.Optional[CacheEntry]:
        raise NotImplementedError()

    async def remove(self, cache_name: str, key: str) -> None:
        raise NotImplementedError()

    async def list_keys(self, cache_name: str) -> tp.List[tp.Tuple[str, float]]:
        """Return `(key, stored_at)` pairs of a partition, oldest first."""
        raise NotImplementedError()

    async def aclose(self) -> None:
        raise NotImplementedError()


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    A simple in-memory storage.

    Entries are copied on the way in and out, so callers never share a mutable entry.
    """

    def __init__(self) -> None:
        super().__init__()
        self._caches: tp.Dict[str, tp.Dict[str, CacheEntry]] = {}
        self._lock = anyio.Lock()

    async def store(self, cache_name: str, entry: CacheEntry) -> None:
        async with self._lock:
            self._caches.setdefault(cache_name, {})[entry.key] = replace(entry, extra=dict(entry.extra))

    async def retrieve(self, cache_name: str, key: str) -> tp.Optional[CacheEntry]:
        async with self._lock:
            entry = self._caches.get(cache_name, {}).get(key)
            if entry is None:
                return None
            return replace(entry, extra=dict(entry.extra))

    async def remove(self, cache_name: str, key: str) -> None:
        async with self._lock:
            self._caches.get(cache_name, {}).pop(key, None)

    async def list_keys(self, cache_name: str) -> tp.List[tp.Tuple[str, float]]:
        async with self._lock:
            pairs = [(key, entry.stored_at) for key, entry in self._caches.get(cache_name, {}).items()]
        return sorted(pairs, key=lambda pair: pair[1])

    async def aclose(self) -> None:  # pragma: no cover
        return


class AsyncSQLiteStorage(AsyncBaseStorage):
    """
    A simple sqlite3 storage.

    :param serializer: Serializer capable of serializing and de-serializing cache entries, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param connection: A connection for sqlite, defaults to None
    :type connection: tp.Optional[anysqlite.Connection], optional
    :param database_path: Database file used when no connection is given
    :type database_path: tp.Union[str, Path]
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        connection: tp.Optional[anysqlite.Connection] = None,
        database_path: tp.Union[str, Path] = "shellcache.sqlite",
    ) -> None:
        super().__init__(serializer)

        self._connection: tp.Optional[anysqlite.Connection] = connection or None
        self._database_path = Path(database_path)
        self._setup_lock = anyio.Lock()
        self._setup_completed: bool = False
        self._lock = anyio.Lock()

    async def _setup(self) -> anysqlite.Connection:
        async with self._setup_lock:
            if not self._setup_completed:
                if not self._connection:  # pragma: no cover
                    parent = self._database_path.parent if self._database_path.parent != Path(".") else None
                    full_path = ensure_cache_dict(parent) / self._database_path.name
                    self._connection = await anysqlite.connect(str(full_path), check_same_thread=False)
                await self._connection.execute(
                    "CREATE TABLE IF NOT EXISTS entries("
                    "cache_name TEXT NOT NULL, key TEXT NOT NULL, data BLOB NOT NULL, stored_at REAL NOT NULL, "
                    "PRIMARY KEY (cache_name, key))"
                )
                await self._connection.commit()
                self._setup_completed = True
                logger.debug("Initialized sqlite cache storage")
        assert self._connection
        return self._connection

    async def store(self, cache_name: str, entry: CacheEntry) -> None:
        """
        Stores the entry in a partition, replacing any entry with the same key.

        :param cache_name: Name of the partition
        :type cache_name: str
        :param entry: The entry to write
        :type entry: CacheEntry
        """
        connection = await self._setup()

        async with self._lock:
            await connection.execute(
                "INSERT OR REPLACE INTO entries(cache_name, key, data, stored_at) VALUES(?, ?, ?, ?)",
                [cache_name, entry.key, self._serializer.dumps(entry), entry.stored_at],
            )
            await connection.commit()

    async def retrieve(self, cache_name: str, key: str) -> tp.Optional[CacheEntry]:
        """
        Retrieves an entry from a partition.

        :param cache_name: Name of the partition
        :type cache_name: str
        :param key: Request identity
        :type key: str
        :return: The stored entry, if any
        :rtype: tp.Optional[CacheEntry]
        """
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute(
                "SELECT data FROM entries WHERE cache_name = ? AND key = ?", [cache_name, key]
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._serializer.loads(row[0])

    async def remove(self, cache_name: str, key: str) -> None:
        connection = await self._setup()

        async with self._lock:
            await connection.execute("DELETE FROM entries WHERE cache_name = ? AND key = ?", [cache_name, key])
            await connection.commit()

    async def list_keys(self, cache_name: str) -> tp.List[tp.Tuple[str, float]]:
        connection = await self._setup()

        async with self._lock:
            cursor = await connection.execute(
                "SELECT key, stored_at FROM entries WHERE cache_name = ? ORDER BY stored_at", [cache_name]
            )
            rows = await cursor.fetchall()
        return [(row[0], row[1]) for row in rows]

    async def aclose(self) -> None:  # pragma: no cover
        if self._connection is not None:
            await self._connection.close()


class AsyncFileStorage(AsyncBaseStorage):
    """
    A simple file storage.

    Each partition is a directory below `base_path`, each entry a file named after the hashed key.

    :param serializer: Serializer capable of serializing and de-serializing cache entries, defaults to None
    :type serializer: tp.Optional[BaseSerializer], optional
    :param base_path: A storage base path where the entries should be saved, defaults to None
    :type base_path: tp.Optional[Path], optional
    """

    def __init__(
        self,
        serializer: tp.Optional[BaseSerializer] = None,
        base_path: tp.Optional[Path] = None,
    ) -> None:
        super().__init__(serializer)

        self._base_path = ensure_cache_dict(Path(base_path) if base_path is not None else None)
        self._file_manager = AsyncFileManager(is_binary=self._serializer.is_binary)
        self._lock = anyio.Lock()

    def _partition_path(self, cache_name: str) -> Path:
        return self._base_path / hash_key(cache_name)

    async def store(self, cache_name: str, entry: CacheEntry) -> None:
        partition_path = self._partition_path(cache_name)

        async with self._lock:
            partition_path.mkdir(exist_ok=True)
            await self._file_manager.write_to(
                str(partition_path / hash_key(entry.key)),
                self._serializer.dumps(entry),
            )

    async def retrieve(self, cache_name: str, key: str) -> tp.Optional[CacheEntry]:
        entry_path = self._partition_path(cache_name) / hash_key(key)

        async with self._lock:
            if entry_path.is_file():
                read_data = await self._file_manager.read_from(str(entry_path))
                if len(read_data) != 0:
                    return self._serializer.loads(read_data)
        return None

    async def remove(self, cache_name: str, key: str) -> None:
        entry_path = self._partition_path(cache_name) / hash_key(key)

        async with self._lock:
            if entry_path.exists():
                entry_path.unlink()

    async def list_keys(self, cache_name: str) -> tp.List[tp.Tuple[str, float]]:
        partition_path = self._partition_path(cache_name)
        pairs: tp.List[tp.Tuple[str, float]] = []

        async with self._lock:
            if not partition_path.is_dir():
                return pairs
            with os.scandir(partition_path) as files:
                paths = [item.path for item in files if item.is_file()]
            for path in paths:
                try:
                    entry = self._serializer.loads(await self._file_manager.read_from(path))
                except FileNotFoundError:  # pragma: no cover
                    continue
                pairs.append((entry.key, entry.stored_at))
        return sorted(pairs, key=lambda pair: pair[1])

    async def aclose(self) -> None:  # pragma: no cover
        return
