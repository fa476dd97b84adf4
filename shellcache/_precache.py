from __future__ import annotations

import logging
import typing as tp

import httpx

from ._exceptions import NotFound, UpstreamNonOk
from ._models import CacheEntry, ManifestEntry
from ._network import AsyncNetwork
from ._storages import AsyncBaseStorage
from ._strategies import AsyncBaseStrategy
from ._utils import generate_key

logger = logging.getLogger("shellcache.precache")

__all__ = ("PrecacheIndex", "AsyncPrecacheStrategy")


class PrecacheIndex:
    """
    Responses fixed at install time from the build manifest, looked up by exact path.

    The set of paths never changes after construction; a new deployment builds a new index
    from its own manifest and `install` drops whatever the old manifest left behind.

    :param manifest: Paths and revisions produced by the build
    :type manifest: tp.Iterable[ManifestEntry]
    :param storage: Storage holding the precache partition
    :type storage: AsyncBaseStorage
    :param origin: Scheme and host the paths belong to, e.g. "https://example.com"
    :type origin: str
    :param cache_name: Name of the precache partition
    :type cache_name: str
    """

    def __init__(
        self,
        manifest: tp.Iterable[ManifestEntry],
        storage: AsyncBaseStorage,
        origin: str,
        cache_name: str = "precache-v2",
    ) -> None:
        self._entries: tp.Dict[str, ManifestEntry] = {}
        for entry in manifest:
            if not entry.path.startswith("/"):
                raise ValueError(f"Manifest paths must be absolute, got {entry.path!r}")
            self._entries[entry.path] = entry
        self.storage = storage
        self.origin = origin.rstrip("/")
        self.cache_name = cache_name

    def __contains__(self, path: object) -> bool:
        return path in self._entries

    def _request_for(self, path: str) -> httpx.Request:
        return httpx.Request("GET", self.origin + path)

    async def install(self, network: AsyncNetwork) -> tp.List[str]:
        """
        Fetch every manifest path whose revision is not cached yet.

        Any path that cannot be fetched with a 2xx status fails the whole install and leaves
        the stored precache untouched. Responses are only written, and paths of a previous
        manifest only dropped, once every path has been fetched.

        :return: Paths that were fetched from the network
        """
        staged: tp.List[CacheEntry] = []
        fetched: tp.List[str] = []

        for path, manifest_entry in self._entries.items():
            request = self._request_for(path)
            key = generate_key(request)

            stored = await self.storage.retrieve(self.cache_name, key)
            if (
                stored is not None
                and manifest_entry.revision is not None
                and stored.extra.get("revision") == manifest_entry.revision
            ):
                logger.debug(f"Precached {path} is up to date at revision {manifest_entry.revision}")
                continue

            response = await network.fetch(request)
            if response.status_code == 404:
                raise NotFound(f"Precached path {path} was not found")
            if not response.is_success:
                raise UpstreamNonOk(
                    f"Precaching {path} failed with status {response.status_code}", status_code=response.status_code
                )

            staged.append(
                CacheEntry.from_response(key, response, extra={"path": path, "revision": manifest_entry.revision})
            )
            fetched.append(path)

        for entry in staged:
            await self.storage.store(self.cache_name, entry)

        expected = {generate_key(self._request_for(path)) for path in self._entries}
        for key, _ in await self.storage.list_keys(self.cache_name):
            if key not in expected:
                logger.debug(f"Removing {key} left over from a previous manifest")
                await self.storage.remove(self.cache_name, key)

        logger.debug(f"Precached {len(fetched)} of {len(self._entries)} paths")
        return fetched

    async def match(self, path: str) -> tp.Optional[httpx.Response]:
        if path not in self._entries:
            return None

        entry = await self.storage.retrieve(self.cache_name, generate_key(self._request_for(path)))
        if entry is None:
            return None
        return entry.to_response(self.cache_name)


class AsyncPrecacheStrategy(AsyncBaseStrategy):
    """
    Serve a precached response, or the network when the entry is not installed.
    """

    def __init__(self, network: AsyncNetwork, index: PrecacheIndex) -> None:
        super().__init__(network, index.storage, index.cache_name)
        self._index = index

    async def handle(self, request: httpx.Request) -> httpx.Response:
        response = await self._index.match(request.url.path)
        if response is not None:
            return response

        logger.debug(f"{request.url.path} is not in the precache yet, using the network")
        return await self._network.fetch(request)
