from __future__ import annotations

import logging
import typing as tp

import anyio
import httpx

from ._exceptions import NetworkFailure
from ._models import CacheEntry
from ._network import AsyncNetwork
from ._policies import CacheableResponsePolicy, ExpirationPolicy
from ._storages import AsyncBaseStorage
from ._tasks import BackgroundTasks
from ._utils import generate_key

logger = logging.getLogger("shellcache.strategies")

__all__ = (
    "AsyncBaseStrategy",
    "AsyncCacheFirst",
    "AsyncNetworkFirst",
    "AsyncStaleWhileRevalidate",
)


class AsyncBaseStrategy:
    """
    Chooses between a named cache and the network for a request.

    :param network: Where cache misses are fetched from
    :type network: AsyncNetwork
    :param storage: Storage holding the named cache
    :type storage: AsyncBaseStorage
    :param cache_name: Partition used by this strategy
    :type cache_name: str
    :param cacheable: Which network responses may be stored, defaults to status 200 only
    :type cacheable: tp.Optional[CacheableResponsePolicy], optional
    :param expiration: Age and count limits of the partition, defaults to None
    :type expiration: tp.Optional[ExpirationPolicy], optional
    """

    def __init__(
        self,
        network: AsyncNetwork,
        storage: AsyncBaseStorage,
        cache_name: str,
        cacheable: tp.Optional[CacheableResponsePolicy] = None,
        expiration: tp.Optional[ExpirationPolicy] = None,
    ) -> None:
        self._network = network
        self._storage = storage
        self.cache_name = cache_name
        self._cacheable = cacheable if cacheable is not None else CacheableResponsePolicy()
        self._expiration = expiration

    async def handle(self, request: httpx.Request) -> httpx.Response:
        raise NotImplementedError()

    async def _match(self, request: httpx.Request) -> tp.Optional[CacheEntry]:
        return await self._storage.retrieve(self.cache_name, generate_key(request))

    async def _put(self, request: httpx.Request, response: httpx.Response) -> bool:
        if not self._cacheable.is_cacheable(response):
            logger.debug(f"Not caching {request.url}: status {response.status_code} is not cacheable")
            return False

        await self._storage.store(self.cache_name, CacheEntry.from_response(generate_key(request), response))
        if self._expiration is not None:
            await self._expiration.expire(self._storage, self.cache_name)
        return True


class AsyncCacheFirst(AsyncBaseStrategy):
    """
    Serve from the cache; go to the network only on a miss or an expired hit.
    """

    async def _match(self, request: httpx.Request) -> tp.Optional[CacheEntry]:
        entry = await super()._match(request)
        if entry is None or self._expiration is None:
            return entry

        if not self._expiration.is_fresh(entry):
            logger.debug(f"Cached response for {request.url} in {self.cache_name!r} has expired")
            await self._expiration.expire(self._storage, self.cache_name)
            await self._storage.remove(self.cache_name, entry.key)
            return None
        return entry

    async def handle(self, request: httpx.Request) -> httpx.Response:
        entry = await self._match(request)
        if entry is not None:
            logger.debug(f"Serving {request.url} from {self.cache_name!r}")
            return entry.to_response(self.cache_name)

        response = await self._network.fetch(request)
        await self._put(request, response)
        return response


class AsyncNetworkFirst(AsyncBaseStrategy):
    """
    Prefer a fresh network response; fall back to the cache when the network fails.

    With a timeout the fetch runs on `tasks` and is never cancelled, so a response arriving
    after the cache was served still updates the cache.

    :param network_timeout: Seconds to wait for the network before trying the cache, defaults to None
    :type network_timeout: tp.Optional[float], optional
    :param tasks: Task group the fetches are spawned on, required with `network_timeout`
    :type tasks: tp.Optional[BackgroundTasks], optional
    """

    def __init__(
        self,
        network: AsyncNetwork,
        storage: AsyncBaseStorage,
        cache_name: str,
        cacheable: tp.Optional[CacheableResponsePolicy] = None,
        expiration: tp.Optional[ExpirationPolicy] = None,
        network_timeout: tp.Optional[float] = None,
        tasks: tp.Optional[BackgroundTasks] = None,
    ) -> None:
        super().__init__(network, storage, cache_name, cacheable=cacheable, expiration=expiration)
        if network_timeout is not None and tasks is None:
            raise ValueError("`network_timeout` needs `tasks` to finish fetches that outlive it")
        self._network_timeout = network_timeout
        self._tasks = tasks

    async def _fetch_and_put(self, request: httpx.Request) -> httpx.Response:
        response = await self._network.fetch(request)
        await self._put(request, response)
        return response

    async def _fetch_with_timeout(self, request: httpx.Request, timeout: float) -> httpx.Response:
        assert self._tasks is not None
        done = anyio.Event()
        outcome: tp.Dict[str, tp.Any] = {}

        async def fetch() -> None:
            try:
                outcome["response"] = await self._fetch_and_put(request)
            except NetworkFailure as exc:
                outcome["error"] = exc
            finally:
                done.set()

        self._tasks.start_soon(fetch, name=f"fetch {request.url}")
        with anyio.move_on_after(timeout):
            await done.wait()

        if not done.is_set():
            raise NetworkFailure(f"Fetching {request.url} timed out after {timeout} seconds")
        if "error" in outcome:
            raise outcome["error"]
        if "response" not in outcome:
            # The task failed outside the network and logged why.
            raise NetworkFailure(f"Fetching {request.url} did not complete")
        return tp.cast(httpx.Response, outcome["response"])

    async def handle(self, request: httpx.Request) -> httpx.Response:
        try:
            if self._network_timeout is None:
                return await self._fetch_and_put(request)
            return await self._fetch_with_timeout(request, self._network_timeout)
        except NetworkFailure:
            entry = await self._match(request)
            if entry is None:
                raise
            logger.debug(f"Network failed for {request.url}, serving from {self.cache_name!r}")
            return entry.to_response(self.cache_name)


class AsyncStaleWhileRevalidate(AsyncBaseStrategy):
    """
    Answer from the cache at once and refresh the entry in the background.

    :param tasks: Task group the revalidation fetches are spawned on
    :type tasks: BackgroundTasks
    """

    def __init__(
        self,
        network: AsyncNetwork,
        storage: AsyncBaseStorage,
        cache_name: str,
        tasks: BackgroundTasks,
        cacheable: tp.Optional[CacheableResponsePolicy] = None,
        expiration: tp.Optional[ExpirationPolicy] = None,
    ) -> None:
        super().__init__(network, storage, cache_name, cacheable=cacheable, expiration=expiration)
        self._tasks = tasks

    async def _revalidate(self, request: httpx.Request) -> None:
        response = await self._network.fetch(request)
        if await self._put(request, response):
            logger.debug(f"Revalidated {request.url} in {self.cache_name!r}")

    async def handle(self, request: httpx.Request) -> httpx.Response:
        entry = await self._match(request)
        if entry is None:
            response = await self._network.fetch(request)
            await self._put(request, response)
            return response

        self._tasks.start_soon(self._revalidate, request, name=f"revalidate {request.url}")
        return entry.to_response(self.cache_name)
