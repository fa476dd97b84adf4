from __future__ import annotations

import logging
import re
import types
import typing as tp
from pathlib import Path

import httpx

from ._composer import CONTENT_PATH_RE, PARTIAL_PATH_RE, PartialComposer
from ._config import WEBFONTS_CACHEABLE_STATUSES, WorkerConfig
from ._exceptions import ShellCacheError
from ._files import load_manifest, load_template
from ._migrator import Clients, VersionMigrator, WindowClient
from ._models import InstallContext, ManifestEntry, MigrationDecision
from ._network import AsyncNetwork
from ._normalizer import UNTRAILED_PATH_RE, PathNormalizer
from ._policies import CacheableResponsePolicy, ExpirationPolicy
from ._precache import AsyncPrecacheStrategy, PrecacheIndex
from ._routing import (
    CustomRoute,
    PrecacheMatcher,
    RegExpMatcher,
    Route,
    Router,
    SameHostPathMatcher,
    StrategyRoute,
    compile_pattern,
)
from ._storages import AsyncBaseStorage, AsyncSQLiteStorage
from ._strategies import AsyncCacheFirst, AsyncNetworkFirst, AsyncStaleWhileRevalidate
from ._tasks import BackgroundTasks
from ._utils import is_same_host
from ._version_store import AsyncBaseVersionStore, AsyncSQLiteVersionStore

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

logger = logging.getLogger("shellcache.worker")

__all__ = ("AsyncContentWorker", "AsyncContentTransport")


class _DetachedClients:
    """Stands in for the runtime when no pages are attached."""

    async def claim(self) -> None:
        return None

    async def match_all(
        self, *, include_uncontrolled: bool = False, type: str = "window"
    ) -> tp.Sequence[WindowClient]:
        return []


class AsyncContentWorker:
    """
    The request-intercepting cache of a statically published content site.

    Use it as an async context manager: background revalidations and page reloads run on a
    task group that lives as long as the context, and leaving it waits for them.

    :param transport: Transport used to reach the network
    :type transport: httpx.AsyncBaseTransport
    :param template: Page layout containing the content marker exactly once
    :type template: str
    :param config: Site origin and tunables
    :type config: WorkerConfig
    :param manifest: Paths to precache at install time, defaults to an empty manifest
    :type manifest: tp.Iterable[ManifestEntry], optional
    :param storage: Storage for every named cache, defaults to AsyncSQLiteStorage
    :type storage: tp.Optional[AsyncBaseStorage], optional
    :param version_store: Store remembering the last activated architecture, defaults to AsyncSQLiteVersionStore
    :type version_store: tp.Optional[AsyncBaseVersionStore], optional
    :param clients: Open pages of the site, defaults to none
    :type clients: tp.Optional[Clients], optional
    """

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport,
        template: str,
        config: WorkerConfig,
        manifest: tp.Iterable[ManifestEntry] = (),
        storage: tp.Optional[AsyncBaseStorage] = None,
        version_store: tp.Optional[AsyncBaseVersionStore] = None,
        clients: tp.Optional[Clients] = None,
    ) -> None:
        self.config = config
        self.network = AsyncNetwork(transport)
        self.storage = storage if storage is not None else AsyncSQLiteStorage()
        self.version_store = version_store if version_store is not None else AsyncSQLiteVersionStore()
        self.tasks = BackgroundTasks()

        self.precache = PrecacheIndex(manifest, self.storage, config.origin, config.precache_cache_name)
        # Shared by the partial route and the composer.
        self.partial_strategy = AsyncNetworkFirst(
            self.network,
            self.storage,
            config.runtime_cache_name,
            network_timeout=config.network_timeout,
            tasks=self.tasks,
        )
        self.composer = PartialComposer(self.partial_strategy, self.precache, template, marker=config.marker)
        self.normalizer = PathNormalizer(self.network, self.precache)
        self.migrator = VersionMigrator(
            self.version_store,
            clients if clients is not None else _DetachedClients(),
            self.tasks,
            architecture=config.architecture,
            key=config.architecture_key,
        )
        self.router = Router(self._build_routes(), catch_handler=self._catch)

    @classmethod
    async def from_files(
        cls,
        transport: httpx.AsyncBaseTransport,
        config: WorkerConfig,
        template_path: tp.Union[str, Path],
        manifest_path: tp.Optional[tp.Union[str, Path]] = None,
        **kwargs: tp.Any,
    ) -> "AsyncContentWorker":
        template = await load_template(template_path, config.marker)
        manifest = await load_manifest(manifest_path) if manifest_path is not None else []
        return cls(transport, template, config, manifest=manifest, **kwargs)

    def _build_routes(self) -> tp.List[Route]:
        config = self.config
        host = config.host

        return [
            StrategyRoute(
                RegExpMatcher(compile_pattern("^" + re.escape(config.stylesheets_origin)), host),
                AsyncStaleWhileRevalidate(self.network, self.storage, config.stylesheets_cache_name, self.tasks),
            ),
            StrategyRoute(
                RegExpMatcher(compile_pattern("^" + re.escape(config.webfonts_origin)), host),
                AsyncCacheFirst(
                    self.network,
                    self.storage,
                    config.webfonts_cache_name,
                    cacheable=CacheableResponsePolicy(statuses=WEBFONTS_CACHEABLE_STATUSES),
                    expiration=ExpirationPolicy(
                        max_age_seconds=config.webfonts_max_age_seconds,
                        max_entries=config.webfonts_max_entries,
                    ),
                ),
            ),
            StrategyRoute(PrecacheMatcher(self.precache, host), AsyncPrecacheStrategy(self.network, self.precache)),
            StrategyRoute(SameHostPathMatcher(PARTIAL_PATH_RE, host), self.partial_strategy),
            StrategyRoute(
                RegExpMatcher(compile_pattern("/images/.*"), host),
                AsyncStaleWhileRevalidate(self.network, self.storage, config.runtime_cache_name, self.tasks),
            ),
            CustomRoute(SameHostPathMatcher(CONTENT_PATH_RE, host), self.composer.handle),
            CustomRoute(SameHostPathMatcher(UNTRAILED_PATH_RE, host), self.normalizer.normalize),
        ]

    async def _catch(self, request: httpx.Request, exc: ShellCacheError) -> tp.Optional[httpx.Response]:
        # Partials are routed by strategy, so their failures only surface here.
        if is_same_host(request.url, self.config.host) and PARTIAL_PATH_RE.match(request.url.path):
            logger.warning(f"Serving offline partial for {request.url.path} due to {exc!r}")
            return await self.composer.offline_partial()
        return None

    async def install(self, registration_active: bool = False) -> InstallContext:
        """
        Populate the precache.

        :param registration_active: Whether another worker was controlling the site when this one installed
        :type registration_active: bool
        :return: What `activate` needs to know about this installation
        :rtype: InstallContext
        """
        fetched = await self.precache.install(self.network)
        logger.debug(f"Installed worker arch {self.config.architecture}, fetched {len(fetched)} precache entries")
        return InstallContext(replacing_previous_worker=registration_active)

    def _ensure_entered(self) -> None:
        if not self.tasks.running:
            raise RuntimeError(
                "AsyncContentWorker must be entered with `async with` before it activates or handles requests"
            )

    async def activate(self, context: InstallContext) -> MigrationDecision:
        self._ensure_entered()
        return await self.migrator.migrate(context)

    async def handle_fetch(self, request: httpx.Request) -> httpx.Response:
        """
        Answer an intercepted request.

        Requests no route claims go to the network untouched.
        """
        self._ensure_entered()
        response = await self.router.dispatch(request)
        if response is None:
            return await self.network.pass_through(request)
        return response

    async def aclose(self) -> None:
        await self.storage.aclose()
        await self.version_store.aclose()
        await self.network.aclose()

    async def __aenter__(self) -> "Self":
        await self.tasks.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        try:
            await self.tasks.__aexit__(exc_type, exc_value, traceback)
        finally:
            await self.aclose()


class AsyncContentTransport(httpx.AsyncBaseTransport):
    """
    An HTTPX Transport that puts a content worker in front of the network.

    Failures the worker does not recover from reach the client as `httpx.NetworkError`.

    :param worker: The worker answering requests
    :type worker: AsyncContentWorker
    """

    def __init__(self, worker: AsyncContentWorker) -> None:
        self._worker = worker

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._worker.handle_fetch(request)
        except ShellCacheError as exc:
            raise httpx.NetworkError(str(exc), request=request) from exc

    async def aclose(self) -> None:
        await self._worker.aclose()

    async def __aenter__(self) -> "Self":
        await self._worker.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[types.TracebackType] = None,
    ) -> None:
        await self._worker.__aexit__(exc_type, exc_value, traceback)
