from ._composer import CONTENT_PATH_RE, PARTIAL_PATH_RE, PartialComposer
from ._config import ARCHITECTURE_VERSION, CONTENT_REPLACE_MARKER, WorkerConfig
from ._exceptions import DecodeFailure, NetworkFailure, NotFound, ShellCacheError, UpstreamNonOk
from ._files import load_manifest, load_template, parse_manifest
from ._migrator import Clients, VersionMigrator, WindowClient, needs_reload
from ._mock import MockAsyncTransport
from ._models import CacheEntry, InstallContext, ManifestEntry, MigrationDecision, Partial
from ._network import AsyncNetwork
from ._normalizer import UNTRAILED_PATH_RE, PathNormalizer
from ._policies import CacheableResponsePolicy, ExpirationPolicy
from ._precache import AsyncPrecacheStrategy, PrecacheIndex
from ._routing import CustomRoute, PrecacheMatcher, RegExpMatcher, Router, SameHostPathMatcher, StrategyRoute
from ._serializers import BaseSerializer, JSONSerializer
from ._storages import AsyncBaseStorage, AsyncFileStorage, AsyncInMemoryStorage, AsyncSQLiteStorage
from ._strategies import AsyncBaseStrategy, AsyncCacheFirst, AsyncNetworkFirst, AsyncStaleWhileRevalidate
from ._tasks import BackgroundTasks
from ._version_store import (
    AsyncBaseVersionStore,
    AsyncFileVersionStore,
    AsyncInMemoryVersionStore,
    AsyncSQLiteVersionStore,
)
from ._worker import AsyncContentTransport, AsyncContentWorker

__all__ = (
    # Worker
    "AsyncContentWorker",
    "AsyncContentTransport",
    "WorkerConfig",
    "ARCHITECTURE_VERSION",
    "CONTENT_REPLACE_MARKER",
    # Models
    "CacheEntry",
    "InstallContext",
    "ManifestEntry",
    "MigrationDecision",
    "Partial",
    # Exceptions
    "ShellCacheError",
    "NetworkFailure",
    "NotFound",
    "UpstreamNonOk",
    "DecodeFailure",
    # Strategies
    "AsyncBaseStrategy",
    "AsyncCacheFirst",
    "AsyncNetworkFirst",
    "AsyncStaleWhileRevalidate",
    "AsyncPrecacheStrategy",
    "CacheableResponsePolicy",
    "ExpirationPolicy",
    "BackgroundTasks",
    "AsyncNetwork",
    # Routing
    "Router",
    "StrategyRoute",
    "CustomRoute",
    "RegExpMatcher",
    "SameHostPathMatcher",
    "PrecacheMatcher",
    "PrecacheIndex",
    "PartialComposer",
    "PathNormalizer",
    "CONTENT_PATH_RE",
    "PARTIAL_PATH_RE",
    "UNTRAILED_PATH_RE",
    # Migration
    "VersionMigrator",
    "Clients",
    "WindowClient",
    "needs_reload",
    # Storages
    "AsyncBaseStorage",
    "AsyncInMemoryStorage",
    "AsyncSQLiteStorage",
    "AsyncFileStorage",
    "AsyncBaseVersionStore",
    "AsyncInMemoryVersionStore",
    "AsyncSQLiteVersionStore",
    "AsyncFileVersionStore",
    "BaseSerializer",
    "JSONSerializer",
    # Files
    "load_manifest",
    "load_template",
    "parse_manifest",
    # Testing
    "MockAsyncTransport",
)
