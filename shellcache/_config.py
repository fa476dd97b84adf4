from __future__ import annotations

import typing as tp
from dataclasses import dataclass

import httpx

__all__ = (
    "ARCHITECTURE_VERSION",
    "CONTENT_REPLACE_MARKER",
    "WorkerConfig",
)

# Bump when the worker design changes incompatibly; open pages are reloaded on upgrade.
ARCHITECTURE_VERSION = "v3"
ARCHITECTURE_KEY = "arch"

CONTENT_REPLACE_MARKER = "%_CONTENT_REPLACE_%"

NOT_FOUND_PARTIAL_PATH = "/404/index.json"
OFFLINE_PARTIAL_PATH = "/offline/index.json"

STYLESHEETS_ORIGIN = "https://fonts.googleapis.com"
WEBFONTS_ORIGIN = "https://fonts.gstatic.com"

STYLESHEETS_CACHE_NAME = "google-fonts-stylesheets"
WEBFONTS_CACHE_NAME = "google-fonts-webfonts"
PRECACHE_CACHE_NAME = "precache-v2"
RUNTIME_CACHE_NAME = "runtime"

WEBFONTS_MAX_AGE_SECONDS = 60 * 60 * 24 * 365
WEBFONTS_MAX_ENTRIES = 30
# Status 0 is an opaque cross-origin response.
WEBFONTS_CACHEABLE_STATUSES = (0, 200)


@dataclass(frozen=True)
class WorkerConfig:
    """
    Tunables of a content worker.

    :param origin: Scheme and host of the site the worker serves, e.g. "https://example.com"
    :param network_timeout: Seconds the partial strategy waits for the network before using the cache
    """

    origin: str
    architecture: str = ARCHITECTURE_VERSION
    architecture_key: str = ARCHITECTURE_KEY
    network_timeout: tp.Optional[float] = None
    marker: str = CONTENT_REPLACE_MARKER
    stylesheets_origin: str = STYLESHEETS_ORIGIN
    webfonts_origin: str = WEBFONTS_ORIGIN
    stylesheets_cache_name: str = STYLESHEETS_CACHE_NAME
    webfonts_cache_name: str = WEBFONTS_CACHE_NAME
    precache_cache_name: str = PRECACHE_CACHE_NAME
    runtime_cache_name: str = RUNTIME_CACHE_NAME
    webfonts_max_age_seconds: float = WEBFONTS_MAX_AGE_SECONDS
    webfonts_max_entries: int = WEBFONTS_MAX_ENTRIES

    @property
    def host(self) -> str:
        return httpx.URL(self.origin).netloc.decode("ascii")
