from __future__ import annotations

import logging

import httpx

from ._exceptions import NetworkFailure
from ._network import AsyncNetwork
from ._precache import PrecacheIndex
from ._routing import compile_pattern
from ._utils import with_trailing_slash

logger = logging.getLogger("shellcache.normalizer")

__all__ = ("PathNormalizer", "UNTRAILED_PATH_RE")

# "/foo-bar" and "/foo/bar/baz", but never a path ending in "/" or containing a dot.
UNTRAILED_PATH_RE = compile_pattern(r"^(/[\w-]+)+$")


def redirect_to_trailing_slash(request: httpx.Request) -> httpx.Response:
    return httpx.Response(301, headers=[("Location", str(with_trailing_slash(request.url)))], content=b"")


class PathNormalizer:
    """
    Answers requests for paths without a trailing slash.

    The network gets the first word so server-side redirects (vanity URLs and the like)
    win over normalization. If the canonical page is precached, or the network is
    unreachable, the answer is a 301 to the same path with "/" appended.
    """

    def __init__(self, network: AsyncNetwork, precache: PrecacheIndex) -> None:
        self._network = network
        self._precache = precache

    async def normalize(self, request: httpx.Request) -> httpx.Response:
        # Precached pages are always stored under ".../index.html"; presence is only a signal.
        cached = await self._precache.match(request.url.path + "/index.html")
        if cached is None:
            try:
                return await self._network.fetch(request)
            except NetworkFailure as exc:
                logger.debug(f"Redirecting {request.url.path} after network failure: {exc!r}")
        return redirect_to_trailing_slash(request)
