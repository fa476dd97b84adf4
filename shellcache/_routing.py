from __future__ import annotations

import logging
import re
import typing as tp
from dataclasses import dataclass

import httpx
from typing_extensions import assert_never

from ._exceptions import ShellCacheError
from ._precache import PrecacheIndex
from ._strategies import AsyncBaseStrategy
from ._utils import is_same_host

logger = logging.getLogger("shellcache.routing")

__all__ = (
    "Router",
    "StrategyRoute",
    "CustomRoute",
    "RegExpMatcher",
    "SameHostPathMatcher",
    "PrecacheMatcher",
)

Matcher = tp.Callable[[httpx.Request], bool]
Handler = tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]]
CatchHandler = tp.Callable[[httpx.Request, ShellCacheError], tp.Awaitable[tp.Optional[httpx.Response]]]


@dataclass(frozen=True)
class RegExpMatcher:
    """
    Search `pattern` in the full URL.

    For a URL on another host only a match starting at the first character counts, so
    "/images/.*" never captures a foreign URL that merely contains "/images/".
    """

    pattern: tp.Pattern[str]
    host: str

    def __call__(self, request: httpx.Request) -> bool:
        match = self.pattern.search(str(request.url))
        if match is None:
            return False
        return is_same_host(request.url, self.host) or match.start() == 0


@dataclass(frozen=True)
class SameHostPathMatcher:
    pattern: tp.Pattern[str]
    host: str

    def __call__(self, request: httpx.Request) -> bool:
        return is_same_host(request.url, self.host) and self.pattern.match(request.url.path) is not None


@dataclass(frozen=True)
class PrecacheMatcher:
    index: PrecacheIndex
    host: str

    def __call__(self, request: httpx.Request) -> bool:
        return is_same_host(request.url, self.host) and request.url.path in self.index


@dataclass(frozen=True)
class StrategyRoute:
    matcher: Matcher
    strategy: AsyncBaseStrategy


@dataclass(frozen=True)
class CustomRoute:
    matcher: Matcher
    handler: Handler


Route = tp.Union[StrategyRoute, CustomRoute]


def compile_pattern(pattern: str) -> tp.Pattern[str]:
    # `\w` is ASCII-only, as in the site's route table.
    return re.compile(pattern, re.ASCII)


class Router:
    """
    An ordered route table; the first route whose matcher accepts a request owns it.

    Only GET requests are routed. When a strategy route fails, the catch handler may
    supply a replacement response; custom routes handle their own failures.

    :param routes: Routes in priority order
    :type routes: tp.Iterable[Route]
    :param catch_handler: Fallback for failing strategy routes, defaults to None
    :type catch_handler: tp.Optional[CatchHandler], optional
    """

    def __init__(self, routes: tp.Iterable[Route] = (), catch_handler: tp.Optional[CatchHandler] = None) -> None:
        self._routes: tp.List[Route] = list(routes)
        self._catch_handler = catch_handler

    @property
    def routes(self) -> tp.List[Route]:
        return list(self._routes)

    def register(self, route: Route) -> None:
        self._routes.append(route)

    def set_catch_handler(self, catch_handler: tp.Optional[CatchHandler]) -> None:
        self._catch_handler = catch_handler

    def find(self, request: httpx.Request) -> tp.Optional[Route]:
        if request.method != "GET":
            return None
        for route in self._routes:
            if route.matcher(request):
                return route
        return None

    async def dispatch(self, request: httpx.Request) -> tp.Optional[httpx.Response]:
        """
        Handle a request with the first matching route.

        :return: The response, or None when no route matched and the request should go to the network
        """
        route = self.find(request)
        if route is None:
            return None

        if isinstance(route, StrategyRoute):
            try:
                return await route.strategy.handle(request)
            except ShellCacheError as exc:
                if self._catch_handler is None:
                    raise
                logger.debug(f"Route for {request.url} failed with {exc!r}, trying the catch handler")
                response = await self._catch_handler(request, exc)
                if response is None:
                    raise
                return response
        elif isinstance(route, CustomRoute):
            return await route.handler(request)
        else:
            assert_never(route)
