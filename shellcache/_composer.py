from __future__ import annotations

import html
import logging
import typing as tp

import httpx

from ._config import CONTENT_REPLACE_MARKER, NOT_FOUND_PARTIAL_PATH, OFFLINE_PARTIAL_PATH
from ._exceptions import ShellCacheError, UpstreamNonOk
from ._files import validate_template
from ._models import Partial
from ._precache import PrecacheIndex
from ._routing import compile_pattern
from ._strategies import AsyncBaseStrategy

logger = logging.getLogger("shellcache.composer")

__all__ = ("PartialComposer", "CONTENT_PATH_RE", "PARTIAL_PATH_RE")

# "/foo-bar/" and "/foo/bar/", optionally followed by "index.html".
CONTENT_PATH_RE = compile_pattern(r"^(/(?:[\w-]+/)*)(?:|index\.html)$")
# "/foo-bar/index.json" and "/foo/bar/index.json".
PARTIAL_PATH_RE = compile_pattern(r"^/([\w-]+/)*index\.json$")

OFFLINE_META = '<meta name="offline" value="true" />'

DEV_NOT_FOUND_PARTIAL = Partial(raw="<h1>Dev 404</h1>", title="")
DEV_OFFLINE_PARTIAL = Partial(raw="<h1>Dev offline</h1>", title="", offline=True)


class PartialComposer:
    """
    Builds full pages from JSON partials and the shared layout template.

    :param strategy: Strategy used to fetch partials, shared with the partial route
    :type strategy: AsyncBaseStrategy
    :param precache: Holds the not-found and offline partials
    :type precache: PrecacheIndex
    :param template: Page layout containing `marker` exactly once
    :type template: str
    """

    def __init__(
        self,
        strategy: AsyncBaseStrategy,
        precache: PrecacheIndex,
        template: str,
        marker: str = CONTENT_REPLACE_MARKER,
    ) -> None:
        self._strategy = strategy
        self._precache = precache
        self._template = validate_template(template, marker)
        self._marker = marker

    async def _precached_partial(self, path: str, fallback: Partial) -> httpx.Response:
        response = await self._precache.match(path)
        if response is None:
            # Happens in development, where partials are not precached.
            return httpx.Response(200, content=fallback.encode())
        return response

    async def not_found_partial(self) -> httpx.Response:
        return await self._precached_partial(NOT_FOUND_PARTIAL_PATH, DEV_NOT_FOUND_PARTIAL)

    async def offline_partial(self) -> httpx.Response:
        return await self._precached_partial(OFFLINE_PARTIAL_PATH, DEV_OFFLINE_PARTIAL)

    def render(self, partial: Partial) -> str:
        # A <title> in the middle of the document is accepted by every target browser.
        meta = OFFLINE_META if partial.offline else ""
        content = meta + f"<title>{html.escape(partial.title)}</title>" + partial.raw
        return self._template.replace(self._marker, content, 1)

    async def compose(self, content_path: str) -> httpx.Response:
        """
        Compose the page for a content directory such as "/" or "/foo/bar/".

        A missing partial yields the not-found page with status 404. A network failure yields
        the offline page with status 200; only the embedded offline marker tells it apart.
        A non-OK partial left after that raises `UpstreamNonOk`.
        """
        status = 200
        try:
            response = await self._strategy.handle(
                httpx.Request("GET", self._precache.origin + content_path + "index.json")
            )
            if response.status_code == 404:
                response = await self.not_found_partial()
                status = 404
        except ShellCacheError as exc:
            logger.warning(f"Serving offline partial for {content_path} due to {exc!r}")
            response = await self.offline_partial()

        if not response.is_success:
            raise UpstreamNonOk(
                f"Partial for {content_path} answered with status {response.status_code}",
                status_code=response.status_code,
            )

        partial = Partial.decode(response.content)
        return httpx.Response(
            status_code=status,
            headers=[("Content-Type", "text/html")],
            content=self.render(partial).encode("utf-8"),
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        content_path = content_path_of(request.url.path)
        if content_path is None:
            raise ValueError(f"{request.url.path!r} is not a content path")
        return await self.compose(content_path)


def content_path_of(path: str) -> tp.Optional[str]:
    match = CONTENT_PATH_RE.match(path)
    return None if match is None else match.group(1)
