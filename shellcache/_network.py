from __future__ import annotations

import logging

import httpx

from ._exceptions import NetworkFailure

logger = logging.getLogger("shellcache.network")

__all__ = ("AsyncNetwork",)


class AsyncNetwork:
    """
    The single place where requests leave the worker.

    Bodies are read eagerly so responses can be cached and replayed.
    Request errors, including undecodable bodies, become `NetworkFailure`.

    :param transport: Transport that performs the real I/O
    :type transport: httpx.AsyncBaseTransport
    """

    def __init__(self, transport: httpx.AsyncBaseTransport) -> None:
        self._transport = transport

    async def fetch(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await self._transport.handle_async_request(request)
            try:
                await response.aread()
            finally:
                await response.aclose()
        except httpx.RequestError as exc:
            logger.debug(f"Network request to {request.url} failed: {exc!r}")
            raise NetworkFailure(f"Fetching {request.url} failed: {exc!r}") from exc
        return response

    async def pass_through(self, request: httpx.Request) -> httpx.Response:
        """Forward a request the worker does not handle, without touching the body."""
        return await self._transport.handle_async_request(request)

    async def aclose(self) -> None:
        await self._transport.aclose()
