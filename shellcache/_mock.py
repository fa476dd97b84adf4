import typing as tp
from types import TracebackType

import httpx

if tp.TYPE_CHECKING:  # pragma: no cover
    from typing_extensions import Self

__all__ = ("MockAsyncTransport",)

MockedResponse = tp.Union[
    httpx.Response,
    Exception,
    tp.Callable[[httpx.Request], tp.Awaitable[httpx.Response]],
]


class MockAsyncTransport(httpx.AsyncBaseTransport):
    """
    A scripted network.

    Responses are queued per URL and consumed in order; the last one for a URL is replayed
    once the queue is down to it. A queued exception is raised instead of answering, and a
    queued coroutine function is awaited with the request. URLs without a script behave as
    if the network were unreachable.
    """

    def __init__(self) -> None:
        self.mocked_responses: tp.Dict[str, tp.List[MockedResponse]] = {}
        self.requests: tp.List[httpx.Request] = []

    def add_responses(self, url: str, responses: tp.List[MockedResponse]) -> None:
        self.mocked_responses.setdefault(url, []).extend(responses)

    def requested_urls(self) -> tp.List[str]:
        return [str(request.url) for request in self.requests]

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        queue = self.mocked_responses.get(str(request.url))
        if not queue:
            raise httpx.ConnectError(f"No route to {request.url}", request=request)

        mocked = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(mocked, Exception):
            raise mocked
        if isinstance(mocked, httpx.Response):
            return httpx.Response(
                status_code=mocked.status_code,
                headers=mocked.headers,
                content=mocked.content,
                request=request,
            )
        return await mocked(request)

    async def __aenter__(self) -> "Self":
        return self

    async def __aexit__(
        self,
        exc_type: tp.Optional[tp.Type[BaseException]] = None,
        exc_value: tp.Optional[BaseException] = None,
        traceback: tp.Optional[TracebackType] = None,
    ) -> None: ...
