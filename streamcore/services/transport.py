import asyncio
import inspect
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from httpx_sse import EventSource

from streamcore.config import Settings
from streamcore.errors import ProviderTransportError
from streamcore.services.providers.base import WireRequest
from streamcore.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

Transform = Callable[[str], Awaitable[str | None]]
TextCallback = Callable[[str], Any]


def create_client(settings: Settings) -> httpx.AsyncClient:
    timeout = httpx.Timeout(settings.read_timeout, connect=settings.connect_timeout)
    return httpx.AsyncClient(timeout=timeout)


def _error_detail(response: httpx.Response) -> str:
    """Best-effort error message from a non-2xx response body."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and payload.get("error"):
        error = payload["error"]
        if isinstance(error, dict):
            return error.get("message") or f"HTTP error: {response.status_code}"
        return str(error)
    return f"HTTP error: {response.status_code}"


class TransportSession:
    """One cancellable streaming request.

    Frames are read one at a time, passed through the caller's async
    transform and appended to an append-only accumulator. ``cancel()`` may be
    called at any point, from any callback, any number of times; it always
    returns the text accumulated so far.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        provider: str = "provider",
        yield_every: int = 8,
    ):
        self._client = client
        self.provider = provider
        self._yield_every = max(1, yield_every)
        self._chunks: list[str] = []
        self._task: asyncio.Task | None = None
        self.cancelled = False
        self.finished = False
        self.degraded = False

    @property
    def accumulated(self) -> str:
        return "".join(self._chunks)

    async def run(
        self,
        request: WireRequest,
        transform: Transform,
        on_text: TextCallback | None = None,
    ) -> str:
        if self.cancelled:
            return self.accumulated
        self._task = asyncio.current_task()
        frames_seen = 0
        try:
            async with self._client.stream(
                request.method,
                request.url,
                headers=request.headers,
                json=request.body,
            ) as response:
                if response.status_code >= 400:
                    await response.aread()
                    raise ProviderTransportError(
                        self.provider,
                        _error_detail(response),
                        status_code=response.status_code,
                    )
                async with aclosing(self._frames(request, response)) as frames:
                    async for frame in frames:
                        if self.cancelled:
                            break
                        text = await transform(frame)
                        if self.cancelled:
                            break
                        if text:
                            self._chunks.append(text)
                            if on_text is not None:
                                result = on_text(text)
                                if inspect.isawaitable(result):
                                    await result
                        frames_seen += 1
                        if frames_seen % self._yield_every == 0:
                            await asyncio.sleep(0)
        except asyncio.CancelledError:
            if not self.cancelled:
                raise
            logger.debug("%s stream cancelled after %d frames", self.provider, frames_seen)
        except httpx.HTTPError as exc:
            if self.cancelled:
                return self.accumulated
            if not self._chunks:
                raise ProviderTransportError(
                    self.provider, f"Request to {self.provider} failed: {exc}"
                ) from exc
            self.degraded = True
            logger.warning(
                "%s stream failed after %d characters, keeping partial response: %s",
                self.provider, len(self.accumulated), exc,
            )
        finally:
            self.finished = True
            self._task = None
        return self.accumulated

    async def _frames(
        self, request: WireRequest, response: httpx.Response
    ) -> AsyncIterator[str]:
        if request.framing == "sse":
            async for event in EventSource(response).aiter_sse():
                yield event.data
        else:
            async for line in response.aiter_lines():
                yield line

    def cancel(self) -> str:
        """Abort the request and return the text received so far."""
        if not self.cancelled and not self.finished:
            self.cancelled = True
            task = self._task
            if task is not None and not task.done() and task is not _current_task():
                task.cancel()
            logger.info("%s request cancelled with partial response saved", self.provider)
        return self.accumulated


def _current_task() -> asyncio.Task | None:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


async def get_json(
    client: httpx.AsyncClient,
    request: WireRequest,
    cache: ResponseCache | None = None,
    provider: str = "provider",
) -> Any:
    """Side-channel GET returning decoded JSON, served from ``cache`` when fresh."""
    if cache is not None:
        cached = cache.get(request.url, request.headers)
        if cached is not None:
            logger.debug("Using cached %s response", provider)
            return cached
    try:
        response = await client.get(request.url, headers=request.headers)
    except httpx.HTTPError as exc:
        raise ProviderTransportError(provider, f"Request to {provider} failed: {exc}") from exc
    if response.status_code >= 400:
        raise ProviderTransportError(
            provider, _error_detail(response), status_code=response.status_code
        )
    try:
        data = response.json()
    except ValueError as exc:
        raise ProviderTransportError(provider, "Invalid JSON in response") from exc
    if cache is not None:
        cache.put(request.url, request.headers, data)
    return data
