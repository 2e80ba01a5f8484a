import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx

from streamcore.config import Settings
from streamcore.errors import ProviderError
from streamcore.models.schemas import ChatResult, HistoryMessage, ModelListResult
from streamcore.services.providers.base import ProviderAdapter, WireRequest
from streamcore.services.providers.gemini_provider import GeminiAdapter
from streamcore.services.providers.ollama_provider import OllamaAdapter
from streamcore.services.providers.openai_provider import OpenAIAdapter
from streamcore.services.response_cache import ResponseCache
from streamcore.services.transport import TransportSession, create_client, get_json

logger = logging.getLogger(__name__)

DeltaCallback = Callable[[str], Any]


@dataclass
class SendHandle:
    """What ``send_message`` hands back: an awaitable result and a cancel function."""
    result: "asyncio.Task[ChatResult]"
    cancel: Callable[[], str]


class StreamingProvider:
    """Uniform provider interface over one backend adapter.

    Owns at most one in-flight session. Every new send retires the previous
    session before the new one is created, so callbacks from two responses
    can never interleave.
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        settings: Settings,
        client: httpx.AsyncClient | None = None,
        cache: ResponseCache | None = None,
    ):
        self.adapter = adapter
        self._settings = settings
        self._owns_client = client is None
        self._client = client or create_client(settings)
        self._cache = cache if cache is not None else ResponseCache(
            settings.model_cache_max_entries, settings.model_cache_ttl_seconds
        )
        self._session: TransportSession | None = None
        self._context: list[int] | None = None

    @property
    def name(self) -> str:
        return self.adapter.name

    @property
    def context(self) -> list[int] | None:
        return self._context

    def has_active_session(self) -> bool:
        return self._session is not None and not self._session.cancelled

    def reset_context(self) -> None:
        self._context = None

    def retire(self) -> str:
        """Cancel the in-flight session, if any, and return its partial text."""
        session, self._session = self._session, None
        if session is None:
            return ""
        return session.cancel()

    async def fetch_model_names(self) -> ModelListResult:
        try:
            self.adapter.check_configured()
            raw = await get_json(
                self._client,
                self.adapter.list_models_request(),
                cache=self._cache,
                provider=self.name,
            )
        except ProviderError as exc:
            logger.warning("Error fetching %s models: %s", self.name, exc.message)
            return ModelListResult(error=exc.message)
        return ModelListResult(models=self.adapter.normalize_model_list(raw))

    def send_message(
        self,
        text: str,
        model: str,
        history: list[HistoryMessage] | None = None,
        on_delta: DeltaCallback | None = None,
        context: list[int] | None = None,
        temperature: float | None = None,
    ) -> SendHandle:
        """Start streaming a response. Must be called from a running event loop.

        Raises ProviderNotConfiguredError before any network activity when the
        backend is missing a credential.
        """
        self.retire()
        self.adapter.check_configured()

        if temperature is None:
            temperature = self._settings.temperature
        request = self.adapter.build_request(
            text, history, model, temperature, context or self._context
        )
        session = TransportSession(
            self._client,
            provider=self.name,
            yield_every=self._settings.stream_yield_every,
        )
        self._session = session
        logger.info("Sending message to %s model %s", self.name, model)

        task = asyncio.create_task(self._complete(session, request, on_delta))
        return SendHandle(result=task, cancel=lambda: self._cancel(session))

    async def _complete(
        self,
        session: TransportSession,
        request: WireRequest,
        on_delta: DeltaCallback | None,
    ) -> ChatResult:
        latest_context: list[int] | None = None

        async def transform(frame: str) -> str | None:
            nonlocal latest_context
            chunk = self.adapter.extract_delta(frame)
            if chunk is None:
                return None
            if chunk.context_update:
                latest_context = chunk.context_update
                if self._session is session:
                    self._context = chunk.context_update
            return chunk.text

        try:
            text = await session.run(request, transform, on_text=on_delta)
        finally:
            if self._session is session:
                self._session = None
        return ChatResult(text=text, context=latest_context, degraded=session.degraded)

    def _cancel(self, session: TransportSession) -> str:
        if self._session is session:
            self._session = None
        return session.cancel()

    def stop(self) -> str:
        """Terminate the active response, forget the completion context, return the partial text."""
        partial = self.retire()
        self.reset_context()
        return partial

    async def aclose(self) -> None:
        self.retire()
        if self._owns_client:
            await self._client.aclose()


_ADAPTERS: dict[str, type[ProviderAdapter]] = {
    OllamaAdapter.name: OllamaAdapter,
    OpenAIAdapter.name: OpenAIAdapter,
    GeminiAdapter.name: GeminiAdapter,
}


def build_provider(
    name: str,
    settings: Settings,
    client: httpx.AsyncClient | None = None,
    cache: ResponseCache | None = None,
) -> StreamingProvider:
    adapter_cls = _ADAPTERS.get(name)
    if adapter_cls is None:
        raise ValueError(f"Unknown provider: {name}")
    return StreamingProvider(adapter_cls(settings), settings, client=client, cache=cache)
