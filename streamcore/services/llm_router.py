import asyncio
import logging
import re

import httpx

from streamcore.config import Settings
from streamcore.models.schemas import HistoryMessage, ModelListResult
from streamcore.services.model_catalog import sort_models
from streamcore.services.providers.gemini_provider import MODEL_PREFIX as GEMINI_PREFIX
from streamcore.services.response_cache import ResponseCache
from streamcore.services.session_manager import (
    DeltaCallback,
    SendHandle,
    StreamingProvider,
    build_provider,
)
from streamcore.services.transport import create_client

logger = logging.getLogger(__name__)

_OPENAI_MODEL = re.compile(r"^(?:openai:|gpt-|o\d)")


class LLMRouter:
    """Routes chat requests to the appropriate provider based on model name."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self._settings = settings
        self._client = client or create_client(settings)
        self._cache = ResponseCache(
            settings.model_cache_max_entries, settings.model_cache_ttl_seconds
        )
        self._providers: dict[str, StreamingProvider] = {
            name: build_provider(name, settings, client=self._client, cache=self._cache)
            for name in ("ollama", "openai", "gemini")
        }
        self.history: list[HistoryMessage] = []

    @property
    def providers(self) -> dict[str, StreamingProvider]:
        return self._providers

    def get_provider_name(self, model_id: str) -> str:
        if model_id.startswith(GEMINI_PREFIX):
            return "gemini"
        if _OPENAI_MODEL.match(model_id):
            return "openai"
        return "ollama"

    def get_provider(self, model_id: str) -> StreamingProvider:
        return self._providers[self.get_provider_name(model_id)]

    def configured_providers(self) -> dict[str, bool]:
        return {name: p.adapter.is_configured() for name, p in self._providers.items()}

    async def fetch_model_names(self) -> ModelListResult:
        """Merge every configured provider's catalog into one sorted list."""
        configured = [p for p in self._providers.values() if p.adapter.is_configured()]
        results = await asyncio.gather(*(p.fetch_model_names() for p in configured))

        models: list[str] = []
        errors: list[str] = []
        for provider, result in zip(configured, results):
            models.extend(result.models)
            if result.error:
                errors.append(f"{provider.name}: {result.error}")
        return ModelListResult(
            models=sort_models(models),
            error="; ".join(errors) if errors else None,
        )

    def send_message(
        self,
        text: str,
        model_id: str | None = None,
        history: list[HistoryMessage] | None = None,
        on_delta: DeltaCallback | None = None,
        context: list[int] | None = None,
    ) -> SendHandle:
        model_id = model_id or self._settings.default_model
        provider = self.get_provider(model_id)
        # Only one response is rendered at a time across every backend.
        for other in self._providers.values():
            if other is not provider:
                other.retire()
        logger.info("Routing to %s for model %s", provider.name, model_id)
        return provider.send_message(
            text,
            model_id,
            history=self.history if history is None else history,
            on_delta=on_delta,
            context=context,
        )

    def record_exchange(self, user_text: str, assistant_text: str) -> None:
        self.history.append(HistoryMessage(role="user", text=user_text))
        if assistant_text:
            self.history.append(HistoryMessage(role="assistant", text=assistant_text))

    def clear_history(self) -> None:
        self.history = []
        for provider in self._providers.values():
            provider.reset_context()

    def stop(self) -> str:
        partial = ""
        for provider in self._providers.values():
            partial = provider.stop() or partial
        return partial

    async def aclose(self) -> None:
        self.stop()
        await self._client.aclose()
