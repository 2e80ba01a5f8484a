import logging
from typing import Any

from streamcore.config import Settings
from streamcore.errors import ProviderNotConfiguredError
from streamcore.models.schemas import HistoryMessage
from streamcore.services.model_catalog import sort_models
from streamcore.services.providers.base import (
    ChunkResult,
    ProviderAdapter,
    WireRequest,
    error_text,
    load_json_frame,
)

logger = logging.getLogger(__name__)


class OllamaAdapter(ProviderAdapter):
    """Local completion-style server.

    Each response line is one JSON object carrying a ``response`` fragment.
    Continuity comes from an opaque ``context`` token list that the caller
    resends on the next request; the server keeps no conversation state.
    """

    name = "ollama"

    def __init__(self, settings: Settings):
        self._base_url = settings.ollama_url.rstrip("/")

    def check_configured(self) -> None:
        if not self._base_url:
            raise ProviderNotConfiguredError(self.name, "Ollama endpoint not configured.")

    def build_request(
        self,
        prompt: str,
        history: list[HistoryMessage] | None,
        model: str,
        temperature: float,
        context: list[int] | None = None,
    ) -> WireRequest:
        # History is carried by the context token, not resent as text.
        return WireRequest(
            method="POST",
            url=f"{self._base_url}/api/generate",
            headers={"Content-Type": "application/json"},
            body={
                "model": model,
                "prompt": prompt,
                "stream": True,
                "context": context or None,
                "options": {"temperature": temperature},
            },
        )

    def extract_delta(self, frame: str) -> ChunkResult | None:
        payload = load_json_frame(frame)
        if payload is None:
            return None

        error = error_text(payload)
        if error:
            logger.error("Ollama API error: %s", error)
            return ChunkResult(text=error)

        context = payload.get("context")
        text = payload.get("response") or None
        if text is None and not context:
            return None
        return ChunkResult(text=text, context_update=context or None)

    def list_models_request(self) -> WireRequest:
        return WireRequest(method="GET", url=f"{self._base_url}/api/tags")

    def normalize_model_list(self, raw: Any) -> list[str]:
        models = raw.get("models", []) if isinstance(raw, dict) else []
        names = [m.get("name") for m in models if isinstance(m, dict)]
        return sort_models(n for n in names if n)
