from typing import Any

from streamcore.config import Settings
from streamcore.errors import ProviderNotConfiguredError
from streamcore.models.schemas import HistoryMessage
from streamcore.services.model_catalog import filter_models, normalize_catalog
from streamcore.services.providers.base import (
    ChunkResult,
    ProviderAdapter,
    WireRequest,
    build_chat_messages,
    error_text,
    load_json_frame,
)

_DEFAULT_EXCLUDED = [
    "instruct", "audio", "search", "realtime",
    "vision", "embedding", "tts", "transcribe",
]


class OpenAIAdapter(ProviderAdapter):
    name = "openai"

    def __init__(self, settings: Settings):
        self._api_key = settings.openai_api_key.get_secret_value()
        self._base_url = settings.openai_url.rstrip("/")
        self._system_prompt = settings.system_prompt
        self._excluded = settings.excluded_model_terms("openai", _DEFAULT_EXCLUDED)

    def check_configured(self) -> None:
        if not self._api_key:
            raise ProviderNotConfiguredError(self.name, "OpenAI API key not configured.")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def build_request(
        self,
        prompt: str,
        history: list[HistoryMessage] | None,
        model: str,
        temperature: float,
        context: list[int] | None = None,
    ) -> WireRequest:
        return WireRequest(
            method="POST",
            url=f"{self._base_url}/chat/completions",
            headers=self._headers(),
            body={
                "model": model.removeprefix("openai:"),
                "messages": build_chat_messages(prompt, history, self._system_prompt),
                "stream": True,
                "temperature": temperature,
            },
            framing="sse",
        )

    def extract_delta(self, frame: str) -> ChunkResult | None:
        if frame.strip() == "[DONE]":
            return None
        payload = load_json_frame(frame)
        if payload is None:
            return None

        error = error_text(payload)
        if error:
            return ChunkResult(text=error)

        choices = payload.get("choices") or []
        if not choices:
            return None
        delta = choices[0].get("delta") or {}
        content = delta.get("content")
        return ChunkResult(text=content) if content else None

    def list_models_request(self) -> WireRequest:
        return WireRequest(method="GET", url=f"{self._base_url}/models", headers=self._headers())

    def normalize_model_list(self, raw: Any) -> list[str]:
        entries = raw.get("data", []) if isinstance(raw, dict) else []
        ids = [e.get("id") for e in entries if isinstance(e, dict) and e.get("id")]
        return normalize_catalog(
            ids,
            keep=lambda found: filter_models(found, required="gpt", excluded=self._excluded),
        )
