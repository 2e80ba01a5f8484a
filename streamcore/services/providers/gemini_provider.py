import logging
from typing import Any
from urllib.parse import quote

from streamcore.config import Settings
from streamcore.errors import ProviderNotConfiguredError
from streamcore.models.schemas import HistoryMessage
from streamcore.services.model_catalog import filter_models, normalize_catalog
from streamcore.services.providers.base import (
    ChunkResult,
    ProviderAdapter,
    WireRequest,
    error_text,
    load_json_frame,
)

logger = logging.getLogger(__name__)

MODEL_PREFIX = "gemini:"
_DEFAULT_EXCLUDED = ["vision", "embedding"]


class GeminiAdapter(ProviderAdapter):
    """Google Gemini over the SSE variant of ``streamGenerateContent``.

    The API key travels as a ``key`` query parameter rather than a header.
    Model names are exposed with a ``gemini:`` prefix so the router can tell
    them apart from local models.
    """

    name = "gemini"

    def __init__(self, settings: Settings):
        self._api_key = settings.gemini_api_key.get_secret_value()
        self._base_url = settings.gemini_url.rstrip("/")
        self._system_prompt = settings.system_prompt
        self._excluded = settings.excluded_model_terms("gemini", _DEFAULT_EXCLUDED)

    def check_configured(self) -> None:
        if not self._api_key:
            raise ProviderNotConfiguredError(self.name, "Gemini API key not configured.")

    def build_request(
        self,
        prompt: str,
        history: list[HistoryMessage] | None,
        model: str,
        temperature: float,
        context: list[int] | None = None,
    ) -> WireRequest:
        # Gemini has no system role: system turns are folded into systemInstruction.
        system_parts = [self._system_prompt] if self._system_prompt else []
        contents = []
        for m in history or []:
            if not m.text:
                continue
            if m.role == "system":
                system_parts.append(m.text)
                continue
            role = "model" if m.role == "assistant" else "user"
            contents.append({"role": role, "parts": [{"text": m.text}]})
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        body: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {"temperature": temperature},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": [{"text": "\n".join(system_parts)}]}

        model_id = quote(model.removeprefix(MODEL_PREFIX), safe=".-_")
        logger.debug("Prepared %d messages for Gemini model %s", len(contents), model_id)
        return WireRequest(
            method="POST",
            url=f"{self._base_url}/models/{model_id}:streamGenerateContent?alt=sse&key={self._api_key}",
            headers={"Content-Type": "application/json"},
            body=body,
            framing="sse",
        )

    def extract_delta(self, frame: str) -> ChunkResult | None:
        payload = load_json_frame(frame)
        if payload is None:
            return None

        error = error_text(payload)
        if error:
            logger.error("Gemini API error in stream: %s", error)
            return ChunkResult(text=error)

        candidates = payload.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        # Thought parts are scratch output and never shown.
        text = "".join(
            p.get("text", "") for p in parts if isinstance(p, dict) and not p.get("thought")
        )
        return ChunkResult(text=text) if text else None

    def list_models_request(self) -> WireRequest:
        return WireRequest(method="GET", url=f"{self._base_url}/models?key={self._api_key}")

    def normalize_model_list(self, raw: Any) -> list[str]:
        entries = raw.get("models", []) if isinstance(raw, dict) else []
        ids = []
        for entry in entries:
            if isinstance(entry, str):
                ids.append(entry.removeprefix("models/"))
                continue
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            methods = entry.get("supportedGenerationMethods")
            if methods is not None and "generateContent" not in methods:
                continue
            ids.append(entry["name"].removeprefix("models/"))

        selected = normalize_catalog(
            ids,
            keep=lambda found: filter_models(found, required="gemini", excluded=self._excluded),
        )
        return [f"{MODEL_PREFIX}{model_id}" for model_id in selected]
