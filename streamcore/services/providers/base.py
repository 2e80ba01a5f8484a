import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

from streamcore.errors import ProviderNotConfiguredError
from streamcore.models.schemas import HistoryMessage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WireRequest:
    """A fully built HTTP request for one provider call."""
    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: dict[str, Any] | None = None
    framing: Literal["lines", "sse"] = "lines"


@dataclass
class ChunkResult:
    """Normalized delta extracted from a single wire frame."""
    text: str | None = None
    context_update: list[int] | None = None


class ProviderAdapter(ABC):
    """Translates between the uniform provider interface and one backend's wire format."""

    name: str = "provider"

    @abstractmethod
    def check_configured(self) -> None:
        """Raise ProviderNotConfiguredError if a credential or endpoint is missing."""
        ...

    @abstractmethod
    def build_request(
        self,
        prompt: str,
        history: list[HistoryMessage] | None,
        model: str,
        temperature: float,
        context: list[int] | None = None,
    ) -> WireRequest:
        ...

    @abstractmethod
    def extract_delta(self, frame: str) -> ChunkResult | None:
        """Return the delta carried by ``frame``, or None if it carries nothing."""
        ...

    @abstractmethod
    def list_models_request(self) -> WireRequest:
        ...

    @abstractmethod
    def normalize_model_list(self, raw: Any) -> list[str]:
        ...

    def is_configured(self) -> bool:
        try:
            self.check_configured()
        except ProviderNotConfiguredError:
            return False
        return True


def load_json_frame(frame: str) -> dict | None:
    """Decode one frame as a JSON object; None for blank or malformed frames."""
    frame = frame.strip()
    if not frame:
        return None
    try:
        data = json.loads(frame)
    except json.JSONDecodeError:
        logger.debug("Skipping malformed frame: %.80s", frame)
        return None
    return data if isinstance(data, dict) else None


def error_text(payload: dict) -> str | None:
    """Displayable text for an error object embedded in a stream payload."""
    error = payload.get("error")
    if not error:
        return None
    if isinstance(error, dict):
        message = error.get("message") or "Unknown error"
    else:
        message = str(error)
    return f"Error: {message}"


def build_chat_messages(
    prompt: str,
    history: list[HistoryMessage] | None,
    system_prompt: str,
) -> list[dict]:
    """System prompt (unless history has one), prior turns, then the new user turn."""
    history = history or []
    messages = []
    if not any(m.role == "system" for m in history):
        messages.append({"role": "system", "content": system_prompt})
    for m in history:
        if not m.text:
            logger.debug("Skipping empty %s message in history", m.role)
            continue
        messages.append({"role": m.role, "content": m.text})
    messages.append({"role": "user", "content": prompt})
    return messages
