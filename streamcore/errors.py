"""Error types raised by the provider layer.

Configuration problems are raised before any network call is made.
Transport problems are raised only when nothing was received; a stream that
fails after delivering text resolves with the partial text instead.
"""

from enum import Enum


class ErrorType(str, Enum):
    NETWORK = "network"
    API = "api"
    AUTHENTICATION = "auth"
    MODEL = "model"
    FILE = "file"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base class for errors surfaced by a provider."""

    error_type = ErrorType.UNKNOWN

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider
        self.message = message


class ProviderNotConfiguredError(ProviderError):
    """A credential or endpoint the provider needs is missing."""

    error_type = ErrorType.AUTHENTICATION


class ProviderTransportError(ProviderError):
    """The request failed before any text was received."""

    error_type = ErrorType.NETWORK

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(provider, message)
        self.status_code = status_code
        if status_code is not None:
            self.error_type = ErrorType.API


def friendly_error_message(exc: BaseException) -> str:
    """Short advisory text for a transient error notice."""
    if isinstance(exc, ProviderNotConfiguredError):
        return f"{exc.message} Please add it in settings."
    if isinstance(exc, ProviderTransportError):
        if exc.status_code in (401, 403):
            return "Authentication error. Please check your API key in settings."
        if exc.status_code == 404:
            return "Model error. The selected AI model may be unavailable."
        if exc.status_code is not None:
            return f"API communication error with {exc.provider} (HTTP {exc.status_code}). Please try again later."
        return f"Network connection error talking to {exc.provider}. Please check that it is reachable."
    return "An unexpected error occurred. Please try again."
