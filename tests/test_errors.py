from streamcore.errors import (
    ErrorType,
    ProviderNotConfiguredError,
    ProviderTransportError,
    friendly_error_message,
)


class TestFriendlyErrorMessage:
    def test_not_configured(self):
        exc = ProviderNotConfiguredError("gemini", "Gemini API key not configured.")
        assert exc.error_type == ErrorType.AUTHENTICATION
        assert friendly_error_message(exc) == "Gemini API key not configured. Please add it in settings."

    def test_auth_status(self):
        exc = ProviderTransportError("openai", "bad key", status_code=401)
        assert friendly_error_message(exc).startswith("Authentication error")

    def test_missing_model(self):
        exc = ProviderTransportError("ollama", "not found", status_code=404)
        assert friendly_error_message(exc).startswith("Model error")

    def test_other_status(self):
        exc = ProviderTransportError("openai", "overloaded", status_code=503)
        assert exc.error_type == ErrorType.API
        assert "HTTP 503" in friendly_error_message(exc)

    def test_network(self):
        exc = ProviderTransportError("ollama", "refused")
        assert exc.error_type == ErrorType.NETWORK
        assert friendly_error_message(exc).startswith("Network connection error")

    def test_unexpected(self):
        assert friendly_error_message(RuntimeError("x")) == "An unexpected error occurred. Please try again."
