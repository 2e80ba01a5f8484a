from pathlib import Path
from functools import lru_cache

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from pydantic import SecretStr


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # API Keys
    openai_api_key: SecretStr = SecretStr("")
    gemini_api_key: SecretStr = SecretStr("")

    # Endpoints
    ollama_url: str = "http://localhost:11434"
    openai_url: str = "https://api.openai.com/v1"
    gemini_url: str = "https://generativelanguage.googleapis.com/v1beta"

    # Generation
    temperature: float = 0.7
    system_prompt: str = "You are a helpful assistant."

    # Transport
    connect_timeout: float = 10.0
    read_timeout: float = 120.0
    stream_yield_every: int = 8
    model_cache_max_entries: int = 16
    model_cache_ttl_seconds: float = 60.0

    # Server
    backend_port: int = 8000
    log_level: str = "INFO"

    # Loaded from YAML
    yaml_config: dict = {}

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        yaml_path = Path(__file__).parent.parent / "config" / "settings.yaml"
        if yaml_path.exists() and not self.yaml_config:
            with open(yaml_path, "r", encoding="utf-8") as f:
                self.yaml_config = yaml.safe_load(f) or {}

    @property
    def default_model(self) -> str:
        return self.yaml_config.get("models", {}).get("default", "llama3")

    @property
    def model_filters(self) -> dict:
        return self.yaml_config.get("models", {}).get("exclude", {})

    def excluded_model_terms(self, provider: str, fallback: list[str]) -> list[str]:
        """Substrings that drop a catalog entry for ``provider``."""
        terms = self.model_filters.get(provider)
        return list(terms) if terms else list(fallback)


@lru_cache
def get_settings() -> Settings:
    return Settings()
