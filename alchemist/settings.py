import os
from typing import Any, Mapping

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

load_dotenv()


def _split_csv(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class Settings(BaseModel):
    # Primary backend (Gemini)
    gemini_api_key: str = Field(default="", alias="GEMINI_API_KEY")
    gemini_api_keys: list[str] = Field(default_factory=list, alias="GEMINI_API_KEYS")
    gemini_models: list[str] = Field(
        default_factory=lambda: ["gemini-1.5-flash-latest", "gemini-1.5-flash"],
        alias="GEMINI_MODELS",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )

    # Secondary backend (OpenAI compatible, optional)
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1", alias="OPENAI_BASE_URL"
    )
    openai_models: list[str] = Field(
        default_factory=lambda: ["gpt-4o-mini"], alias="OPENAI_MODELS"
    )

    # Generation parameters
    temperature: float = Field(default=0.7, alias="MERGE_TEMPERATURE")
    max_output_tokens: int = Field(default=64, gt=0, alias="MERGE_MAX_OUTPUT_TOKENS")

    # Dispatch policy
    retry_attempts: int = Field(default=3, ge=1, alias="RETRY_ATTEMPTS")
    retry_backoff_ms: int = Field(default=500, ge=0, alias="RETRY_BACKOFF_MS")
    cooldown_seconds: float = Field(default=60.0, ge=0, alias="COOLDOWN_SECONDS")
    provider_timeout: float = Field(default=30.0, gt=0, alias="PROVIDER_TIMEOUT")

    # Caller throttling
    rate_limit_window_ms: int = Field(default=800, ge=0, alias="RATE_LIMIT_WINDOW_MS")
    trust_proxy_headers: bool = Field(default=False, alias="TRUST_PROXY_HEADERS")

    # Result cache (0 disables the limit)
    cache_max_size: int = Field(default=0, ge=0, alias="CACHE_MAX_SIZE")
    cache_ttl_seconds: float = Field(default=0.0, ge=0, alias="CACHE_TTL_SECONDS")

    # Server
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="", alias="LOG_FILE")

    @field_validator("gemini_api_keys", "gemini_models", "openai_models", mode="before")
    @classmethod
    def _parse_list(cls, value: Any) -> Any:
        return _split_csv(value)

    @property
    def gemini_credentials(self) -> list[str]:
        """All configured Gemini keys, de-duplicated, in declaration order."""
        keys = [*self.gemini_api_keys]
        if self.gemini_api_key:
            keys.append(self.gemini_api_key.strip())
        return list(dict.fromkeys(k for k in keys if k))

    @property
    def has_secondary(self) -> bool:
        return bool(self.openai_api_key and self.openai_models)


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from an environment mapping (defaults to os.environ)."""
    source = os.environ if env is None else env
    return Settings.model_validate(dict(source))


global_settings = load_settings()
