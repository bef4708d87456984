# ─────────────────────────────────────────────────────────────────────────────
# Settings — Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Uses pydantic-settings v2 (separate package from pydantic).
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ── Provider ─────────────────────────────────────────────────────────────
    # SecretStr keeps the credential out of logs, repr(), and model_dump().
    # Access via settings.openai_api_key.get_secret_value().
    # Empty string = not configured; /generate-card answers 500 until set.
    openai_api_key: SecretStr = SecretStr("")
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7

    # ── Server ───────────────────────────────────────────────────────────────
    port: int = 3000

    # Comma-separated origins for CORS. "*" matches the public widget embed.
    allowed_origins: str = "*"

    # ── Request pipeline ─────────────────────────────────────────────────────
    max_concurrent_requests: int = 1
    provider_timeout_seconds: float = 30.0
    max_attempts: int = 3  # rate-limited provider calls only
    retry_delay_seconds: float = 2.0
    rate_limit_retry_after_seconds: int = 3600

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def has_credential(self) -> bool:
        return bool(self.openai_api_key.get_secret_value())


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
