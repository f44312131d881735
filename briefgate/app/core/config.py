import json
import re
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _parse_cors_origins(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, list):
        items = [str(v).strip() for v in raw]
        return [v for v in items if v]

    raw = str(raw).strip()
    if not raw or raw == "[]":
        return []
    if raw == "*":
        return ["*"]

    # Prefer JSON, but tolerate comma separated values so a misconfigured
    # deployment does not crash at startup.
    if raw.startswith(("[", '"', "'")):
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            items = [str(v).strip() for v in parsed]
            return [v for v in items if v]
        if isinstance(parsed, str):
            raw = parsed.strip()
            if not raw or raw == "[]":
                return []
            if raw == "*":
                return ["*"]

    parts = [p for p in re.split(r"[,\s]+", raw) if p]
    origins: list[str] = []
    for part in parts:
        if part == "*":
            return ["*"]
        if "://" in part:
            origins.append(part)
            continue
        # Browsers include the scheme in the Origin header.
        origins.append(f"http://{part}")
        origins.append(f"https://{part}")

    seen: set[str] = set()
    result: list[str] = []
    for origin in origins:
        if origin in seen:
            continue
        seen.add(origin)
        result.append(origin)
    return result


CooldownAssignmentPolicy = Literal["on-admission", "on-success"]
ValidationOrder = Literal["gate-first", "validate-first"]
GateConcurrency = Literal["strict", "relaxed"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    All settings can be configured via environment variables or .env file.
    """

    # Debug mode - enables detailed error responses
    debug: bool = False

    # OpenAI settings
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_organization: str | None = None
    openai_text_model: str = "gpt-4.1-mini"
    openai_image_model: str = "gpt-image-1"
    openai_temperature: float = 0.7

    # Use the offline mock provider instead of OpenAI
    mock_provider: bool = Field(default=False, validation_alias="BRIEFGATE_MOCK_PROVIDER")

    # HTTP Client connection pool settings
    httpx_timeout: float = 120.0
    httpx_connect_timeout: float = 10.0
    httpx_read_timeout: float = 120.0  # image generation routinely takes 30s+
    httpx_write_timeout: float = 10.0
    httpx_pool_timeout: float = 5.0
    httpx_keepalive_expiry: float = 30.0
    httpx_max_connections: int = 50
    httpx_max_keepalive_connections: int = 10

    # Retries for transient upstream failures (5xx, network errors)
    upstream_max_retries: int = 1

    # Gate settings
    brief_daily_limit: int = 10
    brief_cooldown_seconds: int = 30
    image_daily_limit: int = 10
    image_cooldown_seconds: int = 60
    cooldown_assignment_policy: CooldownAssignmentPolicy = "on-admission"
    validation_order: ValidationOrder = "gate-first"
    gate_concurrency: GateConcurrency = "strict"
    gate_lock_timeout_seconds: float = 5.0
    # Cap on records per map in the in-memory store (LRU eviction past it)
    gate_store_max_entries: int = 10000

    # Redis settings (optional shared gate store)
    redis_enabled: bool = False
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "briefgate"

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "text"  # text | structured | json

    # Request body limit (bytes)
    max_body_size: int = 1024 * 1024

    # CORS settings
    cors_origins: Annotated[list[str], NoDecode] = ["*"]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def decode_cors_origins(cls, v: Any) -> list[str]:
        return _parse_cors_origins(v)

    @field_validator("brief_daily_limit", "image_daily_limit")
    @classmethod
    def validate_daily_limit_positive(cls, v: int) -> int:
        """Validate daily limits are positive."""
        if v < 1:
            raise ValueError("Daily limits must be at least 1")
        return v

    @field_validator("brief_cooldown_seconds", "image_cooldown_seconds")
    @classmethod
    def validate_cooldown_non_negative(cls, v: int) -> int:
        """Validate cooldowns are not negative (0 disables the cooldown)."""
        if v < 0:
            raise ValueError("Cooldown seconds must not be negative")
        return v

    @field_validator("httpx_timeout", "httpx_connect_timeout", "httpx_read_timeout")
    @classmethod
    def validate_timeout_positive(cls, v: float) -> float:
        """Validate timeout values are positive."""
        if v <= 0:
            raise ValueError("Timeout values must be positive")
        return v

    @field_validator("upstream_max_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("upstream_max_retries must not be negative")
        return v

    @field_validator("gate_lock_timeout_seconds")
    @classmethod
    def validate_lock_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("gate_lock_timeout_seconds must be positive")
        return v

    @field_validator("gate_store_max_entries")
    @classmethod
    def validate_max_entries(cls, v: int) -> int:
        if v < 1:
            raise ValueError("gate_store_max_entries must be at least 1")
        return v

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


# Global settings instance
settings = Settings()
