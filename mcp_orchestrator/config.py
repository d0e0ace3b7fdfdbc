"""
Central configuration for mcp_orchestrator.
Uses Pydantic BaseSettings for type-safe configuration from environment variables.
"""

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env relative to this file (mcp_orchestrator/config.py → project root)
_ENV_FILE = Path(__file__).parent.parent / ".env"


def _load_env_file() -> None:
    """
    Load .env into os.environ, but only for keys that are currently unset
    or set to empty strings. This ensures .env values win over blank shell
    env vars (e.g. ANTHROPIC_API_KEY='') while still allowing explicit
    non-empty shell overrides.
    """
    if not _ENV_FILE.exists():
        return
    from dotenv import dotenv_values
    for key, value in dotenv_values(_ENV_FILE).items():
        if value and not os.environ.get(key):
            os.environ[key] = value


# Run at import time so Settings() sees the correct values
_load_env_file()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(_ENV_FILE),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Anthropic
    anthropic_api_key: str
    model_selection: str = "claude-haiku-4-5-20251001"
    model_response: str = "claude-sonnet-4-6"
    anthropic_max_tokens: int = 2048

    # Environment
    data_dir: str = "./data"

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # ── Timeouts (seconds) ──────────────────────────────────────────────────────
    model_timeout: float = 60.0
    tool_timeout: float = 30.0
    store_timeout: float = 5.0
    crawl_timeout: float = 15.0

    # ── Reasoning model retries ─────────────────────────────────────────────────
    model_max_retries: int = 3
    model_retry_base_delay: float = 2.0

    # ── Response cache ──────────────────────────────────────────────────────────
    cache_ttl_seconds: float = 300.0
    cache_max_entries: int = 100
    # Write-classified tools are never served from cache unless this is set
    cache_write_tools: bool = False

    # ── Tool executor ───────────────────────────────────────────────────────────
    # False: undeclared parameters pass through to the tool (logged).
    # True: undeclared or mistyped parameters reject the call.
    strict_tool_params: bool = False

    # ── Conversation context ────────────────────────────────────────────────────
    selection_history_limit: int = 5
    response_history_limit: int = 3
    response_history_snippet_chars: int = 100

    # ── HTTP ────────────────────────────────────────────────────────────────────
    http_host: str = "0.0.0.0"
    http_port: int = 3001
    max_audio_bytes: int = 10 * 1024 * 1024

    # ── Speech ──────────────────────────────────────────────────────────────────
    whisper_model: str = "tiny"
    whisper_device: str = "cpu"
    whisper_compute_type: str = "int8"

    @field_validator("log_level")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, "orchestrator.db")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.data_dir, "logs")

    @property
    def documents_dir(self) -> str:
        return os.path.join(self.data_dir, "documents")


def get_settings() -> "Settings":
    """Return the application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


_settings: Settings | None = None


class _SettingsProxy:
    """Lazy proxy so `from mcp_orchestrator.config import settings` works without eager init."""
    def __getattr__(self, name):
        return getattr(get_settings(), name)


settings = _SettingsProxy()  # type: ignore[assignment]
