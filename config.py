from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv


load_dotenv()

DEPTH_LEVELS = ("light", "moderate", "deep")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class TemplateDefaults:
    """Configuration merged into every new template's ``config``."""

    max_duration_minutes: int = 9
    depth_level: str = "moderate"
    max_probes_per_competency: int = 2
    ai_voice: str = "aura-asteria-en"
    language: str = "en-US"


@dataclass(frozen=True)
class Settings:
    app_base_url: str
    database_path: Path
    log_level: str

    deepgram_api_key: str
    deepgram_api_base: str
    voice_think_model: str
    voice_think_provider: str

    template_defaults: TemplateDefaults
    session_expiry_days: int
    store_max_retries: int

    http_timeout_seconds: float
    http_max_retries: int
    http_retry_backoff_seconds: float

    clerk_webhook_secret: str
    webhook_tolerance_seconds: int


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    depth_level = os.getenv("DEFAULT_DEPTH_LEVEL", "moderate").strip().lower()
    if depth_level not in DEPTH_LEVELS:
        depth_level = "moderate"
    return Settings(
        app_base_url=os.getenv("APP_BASE_URL", "http://localhost:3000"),
        database_path=Path(os.getenv("DATABASE_PATH", "./data/interviews.db")),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        deepgram_api_key=os.getenv("DEEPGRAM_API_KEY", ""),
        deepgram_api_base=os.getenv("DEEPGRAM_API_BASE", "https://api.deepgram.com/v1"),
        voice_think_model=os.getenv("VOICE_THINK_MODEL", "claude-3-5-sonnet"),
        voice_think_provider=os.getenv("VOICE_THINK_PROVIDER", "anthropic"),
        template_defaults=TemplateDefaults(
            max_duration_minutes=_env_int("DEFAULT_MAX_DURATION_MINUTES", 9),
            depth_level=depth_level,
            max_probes_per_competency=_env_int("DEFAULT_MAX_PROBES", 2),
            ai_voice=os.getenv("DEFAULT_AI_VOICE", "aura-asteria-en"),
            language=os.getenv("DEFAULT_LANGUAGE", "en-US"),
        ),
        session_expiry_days=_env_int("SESSION_EXPIRY_DAYS", 7),
        store_max_retries=_env_int("STORE_MAX_RETRIES", 5),
        http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 20.0),
        http_max_retries=_env_int("HTTP_MAX_RETRIES", 3),
        http_retry_backoff_seconds=_env_float("HTTP_RETRY_BACKOFF_SECONDS", 0.8),
        clerk_webhook_secret=os.getenv("CLERK_WEBHOOK_SECRET", ""),
        webhook_tolerance_seconds=_env_int("WEBHOOK_TOLERANCE_SECONDS", 300),
    )
