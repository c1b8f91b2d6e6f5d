"""
Centralized settings for the complaint intake bot.

Provides a lightweight wrapper around environment variables (with `.env`
support for local development) so the rest of the codebase can import a single
`get_settings()` helper when configuration is needed. Required values are
checked up front and a `ConfigurationError` is raised before the bot starts
polling.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import FrozenSet, Mapping, Optional, Tuple
import os

from dotenv import dotenv_values

from .constants import ID_SCHEME_COMPOSITE, ID_SCHEMES
from .errors import ConfigurationError
from .i18n import PRIMARY_LANGUAGE, SUPPORTED_LANGUAGES


@dataclass(frozen=True)
class Settings:
    """Immutable view of application configuration."""

    # Telegram
    bot_token: str
    admin_ids: FrozenSet[str]
    group_id: str
    bot_username: Optional[str]

    # Feature flags
    require_national_id: bool
    complaint_id_scheme: str
    default_language: str

    # Storage
    database_url: str

    # Gate
    rate_limit_max_events: int
    rate_limit_window_seconds: float
    session_ttl_seconds: Optional[float]
    extra_blocked_words: Tuple[str, ...]

    # Scheduling
    timezone: str
    status_report_minutes: int

    # Observability
    environment: str
    log_level: str
    log_json: bool
    log_file: Optional[str]
    sentry_dsn: Optional[str]
    metrics_port: Optional[int]


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_list(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _env_lookup(key: str, env: Mapping[str, Optional[str]], default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key) or env.get(key) or default


def load_settings(env_file: Optional[Mapping[str, Optional[str]]] = None) -> Settings:
    """Build settings from the process environment plus an optional `.env` mapping.

    Raises ConfigurationError listing every missing required key.
    """
    env = dict(env_file or {})

    bot_token = _env_lookup("TELEGRAM_BOT_TOKEN", env) or _env_lookup("BOT_TOKEN", env)
    admin_ids = frozenset(
        _as_list(_env_lookup("ADMIN_IDS", env) or _env_lookup("ADMIN_ID", env))
    )
    group_id = _env_lookup("GROUP_ID", env)

    missing = []
    if not bot_token:
        missing.append("TELEGRAM_BOT_TOKEN")
    if not admin_ids:
        missing.append("ADMIN_IDS")
    if not group_id:
        missing.append("GROUP_ID")
    if missing:
        raise ConfigurationError(missing)

    scheme = (_env_lookup("COMPLAINT_ID_SCHEME", env, ID_SCHEME_COMPOSITE) or "").lower()
    if scheme not in ID_SCHEMES:
        raise ConfigurationError(
            message=f"COMPLAINT_ID_SCHEME must be one of {', '.join(ID_SCHEMES)}, got {scheme!r}"
        )

    language = (_env_lookup("DEFAULT_LANGUAGE", env, PRIMARY_LANGUAGE) or "").lower()
    if language not in SUPPORTED_LANGUAGES:
        raise ConfigurationError(
            message=f"DEFAULT_LANGUAGE must be one of {', '.join(SUPPORTED_LANGUAGES)}, got {language!r}"
        )

    ttl = _env_lookup("SESSION_TTL_SECONDS", env)
    metrics_port = _env_lookup("METRICS_PORT", env)

    try:
        return Settings(
            bot_token=bot_token,
            admin_ids=admin_ids,
            group_id=group_id,
            bot_username=_env_lookup("BOT_USERNAME", env),
            require_national_id=_as_bool(_env_lookup("REQUIRE_NATIONAL_ID", env), False),
            complaint_id_scheme=scheme,
            default_language=language,
            database_url=_env_lookup("DATABASE_URL", env, "sqlite+aiosqlite:///./complaints.db"),
            rate_limit_max_events=int(_env_lookup("RATE_LIMIT_MAX_EVENTS", env, "10")),
            rate_limit_window_seconds=float(_env_lookup("RATE_LIMIT_WINDOW_SECONDS", env, "60")),
            session_ttl_seconds=float(ttl) if ttl else None,
            extra_blocked_words=_as_list(_env_lookup("EXTRA_BLOCKED_WORDS", env)),
            timezone=_env_lookup("TIMEZONE", env, "Asia/Tashkent"),
            status_report_minutes=int(_env_lookup("STATUS_REPORT_MINUTES", env, "0")),
            environment=_env_lookup("APP_ENV", env, "development"),
            log_level=(_env_lookup("LOG_LEVEL", env, "INFO") or "INFO").upper(),
            log_json=_as_bool(_env_lookup("LOG_JSON", env), False),
            log_file=_env_lookup("LOG_FILE", env),
            sentry_dsn=_env_lookup("SENTRY_DSN", env),
            metrics_port=int(metrics_port) if metrics_port else None,
        )
    except ValueError as exc:
        raise ConfigurationError(message=f"Malformed numeric setting: {exc}") from exc


@lru_cache()
def get_settings() -> Settings:
    """Load settings once per process."""

    env_path = Path(__file__).resolve().parents[1] / ".env"
    env_file = dotenv_values(str(env_path)) if env_path.exists() else {}
    return load_settings(env_file)


__all__ = ["Settings", "get_settings", "load_settings"]
