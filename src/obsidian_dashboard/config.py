"""Dashboard configuration loading and validation.

Reads an optional ``obsidian.toml`` and layers environment variables on top.
Only the local store endpoint is mandatory; every Google setting is optional
and its absence simply disables the corresponding remote capability.

Example ``obsidian.toml``::

    [dashboard]
    timezone = "Europe/Berlin"

    [dashboard.store]
    database_url = "${DATABASE_URL}"

    [dashboard.google]
    api_key = "${GOOGLE_CALENDAR_API_KEY}"
    calendar_id = "me@example.com"

    [dashboard.logging]
    level = "DEBUG"
    format = "json"
"""

from __future__ import annotations

import os
import re
import tomllib
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from obsidian_dashboard.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("obsidian.toml")
DEFAULT_TOKEN_PATH = Path.home() / ".local/share/obsidian-dashboard/google-token.json"
DEFAULT_REDIRECT_URI = "http://localhost:8400/api/oauth/google/callback"

MIN_FETCH_RESULTS = 50
MAX_FETCH_RESULTS = 250

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# Environment variable -> (section, key) overrides applied after the TOML file.
_ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "DATABASE_URL": ("store", "database_url"),
    "GOOGLE_CALENDAR_API_KEY": ("google", "api_key"),
    "GOOGLE_CALENDAR_ID": ("google", "calendar_id"),
    "GOOGLE_OAUTH_CLIENT_ID": ("google", "client_id"),
    "GOOGLE_OAUTH_CLIENT_SECRET": ("google", "client_secret"),
    "GOOGLE_OAUTH_REDIRECT_URI": ("google", "redirect_uri"),
    "OBSIDIAN_TOKEN_PATH": ("google", "token_path"),
    "OBSIDIAN_TIMEZONE": ("", "timezone"),
    "OBSIDIAN_LOG_LEVEL": ("logging", "level"),
}


@dataclass
class LoggingConfig:
    """Logging configuration from the [dashboard.logging] section."""

    level: str = "INFO"
    format: str = "text"  # "text" or "json"
    log_root: str | None = None


@dataclass
class GoogleConfig:
    """Remote calendar settings; every field is optional."""

    api_key: str | None = None
    calendar_id: str | None = None
    client_id: str | None = None
    client_secret: str | None = None
    redirect_uri: str = DEFAULT_REDIRECT_URI
    token_path: Path = DEFAULT_TOKEN_PATH

    @property
    def oauth_configured(self) -> bool:
        return bool(self.client_id and self.client_secret)


@dataclass
class SyncConfig:
    """Remote fetch window and refresh coalescing."""

    past_days: int = 30
    future_days: int = 183
    max_results: int = 100
    debounce_seconds: float = 0.25


@dataclass
class DashboardConfig:
    """Fully parsed and validated dashboard configuration."""

    database_url: str
    google: GoogleConfig = field(default_factory=GoogleConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    timezone: str | None = None
    min_pool_size: int = 1
    max_pool_size: int = 5

    @property
    def tz(self) -> tzinfo | None:
        """Zone used for date-only normalisation; ``None`` means system local."""
        if self.timezone is None:
            return None
        return ZoneInfo(self.timezone)


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def resolve_env_vars(value: Any) -> Any:
    """Recursively replace ``${VAR_NAME}`` references with environment values."""
    if isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_vars(item) for item in value]
    if isinstance(value, str):
        return _resolve_string(value)
    return value


def _resolve_string(s: str) -> str:
    missing: list[str] = []

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            missing.append(var_name)
            return match.group(0)
        return env_value

    result = _ENV_VAR_PATTERN.sub(_replace, s)
    if missing:
        vars_str = ", ".join(missing)
        raise ConfigError(
            f"Unresolved environment variable(s) in config value: {vars_str} (original: {s!r})"
        )
    return result


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        data = tomllib.loads(path.read_text())
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    section = data.get("dashboard", {})
    if not isinstance(section, dict):
        raise ConfigError("[dashboard] must be a table")
    return resolve_env_vars(section)


def _apply_env_overrides(section: dict[str, Any]) -> dict[str, Any]:
    for env_name, (sub_section, key) in _ENV_OVERRIDES.items():
        env_value = os.environ.get(env_name)
        if env_value is None or not env_value.strip():
            continue
        if sub_section:
            target = section.setdefault(sub_section, {})
            if not isinstance(target, dict):
                raise ConfigError(f"[dashboard.{sub_section}] must be a table")
            target[key] = env_value.strip()
        else:
            section[key] = env_value.strip()
    return section


def _parse_sync(raw: dict[str, Any]) -> SyncConfig:
    try:
        sync = SyncConfig(
            past_days=int(raw.get("past_days", 30)),
            future_days=int(raw.get("future_days", 183)),
            max_results=int(raw.get("max_results", 100)),
            debounce_seconds=float(raw.get("debounce_seconds", 0.25)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid [dashboard.sync] value: {exc}") from exc
    if sync.past_days < 0 or sync.future_days < 0:
        raise ConfigError("dashboard.sync past_days/future_days must be non-negative")
    if sync.debounce_seconds < 0:
        raise ConfigError("dashboard.sync.debounce_seconds must be non-negative")
    sync.max_results = min(max(sync.max_results, MIN_FETCH_RESULTS), MAX_FETCH_RESULTS)
    return sync


def _parse_logging(raw: dict[str, Any]) -> LoggingConfig:
    level = str(raw.get("level", "INFO")).upper()
    fmt = str(raw.get("format", "text")).lower()
    if fmt not in ("text", "json"):
        raise ConfigError(f"dashboard.logging.format must be 'text' or 'json', got {fmt!r}")
    return LoggingConfig(level=level, format=fmt, log_root=_optional_str(raw.get("log_root")))


def load_config(path: Path | None = None) -> DashboardConfig:
    """Load configuration from *path* (or ``obsidian.toml``) plus the environment.

    Raises
    ------
    ConfigError
        If the file is malformed, a value is invalid, or no local store
        endpoint is configured.
    """
    if path is None:
        env_path = os.environ.get("OBSIDIAN_CONFIG")
        path = Path(env_path) if env_path else DEFAULT_CONFIG_PATH
        explicit = env_path is not None
    else:
        explicit = True

    if path.exists():
        section = _read_toml(path)
    elif explicit:
        raise ConfigError(f"Config file not found: {path}")
    else:
        section = {}

    section = _apply_env_overrides(section)

    store = section.get("store", {})
    database_url = _optional_str(store.get("database_url"))
    if database_url is None:
        raise ConfigError(
            "Local store endpoint is not configured: set DATABASE_URL "
            "or [dashboard.store].database_url"
        )

    google_raw = section.get("google", {})
    google = GoogleConfig(
        api_key=_optional_str(google_raw.get("api_key")),
        calendar_id=_optional_str(google_raw.get("calendar_id")),
        client_id=_optional_str(google_raw.get("client_id")),
        client_secret=_optional_str(google_raw.get("client_secret")),
        redirect_uri=_optional_str(google_raw.get("redirect_uri")) or DEFAULT_REDIRECT_URI,
        token_path=Path(
            _optional_str(google_raw.get("token_path")) or DEFAULT_TOKEN_PATH
        ).expanduser(),
    )

    timezone = _optional_str(section.get("timezone"))
    if timezone is not None:
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"Unknown timezone: {timezone!r}") from exc

    try:
        min_pool_size = int(store.get("min_pool_size", 1))
        max_pool_size = int(store.get("max_pool_size", 5))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid [dashboard.store] pool size: {exc}") from exc

    return DashboardConfig(
        database_url=database_url,
        google=google,
        sync=_parse_sync(section.get("sync", {})),
        logging=_parse_logging(section.get("logging", {})),
        timezone=timezone,
        min_pool_size=min_pool_size,
        # LISTEN subscriptions pin one connection each (events + todos).
        max_pool_size=max(max_pool_size, min_pool_size, 3),
    )
