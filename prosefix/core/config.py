"""Centralized configuration management for Prosefix."""

import ipaddress
import json
import logging
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from .constants import DEFAULT_MODEL
from .exceptions import ConfigPersistError

# Load .env file BEFORE any settings are read
env_path = Path(__file__).parent.parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)

_TRUTHY = re.compile(r"^(1|true|yes|on)$", re.IGNORECASE)


def parse_bool(value: Any, fallback: bool = False) -> bool:
    """Interpret env/JSON style booleans ("1", "true", "yes", "on")."""
    if isinstance(value, bool):
        return value
    if value is None:
        return fallback
    return bool(_TRUTHY.match(str(value).strip()))


def _int_or_default(value: Any, default: int) -> int:
    """Coerce to int; missing, zero or unparsable values give the default."""
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return number or default


def _positive_int(value: Any, default: int) -> int:
    number = _int_or_default(value, default)
    return number if number > 0 else default


def _port(value: Any, default: int) -> int:
    number = _int_or_default(value, default)
    return number if 0 < number <= 65535 else default


def is_loopback_host(host: str) -> bool:
    """True for localhost and loopback addresses (127.0.0.0/8, ::1)."""
    candidate = str(host).strip().lower().strip("[]")
    if candidate == "localhost":
        return True
    try:
        return ipaddress.ip_address(candidate).is_loopback
    except ValueError:
        return False


# =================================================================
# MODEL HOST CONFIGURATION
# =================================================================


@dataclass(frozen=True)
class HostConfig:
    """Immutable snapshot of the model host operating configuration."""

    host: str = "127.0.0.1"
    port: int = 11434
    autostart: bool = False
    start_timeout_ms: int = 15000
    run_timeout_ms: int = 120000
    concurrency: int = 2

    # Wire / persistence keys, kept compatible with the browser settings dialog
    KEYS = (
        "OLLAMA_HOST",
        "OLLAMA_PORT",
        "OLLAMA_AUTOSTART",
        "OLLAMA_START_TIMEOUT_MS",
        "OLLAMA_RUN_TIMEOUT_MS",
        "OLLAMA_CONCURRENCY",
    )

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None) -> "HostConfig":
        """Normalize a raw mapping (env, JSON file or request body)."""
        raw = raw or {}
        base = cls()
        host = str(raw.get("OLLAMA_HOST") or base.host).strip() or base.host
        return cls(
            host=host,
            port=_port(raw.get("OLLAMA_PORT"), base.port),
            autostart=parse_bool(raw.get("OLLAMA_AUTOSTART"), base.autostart),
            start_timeout_ms=_positive_int(
                raw.get("OLLAMA_START_TIMEOUT_MS"), base.start_timeout_ms
            ),
            run_timeout_ms=_positive_int(
                raw.get("OLLAMA_RUN_TIMEOUT_MS"), base.run_timeout_ms
            ),
            concurrency=max(1, _int_or_default(raw.get("OLLAMA_CONCURRENCY"), base.concurrency)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "OLLAMA_HOST": self.host,
            "OLLAMA_PORT": self.port,
            "OLLAMA_AUTOSTART": self.autostart,
            "OLLAMA_START_TIMEOUT_MS": self.start_timeout_ms,
            "OLLAMA_RUN_TIMEOUT_MS": self.run_timeout_ms,
            "OLLAMA_CONCURRENCY": self.concurrency,
        }

    @property
    def address(self) -> str:
        """host:port form expected in the OLLAMA_HOST environment variable."""
        return f"{self.host}:{self.port}"

    @property
    def is_local(self) -> bool:
        return is_loopback_host(self.host)

    @property
    def run_timeout(self) -> float:
        return self.run_timeout_ms / 1000.0

    @property
    def start_timeout(self) -> float:
        return self.start_timeout_ms / 1000.0


class ConfigStore:
    """
    Holds the current HostConfig snapshot.

    Layers, lowest first: environment defaults, persisted JSON file,
    runtime updates from POST /api/config. Readers always get an immutable
    snapshot, so a request keeps the settings it started with.
    """

    def __init__(self, defaults: HostConfig, path: Path | None = None):
        self.path = path
        self._defaults = defaults
        self._current = self._load()

    def _load(self) -> HostConfig:
        if self.path is None or not self.path.exists():
            return self._defaults
        try:
            stored = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable config file {self.path}: {e}")
            return self._defaults
        if not isinstance(stored, dict):
            logger.warning(f"Ignoring config file {self.path}: expected a JSON object")
            return self._defaults
        merged = {**self._defaults.to_dict(), **stored}
        logger.info(f"Loaded model host configuration from {self.path}")
        return HostConfig.from_mapping(merged)

    def snapshot(self) -> HostConfig:
        """Return the current immutable configuration."""
        return self._current

    def update(self, patch: Mapping[str, Any], persist: bool = False) -> HostConfig:
        """
        Merge a partial update into the current configuration.

        Unknown keys are ignored. With persist=True the result is written to
        the JSON file; a failed write raises ConfigPersistError but the new
        configuration stays active for this process.
        """
        changes = {key: value for key, value in patch.items() if key in HostConfig.KEYS}
        merged = {**self._current.to_dict(), **changes}
        self._current = HostConfig.from_mapping(merged)
        logger.info(
            "Model host configuration updated",
            extra={"changed": sorted(changes), "persist": persist},
        )

        if persist:
            self._write(self._current)
        return self._current

    def _write(self, config: HostConfig) -> None:
        if self.path is None:
            raise ConfigPersistError("no configuration path is set")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as e:
            raise ConfigPersistError(str(e)) from e


# =================================================================
# APPLICATION SETTINGS
# =================================================================


class Settings:
    """Application settings."""

    # =================================================================
    # APPLICATION
    # =================================================================
    APP_NAME: str = "Prosefix Workbench"
    APP_VERSION: str = "1.2.0"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # =================================================================
    # API CONFIGURATION
    # =================================================================
    API_PREFIX: str = "/api"
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "3001"))

    # =================================================================
    # CORS
    # Default localhost origins cover the Vite dev server.
    # =================================================================
    ALLOWED_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]
    ALLOW_CREDENTIALS: bool = True
    ALLOWED_METHODS: list[str] = ["*"]
    ALLOWED_HEADERS: list[str] = ["*"]

    # =================================================================
    # MODEL HOST (Ollama)
    # =================================================================
    DEFAULT_MODEL: str = os.getenv("DEFAULT_MODEL", DEFAULT_MODEL)
    OLLAMA_BINARY: str = os.getenv("OLLAMA_BINARY", "ollama")
    OLLAMA_HOST: str = os.getenv("OLLAMA_HOST", "127.0.0.1")
    OLLAMA_PORT: str = os.getenv("OLLAMA_PORT", "11434")
    OLLAMA_AUTOSTART: str = os.getenv("OLLAMA_AUTOSTART", "false")
    OLLAMA_START_TIMEOUT_MS: str = os.getenv("OLLAMA_START_TIMEOUT_MS", "15000")
    OLLAMA_RUN_TIMEOUT_MS: str = os.getenv("OLLAMA_RUN_TIMEOUT_MS", "120000")
    OLLAMA_CONCURRENCY: str = os.getenv("OLLAMA_CONCURRENCY", "2")
    PROBE_TIMEOUT_SECONDS: float = float(os.getenv("PROBE_TIMEOUT_SECONDS", "1.0"))
    PROBE_INTERVAL_SECONDS: float = float(os.getenv("PROBE_INTERVAL_SECONDS", "0.3"))

    # Pause between consecutive NDJSON lines (smooths client-side rendering)
    STREAM_PACE_MS: int = int(os.getenv("STREAM_PACE_MS", "10"))

    # Persisted operating configuration written by POST /api/config
    CONFIG_PATH: Path = Path(os.getenv("CONFIG_PATH", "config.json"))

    # =================================================================
    # LOGGING
    # =================================================================
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "pretty")  # pretty | json
    LOG_FILE: str = os.getenv("LOG_FILE", "")
    LOG_MAX_BYTES: int = 10485760  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    SLOW_REQUEST_THRESHOLD: float = float(os.getenv("SLOW_REQUEST_THRESHOLD", "5.0"))

    def __init__(self):
        """Initialize settings that need parsing beyond a single getenv."""
        allowed_env = os.getenv("ALLOWED_ORIGINS")
        if allowed_env:
            parsed = [o.strip() for o in allowed_env.split(",") if o.strip()]
            if parsed:
                self.ALLOWED_ORIGINS = parsed

    def host_defaults(self) -> HostConfig:
        """Model host configuration derived from environment variables."""
        return HostConfig.from_mapping(
            {
                "OLLAMA_HOST": self.OLLAMA_HOST,
                "OLLAMA_PORT": self.OLLAMA_PORT,
                "OLLAMA_AUTOSTART": self.OLLAMA_AUTOSTART,
                "OLLAMA_START_TIMEOUT_MS": self.OLLAMA_START_TIMEOUT_MS,
                "OLLAMA_RUN_TIMEOUT_MS": self.OLLAMA_RUN_TIMEOUT_MS,
                "OLLAMA_CONCURRENCY": self.OLLAMA_CONCURRENCY,
            }
        )

    def create_config_store(self) -> ConfigStore:
        """Build the runtime config store layered over env defaults."""
        return ConfigStore(self.host_defaults(), path=self.CONFIG_PATH)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings
