"""Configuration provider following Black Box Design principles."""
import os
import secrets
from dataclasses import dataclass, field
from typing import List, Optional, Protocol


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _redis_port(value: str) -> int:
    # Kubernetes service links inject REDIS_PORT as tcp://host:port
    if value.startswith("tcp://"):
        return int(value.split(":")[-1])
    return int(value)


@dataclass
class SessionConfig:
    """Session configuration."""
    timeout: float = 1800.0
    cookie_name: str = "sessid"
    dev_mode: bool = False

    @property
    def require_https(self) -> bool:
        """Session cookies are only issued over TLS outside development mode."""
        return not self.dev_mode


@dataclass
class GCConfig:
    """Session garbage collection configuration."""
    min_interval: float = 1800.0
    path: str = "/sessions/gc"
    queue_name: str = "default"
    ticker_enabled: bool = False
    dev_mode: bool = False
    task_token: str = field(default_factory=lambda: secrets.token_urlsafe(32))
    admin_api_keys: List[str] = field(default_factory=list)


@dataclass
class FetchConfig:
    """Outbound fetch configuration."""
    timeout: float = 30.0
    allow_invalid_certificates: bool = False


@dataclass
class StorageConfig:
    """Redis connection configuration."""
    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None

    @property
    def url(self) -> str:
        """Redis URL without credentials (password is passed separately)."""
        return f"redis://{self.host}:{self.port}/{self.db}"


@dataclass
class APIConfig:
    """API server configuration."""
    port: int = 8080
    host: str = "0.0.0.0"
    log_level: str = "INFO"
    debug: bool = False
    task_worker_enabled: bool = True


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_session_config(self) -> SessionConfig:
        """Get session configuration."""
        ...

    def get_gc_config(self) -> GCConfig:
        """Get garbage collection configuration."""
        ...

    def get_fetch_config(self) -> FetchConfig:
        """Get outbound fetch configuration."""
        ...

    def get_storage_config(self) -> StorageConfig:
        """Get Redis connection configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def __init__(self):
        # Generated once per process so queued tasks and the GC endpoint agree.
        self._task_token = os.getenv("TASK_QUEUE_TOKEN") or secrets.token_urlsafe(32)

    @property
    def dev_mode(self) -> bool:
        return _env_flag("DEV_MODE")

    def get_session_config(self) -> SessionConfig:
        """Get session configuration from environment variables."""
        return SessionConfig(
            timeout=float(os.getenv("SESSION_TIMEOUT", "1800")),
            cookie_name=os.getenv("SESSION_COOKIE_NAME", "sessid"),
            dev_mode=self.dev_mode,
        )

    def get_gc_config(self) -> GCConfig:
        """Get garbage collection configuration from environment variables."""
        admin_keys = os.getenv("ADMIN_API_KEYS", "")
        return GCConfig(
            min_interval=float(os.getenv("SESSION_GC_INTERVAL", "1800")),
            ticker_enabled=_env_flag("SESSION_GC_TICKER"),
            dev_mode=self.dev_mode,
            task_token=self._task_token,
            admin_api_keys=[key.strip() for key in admin_keys.split(",") if key.strip()],
        )

    def get_fetch_config(self) -> FetchConfig:
        """Get outbound fetch configuration from environment variables."""
        return FetchConfig(
            timeout=float(os.getenv("FETCH_TIMEOUT", "30")),
            allow_invalid_certificates=self.dev_mode,
        )

    def get_storage_config(self) -> StorageConfig:
        """Get Redis connection configuration from environment variables."""
        return StorageConfig(
            host=os.getenv("REDIS_HOST", "localhost"),
            port=_redis_port(os.getenv("REDIS_PORT", "6379")),
            db=int(os.getenv("REDIS_DB", "0")),
            password=os.getenv("REDIS_PASSWORD"),
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        return APIConfig(
            port=int(os.getenv("API_PORT", "8080")),
            host=os.getenv("API_HOST", "0.0.0.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            debug=_env_flag("DEBUG"),
            task_worker_enabled=_env_flag("TASK_WORKER_ENABLED", "true"),
        )
