"""
AppContext - Dependency Injection Container.
Implements the Dependency Inversion Principle (DIP).
"""
from typing import Any, Dict, Optional, TYPE_CHECKING
from dataclasses import dataclass, field
from pathlib import Path
import os
import logging

from dotenv import load_dotenv

if TYPE_CHECKING:
    from core.backend import ActiveSessionHolder


DEFAULT_CACHE_URL = "sqlite+aiosqlite:///./employee_cache.db"


@dataclass
class ConfigLoader:
    """Configuration loader from environment variables."""

    _config: Dict[str, Any] = field(default_factory=dict)

    def load(self, env_path: Optional[str] = None) -> None:
        """Load configuration from .env file."""
        if env_path:
            load_dotenv(env_path)
        else:
            # Try to find .env in project root
            project_root = Path(__file__).parent.parent
            env_file = project_root / ".env"
            if env_file.exists():
                load_dotenv(env_file)

        self._config = {
            "server": {
                "host": os.getenv("SERVER_HOST", "127.0.0.1"),
                "port": int(os.getenv("SERVER_PORT", "8000")),
                "base_url": os.getenv("BASE_URL", ""),
                "app_name": os.getenv("APP_NAME", "Employee Directory"),
            },
            "app": {
                "debug": os.getenv("APP_DEBUG", "true").lower() == "true",
                "log_level": os.getenv("APP_LOG_LEVEL", "INFO")
            },
            "backend": {
                "url": os.getenv("BACKEND_URL", ""),
                "anon_key": os.getenv("BACKEND_ANON_KEY", ""),
                "employees_table": os.getenv("BACKEND_EMPLOYEES_TABLE", "employees"),
                "profiles_table": os.getenv("BACKEND_PROFILES_TABLE", "profiles"),
                "timeout": float(os.getenv("BACKEND_TIMEOUT", "30")),
            },
            "security": {
                "jwt_secret_key": os.getenv("BACKEND_JWT_SECRET", ""),
                "jwt_algorithm": os.getenv("BACKEND_JWT_ALGORITHM", "HS256"),
                "jwt_audience": os.getenv("BACKEND_JWT_AUDIENCE", "authenticated"),
            },
            "cache": {
                "url": os.getenv("CACHE_DATABASE_URL", DEFAULT_CACHE_URL),
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot notation key."""
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def is_backend_configured(self) -> bool:
        """Check if backend-as-a-service credentials are set."""
        return bool(
            self.get("backend.url") and
            self.get("backend.anon_key")
        )

    def has_jwt_secret(self) -> bool:
        """Check if access tokens can be verified locally."""
        return bool(self.get("security.jwt_secret_key"))


class AppContext:
    """
    Application Context - Central Dependency Injection Container.
    """

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self._config_loader = ConfigLoader()
        self._config_loader.load()

        # Service instances (lazy initialization)
        self._session_holder: Optional["ActiveSessionHolder"] = None

        # Event log for status API
        self._event_log: list[str] = []
        self._max_log_entries: int = 500

        # Runtime state
        self._server_running: bool = False
        self._server_port: int = self._config_loader.get("server.port", 8000)

    @property
    def config(self) -> ConfigLoader:
        """Access the configuration loader."""
        return self._config_loader

    @property
    def session_holder(self) -> "ActiveSessionHolder":
        """Lazy initialization of the active session holder."""
        if self._session_holder is None:
            from core.backend import get_session_holder
            self._session_holder = get_session_holder()
        return self._session_holder

    def log_event(self, message: str, level: str = "INFO") -> None:
        """Log an event to both logger and event log."""
        from datetime import datetime
        timestamp = datetime.now().strftime("%H:%M:%S")
        formatted = f"[{timestamp}] [{level}] {message}"

        self._event_log.append(formatted)
        if len(self._event_log) > self._max_log_entries:
            self._event_log = self._event_log[-self._max_log_entries:]

        self._logger.info(message)

    def get_event_log(self) -> list[str]:
        """Get the current event log."""
        return self._event_log.copy()

    def set_server_status(self, running: bool, port: int = 8000) -> None:
        """Update server status."""
        self._server_running = running
        self._server_port = port

    def get_server_status(self) -> tuple[bool, int]:
        """Get current server status."""
        return (self._server_running, self._server_port)
