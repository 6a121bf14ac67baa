"""Application settings from environment variables.

Centralized environment variable parsing and validation.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Engine tunables.

    Handles parsing, validation, and defaults for all env vars.
    """

    # Connector
    max_attempts: int = field(default=3)
    retry_delay: float = field(default=2.0)
    connect_timeout: float = field(default=30.0)
    probe_timeout: float = field(default=10.0)
    probe_command: str = field(default="date")

    # Dispatch
    command_timeout: float = field(default=60.0)
    max_concurrency: int = field(default=8)
    dry_run: bool = field(default=False)

    # Session pool
    idle_timeout: int = field(default=1800)
    max_pool_size: int = field(default=100)

    # SSH transport
    ssh_user: str | None = field(default=None)
    known_hosts: str | None = field(default=None)
    strict_host_key_checking: bool = field(default=True)

    # Logging
    log_level: str = field(default="INFO")
    log_colors: bool = field(default=True)
    log_file: Path | None = field(default=None)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from FLEET_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        log_file = os.getenv("FLEET_LOG_FILE", "").strip()
        return cls(
            max_attempts=cls._get_int("FLEET_MAX_ATTEMPTS", 3),
            retry_delay=cls._get_float("FLEET_RETRY_DELAY", 2.0),
            connect_timeout=cls._get_float("FLEET_CONNECT_TIMEOUT", 30.0),
            probe_timeout=cls._get_float("FLEET_PROBE_TIMEOUT", 10.0),
            probe_command=os.getenv("FLEET_PROBE_COMMAND", "date"),
            command_timeout=cls._get_float("FLEET_COMMAND_TIMEOUT", 60.0),
            max_concurrency=cls._get_int("FLEET_MAX_CONCURRENCY", 8),
            dry_run=cls._get_bool("FLEET_DRY_RUN", False),
            idle_timeout=cls._get_int("FLEET_IDLE_TIMEOUT", 1800),
            max_pool_size=cls._get_int("FLEET_MAX_POOL_SIZE", 100),
            ssh_user=os.getenv("FLEET_SSH_USER") or None,
            known_hosts=os.getenv("FLEET_KNOWN_HOSTS") or None,
            strict_host_key_checking=cls._get_bool("FLEET_STRICT_HOST_KEY_CHECKING", True),
            log_level=os.getenv("FLEET_LOG_LEVEL", "INFO").upper(),
            log_colors=cls._get_bool("FLEET_LOG_COLORS", True),
            log_file=Path(os.path.expanduser(log_file)) if log_file else None,
        )

    def validate(self) -> "Settings":
        """Reject tunables the engine cannot work with.

        Returns:
            self, for chaining

        Raises:
            ConfigError: If a bound is not positive
        """
        from fleet_admin.config.registry import ConfigError

        positive = {
            "max_attempts": self.max_attempts,
            "max_concurrency": self.max_concurrency,
            "max_pool_size": self.max_pool_size,
            "connect_timeout": self.connect_timeout,
            "probe_timeout": self.probe_timeout,
            "command_timeout": self.command_timeout,
        }
        for name, value in positive.items():
            if value <= 0:
                raise ConfigError(f"{name} must be > 0, got {value}")
        if self.retry_delay < 0:
            raise ConfigError(f"retry_delay must be >= 0, got {self.retry_delay}")
        if not self.probe_command.strip():
            raise ConfigError("probe_command cannot be empty")
        return self

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        value = os.getenv(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError:
            logger.warning("Invalid float for %s: %s, using default %s", key, value, default)
            return default

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        """Get boolean from environment.

        Args:
            key: Environment variable key
            default: Default value if not set

        Returns:
            Boolean value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")
