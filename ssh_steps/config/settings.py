"""Process settings read from SSH_STEPS_* environment variables.

Covers the log router limits, where remotes and the workspace live, the
server transport and request logging. Per-invocation options never come
from here; they travel with each step.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Server-wide settings. Invalid values fall back to the defaults below."""

    # Per-invocation log router
    log_buffer_size: int = field(default=50)
    log_flush_interval_ms: int = field(default=100)
    log_rate_limit: int = field(default=1000)  # lines/second, 0 disables

    # Remotes and workspace
    ssh_config_path: Path = field(
        default_factory=lambda: Path.home() / ".ssh" / "config"
    )
    workspace: Path = field(default_factory=Path.cwd)

    # Transport
    transport: str = field(default="stdio")
    http_host: str = field(default="127.0.0.1")
    http_port: int = field(default=8000)

    # Logging
    log_level: str = field(default="INFO")
    log_payloads: bool = field(default=False)
    slow_threshold_ms: int = field(default=1000)
    include_traceback: bool = field(default=False)

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from SSH_STEPS_* environment variables.

        Returns:
            Settings instance with values from environment
        """
        ssh_config = os.getenv("SSH_STEPS_SSH_CONFIG")
        workspace = os.getenv("SSH_STEPS_WORKSPACE")
        return cls(
            log_buffer_size=cls._get_int("SSH_STEPS_LOG_BUFFER_SIZE", 50, minimum=1),
            log_flush_interval_ms=cls._get_int("SSH_STEPS_LOG_FLUSH_INTERVAL_MS", 100),
            log_rate_limit=cls._get_int("SSH_STEPS_LOG_RATE_LIMIT", 1000),
            ssh_config_path=(
                Path(os.path.expanduser(ssh_config))
                if ssh_config
                else Path.home() / ".ssh" / "config"
            ),
            workspace=Path(os.path.expanduser(workspace)) if workspace else Path.cwd(),
            transport=cls._get_transport(),
            http_host=os.getenv("SSH_STEPS_HTTP_HOST", "127.0.0.1"),
            http_port=cls._get_int("SSH_STEPS_HTTP_PORT", 8000),
            log_level=os.getenv("SSH_STEPS_LOG_LEVEL", "INFO").upper(),
            log_payloads=cls._get_bool("SSH_STEPS_LOG_PAYLOADS", False),
            slow_threshold_ms=cls._get_int("SSH_STEPS_SLOW_THRESHOLD_MS", 1000),
            include_traceback=cls._get_bool("SSH_STEPS_INCLUDE_TRACEBACK", False),
        )

    @staticmethod
    def _get_int(key: str, default: int, minimum: int = 0) -> int:
        """Get integer from environment.

        Args:
            key: Environment variable key
            default: Default value if not set or invalid
            minimum: Smallest accepted value

        Returns:
            Integer value from environment or default
        """
        value = os.getenv(key)
        if value is None:
            return default

        try:
            parsed = int(value)
        except ValueError:
            logger.warning("Invalid int for %s: %s, using default %d", key, value, default)
            return default

        if parsed < minimum:
            logger.warning(
                "%s must be >= %d, got %d. Using default: %d", key, minimum, parsed, default
            )
            return default
        return parsed

    @staticmethod
    def _get_bool(key: str, default: bool) -> bool:
        value = os.getenv(key)
        if value is None:
            return default
        return value.lower() in ("1", "true", "yes", "on")

    @staticmethod
    def _get_transport() -> str:
        """Read SSH_STEPS_TRANSPORT, defaulting to stdio for unknown values.

        Returns:
            Transport type ("stdio" or "http")
        """
        transport = os.getenv("SSH_STEPS_TRANSPORT", "").lower()
        if transport in ("http", "stdio"):
            return transport
        return "stdio"
