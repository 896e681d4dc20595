"""Configuration management - Centralized configuration for PresenceGuard.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from presence_guard.common.exceptions import ConfigurationError


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Presence store backend types."""
    MEMORY = "memory"
    DYNAMODB = "dynamodb"


def _get_project_root() -> Path:
    """Get the project root directory."""
    # settings.py -> config -> common -> presence_guard -> src -> project_root
    current = Path(__file__).resolve()
    return current.parent.parent.parent.parent.parent


@dataclass
class Config:
    """Central configuration object for PresenceGuard.

    All settings can be overridden via environment variables prefixed with PRESENCE_.

    Example:
        PRESENCE_ENVIRONMENT=production
        PRESENCE_STORAGE_BACKEND=dynamodb
        PRESENCE_DYNAMODB_TABLE=presence-guard
    """

    # Core settings
    environment: Environment = field(
        default_factory=lambda: Environment(
            os.getenv("PRESENCE_ENVIRONMENT", "development")
        )
    )
    debug: bool = field(
        default_factory=lambda: os.getenv("PRESENCE_DEBUG", "false").lower() == "true"
    )
    log_level: LogLevel = field(
        default_factory=lambda: LogLevel(os.getenv("PRESENCE_LOG_LEVEL", "INFO"))
    )

    # Paths
    project_root: Path = field(default_factory=_get_project_root)

    # API settings
    api_host: str = field(
        default_factory=lambda: os.getenv("PRESENCE_API_HOST", "0.0.0.0")
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("PRESENCE_API_PORT", "8000"))
    )

    # Storage settings
    storage_backend: StorageBackend = field(
        default_factory=lambda: StorageBackend(
            os.getenv("PRESENCE_STORAGE_BACKEND", "memory")
        )
    )
    dynamodb_table: Optional[str] = field(
        default_factory=lambda: os.getenv("PRESENCE_DYNAMODB_TABLE")
    )
    targets_table: Optional[str] = field(
        default_factory=lambda: os.getenv("PRESENCE_TARGETS_TABLE")
    )

    # AWS settings
    aws_region: str = field(
        default_factory=lambda: os.getenv("AWS_DEFAULT_REGION", "us-east-1")
    )
    metrics_enabled: bool = field(
        default_factory=lambda: os.getenv("PRESENCE_METRICS_ENABLED", "false").lower() == "true"
    )

    # Policy settings
    policy_file: Path = field(
        default_factory=lambda: Path(
            os.getenv("PRESENCE_POLICY_FILE", "./config/presence_policy.yaml")
        )
    )

    # Claim handling
    claim_budget_ms: int = field(
        default_factory=lambda: int(os.getenv("PRESENCE_CLAIM_BUDGET_MS", "3000"))
    )
    session_auto_revoke: bool = field(
        default_factory=lambda: os.getenv("PRESENCE_SESSION_AUTO_REVOKE", "true").lower() == "true"
    )
    trust_forwarded_for: bool = field(
        default_factory=lambda: os.getenv("PRESENCE_TRUST_FORWARDED_FOR", "true").lower() == "true"
    )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.storage_backend == StorageBackend.DYNAMODB and not self.dynamodb_table:
            raise ConfigurationError(
                "PRESENCE_DYNAMODB_TABLE must be set when using DynamoDB storage",
                details={"storage_backend": self.storage_backend.value},
            )

        if self.claim_budget_ms <= 0:
            raise ConfigurationError(
                "PRESENCE_CLAIM_BUDGET_MS must be positive",
                details={"claim_budget_ms": self.claim_budget_ms},
            )

        # Warn about debug in production
        if self.environment == Environment.PRODUCTION and self.debug:
            import warnings
            warnings.warn(
                "Debug mode is enabled in production environment",
                RuntimeWarning,
                stacklevel=2
            )

    @property
    def resolved_policy_file(self) -> Path:
        """Policy file path, relative paths anchored at the project root."""
        if self.policy_file.is_absolute():
            return self.policy_file
        return self.project_root / self.policy_file

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
