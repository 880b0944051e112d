"""Configuration management for the FMCD dashboard."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from core.errors import ConfigurationError
from fmcd.client import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass
class DashboardConfig:
    """Main dashboard configuration."""

    # Storage
    database_path: str = "dashboard.db"
    identity_file: str = "identity.toml"

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # Logging
    log_level: str = "INFO"
    log_file: str = "fmcd-dashboard.log"

    # FMCD request defaults
    fmcd_max_retries: int = 3
    fmcd_base_delay: float = 1.0  # seconds, doubled per retry
    fmcd_timeout: float = 10.0  # seconds, +5s per retry

    @classmethod
    def from_env(cls) -> "DashboardConfig":
        """Load configuration from environment variables.

        Raises:
            ConfigurationError: If a numeric setting cannot be parsed
        """
        try:
            return cls(
                database_path=os.getenv("DATABASE_PATH", "dashboard.db"),
                identity_file=os.getenv("IDENTITY_FILE", "identity.toml"),
                api_host=os.getenv("API_HOST", "0.0.0.0"),
                api_port=int(os.getenv("API_PORT", "8000")),
                cors_origins=[
                    origin.strip()
                    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
                    if origin.strip()
                ],
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_file=os.getenv("LOG_FILE", "fmcd-dashboard.log"),
                fmcd_max_retries=int(os.getenv("FMCD_MAX_RETRIES", "3")),
                fmcd_base_delay=float(os.getenv("FMCD_BASE_DELAY", "1.0")),
                fmcd_timeout=float(os.getenv("FMCD_TIMEOUT", "10.0")),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if self.fmcd_max_retries < 1:
            raise ConfigurationError("FMCD_MAX_RETRIES must be at least 1")

        if self.fmcd_base_delay < 0:
            raise ConfigurationError("FMCD_BASE_DELAY cannot be negative")

        if self.fmcd_timeout <= 0:
            raise ConfigurationError("FMCD_TIMEOUT must be positive")

        if not 0 < self.api_port < 65536:
            raise ConfigurationError(f"API_PORT out of range: {self.api_port}")

        if not Path(self.identity_file).exists():
            raise ConfigurationError(f"Identity file not found: {self.identity_file}")

        logger.info("Configuration validated successfully")

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.fmcd_max_retries,
            base_delay=self.fmcd_base_delay,
            base_timeout=self.fmcd_timeout,
        )
