"""Environment variable loading and validation."""

import os
from typing import Optional

from .exceptions import ConfigurationError

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_ENVIRONMENTS = ["local", "staging", "production"]


class EnvironmentConfig:
    """Environment variable configuration holder."""

    def __init__(
        self,
        pappers_api_token: Optional[str] = None,
        log_level: Optional[str] = None,
        output_dir: Optional[str] = None,
        environment: Optional[str] = None,
    ):
        self.pappers_api_token = pappers_api_token
        self.log_level = log_level
        self.output_dir = output_dir
        self.environment = environment or "local"

    @property
    def masked_token(self) -> Optional[str]:
        """API token safe for log output (last four characters kept)."""
        if not self.pappers_api_token:
            return None
        return "****" + self.pappers_api_token[-4:]

    def __repr__(self) -> str:
        return (
            f"EnvironmentConfig(pappers_api_token={self.masked_token!r}, "
            f"log_level={self.log_level!r}, output_dir={self.output_dir!r}, "
            f"environment={self.environment!r})"
        )


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    All variables are optional:
    - PAPPERS_API_TOKEN: API token for the keyed_api source
    - LOG_LEVEL: Override log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - OUTPUT_DIR: Override the export directory
    - ENVIRONMENT: Deployment label (local, staging, production)

    The API token is only required when the keyed_api source is enabled; its
    absence is reported when a scan or the scheduler starts, not here.

    Raises:
        ConfigurationError: If a provided value is invalid
    """
    errors = []

    token = (os.getenv("PAPPERS_API_TOKEN") or "").strip() or None
    log_level = (os.getenv("LOG_LEVEL") or "").strip() or None
    output_dir = (os.getenv("OUTPUT_DIR") or "").strip() or None
    environment = (os.getenv("ENVIRONMENT") or "").strip().lower() or None

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if environment and environment not in VALID_ENVIRONMENTS:
        errors.append(
            f"Invalid ENVIRONMENT: '{environment}'. "
            f"Must be one of: {', '.join(VALID_ENVIRONMENTS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and adjust the values",
                "Unset variables you do not need; all of them are optional",
            ],
        )

    return EnvironmentConfig(
        pappers_api_token=token,
        log_level=log_level.upper() if log_level else None,
        output_dir=output_dir,
        environment=environment,
    )
