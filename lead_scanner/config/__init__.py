"""Configuration management module for the Company Lead Scanner."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError, MissingCredentialError
from .loader import load_config
from .models import (
    AdvancedConfig,
    AppConfig,
    ExportConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    ProbeConfig,
    RetryPolicy,
    ScanDefaults,
    ScoringConfig,
    ScoringWeights,
    SourceConfig,
    SourceType,
)

__all__ = [
    # Main loader functions
    "load_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "SourceConfig",
    "ScoringConfig",
    "ScoringWeights",
    "ProbeConfig",
    "RetryPolicy",
    "AdvancedConfig",
    "ExportConfig",
    "ScanDefaults",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "SourceType",
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
    "MissingCredentialError",
]
