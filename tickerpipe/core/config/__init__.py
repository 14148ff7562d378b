"""Configuration management module."""

from tickerpipe.core.config.settings import (
    ArtifactConfig,
    ConfigManager,
    ImportConfig,
    LoggingConfig,
    ProviderConfig,
    StorageConfig,
    TickerPipeConfig,
    get_default_config,
    load_config_from_env,
)

__all__ = [
    "ArtifactConfig",
    "ConfigManager",
    "ImportConfig",
    "LoggingConfig",
    "ProviderConfig",
    "StorageConfig",
    "TickerPipeConfig",
    "get_default_config",
    "load_config_from_env",
]
