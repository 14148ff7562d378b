"""Configuration management for tickerpipe."""

import os
import tomllib
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from tickerpipe.core.exceptions import ConfigurationError

DEFAULT_HOME = Path.home() / ".tickerpipe"


@dataclass
class StorageConfig:
    """DuckDB storage settings."""

    database: str = str(DEFAULT_HOME / "tickerpipe.duckdb")
    threads: int = 1


@dataclass
class ImportConfig:
    """Defaults applied to every import run."""

    batch_size: int = 1000
    error_threshold: int = 100
    update_existing: bool = False
    max_error_details: int = 100


@dataclass
class ArtifactConfig:
    """Where downloaded flat files are written."""

    root: str = str(DEFAULT_HOME / "flat_files")


@dataclass
class ProviderConfig:
    """Transport settings shared by downloaders."""

    timeout: float = 30.0
    max_attempts: int = 3
    backoff_base: float = 2.0
    fred_api_key: str | None = None
    flat_file_drop: str | None = None


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "INFO"
    file: str | None = None


@dataclass
class TickerPipeConfig:
    """Top-level tickerpipe configuration."""

    storage: StorageConfig = field(default_factory=StorageConfig)
    imports: ImportConfig = field(default_factory=ImportConfig)
    artifacts: ArtifactConfig = field(default_factory=ArtifactConfig)
    providers: ProviderConfig = field(default_factory=ProviderConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "TickerPipeConfig":
        """Build a configuration from a nested dictionary."""
        try:
            return cls(
                storage=StorageConfig(**config_dict.get("storage", {})),
                imports=ImportConfig(**config_dict.get("imports", {})),
                artifacts=ArtifactConfig(**config_dict.get("artifacts", {})),
                providers=ProviderConfig(**config_dict.get("providers", {})),
                logging=LoggingConfig(**config_dict.get("logging", {})),
            )
        except TypeError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage": asdict(self.storage),
            "imports": asdict(self.imports),
            "artifacts": asdict(self.artifacts),
            "providers": asdict(self.providers),
            "logging": asdict(self.logging),
        }


def _deep_update(target: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        if isinstance(value, dict):
            target[key] = _deep_update(target.get(key, {}), value)
        else:
            target[key] = value
    return target


class ConfigManager:
    """Loads configuration from a TOML file and the environment."""

    def __init__(self, config_path: Path | None = None, environ: dict[str, str] | None = None):
        """Initialise the manager.

        Args:
            config_path: TOML file; defaults to ``~/.tickerpipe/config.toml``
            environ: environment mapping, defaults to ``os.environ``
        """
        self.config_path = config_path or DEFAULT_HOME / "config.toml"
        self._environ = environ if environ is not None else dict(os.environ)
        self.config = self._load_config()

    def _load_config(self) -> TickerPipeConfig:
        config_dict: dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    config_dict = tomllib.load(f)
            except tomllib.TOMLDecodeError as exc:
                logger.warning("Failed to parse config {}: {}; using defaults", self.config_path, exc)
                config_dict = {}
        _deep_update(config_dict, load_config_from_env(self._environ))
        return TickerPipeConfig.from_dict(config_dict)

    def get_config(self) -> TickerPipeConfig:
        return self.config

    def update_config(self, **updates: Any) -> None:
        """Apply nested updates on top of the current configuration."""
        config_dict = _deep_update(self.config.to_dict(), updates)
        self.config = TickerPipeConfig.from_dict(config_dict)


def get_default_config() -> TickerPipeConfig:
    return TickerPipeConfig()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


# (section, key, environment variable, converter)
_ENV_OVERRIDES: tuple[tuple[str, str, str, Any], ...] = (
    ("storage", "database", "TICKERPIPE_DATABASE", str),
    ("storage", "threads", "TICKERPIPE_DB_THREADS", int),
    ("imports", "batch_size", "TICKERPIPE_BATCH_SIZE", int),
    ("imports", "error_threshold", "TICKERPIPE_ERROR_THRESHOLD", int),
    ("imports", "update_existing", "TICKERPIPE_UPDATE_EXISTING", _as_bool),
    ("artifacts", "root", "TICKERPIPE_ARTIFACT_ROOT", str),
    ("providers", "timeout", "TICKERPIPE_PROVIDER_TIMEOUT", float),
    ("providers", "max_attempts", "TICKERPIPE_PROVIDER_MAX_ATTEMPTS", int),
    ("providers", "fred_api_key", "FRED_API_KEY", str),
    ("providers", "flat_file_drop", "TICKERPIPE_FLAT_FILE_DROP", str),
    ("logging", "level", "TICKERPIPE_LOG_LEVEL", str),
    ("logging", "file", "TICKERPIPE_LOG_FILE", str),
)


def load_config_from_env(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect configuration overrides from ``TICKERPIPE_*`` variables."""
    env = environ if environ is not None else os.environ
    config: dict[str, Any] = {}
    for section, key, variable, convert in _ENV_OVERRIDES:
        raw = env.get(variable)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as exc:
            raise ConfigurationError(
                f"Invalid value for {variable}: {raw!r}",
                details={"variable": variable},
            ) from exc
        config.setdefault(section, {})[key] = value
    return config
