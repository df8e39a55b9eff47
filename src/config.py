"""
Configuration module for the ElastiCache parameter group reconciler.

Loads configuration from environment variables.
Supports plugin-based architecture with plugin-specific configuration.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _env_int(name: str, default: int) -> int:
    """Read an integer environment variable."""
    raw = os.getenv(name, str(default))
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable."""
    raw = os.getenv(name, str(default))
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class AWSConfig:
    """AWS SDK client configuration."""

    region: Optional[str] = None
    profile: Optional[str] = None
    endpoint_url: Optional[str] = None
    max_attempts: int = 5
    retry_mode: str = "standard"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            region=os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION"),
            profile=os.getenv("AWS_PROFILE") or None,
            endpoint_url=os.getenv("ELASTICACHE_ENDPOINT_URL") or None,
            max_attempts=_env_int("AWS_MAX_ATTEMPTS", 5),
            retry_mode=os.getenv("AWS_RETRY_MODE", "standard"),
        )


@dataclass
class ReconcilerConfig:
    """Parameter reconciliation configuration."""

    # The ModifyCacheParameterGroup/ResetCacheParameterGroup APIs accept
    # at most 20 parameters per call
    max_parameters_per_call: int = 20
    reset_timeout: float = 30  # seconds
    delete_timeout: float = 180  # seconds

    # Exponential backoff configuration
    backoff_base_delay: float = 1.0  # base delay in seconds
    backoff_max_delay: float = 10.0  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    default_description: str = "Managed by no8s"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_parameters_per_call=_env_int("RECONCILER_MAX_PARAMETERS_PER_CALL", 20),
            reset_timeout=_env_float("RECONCILER_RESET_TIMEOUT", 30),
            delete_timeout=_env_float("RECONCILER_DELETE_TIMEOUT", 180),
            backoff_base_delay=_env_float("RECONCILER_BACKOFF_BASE_DELAY", 1.0),
            backoff_max_delay=_env_float("RECONCILER_BACKOFF_MAX_DELAY", 10.0),
            backoff_jitter_factor=_env_float("RECONCILER_BACKOFF_JITTER_FACTOR", 0.1),
            default_description=os.getenv(
                "RECONCILER_DEFAULT_DESCRIPTION", "Managed by no8s"
            ),
        )


@dataclass
class StateConfig:
    """Local state file configuration."""

    state_file: str = ".no8s/state.json"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(state_file=os.getenv("NO8S_STATE_FILE", ".no8s/state.json"))


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class PluginConfig:
    """Plugin system configuration."""

    # List of enabled reconciler names (empty = use all registered plugins)
    enabled_reconciler_plugins: List[str] = field(default_factory=list)

    # Plugin-specific configurations keyed by plugin name
    plugin_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        enabled_str = os.getenv("ENABLED_RECONCILER_PLUGINS", "")
        enabled = (
            [p.strip() for p in enabled_str.split(",") if p.strip()]
            if enabled_str
            else []
        )

        # Load plugin configs from JSON environment variable
        plugin_configs = {}
        if os.getenv("PLUGIN_CONFIGS"):
            try:
                plugin_configs = json.loads(os.getenv("PLUGIN_CONFIGS"))
            except json.JSONDecodeError:
                raise ValueError("PLUGIN_CONFIGS must be a JSON object")

        return cls(
            enabled_reconciler_plugins=enabled,
            plugin_configs=plugin_configs,
        )

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get configuration for a specific plugin."""
        return self.plugin_configs.get(plugin_name, {})


@dataclass
class Config:
    """Main configuration object."""

    aws: AWSConfig
    reconciler: ReconcilerConfig
    state: StateConfig
    logging: LoggingConfig
    plugins: PluginConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            aws=AWSConfig.from_env(),
            reconciler=ReconcilerConfig.from_env(),
            state=StateConfig.from_env(),
            logging=LoggingConfig.from_env(),
            plugins=PluginConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            aws=AWSConfig(),
            reconciler=ReconcilerConfig(),
            state=StateConfig(),
            logging=LoggingConfig(),
            plugins=PluginConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
