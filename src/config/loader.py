"""YAML configuration loader with environment variable overrides.

# ─── CONFIGURATION HIERARCHY ───────────────────────────────────────────
#
# Configuration is loaded in layers (later layers override earlier):
#
#   1. config/config.yaml    Static defaults checked into the repo
#   2. .env file             Local developer overrides (not committed)
#   3. Environment vars      Set at deploy time
#
# load_config() reads the YAML file first, then deep-merges the
# environment-based Settings values on top.
# ──────────────────────────────────────────────────────────────────────
"""

from pathlib import Path

import yaml

from src.config.settings import Settings
from src.utils.errors import ConfigurationError


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Environment variables (via Settings) override YAML values where keys overlap.

    Args:
        path: Path to the YAML configuration file.
        settings: Pre-built settings; a fresh ``Settings()`` is read when omitted.

    Returns:
        Fully resolved configuration dictionary.

    Raises:
        ConfigurationError: If the YAML file cannot be parsed.
    """
    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            try:
                yaml_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(message=f"Invalid config file {config_path}: {exc}") from exc
        if not isinstance(yaml_config, dict):
            raise ConfigurationError(message=f"Config file {config_path} must contain a mapping")
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "store": {
            "backend": settings.store_backend,
            "path": settings.store_path,
            "timeout": settings.store_timeout,
        },
        "cache": {
            "stale_after_hours": settings.stale_after_hours,
            "unrequested_update_threshold": settings.unrequested_update_threshold,
        },
        "updater": {
            "enabled": settings.updater_enabled,
            "cycle_interval": settings.cycle_interval,
            "retry_delay": settings.retry_delay,
        },
        "fetch_queue": {
            "delay": settings.queue_delay,
        },
        "musicbrainz": {
            "base_url": settings.musicbrainz_base_url,
            "user_agent": settings.user_agent,
            "http_timeout": settings.http_timeout,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
