"""Configuration management for asset-manager using YAML files."""

import os
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger()

CONFIG_DIR_NAME = ".asset-manager"

DEFAULTS: dict[str, Any] = {
    "backend": "supabase",
    "rest.base_url": "http://localhost:3001/api",
    "dashboard.expiring_window_days": 30,
}

# Keys that may come from the environment when not configured
ENV_FALLBACKS = {
    "supabase.url": "SUPABASE_URL",
    "supabase.key": "SUPABASE_ANON_KEY",
    "rest.base_url": "ASSET_MANAGER_API_URL",
    "rest.token": "ASSET_MANAGER_TOKEN",
}


class Config:
    """Configuration stored in YAML.

    Local config lives in ``.asset-manager/config.yaml`` under the current
    directory, global config in ``~/.asset-manager/config.yaml``. Reads check
    local first, then global, then the environment, then built-in defaults.
    Keys are flat dotted names such as ``supabase.url``.
    """

    def __init__(self, use_global: bool = False, config_dir: Path | None = None) -> None:
        """Initialize configuration manager.

        Args:
            use_global: If True, use global config only. If False, use local config with global fallback.
            config_dir: Custom directory to store config file (overrides use_global)
        """
        if config_dir is not None:
            self.config_dir = Path(config_dir)
            self.is_global = use_global
        elif use_global:
            self.config_dir = Path.home() / CONFIG_DIR_NAME
            self.is_global = True
        else:
            self.config_dir = Path.cwd() / CONFIG_DIR_NAME
            self.is_global = False

        self.config_file = self.config_dir / "config.yaml"
        self._config: dict[str, Any] = self._read(self.config_file)

        self._global_config: dict[str, Any] = {}
        if not self.is_global:
            global_file = Path.home() / CONFIG_DIR_NAME / "config.yaml"
            if global_file != self.config_file and global_file.exists():
                try:
                    self._global_config = self._read(global_file)
                except ValueError as e:
                    logger.warning("Failed to load global config", error=str(e))

        logger.debug("Config initialized", config_file=str(self.config_file), is_global=self.is_global)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        if not path.exists():
            logger.debug("Config file does not exist", path=str(path))
            return {}
        try:
            with open(path) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to load config", path=str(path), error=str(e))
            raise ValueError(f"Failed to load config from {path}: {e}") from e
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.debug("Config loaded", path=str(path), keys=list(config))
        return config

    def _save(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            logger.error("Failed to save config", error=str(e))
            raise ValueError(f"Failed to save config to {self.config_file}: {e}") from e
        logger.debug("Config saved", path=str(self.config_file))

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value.

        Args:
            key: Configuration key
            default: Value to return if the key is set nowhere

        Returns:
            Configuration value or default
        """
        if key in self._config:
            return self._config[key]
        if not self.is_global and key in self._global_config:
            return self._global_config[key]
        env_name = ENV_FALLBACKS.get(key)
        if env_name and os.environ.get(env_name):
            logger.debug("Using config value from environment", key=key, env=env_name)
            return os.environ[env_name]
        if default is not None:
            return default
        return DEFAULTS.get(key)

    def defines(self, key: str) -> bool:
        """Whether this config's own file sets ``key``."""
        return key in self._config

    def get_int(self, key: str, default: int | None = None) -> int | None:
        value = self.get(key, default)
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Config value {key} must be an integer, got '{value}'") from e

    def set(self, key: str, value: Any) -> None:
        logger.debug("Setting config value", key=key)
        self._config[key] = value
        self._save()

    def unset(self, key: str) -> None:
        logger.debug("Unsetting config value", key=key)
        if key in self._config:
            del self._config[key]
            self._save()

    def list(self) -> dict[str, Any]:
        """All settings from the files, local taking precedence over global."""
        if self.is_global:
            return self._config.copy()
        merged = self._global_config.copy()
        merged.update(self._config)
        return merged


def get_config(use_global: bool = False) -> Config:
    """Get a configuration instance.

    Args:
        use_global: If True, return global config. If False, return local config with global fallback.

    Returns:
        Config instance
    """
    return Config(use_global=use_global)
