"""
Linter Configuration

Loads configuration from a YAML file and environment variables.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

import yaml

from apkbuild_lint.rules import RULE_NAMES

logger = logging.getLogger(__name__)


# Configuration file name looked up in the working directory
LOCAL_CONFIG_NAME = ".apkbuild-lint.yaml"

CONFIG_ENV_VAR = "APKBUILD_LINT_CONFIG"

DEFAULT_CONFIG = {
    "build_script": "APKBUILD",    # Appended to directory arguments
    "log_level": "WARNING",
    "disabled_checks": [],         # Rule names to skip
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(Exception):
    """Invalid configuration."""
    def __init__(self, message: str, path: Optional[Path] = None):
        self.message = message
        self.path = path
        if path is not None:
            message = f"{path}: {message}"
        super().__init__(message)


class LinterConfig:
    """Configuration for the APKBUILD linter."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config: Dict[str, Any] = dict(DEFAULT_CONFIG)
        self._config_path: Optional[Path] = None

        # Load from file if found
        self._load_config(config_path)

        # Override with environment variables
        self._apply_env_overrides()

        self._validate()

    def _search_paths(self, explicit_path: Optional[Path]) -> List[Path]:
        if explicit_path:
            return [Path(explicit_path)]
        if os.environ.get(CONFIG_ENV_VAR):
            return [Path(os.environ[CONFIG_ENV_VAR])]
        return [
            Path(LOCAL_CONFIG_NAME),
            Path.home() / ".config" / "apkbuild-lint" / "config.yaml",
        ]

    def _load_config(self, explicit_path: Optional[Path] = None) -> None:
        """Load configuration from the first YAML file found."""
        for config_path in self._search_paths(explicit_path):
            if not config_path.exists():
                continue
            try:
                with open(config_path, 'r', encoding='utf-8') as f:
                    user_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigError(f"Failed to load config: {e}", config_path) from e
            if not isinstance(user_config, dict):
                raise ConfigError("Config must be a mapping", config_path)

            unknown = set(user_config) - set(DEFAULT_CONFIG)
            if unknown:
                logger.warning("Ignoring unknown config keys in %s: %s",
                               config_path, ", ".join(sorted(unknown)))
            self._config.update({k: v for k, v in user_config.items()
                                 if k in DEFAULT_CONFIG})
            self._config_path = config_path
            logger.debug("Loaded config from %s", config_path)
            return

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "APKBUILD_LINT_BUILD_SCRIPT": "build_script",
            "APKBUILD_LINT_LOG_LEVEL": "log_level",
        }

        for env_var, config_key in env_mappings.items():
            if env_var in os.environ:
                self._config[config_key] = os.environ[env_var]

        if "APKBUILD_LINT_DISABLE" in os.environ:
            names = os.environ["APKBUILD_LINT_DISABLE"].split(",")
            self._config["disabled_checks"] = [n.strip() for n in names if n.strip()]

    def _validate(self) -> None:
        path = self._config_path

        build_script = self._config["build_script"]
        if not isinstance(build_script, str) or not build_script:
            raise ConfigError("build_script must be a non-empty string", path)

        level = self._config["log_level"]
        if not isinstance(level, str) or level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {level!r}", path)

        disabled = self._config["disabled_checks"]
        if not isinstance(disabled, list):
            raise ConfigError("disabled_checks must be a list", path)
        unknown = [name for name in disabled if name not in RULE_NAMES]
        if unknown:
            raise ConfigError(f"Unknown checks: {', '.join(map(str, unknown))}", path)

    @property
    def config_path(self) -> Optional[Path]:
        """Path to loaded config file, or None if using defaults."""
        return self._config_path

    @property
    def build_script(self) -> str:
        """Filename looked up inside directory arguments."""
        return self._config["build_script"]

    @property
    def log_level(self) -> str:
        return self._config["log_level"].upper()

    @property
    def disabled_checks(self) -> FrozenSet[str]:
        return frozenset(self._config["disabled_checks"])

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary."""
        return {
            "build_script": self.build_script,
            "log_level": self.log_level,
            "disabled_checks": sorted(self.disabled_checks),
        }

