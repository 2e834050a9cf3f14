# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the type dependency graph."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".typedep_graph.yml"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Config:
    """Configuration for typedep-graph.

    Loads configuration from .typedep_graph.yml with validation and defaults.
    """

    DEFAULTS = {
        "cache_dir_name": ".typedep_graph",
        "graph_file_name": "graph.json",
        "enable_graph_cache": True,
        "max_workers": 0,  # 0 = host CPU count
        "markup_extensions": [".razor", ".cshtml"],
        "log_level": "INFO",
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILE_NAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        # Lists in DEFAULTS must not be shared between instances
        return {
            key: list(value) if isinstance(value, list) else value
            for key, value in self.DEFAULTS.items()
        }

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._defaults()
                return

            self._config = self._defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        # bool is an int subclass; keep them apart
        if isinstance(value, bool) != (expected_type is bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key in ("cache_dir_name", "graph_file_name"):
            return bool(value) and not any(sep in value for sep in ("/", "\\", "\0"))
        elif key == "max_workers":
            return value >= 0
        elif key == "markup_extensions":
            return all(isinstance(ext, str) and ext.startswith(".") for ext in value)
        elif key == "log_level":
            return value.upper() in LOG_LEVELS

        return True

    @property
    def cache_dir_name(self) -> str:
        """Name of the per-project cache directory under the project root."""
        value = self._config["cache_dir_name"]
        assert isinstance(value, str)
        return value

    @property
    def graph_file_name(self) -> str:
        """File name of the persisted dependency graph."""
        value = self._config["graph_file_name"]
        assert isinstance(value, str)
        return value

    @property
    def enable_graph_cache(self) -> bool:
        """Whether to reuse and persist the dependency graph between runs."""
        value = self._config["enable_graph_cache"]
        assert isinstance(value, bool)
        return value

    @property
    def max_workers(self) -> int:
        """Maximum parallel compilation units. 0 means host CPU count."""
        value = self._config["max_workers"]
        assert isinstance(value, int)
        return value

    @property
    def markup_extensions(self) -> List[str]:
        """Extensions of markup sources that generated files map back to."""
        value = self._config["markup_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def log_level(self) -> str:
        """Logging level name for the command line."""
        value = self._config["log_level"]
        assert isinstance(value, str)
        return value.upper()
