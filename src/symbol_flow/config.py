# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for the symbol flow index."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from symbol_flow.identity import DEFAULT_ID_LENGTH, MAX_ID_LENGTH

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".symbol_flow.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for the symbol flow index.

    Loads configuration from .symbol_flow.yml with validation and defaults.
    """

    DEFAULTS = {
        "memory_dir": ".symbol_flow",
        "code_extensions": [".ts", ".tsx", ".js", ".jsx", ".py", ".php", ".go", ".rs", ".java"],
        "ignore_patterns": [],
        "index_workers": 4,
        "max_file_size_kb": 1024,
        "symbol_id_length": DEFAULT_ID_LENGTH,
        "subgraph_default_depth": 2,
        "subgraph_max_nodes": 100,
        "subgraph_max_edges": 200,
        "symbol_lookup_limit": 50,
        "entry_point_limit": 10,
        "watch_memory_dir": False,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
        """
        if config_path is None:
            config_path = Path.cwd() / CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _defaults(self) -> Dict[str, Any]:
        # Copy list defaults so callers can't mutate the class-level values
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
        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
            return
        except OSError as e:
            logger.warning(
                f"Error reading configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._defaults()
            return

        self._config = self._defaults()

        if loaded_config is None:
            logger.warning("Configuration file is empty, using defaults")
            return

        if not isinstance(loaded_config, dict):
            logger.warning(
                f"Configuration file must contain a YAML dictionary, "
                f"got {type(loaded_config)}, using defaults"
            )
            return

        self._validate_and_merge(loaded_config)

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
        # bool is a subclass of int; reject True/False for numeric keys
        if expected_type is int and isinstance(value, bool):
            return False
        if not isinstance(value, expected_type):
            return False

        if key == "memory_dir":
            return bool(value.strip())
        elif key == "index_workers":
            return bool(1 <= value <= 64)
        elif key == "symbol_id_length":
            return bool(DEFAULT_ID_LENGTH <= value <= MAX_ID_LENGTH)
        elif key in ("max_file_size_kb", "subgraph_max_nodes", "subgraph_max_edges", "entry_point_limit"):
            return bool(value > 0)
        elif key in ("subgraph_default_depth", "symbol_lookup_limit"):
            return bool(value >= 0)
        elif key == "code_extensions":
            return all(isinstance(ext, str) and ext.startswith(".") for ext in value)
        elif key == "ignore_patterns":
            return all(isinstance(pattern, str) for pattern in value)

        return True

    # Property accessors for all configuration values
    @property
    def memory_dir(self) -> str:
        """Memory directory holding the index documents, relative to the project root."""
        value = self._config["memory_dir"]
        assert isinstance(value, str)
        return value

    @property
    def code_extensions(self) -> List[str]:
        """File suffixes scanned by index runs."""
        value = self._config["code_extensions"]
        assert isinstance(value, list)
        return value

    @property
    def ignore_patterns(self) -> List[str]:
        """Additional file patterns to ignore beyond .gitignore."""
        value = self._config["ignore_patterns"]
        assert isinstance(value, list)
        return value

    @property
    def index_workers(self) -> int:
        """Threads used to extract files during an index run."""
        value = self._config["index_workers"]
        assert isinstance(value, int)
        return value

    @property
    def max_file_size_kb(self) -> int:
        """Source files larger than this are skipped."""
        value = self._config["max_file_size_kb"]
        assert isinstance(value, int)
        return value

    @property
    def symbol_id_length(self) -> int:
        """Hex digest characters kept in symbol ids.

        The default of 8 keeps ids compatible with existing graph documents;
        raising it changes every id on the next forced index run.
        """
        value = self._config["symbol_id_length"]
        assert isinstance(value, int)
        return value

    @property
    def subgraph_default_depth(self) -> int:
        value = self._config["subgraph_default_depth"]
        assert isinstance(value, int)
        return value

    @property
    def subgraph_max_nodes(self) -> int:
        value = self._config["subgraph_max_nodes"]
        assert isinstance(value, int)
        return value

    @property
    def subgraph_max_edges(self) -> int:
        value = self._config["subgraph_max_edges"]
        assert isinstance(value, int)
        return value

    @property
    def symbol_lookup_limit(self) -> int:
        """Default result cap for symbol lookup (0 means unlimited)."""
        value = self._config["symbol_lookup_limit"]
        assert isinstance(value, int)
        return value

    @property
    def entry_point_limit(self) -> int:
        value = self._config["entry_point_limit"]
        assert isinstance(value, int)
        return value

    @property
    def watch_memory_dir(self) -> bool:
        """Whether to invalidate cached documents on external edits."""
        value = self._config["watch_memory_dir"]
        assert isinstance(value, bool)
        return value
