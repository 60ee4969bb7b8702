"""
Configuration loading for the commitment bundle
"""
import copy
import os
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigError
from .utils import DEFAULT_DEPTH, DEFAULT_HASH, HASHERS

DEFAULT_CONFIG_PATH = "commitbundle.yaml"
MAX_DEPTH = 64


class BundleConfig:
    """Loads and validates the YAML configuration file"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self.config = self._load_config()
        self._validate_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load config from YAML file, filling in defaults"""
        config = self._get_default_config()
        if not os.path.exists(self.config_path):
            return config

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"{self.config_path} must contain a mapping")

        for section, values in data.items():
            if section not in config:
                raise ConfigError(f"Unknown config section: {section}")
            if not isinstance(values, dict):
                raise ConfigError(f"Config section '{section}' must be a mapping")
            config[section].update(values)
        return config

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default config structure"""
        return copy.deepcopy({
            "bundle": {
                "depth": DEFAULT_DEPTH,
                "hash": DEFAULT_HASH,
            },
            "storage": {
                "path": "bundle.dat",
            },
            "logging": {
                "level": "WARNING",
                "file": None,
            },
        })

    def _validate_config(self) -> None:
        """Validate config values"""
        depth = self.config["bundle"]["depth"]
        if isinstance(depth, bool) or not isinstance(depth, int) or not 0 <= depth <= MAX_DEPTH:
            raise ConfigError(f"bundle.depth must be an integer in [0, {MAX_DEPTH}], got {depth!r}")

        hash_name = self.config["bundle"]["hash"]
        if not isinstance(hash_name, str) or hash_name.lower() not in HASHERS:
            raise ConfigError(f"bundle.hash must be one of {sorted(HASHERS)}, got {hash_name!r}")

        path = self.config["storage"]["path"]
        if not isinstance(path, str) or not path:
            raise ConfigError("storage.path must be a non-empty string")

    @property
    def depth(self) -> int:
        return self.config["bundle"]["depth"]

    @property
    def hash_name(self) -> str:
        return self.config["bundle"]["hash"].lower()

    @property
    def bundle_path(self) -> str:
        return self.config["storage"]["path"]

    @property
    def log_level(self) -> str:
        return str(self.config["logging"]["level"])

    @property
    def log_file(self) -> Optional[str]:
        return self.config["logging"]["file"]
