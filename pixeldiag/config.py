"""Configuration: YAML file merged over defaults, plus detection thresholds."""

import copy
import logging
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Thresholds:
    timeout_ms: float = 10000
    slow_response_ms: float = 3000
    duplicate_window_ms: float = 1000


DEFAULT_THRESHOLDS = Thresholds()


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "thresholds": {
            "timeout_ms": 10000,
            "slow_response_ms": 3000,
            "duplicate_window_ms": 1000,
        },
        "signature": {
            "placement_params": None,
        },
        "store": {
            "max_records": None,
            "auto_analyze": True,
        },
        "scheduler": {
            "enabled": True,
            "timeout_sweep_seconds": 5,
        },
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
        },
        "schema": {
            "path": None,
        },
    }

    def __init__(self, config_path=None, overrides=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r", encoding="utf-8") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
                logger.info("Loaded config from %s", config_path)
            except FileNotFoundError:
                logger.warning("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        if overrides:
            self._config = self._deep_merge(self._config, overrides)

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    @property
    def thresholds(self) -> Thresholds:
        """Detection thresholds, taken as given (no range validation)."""
        section = self._config["thresholds"]
        return Thresholds(
            timeout_ms=section.get("timeout_ms", DEFAULT_THRESHOLDS.timeout_ms),
            slow_response_ms=section.get("slow_response_ms", DEFAULT_THRESHOLDS.slow_response_ms),
            duplicate_window_ms=section.get("duplicate_window_ms", DEFAULT_THRESHOLDS.duplicate_window_ms),
        )

    @property
    def placement_params(self) -> tuple[str, ...] | None:
        params = self._config["signature"].get("placement_params")
        return tuple(params) if params else None

    def get(self, key, default=None):
        """Get a top-level config key."""
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
