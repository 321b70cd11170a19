"""
Configuration management for MasterMeter.

Loads and validates configuration from YAML files with environment
variable interpolation support.
"""

import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from mastermeter.utils.errors import ConfigurationError


class ConfigManager:
    """
    Manages application configuration loaded from YAML files.

    Features:
    - YAML configuration loading
    - Environment variable interpolation (${VAR_NAME})
    - Nested key access with dot notation
    - Defaults merged underneath user values
    - Type validation against a schema
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration manager.

        Args:
            config_dict: Optional pre-loaded configuration dictionary
        """
        self._config: Dict[str, Any] = config_dict or {}
        self._env_pattern = re.compile(r'\$\{([^}]+)\}')

    @classmethod
    def from_file(cls, file_path: Path) -> "ConfigManager":
        """
        Create ConfigManager from YAML file.

        Args:
            file_path: Path to YAML configuration file

        Returns:
            ConfigManager: Initialized with file contents

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        if not file_path.exists():
            raise ConfigurationError(
                f"Configuration file not found: {file_path}",
                config_key=str(file_path)
            )

        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                config_dict = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse YAML configuration: {e}",
                config_key=str(file_path)
            )

        if not isinstance(config_dict, dict):
            raise ConfigurationError(
                "Configuration root must be a mapping",
                config_key=str(file_path)
            )

        manager = cls(config_dict)
        manager._interpolate_env_vars()
        return manager

    def _interpolate_env_vars(self) -> None:
        """Replace ${ENV_VAR} patterns in every string value."""
        self._config = self._interpolate(self._config)

    def _interpolate(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: self._interpolate(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._interpolate(item) for item in value]
        if isinstance(value, str):
            return self._interpolate_string(value)
        return value

    def _interpolate_string(self, s: str) -> str:
        """Replace ${ENV_VAR} with environment variable value."""
        def replace(match: re.Match) -> str:
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)  # Keep original if not found
            return value

        return self._env_pattern.sub(replace, s)

    def get(
        self,
        key: str,
        default: Any = None,
        required: bool = False
    ) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key (e.g. "bpm.max_tempo")
            default: Default value if key not found
            required: If True, raise error when key not found

        Returns:
            Configuration value or default

        Raises:
            ConfigurationError: If required key is not found
        """
        value: Any = self._config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                if required:
                    raise ConfigurationError(
                        f"Required configuration key not found: {key}",
                        config_key=key
                    )
                return default

        return value

    def get_section(self, key: str) -> Dict[str, Any]:
        """Return a configuration section as a dictionary (empty if missing)."""
        value = self.get(key, default={})
        if not isinstance(value, dict):
            return {}
        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value using dot notation."""
        keys = key.split('.')
        current = self._config

        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]

        current[keys[-1]] = value

    def merged_with_defaults(self) -> Dict[str, Any]:
        """Return the default configuration overlaid with this configuration."""
        return _deep_merge(get_default_config(), self._config)

    def to_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary."""
        return copy.deepcopy(self._config)

    def validate(self, schema: Dict[str, Any]) -> None:
        """
        Validate configuration against a schema.

        Schema format:
            {
                "bpm.max_tempo": {"type": (int, float), "required": True},
                "batch.max_files": {"type": int},
            }

        Raises:
            ConfigurationError: If validation fails
        """
        for key, rules in schema.items():
            value = self.get(key)
            expected_type = rules.get("type")

            if value is None:
                if rules.get("required", False):
                    raise ConfigurationError(
                        f"Required configuration missing: {key}",
                        config_key=key
                    )
                continue

            if expected_type is None:
                continue

            # bool is an int subclass; only accept it where bool is expected
            is_stray_bool = isinstance(value, bool) and expected_type is not bool
            if is_stray_bool or not isinstance(value, expected_type):
                names = (
                    "/".join(t.__name__ for t in expected_type)
                    if isinstance(expected_type, tuple) else expected_type.__name__
                )
                raise ConfigurationError(
                    f"Invalid type for {key}: expected {names}, "
                    f"got {type(value).__name__}",
                    config_key=key
                )


CONFIG_SCHEMA: Dict[str, Any] = {
    "audio.max_file_size": {"type": int, "required": True},
    "analysis.silence_threshold": {"type": (int, float), "required": True},
    "analysis.true_peak_gate": {"type": (int, float), "required": True},
    "analysis.loudness_hop_size": {"type": (int, float), "required": True},
    "bpm.max_tempo": {"type": (int, float), "required": True},
    "bpm.min_tempo": {"type": (int, float), "required": True},
    "bpm.min_confidence": {"type": (int, float), "required": True},
    "key_fallback.frame_size": {"type": int, "required": True},
    "key_fallback.hop_size": {"type": int, "required": True},
    "key_fallback.progress_stride": {"type": int, "required": True},
    "batch.max_files": {"type": int, "required": True},
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from file, merged over the defaults.

    Args:
        config_path: Optional path to config file.
                    If None, tries "config/config.yaml" and "mastermeter.yaml"

    Returns:
        Dict[str, Any]: Configuration dictionary

    Raises:
        ConfigurationError: If the file is invalid
    """
    env_path = Path.cwd() / '.env'
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        default_paths = [
            Path("config/config.yaml"),
            Path("mastermeter.yaml"),
        ]
        for path in default_paths:
            if path.exists():
                config_path = str(path)
                break

    if config_path:
        manager = ConfigManager.from_file(Path(config_path))
    else:
        manager = ConfigManager()

    merged = ConfigManager(manager.merged_with_defaults())
    merged.validate(CONFIG_SCHEMA)
    return merged.to_dict()


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def get_default_config() -> Dict[str, Any]:
    """Return default configuration values."""
    return {
        "audio": {
            # Rate the decoder resamples to; None keeps the native rate
            "target_sample_rate": 44100,
            "max_file_size": 524288000,  # 500 MB
        },
        "analysis": {
            "silence_threshold": 0.001,
            "true_peak_gate": 0.707,
            "loudness_hop_size": 0.1,
        },
        "bpm": {
            "max_tempo": 208,
            "min_tempo": 40,
            "min_confidence": 1.0,
        },
        "key": {
            "averageDetuningCorrection": True,
            "frameSize": 4096,
            "hopSize": 4096,
            "hpcpSize": 12,
            "maxFrequency": 3500,
            "maximumSpectralPeaks": 60,
            "minFrequency": 25,
            "pcpThreshold": 0.2,
            "profileType": "bgate",
            "spectralPeaksThreshold": 0.0001,
            "tuningFrequency": 440,
            "weightType": "cosine",
            "windowType": "hann",
        },
        "key_fallback": {
            "frame_size": 4096,
            "hop_size": 2048,
            "progress_stride": 50,
        },
        "batch": {
            "max_files": 20,
        },
        "targets": {
            "duration_min": 120.0,
            "duration_max": 210.0,
            "sample_rate": 48000,
            "min_channels": 2,
            "format": "WAV",
            "lufs_min": -9.0,
            "lufs_max": -6.0,
            "true_peak_max": 1.5,
            "lra_min": 2.5,
            "lra_max": 6.0,
            "width_min_percent": 20.0,
            "width_max_percent": 60.0,
            "max_edge_silence": 1.0,
        },
        "logging": {
            "level": "INFO",
            "format": "text",
            "file": None,
        },
    }
