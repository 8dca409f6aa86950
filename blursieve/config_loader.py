"""
Configuration loader and validator for the blur filter.

Settings come from three layers, later ones winning: built-in defaults, an
optional YAML file passed with --config, and command-line flags. The merged
result is validated once and frozen into a DetectorConfig for the detectors.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ConfigError
from .output import OUTPUT_STYLES
from .processor import VALID_POLICIES
from .sharpness import DETECTOR_REGISTRY
from .stream import FilterMode

# Tenengrad is opt-in; see --detectors
DEFAULT_DETECTORS: Tuple[str, ...] = ('laplacian', 'opencv_laplacian')

DEFAULTS: Dict[str, Dict[str, Any]] = {
    'detectors': {
        'enabled': list(DEFAULT_DETECTORS),
        'laplacian_threshold': None,
        'tenengrad_threshold': None,
        'opencv_laplacian_threshold': None,
        'policy': 'any'
    },
    'output': {
        'filter_mode': 'blurry',
        'style': 'plain'
    },
    'logging': {
        'level': 'WARNING',
        'console_level': None,
        'file_level': 'DEBUG',
        'log_file': None,
        'show_progress': False,
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'date_format': '%Y-%m-%d %H:%M:%S'
    }
}


@dataclass(frozen=True)
class DetectorConfig:
    """
    Resolved detector settings for one invocation.

    A threshold of None means "use the detector's built-in default".
    """
    laplacian_threshold: Optional[float] = None
    tenengrad_threshold: Optional[float] = None
    opencv_laplacian_threshold: Optional[float] = None
    enabled: Tuple[str, ...] = DEFAULT_DETECTORS
    policy: str = 'any'

    def threshold_for(self, detector_key: str) -> Optional[float]:
        return getattr(self, f"{detector_key}_threshold")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML file with validation.

    Args:
        config_path: Path to the configuration YAML file, or None for
            defaults only

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config file is malformed or invalid
    """
    if config_path is None:
        config = apply_defaults({})
        validate_config(config)
        return config

    if not os.path.exists(config_path):
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration file {config_path}: {e}") from e

    if config is None:
        raise ConfigError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ConfigError("Configuration file must contain a mapping")

    config = apply_defaults(config)
    validate_config(config)

    return config


def apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply default values for missing configuration options.

    Args:
        config: Partial configuration dictionary

    Returns:
        Configuration dictionary with defaults applied
    """
    for section, section_defaults in DEFAULTS.items():
        if config.get(section) is None:
            config[section] = {}
        elif not isinstance(config[section], dict):
            raise ConfigError(f"Configuration section '{section}' must be a mapping")
        for key, default_value in section_defaults.items():
            if key not in config[section]:
                config[section][key] = copy.deepcopy(default_value)

    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration dictionary to validate

    Raises:
        ConfigError: If configuration is invalid
    """
    detectors = config['detectors']

    enabled = detectors['enabled']
    if isinstance(enabled, str) or not isinstance(enabled, (list, tuple)):
        raise ConfigError("detectors.enabled must be a list of detector names")
    if not enabled:
        raise ConfigError("At least one detector must be enabled")
    unknown = [name for name in enabled if name not in DETECTOR_REGISTRY]
    if unknown:
        raise ConfigError(
            f"Unknown detector(s): {', '.join(map(str, unknown))}. "
            f"Valid detectors: {', '.join(DETECTOR_REGISTRY)}"
        )

    for key in DETECTOR_REGISTRY:
        threshold = detectors[f"{key}_threshold"]
        if threshold is None:
            continue
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise ConfigError(f"{key} threshold must be a number")
        if threshold < 0:
            raise ConfigError(f"{key} threshold must not be negative")

    if detectors['policy'] not in VALID_POLICIES:
        raise ConfigError(
            f"Combining policy must be one of: {', '.join(VALID_POLICIES)}"
        )

    output = config['output']
    valid_modes = [mode.value for mode in FilterMode]
    if output['filter_mode'] not in valid_modes:
        raise ConfigError(f"Filter mode must be one of: {', '.join(valid_modes)}")

    if output['style'] not in OUTPUT_STYLES:
        raise ConfigError(f"Output style must be one of: {', '.join(OUTPUT_STYLES)}")

    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    for key in ('level', 'console_level', 'file_level'):
        level = config['logging'][key]
        if level is not None and str(level).upper() not in valid_log_levels:
            raise ConfigError(
                f"Log level must be one of: {', '.join(valid_log_levels)}"
            )


def get_config_value(config: Dict[str, Any], key_path: str, default=None) -> Any:
    """
    Safely get a configuration value using dot notation.

    Args:
        config: Configuration dictionary
        key_path: Dot-separated path to the value (e.g., 'detectors.policy')
        default: Default value if key doesn't exist

    Returns:
        Configuration value or default
    """
    keys = key_path.split('.')
    value = config

    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default

    return value


def apply_overrides(config: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Apply command-line overrides given as dot-notation keys.

    None values mean "not given on the command line" and are skipped. The
    result is validated again.

    Args:
        config: Configuration dictionary with defaults applied
        overrides: Mapping such as {'detectors.policy': 'all'}

    Returns:
        The updated configuration dictionary
    """
    for key_path, value in overrides.items():
        if value is None:
            continue
        section, _, key = key_path.partition('.')
        config.setdefault(section, {})[key] = value

    validate_config(config)
    return config


def detector_config_from(config: Dict[str, Any]) -> DetectorConfig:
    """Freeze the detector section of a validated configuration."""
    detectors = config['detectors']

    def _threshold(key: str) -> Optional[float]:
        value = detectors[f"{key}_threshold"]
        return None if value is None else float(value)

    return DetectorConfig(
        laplacian_threshold=_threshold('laplacian'),
        tenengrad_threshold=_threshold('tenengrad'),
        opencv_laplacian_threshold=_threshold('opencv_laplacian'),
        enabled=tuple(detectors['enabled']),
        policy=detectors['policy']
    )


def print_config_summary(config: Dict[str, Any], logger: logging.Logger) -> None:
    """
    Log a summary of key configuration settings.

    Args:
        config: Configuration dictionary
        logger: Logger instance
    """
    detectors = config['detectors']
    logger.info(f"Detectors: {', '.join(detectors['enabled'])}")
    for key in detectors['enabled']:
        threshold = detectors[f"{key}_threshold"]
        logger.info(
            f"  {key} threshold: "
            f"{threshold if threshold is not None else DETECTOR_REGISTRY[key].default_threshold}"
        )
    logger.info(f"Combining policy: {detectors['policy']}")
    logger.info(f"Filter mode: {config['output']['filter_mode']}")
    logger.info(f"Output style: {config['output']['style']}")
