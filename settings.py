"""
Engine configuration.
Values come from config/contrib.yaml (or a caller supplied YAML file), then
CONTRIB_* environment variables, then explicit overrides (e.g. CLI flags).
"""
from typing import Dict, Any, Optional
import os
import logging

import yaml

from errors import ConfigurationError
from scoring.calibrator import DEFAULT_CALIBRATION_INTERVAL, resolve_interval

logger = logging.getLogger(__name__)

# filename used for the YAML configuration
CONFIG_FILENAME = 'contrib.yaml'
DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), 'config', CONFIG_FILENAME)

# key -> (environment variable, type)
CONFIG_KEYS = {
    'oversized_commit_threshold': ('CONTRIB_CMF_THRESHOLD', int),
    'calibration_interval': ('CONTRIB_WEIGHT_UPDATE_INTERVAL', int),
    'max_retries': ('CONTRIB_MAX_RETRIES', int),
    'backoff_base': ('CONTRIB_BACKOFF_BASE', float),
    'max_backoff': ('CONTRIB_MAX_BACKOFF', float),
    'log_buffer_entries': ('CONTRIB_LOG_ENTRIES', int),
}

DEFAULTS = {
    'calibration_interval': DEFAULT_CALIBRATION_INTERVAL,
    'log_buffer_entries': 512,
}


def _read_yaml(path: str) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as ex:
        raise ConfigurationError(f"Failed to read configuration {path}: {ex}") from ex
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration {path} must be a mapping, got {type(data).__name__}")
    return data


def _coerce(key: str, value: Any, kind) -> Any:
    if value is None or value == '':
        return None
    try:
        return kind(value)
    except (TypeError, ValueError) as ex:
        raise ConfigurationError(f"Configuration value {key}={value!r} is not a valid {kind.__name__}") from ex


def load_config(path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Load configuration into a plain dict.

    If path is None the packaged config/contrib.yaml is used when present. Unknown
    keys in the file are ignored. Values set to None in overrides are ignored.
    """
    explicit = path is not None
    path = path or DEFAULT_CONFIG_PATH
    raw: Dict[str, Any] = {}
    if os.path.exists(path):
        raw = _read_yaml(path)
    elif explicit:
        raise ConfigurationError(f"Configuration file not found at: {path}")

    cfg: Dict[str, Any] = dict(DEFAULTS)
    for key, (env_name, kind) in CONFIG_KEYS.items():
        if key in raw:
            cfg[key] = _coerce(key, raw[key], kind)
        env_val = os.getenv(env_name)
        if env_val is not None and env_val != '':
            cfg[key] = _coerce(key, env_val, kind)
    for key, value in (overrides or {}).items():
        if value is None:
            continue
        kind = CONFIG_KEYS.get(key, (None, type(value)))[1]
        cfg[key] = _coerce(key, value, kind)
    return cfg


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the values the engine cannot run without.

    The oversized-commit threshold must be explicit and positive; the calibration
    interval falls back to its default with a warning. Returns the checked config.
    """
    threshold = _coerce('oversized_commit_threshold', cfg.get('oversized_commit_threshold'), int)
    if threshold is None:
        raise ConfigurationError("Configuration option oversized_commit_threshold not found")
    if threshold <= 0:
        raise ConfigurationError(f"Configuration option oversized_commit_threshold must be positive, got {threshold}")
    checked = dict(cfg)
    checked['oversized_commit_threshold'] = threshold
    checked['calibration_interval'] = resolve_interval(cfg.get('calibration_interval'))
    return checked
