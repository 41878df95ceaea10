"""Environment configuration loader and validator

Settings come from the process environment, optionally seeded from a .env
file. Nothing here is persisted; the tool only reads.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values

logger = logging.getLogger(__name__)

# Default configuration values
DEFAULTS = {
    # Logging
    'SYSWHY_LOG_LEVEL': 'WARNING',
    'SYSWHY_LOG_FILE': '',

    # Probe defaults
    'SYSWHY_INTERVAL': '2',
    'SYSWHY_TOP': '10',

    # External tools
    'SYSWHY_TOOL_TIMEOUT': '10',

    # Orchestrator
    'SYSWHY_MAX_WORKERS': '',

    # Output
    'SYSWHY_NO_COLOR': 'false',
}


def find_env_file() -> Optional[Path]:
    """Find the .env file in standard locations"""
    search_paths = [
        Path.cwd() / '.env',
        Path.home() / '.config' / 'syswhy' / '.env',
    ]

    for path in search_paths:
        if path.is_file():
            return path

    return None


def load_env_file(env_path: Optional[Path] = None) -> Dict[str, str]:
    """Load SYSWHY_* variables from a .env file into the environment

    Variables already set in the environment win over the file.

    Args:
        env_path: Optional path to .env file. If None, auto-discovers.

    Returns:
        Dictionary of variables taken from the file
    """
    loaded_vars = {}

    if env_path is None:
        env_path = find_env_file()

    if env_path is None or not env_path.exists():
        return loaded_vars

    try:
        values = dotenv_values(env_path)
    except OSError as e:
        logger.warning(f"Could not load .env file {env_path}: {e}")
        return loaded_vars

    for key, value in values.items():
        if not key.startswith('SYSWHY_') or value is None:
            continue
        if key in os.environ:
            continue
        os.environ[key] = value
        loaded_vars[key] = value

    return loaded_vars


def get_config(key: str, default: Optional[str] = None) -> str:
    """Get configuration value from environment or defaults

    Priority:
    1. Environment variable
    2. Provided default
    3. Built-in default
    """
    value = os.environ.get(key)
    if value is not None and value != '':
        return value
    if default is not None:
        return default
    return DEFAULTS.get(key, '')


def get_config_bool(key: str, default: bool = False) -> bool:
    """Get boolean configuration value"""
    value = get_config(key, str(default).lower())
    return value.lower() in ('true', 'yes', '1', 'on')


def get_config_int(key: str, default: int = 0) -> int:
    """Get integer configuration value"""
    try:
        return int(get_config(key, str(default)))
    except ValueError:
        return default


def get_config_float(key: str, default: float = 0.0) -> float:
    """Get float configuration value"""
    try:
        return float(get_config(key, str(default)))
    except ValueError:
        return default


def validate_config() -> Dict[str, Any]:
    """Validate current configuration and return status

    Returns:
        Dictionary with validation results
    """
    results = {
        'valid': True,
        'warnings': [],
        'errors': [],
        'config': {}
    }

    log_level = get_config('SYSWHY_LOG_LEVEL').upper()
    if log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        results['errors'].append(f"Invalid SYSWHY_LOG_LEVEL: {log_level}")
        results['valid'] = False
    results['config']['log_level'] = log_level

    for key in ('SYSWHY_INTERVAL', 'SYSWHY_TOP'):
        raw = get_config(key)
        try:
            if int(raw) <= 0:
                raise ValueError(raw)
        except ValueError:
            results['errors'].append(f"{key} must be a positive integer, got {raw!r}")
            results['valid'] = False
        results['config'][key.lower()] = raw

    timeout = get_config('SYSWHY_TOOL_TIMEOUT')
    try:
        if float(timeout) <= 0:
            raise ValueError(timeout)
    except ValueError:
        results['errors'].append(f"SYSWHY_TOOL_TIMEOUT must be positive, got {timeout!r}")
        results['valid'] = False
    results['config']['tool_timeout'] = timeout

    workers = get_config('SYSWHY_MAX_WORKERS')
    if workers and not (workers.isdigit() and int(workers) > 0):
        results['warnings'].append(
            f"Ignoring SYSWHY_MAX_WORKERS={workers!r}: not a positive integer, using one worker per module"
        )
        workers = ''
    results['config']['max_workers'] = workers or None

    results['config']['no_color'] = get_config_bool('SYSWHY_NO_COLOR')

    return results


def initialize_config() -> Dict[str, Any]:
    """Initialize configuration by loading .env file

    Call this at application startup, before logging is configured;
    the caller reports the returned warnings and errors.
    """
    env_file = find_env_file()
    loaded = load_env_file(env_file)

    if loaded:
        logger.debug(f"Loaded {len(loaded)} settings from {env_file}")

    results = validate_config()
    if not results["valid"]:
        logger.debug(f"Configuration has {len(results['errors'])} error(s)")
    return results
