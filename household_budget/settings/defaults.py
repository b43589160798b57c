"""Configuration loader for household settings."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import SETTINGS_OVERRIDE_PATH

# Configuration directory
CONFIG_DIR = Path(__file__).parent


def load_config(config_name: str) -> Dict[str, Any]:
    """Load a configuration file by name.

    Args:
        config_name: Name of the config file (without .json extension)

    Returns:
        Dictionary containing the configuration

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the configuration file is invalid JSON

    Example:
        >>> config = load_config('household')
        >>> config['fallback_budgets']['discretionary']['Food']
        1200
    """
    config_path = CONFIG_DIR / f"{config_name}.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def get_household_config(override_path: Optional[Path] = None) -> Dict[str, Any]:
    """Get the household configuration.

    The packaged ``household.json`` provides every key.  A user file
    (``HOUSEHOLD_BUDGET_SETTINGS`` or ``override_path``) is deep-merged
    on top so a household only needs to list the values it changes.

    Returns:
        Household configuration dictionary with fallback budgets, sheet
        layouts and the pay schedule
    """
    config = load_config('household')
    target = override_path or SETTINGS_OVERRIDE_PATH
    if target is not None and Path(target).exists():
        with open(target, 'r', encoding='utf-8') as f:
            override = json.load(f)
        if isinstance(override, dict):
            config = _deep_merge(config, override)
    return config


def get_config_value(config_name: str, *keys: str, default: Any = None) -> Any:
    """Get a nested configuration value by key path.

    Example:
        >>> get_config_value('household', 'pay_schedule', 'weekly_payday')
        3
    """
    try:
        value = get_household_config() if config_name == 'household' else load_config(config_name)
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError, FileNotFoundError):
        return default
