"""Configuration management for the household budget dashboard.

This module centralizes all configuration values including paths,
remote store endpoints and environment variable overrides.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

# Base project root - assumes this file is in household_budget/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directories
DATA_DIR = Path(os.getenv("HOUSEHOLD_BUDGET_DATA_DIR", _PROJECT_ROOT / "data"))
STATE_DIR = DATA_DIR / "state"

# Local per-browser style settings (forecast inputs) live here
FORECAST_STATE_PATH = STATE_DIR / "forecast_inputs.json"

# Remote tabular store
API_BASE_URL = os.getenv("HOUSEHOLD_BUDGET_API_URL", "http://localhost:3000")
APP_KEY = os.getenv("HOUSEHOLD_BUDGET_APP_KEY", "")
PLAN_CSV_URL = os.getenv("HOUSEHOLD_BUDGET_PLAN_CSV_URL", "")
REQUEST_TIMEOUT = float(os.getenv("HOUSEHOLD_BUDGET_TIMEOUT", "20"))

# Optional JSON file whose keys override the packaged household settings
SETTINGS_OVERRIDE_PATH: Optional[Path] = (
    Path(os.environ["HOUSEHOLD_BUDGET_SETTINGS"]).resolve()
    if os.getenv("HOUSEHOLD_BUDGET_SETTINGS")
    else None
)


def ensure_data_directories() -> None:
    """Create all required data directories if they don't exist."""
    for directory in [DATA_DIR, STATE_DIR]:
        directory.mkdir(parents=True, exist_ok=True)


def get_api_base_url() -> str:
    """Get the store base URL without a trailing slash."""
    return API_BASE_URL.rstrip("/")
