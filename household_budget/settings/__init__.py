"""Household configuration files and loaders.

Budgets, sheet layouts and pay schedules are household-specific, so they
are stored as JSON rather than in code.
"""

from .defaults import get_config_value, get_household_config, load_config

__all__ = ['load_config', 'get_household_config', 'get_config_value']
