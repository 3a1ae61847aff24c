"""
Core module initialization.
Exports configuration and logging utilities.
"""

from foodcart.core.config import (
    get_settings,
    Settings,
    EnvironmentMode,
    StorageBackend,
    setup_logging,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "StorageBackend",
    "setup_logging",
]
