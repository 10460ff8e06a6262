"""
Receiver data model: enumerations, capability snapshot and live settings.
"""

from .radio_info import (
    FeatureFlags,
    RadioVersion,
    RadioMode,
    RadioInterface,
    RadioInfo,
    HARDWARE_NAMES,
    RADIO_INFO_SIZE,
)
from .settings import Settings, SettingsRegistry

__all__ = [
    "FeatureFlags",
    "RadioVersion",
    "RadioMode",
    "RadioInterface",
    "RadioInfo",
    "HARDWARE_NAMES",
    "RADIO_INFO_SIZE",
    "Settings",
    "SettingsRegistry",
]
