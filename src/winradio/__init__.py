"""
WiNRADiO control - serial command and state tracking for WiNRADiO receivers

Power, mute and attenuation control with confirmed-state bookkeeping.
"""

__version__ = "0.1.0"

from winradio.protocol import Radio, SerialDevice, SerialConfig
from winradio.models import Settings, SettingsRegistry, RadioInfo

__all__ = [
    "Radio",
    "SerialDevice",
    "SerialConfig",
    "Settings",
    "SettingsRegistry",
    "RadioInfo",
    "__version__",
]
