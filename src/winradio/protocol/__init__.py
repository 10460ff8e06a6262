"""Transport and receiver protocol layer."""

from .device import DeviceProtocol, DEFAULT_TERMINATOR
from .serial_device import (
    SerialDevice,
    SerialConfig,
    Parity,
    STANDARD_BAUD_RATES,
)
from .radio import (
    Radio,
    RadioCommand,
    DEFAULT_POLL_RETRIES,
    DEFAULT_POLL_INTERVAL,
)
from .simulated import SimulatedReceiver, default_info

__all__ = [
    # Transport
    "DeviceProtocol",
    "DEFAULT_TERMINATOR",
    "SerialDevice",
    "SerialConfig",
    "Parity",
    "STANDARD_BAUD_RATES",
    # Receiver protocol
    "Radio",
    "RadioCommand",
    "DEFAULT_POLL_RETRIES",
    "DEFAULT_POLL_INTERVAL",
    # Simulation
    "SimulatedReceiver",
    "default_info",
]
