"""
Core helpers shared by the protocol layer and the CLI.
"""

from .errors import (
    ErrorKind,
    RadioError,
    RadioTransportError,
    ReadTimeoutError,
    ProtocolTimeoutError,
    ProtocolNackError,
    ConfigurationError,
)
from .results import OperationResult

__all__ = [
    "ErrorKind",
    "RadioError",
    "RadioTransportError",
    "ReadTimeoutError",
    "ProtocolTimeoutError",
    "ProtocolNackError",
    "ConfigurationError",
    "OperationResult",
]
