"""
Error kinds and exceptions for the receiver control stack.

Public operations report failure as a boolean; these exceptions travel
between the transport and protocol layers and end up in ``last_error`` so
callers can tell a dead link from a device that refused a command.
"""

from enum import Enum


class ErrorKind(Enum):
    """Category of a failed operation."""
    TRANSPORT = "transport"                      # open/write/read failed, short read, timeout
    PROTOCOL_TIMEOUT = "protocol-timeout"        # device never reached the expected state
    PROTOCOL_NACK = "protocol-nack"              # device answered with the wrong reply
    CONFIGURATION_INVALID = "configuration-invalid"


class RadioError(Exception):
    """Base exception for all receiver errors"""
    kind = ErrorKind.TRANSPORT


class RadioTransportError(RadioError):
    """Byte-level failure on the underlying channel"""
    kind = ErrorKind.TRANSPORT


class ReadTimeoutError(RadioTransportError):
    """No data arrived within the configured read timeout"""
    pass


class ProtocolTimeoutError(RadioError):
    """Device did not report the expected state within the retry budget"""
    kind = ErrorKind.PROTOCOL_TIMEOUT


class ProtocolNackError(RadioError):
    """Device replied, but not with the expected acknowledgement"""
    kind = ErrorKind.PROTOCOL_NACK


class ConfigurationError(RadioError):
    """Unsupported port or device configuration was requested"""
    kind = ErrorKind.CONFIGURATION_INVALID
