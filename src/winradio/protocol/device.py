"""
Byte-oriented device interface.

Every transport the Radio protocol layer talks through implements this
contract: the serial port in production, the simulator for dry runs, and
in-memory doubles in tests.

Contract:
    - open() acquires the resource once, before any I/O; False on failure.
    - close() is idempotent and safe on an unopened device.
    - write*() return False on a transport-level failure. Callers do not
      retry partial writes.
    - read_line*() return the line without its terminator, or None.
    - read(count) returns exactly ``count`` bytes, or None. A short read
      is a failure, not a partial success.
    - reset_input() drops input that arrived but was never read.
"""

from abc import ABC, abstractmethod
from typing import Optional

from winradio.core.errors import RadioError

DEFAULT_TERMINATOR = "\r\n"


class DeviceProtocol(ABC):
    """Abstract byte channel to one receiver."""

    #: Cause of the most recent failed call, cleared on success
    last_error: Optional[RadioError] = None

    @abstractmethod
    def open(self) -> bool: ...

    @abstractmethod
    def close(self) -> None: ...

    @abstractmethod
    def write(self, byte: int) -> bool:
        """Write a single byte (0-255)."""

    @abstractmethod
    def write_string(self, text: str) -> bool: ...

    def write_line(self, line: str) -> bool:
        """Write ``line`` followed by the line terminator."""
        return self.write_string(line + DEFAULT_TERMINATOR)

    def read_line(self) -> Optional[str]:
        """Read one line using the default terminator."""
        return self.read_line_with_terminator(DEFAULT_TERMINATOR)

    @abstractmethod
    def read_line_with_terminator(self, terminator: str) -> Optional[str]: ...

    @abstractmethod
    def read(self, count: int) -> Optional[bytes]: ...

    def reset_input(self) -> bool:
        """Discard received but unread input; a no-op for unbuffered devices."""
        return True
