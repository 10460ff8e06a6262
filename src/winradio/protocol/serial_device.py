"""
Serial transport for WiNRADiO receivers.

Handles low-level serial communication over a host serial port.

This module provides:
- Serial device discovery
- Raw-mode port configuration (baud, parity, data bits, stop bits)
- Byte, string and line writes
- Framed line reads with partial-arrival accumulation
- Fixed-length block reads
- Discarding stale input
- Break signalling
- Optional wire tracing
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional

try:
    import serial
    import serial.tools.list_ports
except ImportError:
    raise ImportError("PySerial required: pip install pyserial")

from winradio.core.errors import (
    ConfigurationError,
    RadioError,
    RadioTransportError,
    ReadTimeoutError,
)
from .device import DEFAULT_TERMINATOR, DeviceProtocol

logger = logging.getLogger(__name__)
trace_logger = logging.getLogger("winradio.trace")

# Rates with a termios Bxxx constant on every POSIX host
STANDARD_BAUD_RATES = (
    50, 75, 110, 134, 150, 200, 300, 600, 1200, 1800, 2400,
    4800, 9600, 19200, 38400, 57600, 115200, 230400,
)


class Parity(Enum):
    """Parity setting; pyserial maps these to IGNPAR / PARENB / PARENB|PARODD."""
    NONE = serial.PARITY_NONE
    EVEN = serial.PARITY_EVEN
    ODD = serial.PARITY_ODD


_DATA_BITS = {
    5: serial.FIVEBITS,
    6: serial.SIXBITS,
    7: serial.SEVENBITS,
    8: serial.EIGHTBITS,
}

_STOP_BITS = {
    1: serial.STOPBITS_ONE,
    2: serial.STOPBITS_TWO,
}


@dataclass(frozen=True)
class SerialConfig:
    """
    Port configuration.

    Attributes:
        baudrate: One of STANDARD_BAUD_RATES
        parity: Parity.NONE / EVEN / ODD
        data_bits: 5-8
        stop_bits: 1 or 2
        timeout: Read timeout in seconds; a read that sees no data for
            this long fails as a transport error
        write_timeout: Write timeout in seconds
        line_terminator: Terminator used by read_line()/write_line()
        max_line_length: Longest line accepted before failing the read
    """
    baudrate: int = 9600
    parity: Parity = Parity.NONE
    data_bits: int = 8
    stop_bits: int = 1
    timeout: float = 1.0
    write_timeout: float = 1.0
    line_terminator: str = DEFAULT_TERMINATOR
    max_line_length: int = 4096

    def validate(self) -> None:
        """
        Raises:
            ConfigurationError: If any value is unsupported
        """
        if self.baudrate not in STANDARD_BAUD_RATES:
            raise ConfigurationError(f"Unsupported baud rate: {self.baudrate}")
        if not isinstance(self.parity, Parity):
            raise ConfigurationError(f"Unsupported parity: {self.parity!r}")
        if self.data_bits not in _DATA_BITS:
            raise ConfigurationError(f"Unsupported data bits: {self.data_bits} (expected 5-8)")
        if self.stop_bits not in _STOP_BITS:
            raise ConfigurationError(f"Unsupported stop bits: {self.stop_bits} (expected 1 or 2)")
        if self.timeout is None or self.timeout <= 0:
            raise ConfigurationError(f"Read timeout must be positive, got {self.timeout}")
        if not self.line_terminator:
            raise ConfigurationError("Line terminator must not be empty")

    def port_settings(self) -> Dict[str, Any]:
        """Settings dict in pyserial's apply_settings() format."""
        return {
            "baudrate": self.baudrate,
            "bytesize": _DATA_BITS[self.data_bits],
            "parity": self.parity.value,
            "stopbits": _STOP_BITS[self.stop_bits],
            "timeout": self.timeout,
            "write_timeout": self.write_timeout,
            "xonxoff": False,
            "rtscts": False,
            "dsrdtr": False,
        }


class SerialDevice(DeviceProtocol):
    """
    Serial transport bound to one port path.

    Construction does not touch the port; call open() first.

    Example:
        device = SerialDevice("/dev/ttyUSB0", SerialConfig(baudrate=38400))
        if device.open():
            device.write(0x0D)
            reply = device.read(1)
            device.close()
    """

    def __init__(
        self,
        path: str,
        config: Optional[SerialConfig] = None,
        debug_level: int = 0,
    ):
        """
        Args:
            path: Serial port (e.g., "/dev/ttyUSB0", "COM3") or a pyserial URL
            config: Port configuration (default 9600 8N1, 1 s timeout)
            debug_level: 0 = silent, 1 = trace writes/lines/blocks,
                2 = also trace every received chunk

        Raises:
            ConfigurationError: If ``config`` is unsupported
        """
        self.config = config or SerialConfig()
        self.config.validate()
        self.path = path
        self.debug_level = debug_level
        self.ser: Optional[serial.Serial] = None
        self.last_error: Optional[RadioError] = None
        self._pending = bytearray()

    @staticmethod
    def devices() -> List[str]:
        """List serial device paths currently present on the host."""
        return sorted(port.device for port in serial.tools.list_ports.comports())

    @classmethod
    def device_with_path(cls, path: str, **kwargs: Any) -> "SerialDevice":
        """Create an unopened device for ``path``; see SerialDevice.devices()."""
        return cls(path, **kwargs)

    # ---------- State ----------

    @property
    def is_open(self) -> bool:
        return self.ser is not None and self.ser.is_open

    @property
    def fd(self) -> Optional[int]:
        """OS file descriptor of the open port, if it has one."""
        if not self.is_open:
            return None
        try:
            return self.ser.fileno()
        except (AttributeError, NotImplementedError, serial.SerialException):
            return None

    def _fail(self, error: RadioError) -> bool:
        self.last_error = error
        logger.warning(f"{self.path}: {error}")
        return False

    def _ok(self) -> bool:
        self.last_error = None
        return True

    def _trace(self, direction: str, data: bytes, level: int = 1) -> None:
        if self.debug_level >= level:
            trace_logger.debug(f"{self.path} {direction} {data.hex().upper()}")

    # ---------- Open / close ----------

    def open(self) -> bool:
        """
        Open the port in raw mode with the current configuration.

        pyserial clears canonical input, echo and signal generation and
        applies baud, parity, data and stop bits in a single tcsetattr()
        call while opening.
        """
        if self.is_open:
            return self._fail(RadioTransportError(f"Port {self.path} is already open"))

        try:
            ser = serial.serial_for_url(self.path, do_not_open=True)
            ser.apply_settings(self.config.port_settings())
            ser.exclusive = True
            ser.open()
            ser.reset_input_buffer()
            ser.reset_output_buffer()
        except (serial.SerialException, OSError, ValueError) as e:
            return self._fail(RadioTransportError(f"Cannot open port {self.path}: {e}"))

        self.ser = ser
        self._pending.clear()
        logger.debug(
            f"Opened {self.path} at {self.config.baudrate} bps "
            f"{self.config.data_bits}{self.config.parity.value}{self.config.stop_bits} "
            f"(timeout={self.config.timeout}s)"
        )
        return self._ok()

    def close(self) -> None:
        """Close serial port."""
        ser, self.ser = self.ser, None
        self._pending.clear()
        if ser is not None and ser.is_open:
            try:
                ser.close()
            except (serial.SerialException, OSError) as e:
                logger.warning(f"Error closing {self.path}: {e}")
            else:
                logger.debug(f"Closed {self.path}")

    # ---------- Configuration ----------

    def _reconfigure(self, **changes: Any) -> bool:
        """Validate the new configuration and re-apply all of it to an open port."""
        new_config = replace(self.config, **changes)
        try:
            new_config.validate()
        except ConfigurationError as e:
            return self._fail(e)

        if self.is_open:
            try:
                self.ser.apply_settings(new_config.port_settings())
            except (serial.SerialException, OSError, ValueError) as e:
                # Put the port back to the last known-good combination
                try:
                    self.ser.apply_settings(self.config.port_settings())
                except (serial.SerialException, OSError, ValueError):
                    logger.error(f"Could not restore configuration of {self.path}")
                return self._fail(ConfigurationError(f"Cannot configure {self.path}: {e}"))

        self.config = new_config
        return self._ok()

    @property
    def baud_rate(self) -> int:
        return self.config.baudrate

    def set_baud_rate(self, baudrate: int) -> bool:
        return self._reconfigure(baudrate=baudrate)

    @property
    def parity(self) -> Parity:
        return self.config.parity

    def set_parity(self, parity: Parity) -> bool:
        return self._reconfigure(parity=parity)

    @property
    def data_bits(self) -> int:
        return self.config.data_bits

    def set_data_bits(self, bits: int) -> bool:
        return self._reconfigure(data_bits=bits)

    @property
    def stop_bits(self) -> int:
        return self.config.stop_bits

    def set_stop_bits(self, bits: int) -> bool:
        return self._reconfigure(stop_bits=bits)

    def set_timeout(self, timeout: float) -> bool:
        return self._reconfigure(timeout=timeout)

    # ---------- Writes ----------

    def _require_open(self) -> None:
        if not self.is_open:
            raise RadioTransportError(f"Serial port {self.path} not open")

    def write_bytes(self, data: bytes) -> bool:
        try:
            self._require_open()
            written = self.ser.write(data)
            if written is not None and written != len(data):
                raise RadioTransportError(
                    f"Incomplete write: sent {written}/{len(data)} bytes"
                )
            self.ser.flush()
        except RadioTransportError as e:
            return self._fail(e)
        except (serial.SerialException, OSError) as e:
            return self._fail(RadioTransportError(f"Write error: {e}"))

        self._trace(">>>", data)
        return self._ok()

    def write(self, byte: int) -> bool:
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"Byte value out of range: {byte}")
        return self.write_bytes(bytes([byte]))

    def write_string(self, text: str) -> bool:
        return self.write_bytes(text.encode("latin-1"))

    def write_line(self, line: str) -> bool:
        return self.write_string(line + self.config.line_terminator)

    def send_break(self, duration: float = 0.25) -> bool:
        """Hold the line in a break condition for ``duration`` seconds."""
        try:
            self._require_open()
            self.ser.send_break(duration=duration)
        except RadioTransportError as e:
            return self._fail(e)
        except (serial.SerialException, OSError) as e:
            return self._fail(RadioTransportError(f"Break error: {e}"))

        logger.debug(f"Sent {duration:.2f}s break on {self.path}")
        return self._ok()

    # ---------- Reads ----------

    def _receive_chunk(self, limit: int) -> bytes:
        """
        Read whatever is available (at least one byte, at most ``limit``).

        Raises:
            ReadTimeoutError: If nothing arrives within the read timeout
        """
        waiting = self.ser.in_waiting
        chunk = self.ser.read(max(1, min(waiting, limit)))
        if not chunk:
            raise ReadTimeoutError(f"No data from {self.path} within {self.config.timeout}s")
        self._trace("<<<", chunk, level=2)
        return chunk

    def reset_input(self) -> bool:
        """
        Drop pushback bytes and anything waiting in the receive buffer.

        After the OS buffer is flushed, a short read picks up bytes that
        were still in flight.
        """
        dropped = len(self._pending)
        self._pending.clear()
        try:
            self._require_open()
            self.ser.reset_input_buffer()
            old_timeout = self.ser.timeout
            self.ser.timeout = 0.005
            try:
                junk = self.ser.read(256)
            finally:
                self.ser.timeout = old_timeout
        except RadioTransportError as e:
            return self._fail(e)
        except (serial.SerialException, OSError) as e:
            return self._fail(RadioTransportError(f"Reset error: {e}"))

        if dropped or junk:
            logger.debug(f"Drained {dropped + len(junk)} stale bytes from {self.path}")
        return self._ok()

    def read_line(self) -> Optional[str]:
        return self.read_line_with_terminator(self.config.line_terminator)

    def read_line_with_terminator(self, terminator: str) -> Optional[str]:
        """
        Accumulate input until ``terminator`` is seen.

        Bytes that arrive after the terminator are kept for the next read.

        Returns:
            The line without its terminator, or None on timeout, overlong
            line or I/O error
        """
        term = terminator.encode("latin-1")
        if not term:
            raise ValueError("Terminator must not be empty")

        buffer = self._pending
        try:
            self._require_open()
            while True:
                index = buffer.find(term)
                if index >= 0:
                    line = bytes(buffer[:index])
                    del buffer[: index + len(term)]
                    break
                if len(buffer) > self.config.max_line_length:
                    raise RadioTransportError(
                        f"Line exceeds {self.config.max_line_length} bytes without terminator"
                    )
                buffer.extend(self._receive_chunk(4096))
        except RadioTransportError as e:
            buffer.clear()
            self._fail(e)
            return None
        except (serial.SerialException, OSError) as e:
            buffer.clear()
            self._fail(RadioTransportError(f"Read error: {e}"))
            return None

        self._trace("<<<", line + term)
        self._ok()
        return line.decode("latin-1")

    def read(self, count: int) -> Optional[bytes]:
        """
        Read exactly ``count`` bytes.

        Returns:
            The bytes, or None if fewer arrived before the timeout
        """
        if count < 0:
            raise ValueError(f"Negative read length: {count}")

        data = bytearray(self._pending[:count])
        del self._pending[:count]
        try:
            self._require_open()
            while len(data) < count:
                data.extend(self._receive_chunk(count - len(data)))
        except ReadTimeoutError:
            self._fail(ReadTimeoutError(
                f"Short read from {self.path}: got {len(data)}/{count} bytes"
            ))
            return None
        except RadioTransportError as e:
            self._fail(e)
            return None
        except (serial.SerialException, OSError) as e:
            self._fail(RadioTransportError(f"Read error: {e}"))
            return None

        self._trace("<<<", bytes(data))
        self._ok()
        return bytes(data)
