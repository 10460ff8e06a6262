"""
WiNRADiO receiver protocol.

Turns logical operations (power, mute, attenuation, AGC) into command
exchanges on a DeviceProtocol and mirrors confirmed results into the
receiver's Settings record.

Wire format:
    REQUEST:  [command (1 byte) | argument (ENABLE_POWER only, 1 byte)]
    RESPONSE: 1 byte
        - set commands echo the command byte (anything else is a NACK)
        - RADIO_PREPARE answers RADIO_INITIALISED
        - queries answer with a value byte

Exactly one response is read for every request before the next request
is written. The link has no request ids, so a skipped response would be
attributed to the following command. After a missed response the unread
input is discarded before the next request is written.

Every stateful operation uses the same shape:
    1. No-op if the settings already hold the desired confirmed state
       (unknown state, None, never matches)
    2. Write the command and read its acknowledgement
    3. Optionally poll a status query a bounded number of times
    4. Commit to Settings only after 2 and 3 succeed
"""

import logging
import threading
import time
from enum import IntEnum
from typing import Any, Callable, Optional, Tuple, TypeVar

from winradio.core.errors import (
    ConfigurationError,
    ProtocolNackError,
    ProtocolTimeoutError,
    RadioError,
    RadioTransportError,
)
from winradio.models.radio_info import FeatureFlags
from winradio.models.settings import Settings, SettingsRegistry
from .device import DeviceProtocol
from .serial_device import SerialConfig, SerialDevice

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_POLL_RETRIES = 10
DEFAULT_POLL_INTERVAL = 0.05  # seconds between status polls

POWER_ON = 0x01
POWER_OFF = 0x00


class RadioCommand(IntEnum):
    """Command codes; values are the wire contract."""
    RADIO_RUN = 0x03
    RADIO_PREPARE = 0x06
    RADIO_INITIALISED = 0x07
    ENABLE_POWER = 0x08
    GET_POWER = 0x0A
    GET_RADIO_READY = 0x0D
    UNMUTE_RADIO = 0x50
    MUTE_RADIO = 0x51
    ENABLE_ATTENUATION = 0x56
    DISABLE_ATTENUATION = 0x57
    GET_VOLUME = 0x89


class Radio:
    """
    One receiver: owns its device and its settings record.

    Public operations return True/False. On False, ``last_error`` holds
    the cause and the settings record is exactly as it was before the
    call.

    Example:
        registry = SettingsRegistry()
        with Radio.for_path("/dev/ttyUSB0", registry) as radio:
            if radio.set_power(True):
                radio.set_mute(False)
    """

    def __init__(
        self,
        device: DeviceProtocol,
        settings: Settings,
        *,
        poll_retries: int = DEFAULT_POLL_RETRIES,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        agc_commands: Optional[Tuple[int, int]] = None,
    ):
        """
        Args:
            device: Transport to the receiver (opened separately)
            settings: Settings record for this receiver; must not be in
                use by another Radio
            poll_retries: Status polls allowed while confirming power
            poll_interval: Delay between status polls, seconds
            agc_commands: (enable, disable) command codes for receivers
                with AGC switching, if known

        Raises:
            ValueError: If the settings record is already owned, or the
                poll budget is invalid
        """
        if settings.is_in_use:
            raise ValueError(f"Settings for {settings.device_name!r} already owned by another Radio")
        if poll_retries < 1:
            raise ValueError(f"poll_retries must be at least 1, got {poll_retries}")

        self.device = device
        self.settings = settings
        self.poll_retries = poll_retries
        self.poll_interval = poll_interval
        self.agc_commands = agc_commands
        self.last_error: Optional[RadioError] = None

        self._lock = threading.RLock()
        self._awaiting_response = False

        settings.is_in_use = True
        settings.is_serial = isinstance(device, SerialDevice)

    @classmethod
    def for_path(
        cls,
        path: str,
        registry: SettingsRegistry,
        config: Optional[SerialConfig] = None,
        debug_level: int = 0,
        **kwargs: Any,
    ) -> "Radio":
        """Build a Radio on a new (unopened) SerialDevice for ``path``."""
        device = SerialDevice.device_with_path(path, config=config, debug_level=debug_level)
        return cls(device, registry.settings_for_radio(path), **kwargs)

    # ---------- Lifecycle ----------

    def open(self) -> bool:
        with self._lock:
            if self.device.open():
                self._awaiting_response = False
                self.last_error = None
                return True
            self.last_error = self.device.last_error or RadioTransportError("open failed")
            return False

    def close(self) -> None:
        """Close the device and release the settings record."""
        with self._lock:
            self.device.close()
            self.settings.is_in_use = False

    def __enter__(self) -> "Radio":
        if not self.open():
            self.settings.is_in_use = False
            raise self.last_error
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @property
    def awaiting_response(self) -> bool:
        """True while a request has been written but its response not read."""
        return self._awaiting_response

    # ---------- Exchange primitives ----------

    def _transport_error(self, action: str) -> RadioTransportError:
        cause = self.device.last_error
        if isinstance(cause, RadioTransportError):
            return cause
        return RadioTransportError(f"{action} failed" + (f": {cause}" if cause else ""))

    def _exchange(self, command: int, argument: Optional[int] = None) -> int:
        """
        Write one request and read its one-byte response.

        Raises:
            RadioTransportError: On write failure or missing response
        """
        name = _command_name(command)
        if self._awaiting_response:
            logger.warning(f"Previous response was never read; discarding input before {name}")
            if not self.device.reset_input():
                raise self._transport_error("discard stale input")
            self._awaiting_response = False

        if not self.device.write(command):
            raise self._transport_error(f"write {name}")
        self._awaiting_response = True
        if argument is not None and not self.device.write(argument):
            raise self._transport_error(f"write {name} argument")

        reply = self.device.read(1)
        if reply is None or len(reply) != 1:
            raise self._transport_error(f"read {name} response")
        self._awaiting_response = False

        logger.debug(f"{name}({'' if argument is None else f'0x{argument:02X}'}) -> 0x{reply[0]:02X}")
        return reply[0]

    def _command(self, command: int, argument: Optional[int] = None, expect: Optional[int] = None) -> None:
        """
        Send a set command and check its acknowledgement.

        Raises:
            ProtocolNackError: If the reply is not the expected ack
        """
        expected = command if expect is None else expect
        reply = self._exchange(command, argument)
        if reply != expected:
            raise ProtocolNackError(
                f"{_command_name(command)} not acknowledged "
                f"(expected 0x{expected:02X}, got 0x{reply:02X})"
            )

    def _poll(self, query: int, accept: Callable[[int], bool]) -> int:
        """
        Repeat ``query`` until ``accept(reply)`` or the retry budget runs out.

        Raises:
            ProtocolTimeoutError: If the budget is exhausted
        """
        reply = None
        for attempt in range(1, self.poll_retries + 1):
            reply = self._exchange(query)
            if accept(reply):
                logger.debug(f"{_command_name(query)} confirmed after {attempt} poll(s)")
                return reply
            if attempt < self.poll_retries:
                time.sleep(self.poll_interval)

        raise ProtocolTimeoutError(
            f"{_command_name(query)} did not confirm within {self.poll_retries} polls "
            f"(last reply 0x{reply:02X})"
        )

    def _run(self, operation: str, action: Callable[[], T]) -> Optional[T]:
        """Run ``action`` under the lock, turning RadioError into last_error."""
        with self._lock:
            try:
                result = action()
            except RadioError as e:
                self.last_error = e
                logger.warning(f"{self.settings.device_name}: {operation} failed ({e.kind.value}): {e}")
                return None
            self.last_error = None
            return result

    # ---------- Operations ----------

    def initialise(self) -> bool:
        """Run the prepare/run handshake that brings a receiver online."""
        def action() -> bool:
            self._command(RadioCommand.RADIO_PREPARE, expect=RadioCommand.RADIO_INITIALISED)
            self._command(RadioCommand.RADIO_RUN)
            return True

        return bool(self._run("initialise", action))

    def set_power(self, desired: bool) -> bool:
        """
        Switch receiver power and wait until the device confirms it.

        Power on is confirmed by GET_RADIO_READY reporting non-zero; power
        off by GET_POWER reporting zero. Both polls are bounded by
        ``poll_retries``.
        """
        def action() -> bool:
            if self.settings.cur_power == desired:
                return True
            self._command(RadioCommand.ENABLE_POWER, POWER_ON if desired else POWER_OFF)
            if desired:
                self._poll(RadioCommand.GET_RADIO_READY, lambda reply: reply != 0)
            else:
                self._poll(RadioCommand.GET_POWER, lambda reply: reply == 0)
            self.settings.cur_power = desired
            logger.info(f"{self.settings.device_name}: power {'on' if desired else 'off'}")
            return True

        return bool(self._run("set_power", action))

    def update_mute(self) -> bool:
        """
        Bring the hardware mute state in line with ``settings.want_muted``.

        On acknowledgement the previous confirmed state moves to
        ``last_muted`` and ``cur_muted`` takes the new value.
        """
        def action() -> bool:
            wanted = self.settings.want_muted
            if wanted == self.settings.cur_muted:
                return True
            self._command(RadioCommand.MUTE_RADIO if wanted else RadioCommand.UNMUTE_RADIO)
            self.settings.last_muted = self.settings.cur_muted
            self.settings.cur_muted = wanted
            return True

        return bool(self._run("update_mute", action))

    def set_mute(self, muted: bool) -> bool:
        """Set the mute intent and apply it; the intent is reverted on failure."""
        with self._lock:
            previous = self.settings.want_muted
            self.settings.want_muted = muted
            if self.update_mute():
                return True
            self.settings.want_muted = previous
            return False

    def restore_mute(self) -> bool:
        """Return to the mute state confirmed before the last change."""
        with self._lock:
            if self.settings.last_muted is None:
                self.last_error = ConfigurationError(
                    f"No confirmed mute state to restore for {self.settings.device_name}"
                )
                return False
            return self.set_mute(self.settings.last_muted)

    def set_attenuation(self, enabled: bool) -> bool:
        def action() -> bool:
            if self.settings.cur_attenuation == enabled:
                return True
            self._command(
                RadioCommand.ENABLE_ATTENUATION if enabled else RadioCommand.DISABLE_ATTENUATION
            )
            self.settings.cur_attenuation = enabled
            return True

        return bool(self._run("set_attenuation", action))

    def set_agc(self, enabled: bool) -> bool:
        """
        Switch AGC. Needs ``agc_commands`` and, when the capability
        snapshot is known, the AGC feature flag.
        """
        def action() -> bool:
            if self.agc_commands is None:
                raise ConfigurationError("No AGC command codes configured for this receiver")
            info = self.settings.info
            if self.settings.info_populated and not info.has_feature(FeatureFlags.AGC):
                raise ConfigurationError(f"{info.model_name} does not support AGC switching")
            if self.settings.cur_agc == enabled:
                return True
            enable_code, disable_code = self.agc_commands
            self._command(enable_code if enabled else disable_code)
            self.settings.cur_agc = enabled
            return True

        return bool(self._run("set_agc", action))

    def get_power(self) -> Optional[bool]:
        """Query power state; the answer is committed to settings."""
        def action() -> bool:
            powered = self._exchange(RadioCommand.GET_POWER) != 0
            self.settings.cur_power = powered
            return powered

        return self._run("get_power", action)

    def is_ready(self) -> Optional[bool]:
        def action() -> bool:
            return self._exchange(RadioCommand.GET_RADIO_READY) != 0

        return self._run("is_ready", action)

    def get_volume(self) -> Optional[int]:
        """Query the volume level; the answer is committed to settings."""
        def action() -> int:
            volume = self._exchange(RadioCommand.GET_VOLUME)
            self.settings.cur_volume = volume
            return volume

        return self._run("get_volume", action)


def _command_name(code: int) -> str:
    try:
        return RadioCommand(code).name
    except ValueError:
        return f"0x{code:02X}"
