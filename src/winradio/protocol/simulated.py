"""
In-process receiver simulator.

Speaks the same one-byte command protocol as the hardware so the CLI and
tests can exercise the full Radio stack without a serial port.
"""

import logging
from collections import deque
from typing import Deque, List, Optional

from winradio.core.errors import RadioError, RadioTransportError, ReadTimeoutError
from winradio.models.radio_info import (
    FeatureFlags,
    RadioInfo,
    RadioInterface,
    RadioMode,
    RadioVersion,
)
from .device import DeviceProtocol
from .radio import POWER_ON, RadioCommand

logger = logging.getLogger(__name__)

NACK = 0xFF


def default_info(device_num: int = 0) -> RadioInfo:
    """Capability snapshot reported by the simulator."""
    return RadioInfo(
        features=FeatureFlags.LSB_USB | FeatureFlags.AGC | FeatureFlags.IF_GAIN,
        api_ver=0x0200,
        hw_ver=int(RadioVersion.WR_1550),
        min_freq=9_000,
        max_freq=1_800_000_000,
        freq_res=1,
        max_volume=31,
        max_bfo=3_000,
        max_fm_scan_rate=50,
        max_am_scan_rate=50,
        hw_interface=RadioInterface.SERIAL,
        device_num=device_num,
        num_sources=1,
        max_if_shift=2_000,
        wave_formats=0,
        dsp_sources=0,
        supported_modes=(
            RadioMode.CW, RadioMode.AM, RadioMode.FMN,
            RadioMode.FMW, RadioMode.LSB, RadioMode.USB,
        ),
        max_freq_khz=1_800_000,
        device_name="WR-1550e",
        max_if_gain=100,
        description="Simulated WiNRADiO WR-1550e",
    )


class SimulatedReceiver(DeviceProtocol):
    """
    DeviceProtocol that emulates a receiver.

    Args:
        name: Name reported in logs and results
        info: Capability snapshot to expose (default: a WR-1550e)
        warmup_polls: GET_RADIO_READY polls after power-on before the
            receiver reports ready
        volume: Initial volume level
        agc_commands: (enable, disable) codes the simulator acknowledges
    """

    def __init__(
        self,
        name: str = "SIMULATED",
        info: Optional[RadioInfo] = None,
        warmup_polls: int = 2,
        volume: int = 16,
        agc_commands: Optional[tuple] = None,
    ):
        self.name = name
        self.info = info or default_info()
        self.warmup_polls = warmup_polls
        self.agc_commands = agc_commands
        self.last_error: Optional[RadioError] = None

        self.powered = False
        self.muted = False
        self.attenuated = False
        self.agc = False
        self.volume = volume
        self.running = False

        self.received: List[int] = []
        self._replies: Deque[int] = deque()
        self._open = False
        self._pending_command: Optional[int] = None
        self._ready_polls = 0

    def _fail(self, error: RadioError) -> bool:
        self.last_error = error
        return False

    def open(self) -> bool:
        if self._open:
            return self._fail(RadioTransportError(f"{self.name} is already open"))
        self._open = True
        self.last_error = None
        logger.debug(f"Opened simulated receiver {self.name}")
        return True

    def close(self) -> None:
        self._open = False
        self._replies.clear()
        self._pending_command = None

    def write(self, byte: int) -> bool:
        if not 0 <= byte <= 0xFF:
            raise ValueError(f"Byte value out of range: {byte}")
        if not self._open:
            return self._fail(RadioTransportError(f"{self.name} not open"))
        self.received.append(byte)

        if self._pending_command is not None:
            self._handle_argument(self._pending_command, byte)
            self._pending_command = None
        else:
            self._handle_command(byte)
        self.last_error = None
        return True

    def write_string(self, text: str) -> bool:
        # Text is accepted and ignored; the receiver only parses command bytes
        if not self._open:
            return self._fail(RadioTransportError(f"{self.name} not open"))
        self.last_error = None
        return True

    def read_line_with_terminator(self, terminator: str) -> Optional[str]:
        term = terminator.encode("latin-1")
        data = bytes(self._replies)
        index = data.find(term)
        if not self._open or index < 0:
            self._fail(ReadTimeoutError(f"No line from {self.name}"))
            return None
        for _ in range(index + len(term)):
            self._replies.popleft()
        self.last_error = None
        return data[:index].decode("latin-1")

    def reset_input(self) -> bool:
        if not self._open:
            return self._fail(RadioTransportError(f"{self.name} not open"))
        self._replies.clear()
        self.last_error = None
        return True

    def read(self, count: int) -> Optional[bytes]:
        if not self._open or len(self._replies) < count:
            self._replies.clear()
            self._fail(ReadTimeoutError(f"Short read from {self.name}"))
            return None
        self.last_error = None
        return bytes(self._replies.popleft() for _ in range(count))

    # ---------- Receiver behaviour ----------

    def _handle_command(self, code: int) -> None:
        if code == RadioCommand.ENABLE_POWER:
            self._pending_command = code
            return

        if code == RadioCommand.RADIO_PREPARE:
            self._replies.append(RadioCommand.RADIO_INITIALISED)
        elif code == RadioCommand.RADIO_RUN:
            self.running = True
            self._replies.append(code)
        elif code == RadioCommand.GET_POWER:
            self._replies.append(1 if self.powered else 0)
        elif code == RadioCommand.GET_RADIO_READY:
            if self.powered:
                self._ready_polls += 1
            ready = self.powered and self._ready_polls >= self.warmup_polls
            self._replies.append(1 if ready else 0)
        elif code in (RadioCommand.MUTE_RADIO, RadioCommand.UNMUTE_RADIO):
            self.muted = code == RadioCommand.MUTE_RADIO
            self._replies.append(code)
        elif code in (RadioCommand.ENABLE_ATTENUATION, RadioCommand.DISABLE_ATTENUATION):
            self.attenuated = code == RadioCommand.ENABLE_ATTENUATION
            self._replies.append(code)
        elif code == RadioCommand.GET_VOLUME:
            self._replies.append(self.volume & 0xFF)
        elif self.agc_commands and code in self.agc_commands:
            self.agc = code == self.agc_commands[0]
            self._replies.append(code)
        else:
            logger.debug(f"{self.name}: unknown command 0x{code:02X}")
            self._replies.append(NACK)

    def _handle_argument(self, code: int, argument: int) -> None:
        # Only ENABLE_POWER takes an argument
        self.powered = argument == POWER_ON
        self._ready_polls = 0
        self._replies.append(code)
