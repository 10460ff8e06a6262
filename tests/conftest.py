"""Shared test doubles for transport and radio tests."""

from typing import Callable, Dict, List, Optional

import pytest

from winradio.core.errors import RadioTransportError, ReadTimeoutError
from winradio.models import Settings
from winradio.protocol import DeviceProtocol, RadioCommand


def echo(request: bytes) -> bytes:
    """Acknowledge any request by echoing its command byte."""
    return request[:1]


class ScriptedDevice(DeviceProtocol):
    """
    In-memory device. Bytes written since the last read form one request;
    the next read hands that request to ``respond`` for the reply.
    """

    def __init__(
        self,
        respond: Callable[[bytes], Optional[bytes]] = echo,
        fail_writes: bool = False,
    ):
        self.respond = respond
        self.fail_writes = fail_writes
        self.requests: List[bytes] = []
        self.opened = False
        self.closed = False
        self.resets = 0
        self._request = bytearray()

    @property
    def writes(self) -> int:
        return sum(len(r) for r in self.requests) + len(self._request)

    def open(self) -> bool:
        self.opened = True
        return True

    def close(self) -> None:
        self.closed = True

    def write(self, byte: int) -> bool:
        if self.fail_writes:
            self.last_error = RadioTransportError("line unplugged")
            return False
        self._request.append(byte)
        return True

    def write_string(self, text: str) -> bool:
        if self.fail_writes:
            self.last_error = RadioTransportError("line unplugged")
            return False
        self._request.extend(text.encode("latin-1"))
        return True

    def read_line_with_terminator(self, terminator: str) -> Optional[str]:
        reply = self.read(1)
        return None if reply is None else reply.decode("latin-1")

    def read(self, count: int) -> Optional[bytes]:
        request = bytes(self._request)
        self._request.clear()
        self.requests.append(request)
        reply = self.respond(request)
        if reply is None or len(reply) < count:
            self.last_error = ReadTimeoutError("no reply")
            return None
        self.last_error = None
        return reply[:count]

    def reset_input(self) -> bool:
        self.resets += 1
        return True


def ready_after(polls: int, power_state: Optional[Callable[[], int]] = None):
    """Responder that reports ready on the ``polls``-th GET_RADIO_READY."""
    seen = {"ready_polls": 0}

    def respond(request: bytes) -> bytes:
        if request[0] == RadioCommand.GET_RADIO_READY:
            seen["ready_polls"] += 1
            return b"\x01" if seen["ready_polls"] >= polls else b"\x00"
        if request[0] == RadioCommand.GET_POWER:
            return bytes([power_state() if power_state else 0])
        return echo(request)

    respond.seen = seen
    return respond


class FakeSerial:
    """
    Stand-in for serial.Serial that delivers input in preset fragments.
    An empty fragment behaves like a read timeout. Fragments not yet read
    count as already received, so reset_input_buffer() drops them.
    ``replies`` maps a command byte to a fragment that arrives once that
    command is written.
    """

    def __init__(self, fragments: List[bytes], replies: Optional[Dict[int, bytes]] = None):
        self._fragments = [bytes(f) for f in fragments]
        self.replies = replies or {}
        self.written = bytearray()
        self.is_open = True
        self.timeout = 1.0
        self.input_resets = 0

    @property
    def in_waiting(self) -> int:
        return len(self._fragments[0]) if self._fragments else 0

    def read(self, size: int = 1) -> bytes:
        if not self._fragments:
            return b""
        chunk = self._fragments.pop(0)
        if len(chunk) > size:
            self._fragments.insert(0, chunk[size:])
            chunk = chunk[:size]
        return chunk

    def write(self, data: bytes) -> int:
        self.written.extend(data)
        if data and data[0] in self.replies:
            self._fragments.append(self.replies[data[0]])
        return len(data)

    def reset_input_buffer(self) -> None:
        self.input_resets += 1
        self._fragments.clear()

    def flush(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


@pytest.fixture
def settings() -> Settings:
    return Settings(device_name="/dev/ttyTEST0")
