"""Tests for the serial transport: configuration, framing and block reads."""

import logging
from collections import namedtuple

import pytest

from winradio.core.errors import ConfigurationError, ErrorKind
from winradio.protocol import Parity, SerialConfig, SerialDevice, STANDARD_BAUD_RATES

from conftest import FakeSerial


def _device_with(fragments, **config) -> SerialDevice:
    device = SerialDevice("/dev/ttyFAKE0", SerialConfig(**config))
    device.ser = FakeSerial(fragments)
    return device


class TestConfiguration:
    """Port configuration accessors."""

    @pytest.mark.parametrize("rate", STANDARD_BAUD_RATES)
    def test_baud_rate_round_trip(self, rate):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.set_baud_rate(rate)
        assert device.baud_rate == rate

    @pytest.mark.parametrize("parity", list(Parity))
    def test_parity_round_trip(self, parity):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.set_parity(parity)
        assert device.parity is parity

    @pytest.mark.parametrize("bits", [5, 6, 7, 8])
    def test_data_bits_round_trip(self, bits):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.set_data_bits(bits)
        assert device.data_bits == bits

    @pytest.mark.parametrize("bits", [1, 2])
    def test_stop_bits_round_trip(self, bits):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.set_stop_bits(bits)
        assert device.stop_bits == bits

    @pytest.mark.parametrize(
        "setter, value",
        [
            ("set_baud_rate", 12345),
            ("set_data_bits", 9),
            ("set_data_bits", 4),
            ("set_stop_bits", 3),
            ("set_parity", "mark"),
            ("set_timeout", 0),
        ],
    )
    def test_unsupported_value_rejected_and_config_kept(self, setter, value):
        device = SerialDevice("/dev/ttyFAKE0")
        before = device.config

        assert getattr(device, setter)(value) is False
        assert device.config == before
        assert device.last_error.kind is ErrorKind.CONFIGURATION_INVALID

    def test_constructor_rejects_bad_config(self):
        with pytest.raises(ConfigurationError):
            SerialDevice("/dev/ttyFAKE0", SerialConfig(baudrate=31337))

    def test_parity_maps_to_pyserial_letters(self):
        assert Parity.NONE.value == "N"
        assert Parity.EVEN.value == "E"
        assert Parity.ODD.value == "O"

    def test_port_settings_carry_full_configuration(self):
        config = SerialConfig(baudrate=38400, parity=Parity.EVEN, data_bits=7, stop_bits=2)
        settings = config.port_settings()
        assert settings["baudrate"] == 38400
        assert settings["parity"] == "E"
        assert settings["bytesize"] == 7
        assert settings["stopbits"] == 2
        assert settings["timeout"] == config.timeout


class TestLoopbackPort:
    """Real pyserial port via the loop:// URL handler."""

    def test_open_applies_configuration(self):
        device = SerialDevice("loop://", SerialConfig(baudrate=19200, timeout=0.2))
        assert device.open()
        try:
            assert device.ser.baudrate == 19200
            assert device.ser.bytesize == 8
            assert device.ser.parity == "N"
            assert device.ser.stopbits == 1
        finally:
            device.close()

    def test_setters_reapply_on_open_port(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.set_baud_rate(57600)
            assert device.set_parity(Parity.ODD)
            assert device.set_data_bits(7)
            assert device.set_stop_bits(2)
            assert (device.ser.baudrate, device.ser.parity, device.ser.bytesize, device.ser.stopbits) == (
                57600, "O", 7, 2,
            )
            assert (device.baud_rate, device.parity, device.data_bits, device.stop_bits) == (
                57600, Parity.ODD, 7, 2,
            )
        finally:
            device.close()

    def test_write_line_then_read_line_over_loopback(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.write_line("FREQ 7050000")
            assert device.read_line() == "FREQ 7050000"
        finally:
            device.close()

    def test_write_byte_then_block_read(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.write(0x0D)
            assert device.write_string("AB")
            assert device.read(3) == b"\x0dAB"
        finally:
            device.close()

    def test_reset_input_discards_looped_bytes(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.write_string("STALE")
            assert device.reset_input()
            assert device.write(0x07)
            assert device.read(1) == b"\x07"
        finally:
            device.close()

    def test_send_break(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.send_break(duration=0.01)
        finally:
            device.close()

    def test_open_twice_fails(self):
        device = SerialDevice("loop://", SerialConfig(timeout=0.2))
        assert device.open()
        try:
            assert device.open() is False
            assert device.last_error.kind is ErrorKind.TRANSPORT
        finally:
            device.close()

    def test_close_is_idempotent(self):
        device = SerialDevice("loop://")
        device.close()
        assert device.open()
        device.close()
        device.close()
        assert not device.is_open
        assert device.fd is None


class TestFraming:
    """Line accumulation across fragmented reads."""

    @pytest.mark.parametrize("terminator", ["\n", "\r\n", "<END>"])
    def test_single_fragment(self, terminator):
        payload = f"READY 1{terminator}".encode("latin-1")
        device = _device_with([payload])
        assert device.read_line_with_terminator(terminator) == "READY 1"

    @pytest.mark.parametrize("terminator", ["\n", "\r\n", "<END>"])
    def test_byte_by_byte(self, terminator):
        payload = f"VOL=17{terminator}".encode("latin-1")
        device = _device_with([bytes([b]) for b in payload])
        assert device.read_line_with_terminator(terminator) == "VOL=17"

    def test_terminator_split_across_fragments(self):
        device = _device_with([b"MODE AM\r", b"\n"])
        assert device.read_line_with_terminator("\r\n") == "MODE AM"

    def test_bytes_after_terminator_kept_for_next_read(self):
        device = _device_with([b"ONE\r\nTWO\r\n\x07"])
        assert device.read_line() == "ONE"
        assert device.read_line() == "TWO"
        assert device.read(1) == b"\x07"

    def test_empty_line(self):
        device = _device_with([b"\n"])
        assert device.read_line_with_terminator("\n") == ""

    def test_timeout_without_terminator_fails(self):
        device = _device_with([b"PARTIAL", b""])
        assert device.read_line() is None
        assert device.last_error.kind is ErrorKind.TRANSPORT

    def test_overlong_line_fails(self):
        device = _device_with([b"x" * 64] * 4, max_line_length=100)
        assert device.read_line() is None
        assert "exceeds" in str(device.last_error)

    def test_read_line_on_closed_port_fails(self):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.read_line() is None
        assert device.last_error.kind is ErrorKind.TRANSPORT


class TestBlockRead:
    """Fixed-length reads."""

    def test_read_accumulates_fragments(self):
        device = _device_with([b"\x01", b"\x02\x03", b"\x04"])
        assert device.read(4) == b"\x01\x02\x03\x04"

    def test_short_read_is_failure(self):
        device = _device_with([b"\x01\x02"])
        assert device.read(4) is None
        assert device.last_error.kind is ErrorKind.TRANSPORT
        assert "2/4" in str(device.last_error)

    def test_successful_read_clears_error(self):
        device = _device_with([b"", b"\x06"])
        assert device.read(1) is None
        assert device.read(1) == b"\x06"
        assert device.last_error is None


class TestWrites:
    """Byte, string and line writes."""

    def test_write_on_closed_port_fails(self):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.write(0x08) is False
        assert device.last_error.kind is ErrorKind.TRANSPORT

    def test_write_line_appends_configured_terminator(self):
        device = _device_with([], line_terminator="\r")
        assert device.write_line("RUN")
        assert bytes(device.ser.written) == b"RUN\r"

    def test_write_rejects_out_of_range_byte(self):
        device = _device_with([])
        with pytest.raises(ValueError):
            device.write(0x100)


class TestResetInput:
    """Discarding input that was never read."""

    def test_drops_pushback_and_received_bytes(self):
        device = _device_with([b"ONE\r\nTWO", b"\x07"])
        assert device.read_line() == "ONE"

        assert device.reset_input()
        assert device.ser.input_resets == 1
        assert device.ser.timeout == 1.0
        assert device.read(1) is None

    def test_on_closed_port_fails(self):
        device = SerialDevice("/dev/ttyFAKE0")
        assert device.reset_input() is False
        assert device.last_error.kind is ErrorKind.TRANSPORT


class TestTracing:
    """Wire trace on the winradio.trace logger."""

    EXPECTED = {
        0: [],
        1: [">>> 50494E470D0A", "<<< 52454144590D0A"],
        2: [">>> 50494E470D0A", "<<< 5245", "<<< 4144590D0A", "<<< 52454144590D0A"],
    }

    @pytest.mark.parametrize("level", [0, 1, 2])
    def test_debug_level_gates_trace(self, caplog, level):
        caplog.set_level(logging.DEBUG, logger="winradio.trace")
        device = SerialDevice("/dev/ttyFAKE0", debug_level=level)
        device.ser = FakeSerial([b"RE", b"ADY\r\n"])

        assert device.write_line("PING")
        assert device.read_line() == "READY"
        assert bytes(device.ser.written) == b"PING\r\n"

        traced = [r.getMessage() for r in caplog.records if r.name == "winradio.trace"]
        assert traced == [f"/dev/ttyFAKE0 {line}" for line in self.EXPECTED[level]]


def test_devices_lists_port_paths(monkeypatch):
    Port = namedtuple("Port", "device")
    monkeypatch.setattr(
        "serial.tools.list_ports.comports",
        lambda: [Port("/dev/ttyUSB1"), Port("/dev/ttyUSB0")],
    )
    assert SerialDevice.devices() == ["/dev/ttyUSB0", "/dev/ttyUSB1"]


def test_open_missing_port_fails():
    device = SerialDevice("/dev/this-port-does-not-exist")
    assert device.open() is False
    assert device.last_error.kind is ErrorKind.TRANSPORT
    assert not device.is_open
