"""
WiNRADiO control CLI

Command-line interface for receiver power, mute and attenuation control.
"""

import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from winradio.core.errors import ConfigurationError
from winradio.core.results import OperationResult
from winradio.models import RADIO_INFO_SIZE, SettingsRegistry
from winradio.protocol import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_RETRIES,
    Parity,
    Radio,
    SerialConfig,
    SerialDevice,
    SimulatedReceiver,
)

logger = logging.getLogger("winradio")

console = Console()

app = typer.Typer(help="WiNRADiO receiver control over a serial link")


@dataclass
class ConnectionOptions:
    """Options shared by every command that talks to a receiver."""
    port: Optional[str]
    baudrate: int
    parity: str
    data_bits: int
    stop_bits: int
    timeout: float
    poll_retries: int
    poll_interval: float
    simulate: bool
    debug: bool
    output_json: bool

    def serial_config(self) -> SerialConfig:
        try:
            parity = Parity[self.parity.upper()]
        except KeyError:
            raise typer.BadParameter(f"Invalid parity: {self.parity} (none, even, odd)")
        config = SerialConfig(
            baudrate=self.baudrate,
            parity=parity,
            data_bits=self.data_bits,
            stop_bits=self.stop_bits,
            timeout=self.timeout,
            write_timeout=self.timeout,
        )
        try:
            config.validate()
        except ConfigurationError as e:
            raise typer.BadParameter(str(e))
        return config


def print_header(text: str) -> None:
    """Print fancy header."""
    console.print(Panel(text, expand=False, style="bold blue"))


def print_success(text: str) -> None:
    """Print success message."""
    console.print(f"✓ {text}", style="green")


def print_warning(text: str) -> None:
    """Print warning message."""
    console.print(f"⚠️  {text}", style="yellow")


def print_error(text: str) -> None:
    """Print error message."""
    console.print(f"❌ {text}", style="red")


def report(result: OperationResult, options: ConnectionOptions) -> None:
    """Print a result and exit non-zero on failure."""
    if options.output_json:
        console.print_json(json.dumps(result.to_dict()))
    elif result.ok:
        print_success(result.to_summary())
    else:
        print_error(result.to_summary())
    if not result.ok:
        raise typer.Exit(code=1)


@contextmanager
def connect(options: ConnectionOptions) -> Iterator[Radio]:
    """Open a Radio on the configured port (or the simulator) for one command."""
    registry = SettingsRegistry()
    logger.debug(f"Connecting to {'simulator' if options.simulate else options.port}")
    radio_kwargs = dict(poll_retries=options.poll_retries, poll_interval=options.poll_interval)

    if options.simulate:
        device = SimulatedReceiver()
        settings = registry.settings_for_radio(device.name)
        settings.populate_info(device.info)
        radio = Radio(device, settings, **radio_kwargs)
    else:
        if not options.port:
            raise typer.BadParameter("--port is required unless --simulate is given")
        radio = Radio.for_path(
            options.port,
            registry,
            config=options.serial_config(),
            debug_level=2 if options.debug else 0,
            **radio_kwargs,
        )

    if not radio.open():
        radio.close()
        print_error(f"Cannot open {radio.settings.device_name}: {radio.last_error}")
        raise typer.Exit(code=1)
    try:
        # Fresh settings hold no confirmed state; seed power from the receiver
        if radio.get_power() is None:
            logger.debug(f"Power state of {radio.settings.device_name} unknown: {radio.last_error}")
        yield radio
    finally:
        radio.close()


def _parse_on_off(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("on", "1", "true", "yes"):
        return True
    if lowered in ("off", "0", "false", "no"):
        return False
    raise typer.BadParameter(f"Expected on/off, got {value!r}")


@app.callback()
def main(
    ctx: typer.Context,
    port: Optional[str] = typer.Option(
        None, "--port", "-p", envvar="WINRADIO_PORT", help="Serial port (e.g., /dev/ttyUSB0)"
    ),
    baudrate: int = typer.Option(9600, "--baud", "-b", help="Baud rate"),
    parity: str = typer.Option("none", "--parity", help="Parity: none, even, odd"),
    data_bits: int = typer.Option(8, "--data-bits", help="Data bits (5-8)"),
    stop_bits: int = typer.Option(1, "--stop-bits", help="Stop bits (1-2)"),
    timeout: float = typer.Option(1.0, "--timeout", "-t", help="Read timeout in seconds"),
    poll_retries: int = typer.Option(DEFAULT_POLL_RETRIES, "--poll-retries", help="Status polls when confirming power"),
    poll_interval: float = typer.Option(DEFAULT_POLL_INTERVAL, "--poll-interval", help="Seconds between status polls"),
    simulate: bool = typer.Option(False, "--simulate", help="Use the built-in receiver simulator"),
    debug: bool = typer.Option(False, "--debug", "-v", help="Verbose logging and wire trace"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output results as JSON"),
) -> None:
    """WiNRADiO receiver control."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    ctx.obj = ConnectionOptions(
        port=port,
        baudrate=baudrate,
        parity=parity,
        data_bits=data_bits,
        stop_bits=stop_bits,
        timeout=timeout,
        poll_retries=poll_retries,
        poll_interval=poll_interval,
        simulate=simulate,
        debug=debug,
        output_json=output_json,
    )


@app.command()
def ports() -> None:
    """List available serial ports."""
    print_header("Available Serial Ports")

    devices = SerialDevice.devices()
    if not devices:
        print_warning("No serial ports found")
        return

    table = Table(title="Serial Ports")
    table.add_column("Port", style="cyan")
    for path in devices:
        table.add_row(path)
    console.print(table)


@app.command()
def info(ctx: typer.Context) -> None:
    """Show the receiver's capability snapshot."""
    options: ConnectionOptions = ctx.obj
    with connect(options) as radio:
        settings = radio.settings
        if not settings.info_populated:
            print_warning("Capability snapshot not available for this receiver")
            return
        snapshot = settings.capability_snapshot(RADIO_INFO_SIZE)

    if options.output_json:
        console.print_json(json.dumps({
            "model": snapshot.model_name,
            "size": snapshot.size,
            "min_freq": snapshot.min_freq,
            "max_freq": snapshot.max_freq,
            "max_volume": snapshot.max_volume,
            "modes": [m.name for m in snapshot.supported_modes or ()],
            "features": int(snapshot.features or 0),
            "description": snapshot.description,
        }))
        return

    print_header(f"Receiver: {snapshot.model_name}")
    table = Table(title="Capabilities")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Record size", f"{snapshot.size} bytes")
    table.add_row("Device", snapshot.device_name or "-")
    table.add_row("Description", snapshot.description or "-")
    table.add_row("Frequency range", f"{snapshot.min_freq:,} - {snapshot.max_freq:,} Hz")
    table.add_row("Resolution", f"{snapshot.freq_res} Hz")
    table.add_row("Max volume", str(snapshot.max_volume))
    table.add_row("Max BFO", f"±{snapshot.max_bfo} Hz")
    table.add_row("Max IF shift", str(snapshot.max_if_shift))
    table.add_row("Max IF gain", str(snapshot.max_if_gain))
    table.add_row("Scan rate (FM/AM)", f"{snapshot.max_fm_scan_rate} / {snapshot.max_am_scan_rate}")
    table.add_row(
        "Interface",
        snapshot.hw_interface.name if hasattr(snapshot.hw_interface, "name") else str(snapshot.hw_interface),
    )
    table.add_row("Modes", ", ".join(m.name for m in snapshot.supported_modes or ()))
    table.add_row("Features", str(snapshot.features))
    console.print(table)


@app.command()
def status(ctx: typer.Context) -> None:
    """Query power, ready and volume state."""
    options: ConnectionOptions = ctx.obj
    with connect(options) as radio:
        powered = radio.get_power()
        ready = radio.is_ready() if powered is not None else None
        volume = radio.get_volume() if ready is not None else None
        result = OperationResult.from_outcome(
            "status",
            volume is not None,
            radio.last_error,
            device=radio.settings.device_name,
            power=powered,
            ready=ready,
            volume=volume,
        )
    report(result, options)


@app.command()
def power(
    ctx: typer.Context,
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Switch receiver power and wait for confirmation."""
    options: ConnectionOptions = ctx.obj
    desired = _parse_on_off(state)
    with connect(options) as radio:
        ok = radio.set_power(desired)
        result = OperationResult.from_outcome(
            "set_power", ok, radio.last_error,
            device=radio.settings.device_name,
            power=radio.settings.cur_power,
        )
    report(result, options)


def _apply_mute(ctx: typer.Context, muted: bool) -> None:
    options: ConnectionOptions = ctx.obj
    with connect(options) as radio:
        ok = radio.set_mute(muted)
        result = OperationResult.from_outcome(
            "set_mute", ok, radio.last_error,
            device=radio.settings.device_name,
            muted=radio.settings.cur_muted,
        )
    report(result, options)


@app.command()
def mute(ctx: typer.Context) -> None:
    """Mute receiver audio."""
    _apply_mute(ctx, True)


@app.command()
def unmute(ctx: typer.Context) -> None:
    """Unmute receiver audio."""
    _apply_mute(ctx, False)


@app.command()
def attenuation(
    ctx: typer.Context,
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Enable or disable the front-end attenuator."""
    options: ConnectionOptions = ctx.obj
    enabled = _parse_on_off(state)
    with connect(options) as radio:
        ok = radio.set_attenuation(enabled)
        result = OperationResult.from_outcome(
            "set_attenuation", ok, radio.last_error,
            device=radio.settings.device_name,
            attenuation=radio.settings.cur_attenuation,
        )
    report(result, options)


@app.command()
def volume(ctx: typer.Context) -> None:
    """Read the current volume level."""
    options: ConnectionOptions = ctx.obj
    with connect(options) as radio:
        level = radio.get_volume()
        result = OperationResult.from_outcome(
            "get_volume", level is not None, radio.last_error,
            device=radio.settings.device_name,
            volume=level,
        )
    report(result, options)


if __name__ == "__main__":
    app()
