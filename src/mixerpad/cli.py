"""Command line interface for the mixerpad package."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from .surface.backends import load_backends
from .surface.config import MixerConfig, default_config, load_config, save_config
from .surface.frames import FrameDecoder, iterate_text_stream
from .surface.runner import ControlSurfaceHost
from .surface.transport import ConnectionState

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
    help="Serial mixer / macro pad host.",
)


def _setup_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise typer.BadParameter(f"Unknown log level '{level}'", param_hint="--log-level")
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load(config_path: Optional[Path], overrides: Optional[list[str]]) -> MixerConfig:
    if config_path is None:
        if overrides:
            raise typer.BadParameter("--set requires --config", param_hint="--set")
        return default_config()
    try:
        return load_config(config_path, overrides or None)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Config file not found: {config_path}", param_hint="--config") from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Mapping configuration (JSON)."),
    port: Optional[str] = typer.Option(
        None, "--port", "-p", help="Serial device. Use '-' to read frames from stdin."
    ),
    baudrate: Optional[int] = typer.Option(None, "--baud", help="Serial baudrate."),
    invert_buttons: Optional[bool] = typer.Option(
        None, "--invert-buttons/--no-invert-buttons", help="Treat '1' as pressed instead of '0'."
    ),
    override: Optional[list[str]] = typer.Option(
        None,
        "--set",
        help="Override config keys, e.g. --set host.reconnect_delay_sec=1",
    ),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        help="module:factory returning (audio, input) backends. Defaults to logging backends.",
    ),
    log_level: str = typer.Option("info", "--log-level", help="Logging level."),
) -> None:
    """Read frames from the control surface and drive the mapped actions."""

    _setup_logging(log_level)
    cfg = _load(config_path, override)
    if port is not None:
        cfg.port = port
    if baudrate is not None:
        cfg.baudrate = baudrate
    if invert_buttons is not None:
        cfg.invert_buttons = invert_buttons
    if not cfg.port:
        raise typer.BadParameter("No serial port configured; pass --port", param_hint="--port")
    try:
        audio, keys = load_backends(backend)
    except (ImportError, ValueError) as exc:
        raise typer.BadParameter(f"Failed to load backend: {exc}", param_hint="--backend") from exc

    host = ControlSurfaceHost(cfg, audio, keys)
    if cfg.port == "-":
        accepted = host.run_from_stream(sys.stdin)
        typer.echo(f"Processed {accepted} frames from stdin")
        return

    def report(state: ConnectionState) -> None:
        logger.info("Serial %s", state.value)

    host.on_state_changed(report)
    logger.info("Starting host on %s @ %d", cfg.port, cfg.baudrate)
    host.run()


@app.command()
def decode(
    input_path: Optional[Path] = typer.Argument(
        None, help="Captured serial lines. Reads stdin when omitted.", exists=True, readable=True
    ),
    invert_buttons: bool = typer.Option(
        False, "--invert-buttons/--no-invert-buttons", help="Treat '1' as pressed instead of '0'."
    ),
) -> None:
    """Decode captured frames and print what the host would see."""

    decoder = FrameDecoder()
    handle = input_path.open("r", encoding="ascii", errors="ignore") if input_path else sys.stdin
    try:
        for line in iterate_text_stream(handle):
            sample = decoder.decode(line, invert_buttons)
            if sample is None:
                continue
            sliders = " ".join(f"{value:4d}" for value in sample.sliders)
            buttons = "".join("X" if pressed else "." for pressed in sample.buttons)
            typer.echo(f"sliders={sliders} buttons={buttons}")
    finally:
        if input_path:
            handle.close()
    stats = decoder.stats()
    typer.echo(f"accepted={stats['frames']} rejected={stats['rejected']}")


@app.command("init-config")
def init_config(
    out: Path = typer.Option(Path("mixerpad.json"), "--out", help="Destination JSON file."),
    port: str = typer.Option("", "--port", "-p", help="Serial device to store in the file."),
    baudrate: int = typer.Option(9600, "--baud", help="Serial baudrate."),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    """Write a default mapping file: 4 master sliders and 16 unassigned buttons."""

    if out.exists() and not force:
        raise typer.BadParameter(f"{out} already exists (use --force)", param_hint="--out")
    cfg = default_config()
    cfg.port = port
    cfg.baudrate = baudrate
    save_config(out, cfg)
    typer.echo(f"Wrote default configuration to {out}")


def main() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
