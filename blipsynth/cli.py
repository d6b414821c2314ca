from __future__ import annotations

import argparse
import logging
import sys
import traceback
from typing import IO

import numpy as np
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .audio import SAMPLE_RATE
from .errors import InvalidSettingsError
from .logging_utils import (
    DEBUG_ENV,
    attach_file_log,
    configure_logging,
    debug_enabled,
    get_log_path,
    log_exception,
    set_console_level,
)
from .params import SETTINGS_LENGTH, SfxrParams
from .presets import get_preset, preset_names
from .sound import render

_LOGGER = logging.getLogger("blipsynth.cli")
_CONSOLE = Console()


def parse_settings(text: str) -> SfxrParams:
    """Resolve a preset name or a comma separated settings vector."""

    stripped = text.strip()
    if not stripped:
        raise InvalidSettingsError("settings must be a preset name or comma separated numbers")
    if "," not in stripped and not _is_number(stripped):
        return get_preset(stripped)
    values = [part.strip() or None for part in stripped.split(",")]
    if len(values) > SETTINGS_LENGTH:
        raise InvalidSettingsError(
            f"expected at most {SETTINGS_LENGTH} values, got {len(values)}"
        )
    return SfxrParams.from_settings(values)


def _is_number(text: str) -> bool:
    try:
        float(text)
    except ValueError:
        return False
    return True


def _rng(seed: int | None) -> np.random.Generator | None:
    if seed is None:
        return None
    return np.random.default_rng(seed)


def render_error(context: str, exc: BaseException, *, stream: IO[str] | None = None) -> None:
    target = stream or sys.stderr
    log_path = get_log_path()
    if target.isatty():
        console = Console(file=target)
        body = Text.assemble(
            ("blipsynth error while ", "bold"),
            (context, "bold"),
            (":\n\n", "bold"),
            Text(type(exc).__name__, style="bold red"),
            (": ", "bold"),
            Text(str(exc)),
            (f"\nLogs: {log_path}", "dim"),
            (f"\n\nSet {DEBUG_ENV}=1 for console trace.", "dim"),
        )
        console.print(Panel(body, title="Error", border_style="red"))
    else:
        target.write(f"{context} failed: {type(exc).__name__}: {exc} (logs: {log_path})\n")
    if debug_enabled():
        traceback.print_exception(type(exc), exc, exc.__traceback__, file=target)


def _presets_table() -> Table:
    table = Table(title="Presets")
    table.add_column("name")
    table.add_column("wave")
    table.add_column("envelope (s)", justify="right")
    for name in preset_names():
        params = get_preset(name)
        table.add_row(name, params.wave_type.name.lower(), f"{params.envelope_time:.3f}")
    return table


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="blipsynth")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logs.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("presets", help="List the built-in presets.")

    settings_help = "Preset name or comma separated settings (empty slots are 0)."

    render_cmd = sub.add_parser("render", help="Render a sound effect to a wav file.")
    render_cmd.add_argument("settings", type=str, help=settings_help)
    render_cmd.add_argument("--output", type=str, default="sfx.wav")
    render_cmd.add_argument("--seed", type=int, default=None)

    uri = sub.add_parser("uri", help="Print the sound effect as a data URI.")
    uri.add_argument("settings", type=str, help=settings_help)
    uri.add_argument("--seed", type=int, default=None)

    play = sub.add_parser("play", help="Play a sound effect on the local audio device.")
    play.add_argument("settings", type=str, help=settings_help)
    play.add_argument("--seed", type=int, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    attach_file_log()
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        if args.verbose:
            set_console_level(logging.DEBUG)

        if args.command == "presets":
            _CONSOLE.print(_presets_table())
            return 0

        if args.command == "render":
            sound = render(parse_settings(args.settings), rng=_rng(args.seed))
            path = sound.save(args.output)
            _CONSOLE.print(
                f"Wrote {len(sound)} samples ({sound.duration:.3f}s) to {path} (sr={SAMPLE_RATE})"
            )
            return 0

        if args.command == "uri":
            sound = render(parse_settings(args.settings), rng=_rng(args.seed))
            _CONSOLE.print(sound.data_uri, soft_wrap=True, highlight=False, markup=False)
            return 0

        if args.command == "play":
            sound = render(parse_settings(args.settings), rng=_rng(args.seed))
            sound.play()
            return 0

        parser.print_help()
        return 1
    except Exception as exc:
        _LOGGER.warning("blipsynth CLI failed: %s", exc, exc_info=debug_enabled())
        log_exception("blipsynth CLI", exc)
        render_error("blipsynth CLI", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
