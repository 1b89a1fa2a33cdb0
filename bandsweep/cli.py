#!/usr/bin/env python3
"""bandsweep CLI entrypoint."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, List, Optional, Set

from bandsweep import config
from bandsweep.dsp.bins import FrequencyBand
from bandsweep.errors import BandsweepError, InvalidParameters
from bandsweep.io.bands import resolve_band, serialize_presets
from bandsweep.sweep.runner import run_sweeps
from bandsweep.util.duration import parse_duration_to_seconds
from bandsweep.util.exit_codes import ExitCode
from bandsweep.util.logging import configure_logging, get_logger, log_exception


def run(args: argparse.Namespace) -> int:
    """Top-level CLI dispatcher that delegates execution to sweep.runner."""
    if getattr(args, "list_bands", False):
        _emit_bands_json()
        return ExitCode.SUCCESS
    log = get_logger(__name__)
    try:
        run_sweeps(args)
    except KeyboardInterrupt:
        log.warning("interrupted")
        return ExitCode.CANCELLED
    except BandsweepError as exc:
        log_exception(log, f"sweep failed: {exc}", error_type=type(exc).__name__, src=args.src)
        return ExitCode.for_exception(exc)
    return ExitCode.SUCCESS


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    if argv is None:
        argv = sys.argv[1:]

    p = argparse.ArgumentParser(
        description="Average the spectral energy of frequency bands across an audio track",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument("src", nargs="?", help="Audio file to analyse (any format libsndfile reads)")
    p.add_argument("--low", type=float, help="Band low edge in Hz")
    p.add_argument("--high", type=float, help="Band high edge in Hz")
    p.add_argument(
        "--band",
        dest="band_names",
        action="append",
        help="Named band preset (repeatable; see --list-bands)",
    )

    p.add_argument("--fft", type=int, help=f"FFT size, power of two (default {config.FFT_SIZE})")
    p.add_argument(
        "--smoothing",
        type=float,
        help=f"Smoothing time constant 0..1 between snapshots (default {config.SMOOTHING_TIME_CONSTANT})",
    )
    p.add_argument("--min-db", dest="min_db", type=float, help=f"dB mapped to magnitude 0 (default {config.MIN_DECIBELS})")
    p.add_argument("--max-db", dest="max_db", type=float, help=f"dB mapped to magnitude 255 (default {config.MAX_DECIBELS})")
    p.add_argument(
        "--seek-timeout",
        dest="seek_timeout",
        type=str,
        help=f"Max wait for a seek to settle, e.g. '500ms', '5s' (default {config.SEEK_TIMEOUT_S}s; 0 waits forever)",
    )

    p.add_argument("--jsonl", type=str, help="Mirror sweep events as line-delimited JSON to this path")
    p.add_argument("--progress", action="store_true", help="Print one line per sweep step")
    p.add_argument("--log-level", dest="log_level", type=str, help="DEBUG, INFO, WARNING or ERROR (default from BANDSWEEP_LOG_LEVEL)")
    p.add_argument("--log-json", dest="log_json", type=str, help="Append JSON-formatted log records to this file")
    p.add_argument("--list-bands", dest="list_bands", action="store_true", help="Print built-in band presets as JSON and exit")

    args = p.parse_args(argv)
    args._cli_overrides = set()

    _set_default(args, args._cli_overrides, "src", None)
    _set_default(args, args._cli_overrides, "low", None)
    _set_default(args, args._cli_overrides, "high", None)
    _set_default(args, args._cli_overrides, "band_names", [])
    _set_default(args, args._cli_overrides, "fft", config.FFT_SIZE)
    _set_default(args, args._cli_overrides, "smoothing", config.SMOOTHING_TIME_CONSTANT)
    _set_default(args, args._cli_overrides, "min_db", config.MIN_DECIBELS)
    _set_default(args, args._cli_overrides, "max_db", config.MAX_DECIBELS)
    _set_default(args, args._cli_overrides, "seek_timeout", config.SEEK_TIMEOUT_S)
    _set_default(args, args._cli_overrides, "jsonl", None)
    _set_default(args, args._cli_overrides, "progress", False)
    _set_default(args, args._cli_overrides, "log_level", None)
    _set_default(args, args._cli_overrides, "log_json", None)
    _set_default(args, args._cli_overrides, "list_bands", False)

    if not args.list_bands:
        if not args.src:
            p.error("an audio source is required unless --list-bands is used")
        args.bands = _resolve_bands(args, p)
        if not 0.0 <= args.smoothing <= 1.0:
            p.error("--smoothing must be within 0..1")
        if args.min_db >= args.max_db:
            p.error("--min-db must be below --max-db")
        try:
            parse_duration_to_seconds(args.seek_timeout)
        except argparse.ArgumentTypeError as exc:
            p.error(str(exc))

    delattr(args, "_cli_overrides")
    return args


def _set_default(args: argparse.Namespace, overrides: Set[str], attr: str, value: Any) -> None:
    if hasattr(args, attr):
        overrides.add(attr)
    else:
        setattr(args, attr, value)


def _resolve_bands(args: argparse.Namespace, parser: argparse.ArgumentParser) -> List[FrequencyBand]:
    bands: List[FrequencyBand] = []
    for name in args.band_names:
        preset = resolve_band(name)
        if preset is None:
            parser.error(f"Unknown band preset '{name}'. Use --list-bands to inspect options.")
        bands.append(preset.to_band())

    overrides: Set[str] = args._cli_overrides
    has_low = "low" in overrides
    has_high = "high" in overrides
    if has_low != has_high:
        parser.error("--low and --high must be given together")
    if has_low:
        try:
            bands.append(FrequencyBand(args.low, args.high))
        except InvalidParameters as exc:
            parser.error(str(exc))

    if not bands:
        parser.error("give --low/--high or at least one --band")
    return bands


def _emit_bands_json() -> None:
    payload = serialize_presets()
    print(json.dumps(payload, indent=2, sort_keys=True))


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_file=args.log_json)
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
