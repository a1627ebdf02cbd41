"""Command-line interface wiring for the diff_images processor."""
from __future__ import annotations

import argparse
import dataclasses
import logging
import time
from pathlib import Path
from typing import Iterable, Optional

from .config import (
    MAX_POSITIONALS,
    RunConfig,
    config_from_file,
    parse_option,
    resolve_run_config,
)
from .pipeline import process_image
from .strategies import DEFAULT_REGISTRY, StrategyRegistry

LOGGER = logging.getLogger("diff_images")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


@dataclasses.dataclass(frozen=True)
class CliOptions:
    """Parsed command line: the run configuration plus CLI-only switches."""

    config: RunConfig
    log_level: str = "INFO"
    list_strategies: bool = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="diff-images",
        description=(
            "Convert an image to a [row][column][channel] array, run one named "
            "processing strategy over it, and write the result."
        ),
        usage="%(prog)s [strategyName] [inputPath] [outputPath] [options]",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "positionals",
        nargs="*",
        metavar="ARG",
        help="Up to three values: strategy name, input image path, output image path",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional JSON or YAML configuration file providing defaults",
    )
    parser.add_argument(
        "--backup",
        type=Path,
        default=None,
        help="Where the strategy writes its backup copy of the original image",
    )
    parser.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Strategy option, e.g. --option factor=2.0 (repeatable)",
    )
    parser.add_argument(
        "--list-strategies",
        action="store_true",
        help="Print the registered strategy names and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=LOG_LEVELS,
        help="Logging verbosity (default INFO)",
    )
    return parser


def parse_args(argv: Optional[Iterable[str]] = None) -> CliOptions:
    """Parse ``argv`` into :class:`CliOptions` and configure logging.

    More than three positional arguments prints ``Invalid args`` and exits with
    status 1.
    """
    parser = build_parser()
    args = parser.parse_intermixed_args(list(argv) if argv is not None else None)

    if len(args.positionals) > MAX_POSITIONALS:
        print("Invalid args")
        raise SystemExit(1)

    base = RunConfig()
    file_log_level = None
    if args.config is not None:
        try:
            base, file_log_level = config_from_file(args.config)
        except (OSError, ValueError) as exc:
            parser.error(str(exc))
        if file_log_level is not None and file_log_level not in LOG_LEVELS:
            parser.error(f"Invalid log_level {file_log_level!r} in {args.config}")

    try:
        options = dict(parse_option(text) for text in args.option)
        config = resolve_run_config(
            args.positionals,
            base=base,
            backup_path=args.backup,
            strategy_options=options,
        )
    except ValueError as exc:
        parser.error(str(exc))

    log_level = args.log_level or file_log_level or "INFO"
    logging.basicConfig(level=getattr(logging, log_level), format="%(levelname)s: %(message)s")
    return CliOptions(config=config, log_level=log_level, list_strategies=args.list_strategies)


def run(options: CliOptions, registry: Optional[StrategyRegistry] = None) -> int:
    """Run the processor for parsed ``options`` and return the exit status."""

    registry = registry or DEFAULT_REGISTRY
    if options.list_strategies:
        for name in registry.names():
            print(name)
        return 0

    config = options.config
    LOGGER.info(
        "Applying %s to %s -> %s (backup %s)",
        config.strategy_name,
        config.input_path,
        config.output_path,
        config.backup_path,
    )
    result = process_image(config, registry)
    if not result.ok:
        LOGGER.error("Processing aborted (%s): %s", result.error_kind, result.message)
        return 1
    return 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    t0 = time.perf_counter()
    options = parse_args(argv)
    LOGGER.info("Argument parsing: %.6f seconds", time.perf_counter() - t0)
    return run(options)


__all__ = [
    "CliOptions",
    "build_parser",
    "main",
    "parse_args",
    "run",
]
