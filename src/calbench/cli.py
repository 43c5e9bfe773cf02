"""Command-line interface for calbench.

Usage:
    # List the instruments on a bench
    calbench list bench.yaml

    # Take one reading from an instrument
    calbench read bench.yaml gauge

    # Same, against the emulator and with frame tracing
    calbench read bench.yaml gauge --emulate --debug
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from calbench.bench import BenchConfig, create_instrument, load_config
from calbench.errors import CalbenchError

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def take_reading(kind: str, instrument: Any) -> str:
    """Open ``instrument``, take its headline reading and close it."""
    async with instrument:
        await instrument.open()
        if kind == "heat_chamber":
            params = await instrument.get_current_params()
            return f"{params.temperature}, {params.humidity}, progress {params.progress}"
        if kind in ("pressure_gauge", "pressure_regulator"):
            return str(await instrument.get_pressure())
        return str(await instrument.get_temperature())


def _load(path: str) -> BenchConfig | None:
    try:
        return load_config(path)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return None


def cmd_list(args: argparse.Namespace) -> int:
    """List the instruments on a bench."""
    config = _load(args.bench)
    if config is None:
        return 1

    print(f"Bench: {config.bench_id}")
    if config.description:
        print(f"  Description: {config.description}")
    print(f"  Emulated: {'yes' if config.emulate else 'no'}")
    print()
    for inst in config.instruments:
        print(f"  {inst.name}: {inst.kind} on {inst.port or '(default)'}")
        print(f"    driver: {inst.driver}")
    return 0


def cmd_read(args: argparse.Namespace) -> int:
    """Take one reading from an instrument."""
    config = _load(args.bench)
    if config is None:
        return 1

    try:
        inst = config.get(args.name)
    except KeyError as exc:
        print(f"Error: {exc.args[0]}")
        return 1

    emulate = True if args.emulate else config.emulate
    try:
        instrument = create_instrument(inst, emulate)
        reading = asyncio.run(take_reading(inst.kind, instrument))
    except (CalbenchError, ValueError, TypeError, ImportError) as exc:
        logger.debug("Read of '%s' failed", inst.name, exc_info=True)
        print(f"Error: {inst.name}: {exc}")
        return 1

    print(f"{inst.name}: {reading}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--debug", action="store_true", help="Enable debug logging")

    parser = argparse.ArgumentParser(
        description="Calibration bench instrument CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    list_parser = subparsers.add_parser(
        "list", parents=[common], help="List the instruments on a bench"
    )
    list_parser.add_argument("bench", help="Bench YAML file")

    read_parser = subparsers.add_parser(
        "read", parents=[common], help="Take one reading from an instrument"
    )
    read_parser.add_argument("bench", help="Bench YAML file")
    read_parser.add_argument("name", help="Instrument name")
    read_parser.add_argument(
        "--emulate", action="store_true",
        help="Use the emulator regardless of the bench setting"
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    if args.command == "list":
        return cmd_list(args)
    elif args.command == "read":
        return cmd_read(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
