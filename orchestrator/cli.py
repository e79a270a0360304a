"""
Orchestrator - CLI.

============================================================
RESPONSIBILITY
============================================================
Command-line interface for the FASTA sanitiser.

- Provides argparse-based CLI
- Loads configuration from environment, then CLI flags
- Decides CSV-safe mode for decode runs
- Entry point for the application

============================================================
USAGE
============================================================
fasta-sanitiser encode input.fasta > output.fasta
fasta-sanitiser decode results.txt > restored.txt
fasta-sanitiser decode hits.csv --store runs/map.db
cat input.fasta | fasta-sanitiser encode - --trim 8
fasta-sanitiser dump --store runs/map.db

============================================================
"""

import argparse
import logging
import sys
from typing import List, Optional

from core.constants import (
    DEFAULT_STORE_LOCATION,
    MAX_TRIM_LENGTH,
    STDIN_SENTINEL,
    SYSTEM_NAME,
    SYSTEM_VERSION,
)
from core.exceptions import ConfigurationError
from sanitiser.config import LOG_FORMATS, LOG_LEVELS, RunMode, SanitiserConfig
from .core import EXIT_FAILURE, SanitiserRunner, setup_logging, should_quote_csv


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog=SYSTEM_NAME,
        description="Replace FASTA headers with content-derived IDs and restore them later",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Modes:
  encode    - Replace every header with {{index}}___{{sha1}} and store the mapping
  decode    - Restore original headers in any text produced from encoded data
  dump      - Print every stored mapping as ID<TAB>header

Examples:
  %(prog)s encode input.fasta > output.fasta
  %(prog)s decode input.txt > output.txt
  %(prog)s decode hits.tsv --store runs/map.db    # quoted as CSV fields
  Use '-' as input file to read from STDIN
        """,
    )

    parser.add_argument(
        "mode",
        choices=[m.value for m in RunMode],
        help="Run mode",
    )

    parser.add_argument(
        "input",
        nargs="?",
        default=STDIN_SENTINEL,
        help="Input file path (default: '-' for STDIN)",
    )

    # --------------------------------------------------------
    # Store Options
    # --------------------------------------------------------
    store_group = parser.add_argument_group("Store Options")

    store_group.add_argument(
        "--store", "-s",
        type=str,
        metavar="PATH",
        help=f"Mapping store location (default: {DEFAULT_STORE_LOCATION})",
    )

    store_group.add_argument(
        "--no-overwrite",
        action="store_true",
        help="Encode fails if the store already exists instead of recreating it",
    )

    # --------------------------------------------------------
    # Encode Options
    # --------------------------------------------------------
    encode_group = parser.add_argument_group("Encode Options")

    encode_group.add_argument(
        "--trim", "-t",
        type=int,
        metavar="N",
        help=f"Characters kept from the SHA1 checksum (default: {MAX_TRIM_LENGTH}, max {MAX_TRIM_LENGTH})",
    )

    encode_group.add_argument(
        "--persist-queue",
        type=int,
        metavar="N",
        help="Persistence queue capacity, 0 writes the store inline",
    )

    # --------------------------------------------------------
    # Decode Options
    # --------------------------------------------------------
    decode_group = parser.add_argument_group("Decode Options")

    csv_switch = decode_group.add_mutually_exclusive_group()
    csv_switch.add_argument(
        "--csv",
        dest="csv_safe",
        action="store_const",
        const=True,
        help="Quote restored headers as CSV fields",
    )
    csv_switch.add_argument(
        "--no-csv",
        dest="csv_safe",
        action="store_const",
        const=False,
        help="Never quote, even for .csv/.tsv input",
    )

    decode_group.add_argument(
        "--workers", "-w",
        type=int,
        metavar="N",
        help="Decode worker threads (default: CPU count)",
    )

    decode_group.add_argument(
        "--queue-size",
        type=int,
        metavar="N",
        help="Decode job/result queue capacity (default: 4 per worker)",
    )

    # --------------------------------------------------------
    # Logging Options
    # --------------------------------------------------------
    logging_group = parser.add_argument_group("Logging Options")

    logging_group.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level (default: INFO)",
    )

    logging_group.add_argument(
        "--log-format",
        type=str.lower,
        choices=LOG_FORMATS,
        help="Logging format (default: text)",
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"%(prog)s {SYSTEM_VERSION}",
    )

    return parser


# ============================================================
# CLI CONFIGURATION BUILDER
# ============================================================

def build_config(args: argparse.Namespace) -> SanitiserConfig:
    """
    Build configuration from environment, overridden by CLI flags.

    Args:
        args: Parsed arguments

    Returns:
        SanitiserConfig instance
    """
    mode = RunMode(args.mode)
    config = SanitiserConfig.from_env(mode)

    if args.store:
        config.store_location = args.store
    if args.no_overwrite:
        config.overwrite_store = False
    if args.trim is not None:
        config.trim_length = args.trim
    if args.persist_queue is not None:
        config.persist_queue_size = args.persist_queue
    if args.workers is not None:
        config.workers = args.workers
    if args.queue_size is not None:
        config.queue_size = args.queue_size
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    if mode is RunMode.DECODE:
        explicit = args.csv_safe if args.csv_safe is not None else (config.csv_safe or None)
        config.csv_safe = should_quote_csv(args.input, explicit)

    return config


# ============================================================
# MAIN ENTRY POINT
# ============================================================

def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (default: sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return EXIT_FAILURE

    errors = config.validate()
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return EXIT_FAILURE

    setup_logging(config.log_level, config.log_format)
    logger.debug(f"Starting {config.mode.value}: input={args.input} store={config.store_location}")

    return SanitiserRunner(config, input_path=args.input).run()


# ============================================================
# MODULE EXECUTION
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
