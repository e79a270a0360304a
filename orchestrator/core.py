"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Wires configuration, streams, store and pipelines together
for one process invocation.

- Sets up logging on stderr (stdout carries data)
- Validates configuration before touching any stream
- Opens the store in the mode the run requires
- Closes the store and flushes output on every exit path
- Maps errors to exit codes

============================================================
EXIT CODES
============================================================
0   success
1   fatal error (configuration, input, store, output)
130 interrupted

============================================================
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from typing import BinaryIO, Iterator, Optional

from core.constants import CSV_SUFFIXES, STDIN_SENTINEL
from core.exceptions import InputStreamError, OutputStreamError, SanitiserException
from mapping_store import StoreMode, open_store
from sanitiser.config import RunMode, SanitiserConfig
from sanitiser.decoder import DecodeEngine
from sanitiser.encoder import FastaEncoder
from sanitiser.models import DecodeStats, EncodeResult
from sanitiser.parser import require_header
from sanitiser.streams import flush, write_bytes


logger = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


# ============================================================
# LOGGING SETUP
# ============================================================

class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    stream=None,
) -> logging.Logger:
    """
    Set up logging on the diagnostics side channel.

    Args:
        level: Log level
        log_format: Output format (json or text)
        stream: Target stream (default: stderr)

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
        )

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


# ============================================================
# INPUT POLICY
# ============================================================

def should_quote_csv(input_path: Optional[str], explicit: Optional[bool] = None) -> bool:
    """
    Decide CSV-safe mode for a decode run.

    An explicit flag wins; otherwise a .csv/.tsv input name
    switches quoting on.
    """
    if explicit is not None:
        return explicit
    if not input_path or input_path == STDIN_SENTINEL:
        return False
    return input_path.lower().endswith(CSV_SUFFIXES)


@contextmanager
def open_input(input_path: Optional[str], stdin: Optional[BinaryIO] = None) -> Iterator[BinaryIO]:
    """Open input_path for binary reading; '-' or None means stdin."""
    if not input_path or input_path == STDIN_SENTINEL:
        yield stdin if stdin is not None else sys.stdin.buffer
        return

    try:
        handle = open(input_path, "rb")
    except OSError as e:
        raise InputStreamError(
            f"Error opening input file: {e}", context={"path": input_path}, cause=e,
        ) from e

    with handle:
        yield handle


# ============================================================
# RUNNER
# ============================================================

class SanitiserRunner:
    """
    Runs one encode, decode or dump invocation.

    The store is opened per run and always closed before
    run() returns.
    """

    def __init__(
        self,
        config: SanitiserConfig,
        input_path: Optional[str] = STDIN_SENTINEL,
        output_stream: Optional[BinaryIO] = None,
        stdin: Optional[BinaryIO] = None,
    ):
        self._config = config
        self._input_path = input_path
        self._output = output_stream if output_stream is not None else sys.stdout.buffer
        self._stdin = stdin

    def run(self) -> int:
        """Execute the configured mode and return an exit code."""
        try:
            self._config.ensure_valid()

            if self._config.mode is RunMode.ENCODE:
                summary = self.run_encode().to_dict()
            elif self._config.mode is RunMode.DECODE:
                summary = self.run_decode().to_dict()
            else:
                summary = {"mappings": self.run_dump()}
            logger.debug(f"Run summary: mode={self._config.mode.value} {summary}")
            return EXIT_OK

        except SanitiserException as e:
            logger.error(e.to_log_format())
            return EXIT_FAILURE
        except KeyboardInterrupt:
            logger.info("Interrupted by user")
            return EXIT_INTERRUPTED
        finally:
            self._flush_output()

    def run_encode(self) -> EncodeResult:
        """Encode the input; the store is only truncated once the input starts with a header."""
        config = self._config
        with open_input(self._input_path, self._stdin) as input_stream:
            lines = require_header(input_stream)
            store = open_store(
                config.store_location,
                StoreMode.WRITE,
                overwrite=config.overwrite_store,
            )
            try:
                encoder = FastaEncoder(
                    store,
                    trim_length=config.trim_length,
                    persist_queue_size=config.persist_queue_size,
                )
                return encoder.encode(lines, self._output)
            finally:
                store.close()

    def run_decode(self) -> DecodeStats:
        config = self._config
        with open_input(self._input_path, self._stdin) as input_stream:
            engine_workers = config.workers or (os.cpu_count() or 1)
            store = open_store(
                config.store_location,
                StoreMode.READ_ONLY,
                pool_size=engine_workers,
            )
            try:
                engine = DecodeEngine(
                    store,
                    csv_safe=config.csv_safe,
                    workers=engine_workers,
                    queue_size=config.queue_size,
                )
                return engine.decode(input_stream, self._output)
            finally:
                store.close()

    def run_dump(self) -> int:
        """Write new_id<TAB>header for every stored mapping."""
        store = open_store(self._config.store_location, StoreMode.READ_ONLY)
        try:
            written = 0
            for new_id, header in store.iter_mappings():
                write_bytes(self._output, new_id.encode("ascii") + b"\t" + header + b"\n")
                written += 1
            logger.info(f"Dumped {written} mappings from {store.location}")
            return written
        finally:
            store.close()

    def _flush_output(self) -> None:
        try:
            flush(self._output)
        except OutputStreamError as e:
            logger.error(e.to_log_format())
