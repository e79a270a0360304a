"""
Sanitiser - Decode Engine.

============================================================
RESPONSIBILITY
============================================================
Restores original headers in arbitrary text.

Every identifier-shaped token (\\d+___[0-9a-f]+) is looked up
in a read-only mapping store and replaced by its header.
Unknown tokens are left untouched and reported as warnings.
The output has the same lines, in the same order, as the input.

============================================================
PIPELINE
============================================================
dispatcher (1 thread)
    reads lines, numbers them from 0, feeds the bounded job
    queue, then posts one stop marker per worker and an
    end-of-input marker carrying the line count
workers (N threads)
    tokenize, look up, rewrite; emit (seq, line) results in
    completion order into the bounded results queue
reassembler (calling thread)
    buffers results by sequence number and writes every
    consecutive run starting at next_seq

The reorder buffer only holds lines whose predecessors are
still in flight. Any failure sets the stop event; every
blocking queue operation polls it, so all threads exit.

============================================================
"""

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Optional, Tuple

from core.constants import (
    DECODE_QUEUE_SLOTS_PER_WORKER,
    QUEUE_POLL_SECONDS,
    SHUTDOWN_JOIN_SECONDS,
)
from core.exceptions import InvalidConfigError, LookupMissError, SanitiserException
from mapping_store.base import MappingStoreProtocol
from .identifiers import IDENTIFIER_PATTERN
from .models import DecodeStats
from .streams import flush, iter_lines, write_bytes


logger = logging.getLogger(__name__)


# ============================================================
# PIPELINE MESSAGES
# ============================================================

_NO_MORE_JOBS = object()


@dataclass
class RewrittenLine:
    """Worker output for one input line."""

    seq: int
    line: bytes
    tokens: int = 0
    replaced: int = 0
    misses: int = 0


@dataclass
class _EndOfInput:
    count: int


@dataclass
class _Failure:
    error: BaseException


def _put(q: "queue.Queue", item, stop: threading.Event) -> bool:
    """Blocking put that gives up once stop is set."""
    while not stop.is_set():
        try:
            q.put(item, timeout=QUEUE_POLL_SECONDS)
            return True
        except queue.Full:
            continue
    return False


# ============================================================
# CSV QUOTING
# ============================================================

def csv_quote(value: bytes) -> bytes:
    """Standard CSV field quoting: double inner quotes, wrap in quotes."""
    return b'"' + value.replace(b'"', b'""') + b'"'


# ============================================================
# DECODE ENGINE
# ============================================================

class DecodeEngine:
    """
    Concurrent, order-preserving identifier rewriter.

    The store must support concurrent get() (READ_ONLY mode).
    """

    def __init__(
        self,
        store: MappingStoreProtocol,
        csv_safe: bool = False,
        workers: Optional[int] = None,
        queue_size: Optional[int] = None,
    ):
        workers = workers if workers is not None else (os.cpu_count() or 1)
        if workers < 1:
            raise InvalidConfigError("workers", workers, "must be at least 1")
        if queue_size is not None and queue_size < 1:
            raise InvalidConfigError("queue_size", queue_size, "must be at least 1")

        self._store = store
        self._csv_safe = csv_safe
        self._workers = workers
        self._queue_size = queue_size or workers * DECODE_QUEUE_SLOTS_PER_WORKER

    # --------------------------------------------------------
    # Line rewriting
    # --------------------------------------------------------

    def _resolve(self, token: bytes) -> Tuple[Optional[bytes], Optional[str]]:
        """Return (replacement, None) or (None, miss message)."""
        try:
            header = self._store.get(token.decode("ascii"))
        except LookupMissError as e:
            return None, e.message
        if self._csv_safe:
            header = csv_quote(header)
        return header, None

    def rewrite(self, seq: int, line: bytes) -> RewrittenLine:
        """
        Rewrite every identifier in line.

        Each distinct token is looked up once per line; every
        occurrence of a missing token logs one warning.
        """
        matches = list(IDENTIFIER_PATTERN.finditer(line))
        if not matches:
            return RewrittenLine(seq=seq, line=line)

        resolved: Dict[bytes, Tuple[Optional[bytes], Optional[str]]] = {}
        parts: List[bytes] = []
        position = 0
        replaced = misses = 0

        for match in matches:
            token = match.group(0)
            if token not in resolved:
                resolved[token] = self._resolve(token)
            replacement, miss = resolved[token]

            if replacement is None:
                misses += 1
                logger.warning(f"Could not decode ID {token.decode('ascii')}: {miss}")
                continue

            parts.append(line[position:match.start()])
            parts.append(replacement)
            position = match.end()
            replaced += 1

        parts.append(line[position:])
        return RewrittenLine(
            seq=seq,
            line=b"".join(parts),
            tokens=len(matches),
            replaced=replaced,
            misses=misses,
        )

    def rewrite_line(self, line: bytes) -> bytes:
        return self.rewrite(0, line).line

    # --------------------------------------------------------
    # Pipeline stages
    # --------------------------------------------------------

    def _dispatch(
        self,
        stream: BinaryIO,
        jobs: "queue.Queue",
        results: "queue.Queue",
        stop: threading.Event,
    ) -> None:
        count = 0
        try:
            for line in iter_lines(stream):
                if not _put(jobs, (count, line), stop):
                    return
                count += 1
        except Exception as e:
            _put(results, _Failure(e), stop)
            return

        for _ in range(self._workers):
            if not _put(jobs, _NO_MORE_JOBS, stop):
                return
        _put(results, _EndOfInput(count), stop)

    def _work(
        self,
        jobs: "queue.Queue",
        results: "queue.Queue",
        stop: threading.Event,
    ) -> None:
        while not stop.is_set():
            try:
                job = jobs.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            if job is _NO_MORE_JOBS:
                return

            seq, line = job
            try:
                result = self.rewrite(seq, line)
            except Exception as e:
                _put(results, _Failure(e), stop)
                return
            if not _put(results, result, stop):
                return

    def _reassemble(
        self,
        results: "queue.Queue",
        output_stream: BinaryIO,
        stats: DecodeStats,
        threads: List[threading.Thread],
    ) -> None:
        buffer: Dict[int, RewrittenLine] = {}
        next_seq = 0
        total: Optional[int] = None

        while total is None or next_seq < total:
            try:
                item = results.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                if not any(t.is_alive() for t in threads) and results.empty():
                    raise SanitiserException(
                        "decode pipeline stopped before all lines were written",
                        context={"next_seq": next_seq, "total": total},
                    )
                continue

            if isinstance(item, _Failure):
                raise item.error
            if isinstance(item, _EndOfInput):
                total = item.count
                continue

            buffer[item.seq] = item
            stats.max_buffered = max(stats.max_buffered, len(buffer))

            while next_seq in buffer:
                ready = buffer.pop(next_seq)
                write_bytes(output_stream, ready.line + b"\n")
                stats.tokens += ready.tokens
                stats.replaced += ready.replaced
                stats.misses += ready.misses
                next_seq += 1

        stats.lines = next_seq

    # --------------------------------------------------------
    # Entry point
    # --------------------------------------------------------

    def decode(self, input_stream: BinaryIO, output_stream: BinaryIO) -> DecodeStats:
        """
        Decode input_stream into output_stream.

        Raises:
            InputStreamError, OutputStreamError, StoreReadError
        """
        started = time.monotonic()
        stats = DecodeStats()

        jobs: "queue.Queue" = queue.Queue(maxsize=self._queue_size)
        results: "queue.Queue" = queue.Queue(maxsize=self._queue_size)
        stop = threading.Event()

        threads = [
            threading.Thread(
                target=self._dispatch,
                args=(input_stream, jobs, results, stop),
                name="decode-dispatcher",
                daemon=True,
            )
        ]
        threads.extend(
            threading.Thread(
                target=self._work,
                args=(jobs, results, stop),
                name=f"decode-worker-{i}",
                daemon=True,
            )
            for i in range(self._workers)
        )

        for thread in threads:
            thread.start()

        try:
            self._reassemble(results, output_stream, stats, threads)
        finally:
            stop.set()
            for thread in threads:
                thread.join(timeout=SHUTDOWN_JOIN_SECONDS)
                if thread.is_alive():
                    logger.warning(f"{thread.name} did not stop within {SHUTDOWN_JOIN_SECONDS}s")

        flush(output_stream)

        stats.elapsed_seconds = time.monotonic() - started
        logger.info(
            f"Decoding completed. lines={stats.lines} replaced={stats.replaced} "
            f"misses={stats.misses} workers={self._workers}"
        )
        return stats
