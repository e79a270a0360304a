"""
Sanitiser - Encode Driver.

============================================================
RESPONSIBILITY
============================================================
Replaces every FASTA header with its generated identifier.

For each record, in input order:
1. Compute identifier from (sequence, index, trim_length)
2. Persist (identifier, header) in the mapping store
3. Write ">{identifier}\\n{sequence}\\n" to the output

After the last record the store is finalized. The caller
owns store.close().

============================================================
PERSISTENCE OVERLAP
============================================================
With persist_queue_size > 0, step 2 is handed to a single
persistence thread through a bounded queue. The main loop
blocks when the queue is full and waits for it to drain
before finalize. A failed put is re-raised in the caller.

============================================================
"""

import logging
import queue
import threading
import time
from typing import BinaryIO, Iterable, Optional, Tuple

from core.constants import DEFAULT_TRIM_LENGTH, HEADER_PREFIX, QUEUE_POLL_SECONDS
from mapping_store.base import MappingStoreProtocol
from .identifiers import generate_identifier, validate_trim_length
from .models import EncodeResult
from .parser import parse_records
from .streams import flush, write_bytes


logger = logging.getLogger(__name__)


_DONE = object()


# ============================================================
# PERSISTENCE WORKER
# ============================================================

class PersistenceWorker:
    """Single consumer writing (new_id, header) pairs to the store."""

    def __init__(self, store: MappingStoreProtocol, queue_size: int):
        self._store = store
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run, name="persistence-worker", daemon=True,
        )
        self.persisted = 0

    def start(self) -> None:
        self._thread.start()

    def submit(self, new_id: str, header: bytes) -> None:
        """Queue one mapping, blocking while the queue is full."""
        self._put((new_id, header))

    def drain(self) -> None:
        """Wait until every submitted mapping is persisted."""
        self._put(_DONE)
        self._thread.join()
        self._raise_if_failed()

    def abort(self) -> None:
        """Stop without persisting what is still queued."""
        self._stop.set()
        self._thread.join()

    def _put(self, item) -> None:
        while True:
            self._raise_if_failed()
            try:
                self._queue.put(item, timeout=QUEUE_POLL_SECONDS)
                return
            except queue.Full:
                continue

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise self._error

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                item = self._queue.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                continue
            if item is _DONE:
                return
            try:
                self._store.put(*item)
            except Exception as e:
                logger.error(f"Persistence worker failed: {e}")
                self._error = e
                return
            self.persisted += 1


# ============================================================
# ENCODER
# ============================================================

class FastaEncoder:
    """
    Encode driver.

    Usage:
        encoder = FastaEncoder(store, trim_length=8)
        result = encoder.encode(sys.stdin.buffer, sys.stdout.buffer)
    """

    def __init__(
        self,
        store: MappingStoreProtocol,
        trim_length: int = DEFAULT_TRIM_LENGTH,
        persist_queue_size: int = 0,
    ):
        self._store = store
        self._trim_length = validate_trim_length(trim_length)
        self._persist_queue_size = max(0, persist_queue_size)

    def encode_record(self, sequence: bytes, index: int) -> Tuple[str, bytes]:
        """Return (new_id, output bytes) for one record."""
        new_id = generate_identifier(sequence, index, self._trim_length)
        return new_id, HEADER_PREFIX + new_id.encode("ascii") + b"\n" + sequence + b"\n"

    def encode(self, input_stream: Iterable[bytes], output_stream: BinaryIO) -> EncodeResult:
        """
        Encode input_stream into output_stream.

        Raises:
            InputFormatError, InputStreamError, OutputStreamError,
            StoreWriteError, StoreFinalizeError
        """
        started = time.monotonic()
        result = EncodeResult()

        worker: Optional[PersistenceWorker] = None
        if self._persist_queue_size:
            worker = PersistenceWorker(self._store, self._persist_queue_size)
            worker.start()
            persist = worker.submit
        else:
            persist = self._store.put

        try:
            for record in parse_records(input_stream):
                new_id, data = self.encode_record(record.sequence, record.index)
                persist(new_id, record.header)
                write_bytes(output_stream, data)
                result.records += 1
                result.sequence_bytes += len(record.sequence)

            if worker is not None:
                worker.drain()
        except BaseException:
            if worker is not None:
                worker.abort()
            raise

        flush(output_stream)
        self._store.finalize()

        result.elapsed_seconds = time.monotonic() - started
        logger.info(
            f"Encoding completed. Database optimized. "
            f"records={result.records} elapsed={result.elapsed_seconds:.3f}s"
        )
        return result
