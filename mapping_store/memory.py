"""
Mapping Store - In-Memory Implementation.

Dict-backed store with the same contract as SQLiteMappingStore.
Used for tests and dry runs; nothing survives the process.
"""

import threading
from typing import Dict, Iterator, Optional, Tuple

from core.exceptions import (
    LookupMissError,
    StoreError,
    StoreModeError,
    StoreWriteError,
)
from .base import MappingStoreProtocol, StoreMode


class InMemoryMappingStore(MappingStoreProtocol):
    """
    In-memory mapping store.

    A store built in WRITE mode can be reopened for reading with
    as_read_only(), which shares the same (frozen) mapping.
    """

    def __init__(
        self,
        mode: StoreMode = StoreMode.WRITE,
        mappings: Optional[Dict[str, bytes]] = None,
        location: str = ":memory:",
    ):
        super().__init__(location, mode)
        self._mappings: Dict[str, bytes] = dict(mappings or {})
        self._lock = threading.Lock()
        self._finalized = False
        self.finalize_calls = 0

    def _require(self, mode: StoreMode, operation: str) -> None:
        if self._closed:
            raise StoreError(f"{operation} on closed store", location=self._location)
        if self._mode is not mode:
            raise StoreModeError(
                f"{operation} is not allowed in {self._mode.value} mode",
                location=self._location,
            )

    def put(self, new_id: str, original_header: bytes) -> None:
        self._require(StoreMode.WRITE, "put")
        with self._lock:
            if self._finalized:
                raise StoreWriteError("put after finalize", location=self._location)
            if new_id in self._mappings:
                raise StoreWriteError(
                    f"duplicate identifier: {new_id}",
                    location=self._location,
                    context={"new_id": new_id},
                )
            self._mappings[new_id] = bytes(original_header)

    def get(self, new_id: str) -> bytes:
        self._require(StoreMode.READ_ONLY, "get")
        with self._lock:
            header = self._mappings.get(new_id)
        if header is None:
            raise LookupMissError(new_id)
        return header

    def finalize(self) -> None:
        if self._mode is StoreMode.READ_ONLY:
            return
        with self._lock:
            self.finalize_calls += 1
            self._finalized = True

    def iter_mappings(self) -> Iterator[Tuple[str, bytes]]:
        with self._lock:
            items = list(self._mappings.items())
        yield from items

    def count(self) -> int:
        with self._lock:
            return len(self._mappings)

    def close(self) -> None:
        self._closed = True

    def as_read_only(self) -> "InMemoryMappingStore":
        """Open the same mapping in READ_ONLY mode."""
        with self._lock:
            return InMemoryMappingStore(
                mode=StoreMode.READ_ONLY,
                mappings=self._mappings,
                location=self._location,
            )
