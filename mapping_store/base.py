"""
Mapping Store - Protocol.

============================================================
RESPONSIBILITY
============================================================
Abstract interface for the durable new_id -> header store.

- Opened in exactly one mode per process invocation
- WRITE: put, finalize, close (single writer, no readers)
- READ_ONLY: get, iteration, close (many concurrent readers)

============================================================
DESIGN PRINCIPLES
============================================================
- Injected into encoder/decoder, never global
- Append-only during encode, immutable during decode
- close() is idempotent and safe after any failure

============================================================
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterator, Optional, Tuple

from core.exceptions import LookupMissError


# ============================================================
# STORE MODE
# ============================================================

class StoreMode(Enum):
    """Mode a store is opened with."""

    WRITE = "write"
    """Encode run: fresh store, exclusive writer."""

    READ_ONLY = "read_only"
    """Decode run: existing store, concurrent lookups."""


# ============================================================
# STORE PROTOCOL
# ============================================================

class MappingStoreProtocol(ABC):
    """Abstract interface for mapping stores."""

    def __init__(self, location: str, mode: StoreMode):
        self._location = location
        self._mode = mode
        self._closed = False

    @property
    def location(self) -> str:
        return self._location

    @property
    def mode(self) -> StoreMode:
        return self._mode

    @property
    def closed(self) -> bool:
        return self._closed

    @abstractmethod
    def put(self, new_id: str, original_header: bytes) -> None:
        """
        Persist one mapping.

        Raises:
            StoreModeError: store is read-only
            StoreWriteError: key already present or write failed
        """
        pass

    @abstractmethod
    def get(self, new_id: str) -> bytes:
        """
        Look up the original header for an identifier.

        Raises:
            LookupMissError: no mapping for new_id
            StoreModeError: store is in write mode
            StoreReadError: lookup failed
        """
        pass

    @abstractmethod
    def finalize(self) -> None:
        """Commit pending writes and build lookup indexes. Safe to repeat."""
        pass

    @abstractmethod
    def iter_mappings(self) -> Iterator[Tuple[str, bytes]]:
        """Yield every (new_id, original_header) pair in insertion order."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored mappings."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release resources. Idempotent."""
        pass

    def lookup(self, new_id: str) -> Optional[bytes]:
        """get() variant returning None on a miss."""
        try:
            return self.get(new_id)
        except LookupMissError:
            return None

    def __enter__(self) -> "MappingStoreProtocol":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(location={self._location!r}, mode={self._mode.value})"
