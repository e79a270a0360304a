"""
Mapping Store Package.

============================================================
PURPOSE
============================================================
Durable new_id -> original header store shared between an
encode run and later decode runs.

AVAILABLE STORES:
- SQLiteMappingStore: SQLite through SQLAlchemy (default)
- InMemoryMappingStore: For testing

============================================================
"""

from typing import Optional

from .base import MappingStoreProtocol, StoreMode
from .memory import InMemoryMappingStore
from .models import Base, MappingEntry, mappings_table
from .sqlite_store import SQLiteMappingStore


def open_store(
    location: Optional[str] = None,
    mode: StoreMode = StoreMode.READ_ONLY,
    overwrite: bool = True,
    pool_size: int = 5,
) -> MappingStoreProtocol:
    """
    Open the mapping store at location.

    Args:
        location: SQLite file path (default: mapping_store.db)
        mode: WRITE for encode, READ_ONLY for decode
        overwrite: WRITE only; when False an existing file is an error
        pool_size: READ_ONLY only; connections for concurrent lookups

    Raises:
        StoreOpenError if the store cannot be opened in that mode
    """
    return SQLiteMappingStore(
        location=location,
        mode=mode,
        overwrite=overwrite,
        pool_size=pool_size,
    )


__all__ = [
    "MappingStoreProtocol",
    "StoreMode",
    "SQLiteMappingStore",
    "InMemoryMappingStore",
    "Base",
    "MappingEntry",
    "mappings_table",
    "open_store",
]
