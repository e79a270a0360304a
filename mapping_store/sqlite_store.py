"""
Mapping Store - SQLite Implementation.

============================================================
RESPONSIBILITY
============================================================
Durable mapping store on SQLite through SQLAlchemy Core.

WRITE mode (encode):
- Truncate-and-recreate the mappings table on open, or
  refuse an existing file when overwrite=False
- All puts run in one transaction, committed by finalize()
- Duplicate identifiers are REJECTED (primary key)
- finalize() commits, builds idx_new_id and runs ANALYZE

READ_ONLY mode (decode):
- Fails to open if the file or the table is missing
- get() is safe to call from many threads at once
- put() raises StoreModeError, finalize() is a no-op

============================================================
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from sqlalchemy import bindparam, func, inspect, insert, literal_column, select, text
from sqlalchemy.engine import Connection, RootTransaction
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.constants import DEFAULT_STORE_LOCATION, MAPPINGS_INDEX, MAPPINGS_TABLE
from core.exceptions import (
    LookupMissError,
    StoreError,
    StoreFinalizeError,
    StoreModeError,
    StoreOpenError,
    StoreReadError,
    StoreWriteError,
)
from .base import MappingStoreProtocol, StoreMode
from .engine import create_read_engine, create_write_engine
from .models import Base, mappings_table


logger = logging.getLogger(__name__)


class SQLiteMappingStore(MappingStoreProtocol):
    """
    SQLite-backed mapping store.

    Usage:
        with SQLiteMappingStore("map.db", StoreMode.WRITE) as store:
            store.put("1___a94a8fe5", b"seq1")
            store.finalize()
    """

    def __init__(
        self,
        location: Optional[str] = None,
        mode: StoreMode = StoreMode.READ_ONLY,
        overwrite: bool = True,
        pool_size: int = 5,
        echo: bool = False,
    ):
        super().__init__(location or DEFAULT_STORE_LOCATION, mode)

        self._connection: Optional[Connection] = None
        self._transaction: Optional[RootTransaction] = None
        self._finalized = False
        self._written = 0

        self._insert = insert(mappings_table)
        self._lookup = select(mappings_table.c.original_header).where(
            mappings_table.c.new_id == bindparam("new_id")
        )

        if mode is StoreMode.WRITE:
            self._engine = self._open_write(overwrite, echo)
        else:
            self._engine = self._open_read(pool_size, echo)

        logger.info(f"Mapping store opened: location={self._location} mode={mode.value}")

    # --------------------------------------------------------
    # Opening
    # --------------------------------------------------------

    def _open_write(self, overwrite: bool, echo: bool):
        path = Path(self._location)
        if path.exists() and not overwrite:
            raise StoreOpenError(
                "mapping store already exists and overwrite is disabled",
                location=self._location,
            )

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreOpenError(
                f"cannot create store directory: {e}", location=self._location, cause=e,
            ) from e

        engine = create_write_engine(self._location, echo=echo)
        try:
            self._connection = engine.connect()
            with self._connection.begin():
                mappings_table.drop(self._connection, checkfirst=True)
                Base.metadata.create_all(self._connection)
            self._transaction = self._connection.begin()
        except SQLAlchemyError as e:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            engine.dispose()
            raise StoreOpenError(
                f"failed to create mapping store: {e}", location=self._location, cause=e,
            ) from e

        return engine

    def _open_read(self, pool_size: int, echo: bool):
        if not Path(self._location).is_file():
            raise StoreOpenError("no mapping store found", location=self._location)

        engine = create_read_engine(self._location, pool_size=pool_size, echo=echo)
        try:
            with engine.connect() as conn:
                has_table = inspect(conn).has_table(MAPPINGS_TABLE)
        except SQLAlchemyError as e:
            engine.dispose()
            raise StoreOpenError(
                f"failed to open mapping store: {e}", location=self._location, cause=e,
            ) from e

        if not has_table:
            engine.dispose()
            raise StoreOpenError(
                f"mapping store has no '{MAPPINGS_TABLE}' table", location=self._location,
            )

        return engine

    # --------------------------------------------------------
    # Guards
    # --------------------------------------------------------

    def _require(self, mode: StoreMode, operation: str) -> None:
        if self._closed:
            raise StoreError(f"{operation} on closed store", location=self._location)
        if self._mode is not mode:
            raise StoreModeError(
                f"{operation} is not allowed in {self._mode.value} mode",
                location=self._location,
            )

    @contextmanager
    def _reader(self) -> Iterator[Connection]:
        if self._closed:
            raise StoreError("read on closed store", location=self._location)
        if self._mode is StoreMode.WRITE:
            yield self._connection
        else:
            with self._engine.connect() as conn:
                yield conn

    # --------------------------------------------------------
    # Write path
    # --------------------------------------------------------

    def put(self, new_id: str, original_header: bytes) -> None:
        self._require(StoreMode.WRITE, "put")
        if self._transaction is None:
            raise StoreWriteError("put after finalize", location=self._location)

        try:
            self._connection.execute(
                self._insert,
                {"new_id": new_id, "original_header": bytes(original_header)},
            )
        except IntegrityError as e:
            raise StoreWriteError(
                f"duplicate identifier: {new_id}",
                location=self._location,
                context={"new_id": new_id},
                cause=e,
            ) from e
        except SQLAlchemyError as e:
            raise StoreWriteError(
                f"error inserting mapping: {e}",
                location=self._location,
                context={"new_id": new_id},
                cause=e,
            ) from e

        self._written += 1

    def finalize(self) -> None:
        if self._mode is StoreMode.READ_ONLY or self._finalized:
            return
        self._require(StoreMode.WRITE, "finalize")

        try:
            self._transaction.commit()
            self._transaction = None
            with self._connection.begin():
                self._connection.execute(text(
                    f"CREATE INDEX IF NOT EXISTS {MAPPINGS_INDEX} ON {MAPPINGS_TABLE}(new_id)"
                ))
                self._connection.execute(text(f"ANALYZE {MAPPINGS_TABLE}"))
        except SQLAlchemyError as e:
            raise StoreFinalizeError(
                f"error finalizing mapping store: {e}", location=self._location, cause=e,
            ) from e

        self._finalized = True
        logger.info(f"Finalize {MAPPINGS_TABLE}: inserted={self._written} index={MAPPINGS_INDEX}")

    # --------------------------------------------------------
    # Read path
    # --------------------------------------------------------

    def get(self, new_id: str) -> bytes:
        self._require(StoreMode.READ_ONLY, "get")

        try:
            with self._engine.connect() as conn:
                row = conn.execute(self._lookup, {"new_id": new_id}).first()
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"error looking up original ID: {e}",
                location=self._location,
                context={"new_id": new_id},
                cause=e,
            ) from e

        if row is None:
            raise LookupMissError(new_id)
        return bytes(row[0])

    def iter_mappings(self) -> Iterator[Tuple[str, bytes]]:
        stmt = select(mappings_table.c.new_id, mappings_table.c.original_header).order_by(
            literal_column("rowid")
        )
        try:
            with self._reader() as conn:
                for new_id, header in conn.execute(stmt):
                    yield new_id, bytes(header)
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"error reading mappings: {e}", location=self._location, cause=e,
            ) from e

    def count(self) -> int:
        try:
            with self._reader() as conn:
                return conn.execute(
                    select(func.count()).select_from(mappings_table)
                ).scalar_one()
        except SQLAlchemyError as e:
            raise StoreReadError(
                f"error counting mappings: {e}", location=self._location, cause=e,
            ) from e

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            if self._transaction is not None and self._transaction.is_active:
                logger.warning(
                    f"Mapping store closed before finalize, rolling back: {self._location}"
                )
                self._transaction.rollback()
            if self._connection is not None:
                self._connection.close()
        except SQLAlchemyError as e:
            logger.error(f"Error closing mapping store {self._location}: {e}")
        finally:
            self._transaction = None
            self._connection = None
            self._engine.dispose()

        logger.debug(f"Mapping store closed: {self._location}")
