"""
Mapping Store - SQLite Engine.

============================================================
RESPONSIBILITY
============================================================
Creates SQLAlchemy engines for the two store modes.

WRITE:
- Single shared connection (StaticPool), usable from the
  persistence worker thread
- Journaling and fsync disabled; a crashed encode is
  recovered by re-running encode, never by repair

READ_ONLY:
- SQLite URI with mode=ro, the file is never modified
- Connection pool sized for concurrent decode workers

============================================================
"""

import logging
import sqlite3
from pathlib import Path
from typing import Iterable

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool, StaticPool

from core.constants import READ_PRAGMAS, WRITE_PRAGMAS


logger = logging.getLogger(__name__)


# ============================================================
# PRAGMA HOOK
# ============================================================

def _install_pragmas(engine: Engine, pragmas: Iterable[str]) -> None:
    """Run the given PRAGMA statements on every new DBAPI connection."""
    pragmas = tuple(pragmas)

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        try:
            for pragma in pragmas:
                cursor.execute(pragma)
        finally:
            cursor.close()
        logger.debug(f"Store connection established ({len(pragmas)} pragmas)")


# ============================================================
# ENGINE FACTORIES
# ============================================================

def create_write_engine(location: str, echo: bool = False) -> Engine:
    """
    Create the engine used by an encode run.

    Args:
        location: Path of the SQLite file (created if missing)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine backed by one connection
    """
    engine = create_engine(
        f"sqlite:///{location}",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=echo,
    )
    _install_pragmas(engine, WRITE_PRAGMAS)
    return engine


def create_read_engine(location: str, pool_size: int = 5, echo: bool = False) -> Engine:
    """
    Create the engine used by a decode run.

    Args:
        location: Path of an existing SQLite file
        pool_size: Connections kept for concurrent lookups
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine opening the file read-only
    """
    uri = f"{Path(location).resolve().as_uri()}?mode=ro"

    def connect() -> sqlite3.Connection:
        return sqlite3.connect(uri, uri=True, check_same_thread=False)

    engine = create_engine(
        "sqlite://",
        creator=connect,
        poolclass=QueuePool,
        pool_size=max(1, pool_size),
        max_overflow=max(1, pool_size),
        echo=echo,
    )
    _install_pragmas(engine, READ_PRAGMAS)
    return engine
