"""
Mapping Store - ORM Models.

============================================================
SCHEMA
============================================================
mappings
- new_id           TEXT PRIMARY KEY   generated identifier
- original_header  BLOB NOT NULL      header bytes, without '>'

The index built at finalize time is created separately
(see SQLiteMappingStore.finalize), not by create_all().

============================================================
"""

from sqlalchemy import Column, LargeBinary, Text
from sqlalchemy.orm import declarative_base

from core.constants import MAPPINGS_TABLE


Base = declarative_base()


class MappingEntry(Base):
    """One generated identifier and the header it replaced."""

    __tablename__ = MAPPINGS_TABLE

    new_id = Column(Text, primary_key=True)
    original_header = Column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return f"MappingEntry(new_id={self.new_id!r})"


mappings_table = MappingEntry.__table__
