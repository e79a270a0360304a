"""
Sanitiser - Models.

============================================================
PURPOSE
============================================================
Data types flowing through the encode and decode pipelines.

- Record: one FASTA header + sequence, emitted by the parser
- EncodeResult: summary of an encode run
- DecodeStats: summary of a decode run

============================================================
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict


# ============================================================
# RECORD
# ============================================================

@dataclass(frozen=True)
class Record:
    """One FASTA record."""

    header: bytes
    """Header bytes after '>', without line terminator."""

    sequence: bytes
    """All sequence lines concatenated, terminators stripped."""

    index: int
    """1-based position of the header in the input."""


# ============================================================
# RUN SUMMARIES
# ============================================================

@dataclass
class EncodeResult:
    """Summary of an encode run."""

    records: int = 0
    """Records written and persisted."""

    sequence_bytes: int = 0
    """Total sequence bytes hashed."""

    elapsed_seconds: float = 0.0
    """Wall time including finalize."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DecodeStats:
    """Summary of a decode run."""

    lines: int = 0
    """Lines written to the output."""

    tokens: int = 0
    """Identifier-shaped token occurrences found."""

    replaced: int = 0
    """Occurrences replaced with their original header."""

    misses: int = 0
    """Occurrences left untouched (no mapping)."""

    max_buffered: int = 0
    """Largest number of out-of-order lines held at once."""

    elapsed_seconds: float = 0.0
    """Wall time of the decode."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
