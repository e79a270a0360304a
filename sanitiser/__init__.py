"""
Sanitiser Package.

============================================================
PURPOSE
============================================================
FASTA header anonymization and restoration.

COMPONENTS:
- parse_records: streaming FASTA record parser
- require_header: header check before any side effect
- generate_identifier: deterministic {index}___{sha1} IDs
- FastaEncoder: headers -> identifiers, mappings -> store
- DecodeEngine: identifiers -> headers in any text, ordered
  output from a concurrent worker pool
- SanitiserConfig: run configuration

============================================================
"""

from .config import RunMode, SanitiserConfig
from .decoder import DecodeEngine, RewrittenLine, csv_quote
from .encoder import FastaEncoder, PersistenceWorker
from .identifiers import (
    IDENTIFIER_PATTERN,
    generate_identifier,
    sequence_digest,
    validate_trim_length,
)
from .models import DecodeStats, EncodeResult, Record
from .parser import parse_records, require_header


__all__ = [
    "RunMode",
    "SanitiserConfig",
    "DecodeEngine",
    "RewrittenLine",
    "csv_quote",
    "FastaEncoder",
    "PersistenceWorker",
    "IDENTIFIER_PATTERN",
    "generate_identifier",
    "sequence_digest",
    "validate_trim_length",
    "DecodeStats",
    "EncodeResult",
    "Record",
    "parse_records",
    "require_header",
]
