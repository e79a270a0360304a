"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Identifier layout shared by encode and decode runs
- Trim bounds for the SHA-1 digest
- Store and pipeline defaults

An encode run and every decode run against its store MUST
agree on IDENTIFIER_SEPARATOR.

============================================================
"""

# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "fasta-sanitiser"
SYSTEM_VERSION = "1.0.0"

# ============================================================
# IDENTIFIER CONSTANTS
# ============================================================

# Not collision-proof against arbitrary header text.
IDENTIFIER_SEPARATOR = "___"

HEADER_PREFIX = b">"

# Lines starting with these are skipped by the parser.
COMMENT_PREFIXES = (b"#", b";")

MIN_TRIM_LENGTH = 1
MAX_TRIM_LENGTH = 40  # hex length of a SHA-1 digest
DEFAULT_TRIM_LENGTH = MAX_TRIM_LENGTH

# ============================================================
# STORE CONSTANTS
# ============================================================

DEFAULT_STORE_LOCATION = "mapping_store.db"
MAPPINGS_TABLE = "mappings"
MAPPINGS_INDEX = "idx_new_id"

WRITE_PRAGMAS = (
    "PRAGMA journal_mode=OFF",
    "PRAGMA synchronous=OFF",
    "PRAGMA cache_size=1000000",
    "PRAGMA locking_mode=EXCLUSIVE",
    "PRAGMA temp_store=MEMORY",
)

READ_PRAGMAS = (
    "PRAGMA cache_size=1000000",
    "PRAGMA temp_store=MEMORY",
    "PRAGMA mmap_size=52428800",  # 50MB
)

# ============================================================
# PIPELINE CONSTANTS
# ============================================================

DEFAULT_PERSIST_QUEUE_SIZE = 1024

# Jobs/results queue capacity per decode worker.
DECODE_QUEUE_SLOTS_PER_WORKER = 4

# Seconds a blocked queue operation waits before rechecking the stop signal.
QUEUE_POLL_SECONDS = 0.1

# Upper bound on waiting for a pipeline thread blocked on input.
SHUTDOWN_JOIN_SECONDS = 5.0

CSV_SUFFIXES = (".csv", ".tsv")
STDIN_SENTINEL = "-"
