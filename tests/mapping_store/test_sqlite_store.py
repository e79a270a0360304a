"""
SQLite Mapping Store Tests.

============================================================
PURPOSE
============================================================
Tests for SQLiteMappingStore in both modes.

TEST CATEGORIES:
- Write/read round trip
- Mode enforcement
- Open and overwrite policy
- Finalize and close lifecycle
- Concurrent lookups

============================================================
"""

import sqlite3
from concurrent.futures import ThreadPoolExecutor

import pytest

from core.constants import MAPPINGS_INDEX
from core.exceptions import (
    LookupMissError,
    StoreError,
    StoreModeError,
    StoreOpenError,
    StoreWriteError,
)
from mapping_store import SQLiteMappingStore, StoreMode, open_store


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def db_path(tmp_path):
    """Path of a not-yet-existing store file."""
    return str(tmp_path / "map.db")


def build_store(location, mappings):
    store = SQLiteMappingStore(location, StoreMode.WRITE)
    try:
        for new_id, header in mappings.items():
            store.put(new_id, header)
        store.finalize()
    finally:
        store.close()


@pytest.fixture
def populated(db_path):
    """Finalized store with three mappings."""
    build_store(db_path, {
        "1___a94a8fe5": b"seq1 Homo sapiens",
        "2___2fd4e1c6": b"seq2",
        "3___de9f2c7f": b"\xff\xfebinary header",
    })
    return db_path


# ============================================================
# ROUND TRIP TESTS
# ============================================================

class TestRoundTrip:
    """Tests for write then read."""

    def test_get_returns_stored_header(self, populated):
        """Test stored headers are returned byte-exact."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert store.get("1___a94a8fe5") == b"seq1 Homo sapiens"
            assert store.get("3___de9f2c7f") == b"\xff\xfebinary header"

    def test_missing_key_raises_lookup_miss(self, populated):
        """Test a miss is a LookupMissError carrying the identifier."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            with pytest.raises(LookupMissError) as exc_info:
                store.get("9___ffff")

        assert exc_info.value.new_id == "9___ffff"
        assert exc_info.value.recoverable is True

    def test_lookup_returns_none_on_miss(self, populated):
        """Test the non-raising lookup helper."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert store.lookup("9___ffff") is None
            assert store.lookup("2___2fd4e1c6") == b"seq2"

    def test_iter_mappings_in_insertion_order(self, populated):
        """Test iteration follows insertion order."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            ids = [new_id for new_id, _ in store.iter_mappings()]

        assert ids == ["1___a94a8fe5", "2___2fd4e1c6", "3___de9f2c7f"]

    def test_count(self, populated):
        """Test row count."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert store.count() == 3

    def test_empty_header(self, db_path):
        """Test an empty header is stored and found."""
        build_store(db_path, {"1___00": b""})

        with SQLiteMappingStore(db_path, StoreMode.READ_ONLY) as store:
            assert store.get("1___00") == b""

    def test_open_store_helper(self, populated):
        """Test open_store defaults to read-only SQLite."""
        store = open_store(populated)
        try:
            assert isinstance(store, SQLiteMappingStore)
            assert store.mode is StoreMode.READ_ONLY
        finally:
            store.close()


# ============================================================
# MODE TESTS
# ============================================================

class TestModes:
    """Tests for per-mode operation sets."""

    def test_put_rejected_in_read_only(self, populated):
        """Test a read-only store refuses writes."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            with pytest.raises(StoreModeError):
                store.put("4___abcd", b"seq4")

    def test_get_rejected_in_write_mode(self, db_path):
        """Test a write store refuses lookups."""
        with SQLiteMappingStore(db_path, StoreMode.WRITE) as store:
            store.put("1___ab", b"x")
            with pytest.raises(StoreModeError):
                store.get("1___ab")
            store.finalize()

    def test_finalize_is_noop_in_read_only(self, populated):
        """Test finalize on a read-only store does nothing."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            store.finalize()
            assert store.count() == 3

    def test_read_only_store_does_not_modify_file(self, populated):
        """Test decode never writes the store file."""
        with open(populated, "rb") as f:
            before = f.read()

        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            store.get("1___a94a8fe5")
            store.lookup("9___ffff")

        with open(populated, "rb") as f:
            assert f.read() == before


# ============================================================
# WRITE PATH TESTS
# ============================================================

class TestWritePath:
    """Tests for put and finalize."""

    def test_duplicate_identifier_rejected(self, db_path):
        """Test a second put of the same identifier fails."""
        with SQLiteMappingStore(db_path, StoreMode.WRITE) as store:
            store.put("1___ab", b"first")

            with pytest.raises(StoreWriteError, match="duplicate identifier"):
                store.put("1___ab", b"second")

            assert store.count() == 1
            store.finalize()

    def test_put_after_finalize_rejected(self, db_path):
        """Test the store is sealed after finalize."""
        with SQLiteMappingStore(db_path, StoreMode.WRITE) as store:
            store.put("1___ab", b"x")
            store.finalize()

            with pytest.raises(StoreWriteError):
                store.put("2___cd", b"y")

    def test_finalize_idempotent(self, db_path):
        """Test finalize may be called twice."""
        with SQLiteMappingStore(db_path, StoreMode.WRITE) as store:
            store.put("1___ab", b"x")
            store.finalize()
            store.finalize()

        with SQLiteMappingStore(db_path, StoreMode.READ_ONLY) as store:
            assert store.get("1___ab") == b"x"

    def test_finalize_builds_index(self, populated):
        """Test the lookup index exists after finalize."""
        conn = sqlite3.connect(populated)
        try:
            names = [row[0] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index'"
            )]
        finally:
            conn.close()

        assert MAPPINGS_INDEX in names

    def test_creates_parent_directory(self, tmp_path):
        """Test missing parent directories are created."""
        location = str(tmp_path / "runs" / "2024" / "map.db")

        build_store(location, {"1___ab": b"x"})

        with SQLiteMappingStore(location, StoreMode.READ_ONLY) as store:
            assert store.count() == 1


# ============================================================
# OPEN POLICY TESTS
# ============================================================

class TestOpenPolicy:
    """Tests for opening and overwriting."""

    def test_read_only_requires_existing_file(self, db_path):
        """Test decode without a store fails to open."""
        with pytest.raises(StoreOpenError, match="no mapping store found"):
            SQLiteMappingStore(db_path, StoreMode.READ_ONLY)

    def test_read_only_requires_mappings_table(self, db_path):
        """Test an unrelated SQLite file is refused."""
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE TABLE other (x INTEGER)")
        conn.commit()
        conn.close()

        with pytest.raises(StoreOpenError):
            SQLiteMappingStore(db_path, StoreMode.READ_ONLY)

    def test_write_truncates_existing_store(self, populated):
        """Test a new encode replaces previous mappings."""
        build_store(populated, {"1___ffff": b"new"})

        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert store.count() == 1
            assert store.lookup("1___a94a8fe5") is None

    def test_no_overwrite_refuses_existing_store(self, populated):
        """Test overwrite=False keeps an existing store intact."""
        with pytest.raises(StoreOpenError, match="already exists"):
            SQLiteMappingStore(populated, StoreMode.WRITE, overwrite=False)

        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert store.count() == 3

    def test_no_overwrite_allows_new_store(self, db_path):
        """Test overwrite=False still creates a missing store."""
        store = SQLiteMappingStore(db_path, StoreMode.WRITE, overwrite=False)
        store.finalize()
        store.close()

        with SQLiteMappingStore(db_path, StoreMode.READ_ONLY) as store:
            assert store.count() == 0


# ============================================================
# LIFECYCLE TESTS
# ============================================================

class TestLifecycle:
    """Tests for close."""

    def test_close_idempotent(self, populated):
        """Test close may be called repeatedly."""
        store = SQLiteMappingStore(populated, StoreMode.READ_ONLY)
        store.close()
        store.close()

        assert store.closed is True

    def test_operations_after_close_fail(self, populated):
        """Test a closed store refuses lookups."""
        store = SQLiteMappingStore(populated, StoreMode.READ_ONLY)
        store.close()

        with pytest.raises(StoreError):
            store.get("1___a94a8fe5")

    def test_repr(self, populated):
        """Test repr shows location and mode."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY) as store:
            assert repr(store) == f"SQLiteMappingStore(location={populated!r}, mode=read_only)"


# ============================================================
# CONCURRENCY TESTS
# ============================================================

class TestConcurrentReads:
    """Tests for lookups from many threads."""

    def test_parallel_gets(self, db_path):
        """Test concurrent lookups all return correct headers."""
        mappings = {f"{i}___{i:06x}": b"header %d" % i for i in range(1, 501)}
        build_store(db_path, mappings)

        with SQLiteMappingStore(db_path, StoreMode.READ_ONLY, pool_size=8) as store:
            with ThreadPoolExecutor(max_workers=8) as executor:
                results = list(executor.map(store.get, mappings))

        assert results == list(mappings.values())

    def test_parallel_misses(self, populated):
        """Test concurrent misses stay per-lookup."""
        with SQLiteMappingStore(populated, StoreMode.READ_ONLY, pool_size=4) as store:
            with ThreadPoolExecutor(max_workers=4) as executor:
                results = list(executor.map(store.lookup, [f"{i}___0" for i in range(100)]))

        assert results == [None] * 100
