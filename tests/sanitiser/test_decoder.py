"""
Decode Engine Tests.

============================================================
PURPOSE
============================================================
Tests for the concurrent, order-preserving decoder.

TEST CATEGORIES:
- Substitution: known, unknown and repeated tokens
- CSV quoting
- Ordering under skewed worker latency
- Failure propagation and thread shutdown

============================================================
"""

import io
import logging
import random
import threading
import time

import pytest

from core.exceptions import (
    InputStreamError,
    InvalidConfigError,
    OutputStreamError,
    StoreReadError,
)
from mapping_store import InMemoryMappingStore, StoreMode
from sanitiser.decoder import DecodeEngine, csv_quote
from sanitiser.encoder import FastaEncoder


# ============================================================
# FIXTURES
# ============================================================

ID_A = "1___aaaa1111"
ID_B = "2___bbbb2222"


def read_store(mappings):
    return InMemoryMappingStore(mode=StoreMode.READ_ONLY, mappings=mappings)


@pytest.fixture
def store():
    """Read-only store with two mappings."""
    return read_store({ID_A: b"seq1 human", ID_B: b'He said "hi"'})


def decode(store, data: bytes, **kwargs) -> bytes:
    output = io.BytesIO()
    DecodeEngine(store, **kwargs).decode(io.BytesIO(data), output)
    return output.getvalue()


class SlowStore(InMemoryMappingStore):
    """Read store with random per-lookup latency."""

    def __init__(self, mappings, max_delay: float, seed: int = 7):
        super().__init__(mode=StoreMode.READ_ONLY, mappings=mappings)
        self._max_delay = max_delay
        self._random = random.Random(seed)
        self._random_lock = threading.Lock()

    def get(self, new_id):
        with self._random_lock:
            delay = self._random.random() * self._max_delay
        time.sleep(delay)
        return super().get(new_id)


class CountingStore(InMemoryMappingStore):
    """Read store counting get() calls."""

    def __init__(self, mappings):
        super().__init__(mode=StoreMode.READ_ONLY, mappings=mappings)
        self.calls = 0

    def get(self, new_id):
        self.calls += 1
        return super().get(new_id)


class BrokenStore(InMemoryMappingStore):
    """Read store whose backend fails."""

    def __init__(self):
        super().__init__(mode=StoreMode.READ_ONLY)

    def get(self, new_id):
        raise StoreReadError("database is locked", location=self.location)


class BrokenOutput(io.BytesIO):
    """Output stream failing after a number of writes."""

    def __init__(self, fail_after: int):
        super().__init__()
        self._remaining = fail_after

    def write(self, data):
        if self._remaining <= 0:
            raise BrokenPipeError("stdout closed")
        self._remaining -= 1
        return super().write(data)


def decode_threads_alive():
    return [t for t in threading.enumerate() if t.name.startswith("decode-")]


# ============================================================
# SUBSTITUTION TESTS
# ============================================================

class TestSubstitution:
    """Tests for token replacement."""

    def test_known_token_replaced(self, store):
        """Test a known identifier is replaced in place."""
        assert decode(store, f"hit {ID_A} 99.1\n".encode()) == b"hit seq1 human 99.1\n"

    def test_lines_without_tokens_unchanged(self, store):
        """Test plain lines pass through."""
        data = b"query\tsubject\tidentity\nno ids here\n"

        assert decode(store, data) == data

    def test_multiple_tokens_per_line(self, store):
        """Test every token in a line is rewritten."""
        line = f"{ID_A}\t{ID_B}\t{ID_A}\n".encode()

        assert decode(store, line) == b'seq1 human\tHe said "hi"\tseq1 human\n'

    def test_unknown_token_left_untouched(self, store):
        """Test graceful miss keeps the token."""
        line = f"{ID_A} 9___dead {ID_B}\n".encode()

        assert decode(store, line) == b'seq1 human 9___dead He said "hi"\n'

    def test_one_warning_per_missing_occurrence(self, store, caplog):
        """Test each missing occurrence is reported once."""
        caplog.set_level(logging.WARNING, logger="sanitiser.decoder")

        decode(store, b"9___dead and 9___dead\n7___beef\n", workers=2)

        warnings = [r.getMessage() for r in caplog.records if "Could not decode ID" in r.getMessage()]
        assert len(warnings) == 3
        assert sum("9___dead" in w for w in warnings) == 2
        assert all("no mapping found for processed ID" in w for w in warnings)

    def test_repeated_token_looked_up_once_per_line(self):
        """Test lookups are memoized within a line."""
        store = CountingStore({ID_A: b"x"})

        decode(store, f"{ID_A} {ID_A} {ID_A}\n".encode(), workers=1)

        assert store.calls == 1

    def test_token_embedded_in_longer_text(self, store):
        """Test tokens are found inside surrounding characters."""
        assert decode(store, f"[{ID_A}]\n".encode()) == b"[seq1 human]\n"

    def test_line_count_preserved(self, store):
        """Test output has exactly as many lines as input."""
        data = b"a\n\nb\n\n\n" + f"{ID_A}\n".encode()

        assert decode(store, data).count(b"\n") == data.count(b"\n")

    def test_crlf_and_missing_final_newline_normalized(self, store):
        """Test every output line ends with a single newline."""
        assert decode(store, f"a\r\n{ID_A}".encode()) == b"a\nseq1 human\n"

    def test_empty_input(self, store):
        """Test empty input produces empty output."""
        assert decode(store, b"") == b""

    def test_rewrite_line(self, store):
        """Test single line helper."""
        engine = DecodeEngine(store, workers=1)

        assert engine.rewrite_line(f"x {ID_A}".encode()) == b"x seq1 human"


# ============================================================
# CSV QUOTING TESTS
# ============================================================

class TestCsvQuoting:
    """Tests for CSV-safe restoration."""

    def test_csv_quote(self):
        """Test inner quotes are doubled and value wrapped."""
        assert csv_quote(b'He said "hi"') == b'"He said ""hi"""'

    def test_csv_quote_plain(self):
        """Test plain values are still wrapped."""
        assert csv_quote(b"seq1") == b'"seq1"'

    def test_csv_safe_decode(self, store):
        """Test restored headers are quoted in CSV mode."""
        line = f"{ID_B},{ID_A},9___dead\n".encode()

        result = decode(store, line, csv_safe=True)

        assert result == b'"He said ""hi""","seq1 human",9___dead\n'

    def test_plain_mode_does_not_quote(self, store):
        """Test quotes are kept verbatim outside CSV mode."""
        assert decode(store, f"{ID_B}\n".encode()) == b'He said "hi"\n'


# ============================================================
# ORDERING TESTS
# ============================================================

class TestOrdering:
    """Tests for order preservation."""

    @pytest.mark.parametrize("workers", [1, 2, 4, 8])
    def test_order_preserved_with_skewed_latency(self, workers):
        """Test output order equals input order regardless of completion order."""
        mappings = {f"{i}___{i:04x}": b"header-%d" % i for i in range(1, 201)}
        store = SlowStore(mappings, max_delay=0.002)
        data = b"".join(b"line %d %s\n" % (i, new_id.encode()) for i, new_id in enumerate(mappings, 1))
        expected = b"".join(b"line %d header-%d\n" % (i, i) for i in range(1, 201))

        output = io.BytesIO()
        stats = DecodeEngine(store, workers=workers, queue_size=3).decode(io.BytesIO(data), output)

        assert output.getvalue() == expected
        assert stats.lines == 200
        assert stats.replaced == 200

    def test_stats(self, store):
        """Test counters reflect the run."""
        output = io.BytesIO()

        stats = DecodeEngine(store, workers=2).decode(
            io.BytesIO(f"{ID_A}\n9___dead {ID_B}\nplain\n".encode()), output,
        )

        assert stats.lines == 3
        assert stats.tokens == 3
        assert stats.replaced == 2
        assert stats.misses == 1


# ============================================================
# ROUND TRIP TESTS
# ============================================================

class TestRoundTrip:
    """Tests for encode followed by decode."""

    def test_encoded_fasta_decodes_to_original_layout(self):
        """Test decode restores headers of encoded output."""
        original = b">seq1 Homo sapiens\nACGT\n>seq2 \"quoted\"\nTTTT\n>seq3\nGGGG\n"
        write_store = InMemoryMappingStore(mode=StoreMode.WRITE)
        encoded = io.BytesIO()
        FastaEncoder(write_store, trim_length=10).encode(io.BytesIO(original), encoded)

        restored = decode(write_store.as_read_only(), encoded.getvalue(), workers=3)

        assert restored == original


# ============================================================
# FAILURE TESTS
# ============================================================

class TestFailures:
    """Tests for fail-fast shutdown."""

    @pytest.mark.parametrize("workers", [0, -2])
    def test_invalid_worker_count(self, store, workers):
        """Test worker count must be positive."""
        with pytest.raises(InvalidConfigError):
            DecodeEngine(store, workers=workers)

    def test_invalid_queue_size(self, store):
        """Test queue size must be positive."""
        with pytest.raises(InvalidConfigError):
            DecodeEngine(store, workers=2, queue_size=0)

    def test_output_failure_stops_all_threads(self, store):
        """Test a write error aborts the pipeline and joins threads."""
        data = b"".join(f"{i} {ID_A}\n".encode() for i in range(2000))

        with pytest.raises(OutputStreamError):
            DecodeEngine(store, workers=4, queue_size=2).decode(
                io.BytesIO(data), BrokenOutput(fail_after=5),
            )

        assert decode_threads_alive() == []

    def test_input_failure_propagates(self, store):
        """Test a read error after some lines aborts the run."""
        class BrokenInput(io.BytesIO):
            def __iter__(self):
                yield b"first line\n"
                raise OSError("read error")

        with pytest.raises(InputStreamError, match="read error"):
            DecodeEngine(store, workers=2).decode(BrokenInput(), io.BytesIO())

        assert decode_threads_alive() == []

    def test_store_failure_propagates(self):
        """Test backend errors are fatal, unlike misses."""
        with pytest.raises(StoreReadError, match="database is locked"):
            decode(BrokenStore(), b"ok\n1___abc\n", workers=2)

        assert decode_threads_alive() == []
