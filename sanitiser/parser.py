"""
Sanitiser - FASTA Record Parser.

============================================================
RESPONSIBILITY
============================================================
Streaming state machine that splits a byte stream into
(header, sequence) records.

RULES:
- Blank lines and lines starting with '#' or ';' are skipped,
  also when they sit inside a sequence body
- A '>' line closes the current record and opens a new one
- Any other line is appended to the current sequence
- The first significant line MUST be a header, otherwise the
  whole stream is rejected before any record is emitted

============================================================
"""

import itertools
import logging
from typing import BinaryIO, Iterable, Iterator, Optional

from core.constants import COMMENT_PREFIXES, HEADER_PREFIX
from core.exceptions import InputFormatError, InputStreamError
from .models import Record
from .streams import iter_lines, strip_terminator


logger = logging.getLogger(__name__)


NOT_A_HEADER = "input does not start with a FASTA header ('>')"
NO_HEADER = "input contains no FASTA header ('>')"


def is_skipped(line: bytes) -> bool:
    """Blank or comment line, invisible to the state machine."""
    return not line.strip() or line.startswith(COMMENT_PREFIXES)


def require_header(stream: BinaryIO) -> Iterator[bytes]:
    """
    Check the first significant line of stream before any side effect.

    Reads up to and including the first non-blank, non-comment
    line and returns an iterator replaying those lines followed
    by the rest of the stream, so parse_records sees the input
    unchanged.

    Raises:
        InputFormatError: first significant line is not a header,
            or the stream has no header at all
        InputStreamError: reading the stream failed
    """
    consumed = []
    try:
        for line_number, raw in enumerate(stream, 1):
            consumed.append(raw)
            line = strip_terminator(raw)
            if is_skipped(line):
                continue
            if not line.startswith(HEADER_PREFIX):
                raise InputFormatError(NOT_A_HEADER, line_number=line_number)
            return itertools.chain(consumed, stream)
    except OSError as e:
        raise InputStreamError(f"Error reading input: {e}", cause=e) from e

    raise InputFormatError(NO_HEADER)


def parse_records(stream: Iterable[bytes]) -> Iterator[Record]:
    """
    Lazily parse FASTA records from stream.

    Args:
        stream: Binary stream positioned at the start of the input

    Yields:
        Record objects in input order, index starting at 1

    Raises:
        InputFormatError: first significant line is not a header,
            or the stream has no header at all
        InputStreamError: reading the stream failed
    """
    header: Optional[bytes] = None
    sequence = bytearray()
    index = 0

    for line_number, line in enumerate(iter_lines(stream), 1):
        if is_skipped(line):
            continue

        if line.startswith(HEADER_PREFIX):
            if header is not None:
                yield Record(header=header, sequence=bytes(sequence), index=index)
            index += 1
            header = line[len(HEADER_PREFIX):]
            sequence = bytearray()
        elif header is None:
            raise InputFormatError(NOT_A_HEADER, line_number=line_number)
        else:
            sequence += line

    if header is None:
        raise InputFormatError(NO_HEADER)

    yield Record(header=header, sequence=bytes(sequence), index=index)
    logger.debug(f"Parsed {index} records")
