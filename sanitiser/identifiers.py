"""
Sanitiser - Identifier Generator.

============================================================
IDENTIFIER FORMAT
============================================================
{index}___{digest}

- index: 1-based record position, unique within a run
- digest: hex SHA-1 of the raw sequence bytes, truncated to
  trim_length characters (1..40)

IDENTIFIER_PATTERN matches the same shape inside arbitrary
text during decode.

============================================================
"""

import hashlib
import re

from core.constants import IDENTIFIER_SEPARATOR, MAX_TRIM_LENGTH, MIN_TRIM_LENGTH
from core.exceptions import TrimRangeError


IDENTIFIER_PATTERN = re.compile(
    rb"\d+" + re.escape(IDENTIFIER_SEPARATOR.encode("ascii")) + rb"[0-9a-f]+"
)


def validate_trim_length(trim_length: int) -> int:
    """
    Check trim_length once per run, before any record is processed.

    Raises:
        TrimRangeError if trim_length is not an int in [1, 40]
    """
    if (
        isinstance(trim_length, bool)
        or not isinstance(trim_length, int)
        or not MIN_TRIM_LENGTH <= trim_length <= MAX_TRIM_LENGTH
    ):
        raise TrimRangeError(trim_length, MIN_TRIM_LENGTH, MAX_TRIM_LENGTH)
    return trim_length


def sequence_digest(sequence: bytes) -> str:
    return hashlib.sha1(sequence).hexdigest()


def generate_identifier(sequence: bytes, index: int, trim_length: int) -> str:
    """
    Build the identifier replacing a record header.

    Pure function; trim_length is assumed validated.
    """
    return f"{index}{IDENTIFIER_SEPARATOR}{sequence_digest(sequence)[:trim_length]}"
