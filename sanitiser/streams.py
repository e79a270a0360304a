"""
Sanitiser - Stream helpers.

Byte-level line reading and writing shared by the encoder and
decoder. OS-level failures are converted to the stream errors
of core.exceptions so the orchestrator can report them.
"""

from typing import BinaryIO, Iterator

from core.exceptions import InputStreamError, OutputStreamError


def strip_terminator(raw: bytes) -> bytes:
    """Remove one trailing '\\n' or '\\r\\n'."""
    if raw.endswith(b"\r\n"):
        return raw[:-2]
    if raw.endswith(b"\n"):
        return raw[:-1]
    return raw


def iter_lines(stream: BinaryIO) -> Iterator[bytes]:
    """Yield lines of stream without their terminators."""
    try:
        for raw in stream:
            yield strip_terminator(raw)
    except OSError as e:
        raise InputStreamError(f"Error reading input: {e}", cause=e) from e


def write_bytes(stream: BinaryIO, data: bytes) -> None:
    try:
        stream.write(data)
    except (OSError, ValueError) as e:
        raise OutputStreamError(f"Error writing output: {e}", cause=e) from e


def flush(stream: BinaryIO) -> None:
    try:
        stream.flush()
    except (OSError, ValueError) as e:
        raise OutputStreamError(f"Error flushing output: {e}", cause=e) from e
