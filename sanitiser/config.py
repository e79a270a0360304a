"""
Sanitiser - Configuration.

============================================================
PURPOSE
============================================================
All run configuration for encode/decode.

SOURCES (later wins):
1. Dataclass defaults
2. .env file and environment variables (from_env)
3. Command-line flags (orchestrator.cli)

ENVIRONMENT VARIABLES:
- SANITISER_TRIM_LENGTH
- SANITISER_STORE
- SANITISER_CSV_SAFE
- SANITISER_WORKERS
- SANITISER_QUEUE_SIZE
- SANITISER_PERSIST_QUEUE_SIZE
- SANITISER_OVERWRITE_STORE
- LOG_LEVEL, LOG_FORMAT

============================================================
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from dotenv import load_dotenv

from core.constants import (
    DEFAULT_PERSIST_QUEUE_SIZE,
    DEFAULT_STORE_LOCATION,
    DEFAULT_TRIM_LENGTH,
    MAX_TRIM_LENGTH,
    MIN_TRIM_LENGTH,
)
from core.exceptions import InvalidConfigError, TrimRangeError


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("text", "json")


class RunMode(Enum):
    """What a process invocation does."""

    ENCODE = "encode"
    """Anonymize FASTA headers, write the store."""

    DECODE = "decode"
    """Restore headers in any text, read the store."""

    DUMP = "dump"
    """List every stored mapping."""


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise InvalidConfigError(name, value, "must be an integer") from e


@dataclass
class SanitiserConfig:
    """Configuration for one encode/decode run."""

    mode: RunMode = RunMode.ENCODE
    """Run mode."""

    trim_length: int = DEFAULT_TRIM_LENGTH
    """Hex characters kept from the SHA-1 digest (1..40)."""

    csv_safe: bool = False
    """Quote restored headers as CSV fields during decode."""

    store_location: str = DEFAULT_STORE_LOCATION
    """Path of the mapping store; decode must use the encode path."""

    workers: Optional[int] = None
    """Decode worker threads (default: CPU count)."""

    queue_size: Optional[int] = None
    """Decode job/result queue capacity (default: 4 per worker)."""

    persist_queue_size: int = DEFAULT_PERSIST_QUEUE_SIZE
    """Encode persistence queue capacity; 0 persists inline."""

    overwrite_store: bool = True
    """Encode truncates an existing store instead of failing."""

    log_level: str = "INFO"
    """Logging level."""

    log_format: str = "text"
    """Logging format (text or json)."""

    @classmethod
    def from_env(cls, mode: RunMode = RunMode.ENCODE) -> "SanitiserConfig":
        """Load configuration from .env and environment variables."""
        load_dotenv()
        return cls(
            mode=mode,
            trim_length=_env_int("SANITISER_TRIM_LENGTH", DEFAULT_TRIM_LENGTH),
            csv_safe=_env_bool("SANITISER_CSV_SAFE", False),
            store_location=os.getenv("SANITISER_STORE") or DEFAULT_STORE_LOCATION,
            workers=_env_int("SANITISER_WORKERS", None),
            queue_size=_env_int("SANITISER_QUEUE_SIZE", None),
            persist_queue_size=_env_int(
                "SANITISER_PERSIST_QUEUE_SIZE", DEFAULT_PERSIST_QUEUE_SIZE
            ),
            overwrite_store=_env_bool("SANITISER_OVERWRITE_STORE", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not MIN_TRIM_LENGTH <= self.trim_length <= MAX_TRIM_LENGTH:
            errors.append(
                f"trim value must be between {MIN_TRIM_LENGTH} and {MAX_TRIM_LENGTH}"
            )
        if not self.store_location:
            errors.append("store location must not be empty")
        if self.workers is not None and self.workers < 1:
            errors.append("workers must be at least 1")
        if self.queue_size is not None and self.queue_size < 1:
            errors.append("queue size must be at least 1")
        if self.persist_queue_size < 0:
            errors.append("persist queue size must not be negative")
        if self.log_level not in LOG_LEVELS:
            errors.append(f"log level must be one of {', '.join(LOG_LEVELS)}")
        if self.log_format not in LOG_FORMATS:
            errors.append(f"log format must be one of {', '.join(LOG_FORMATS)}")

        return errors

    def ensure_valid(self) -> None:
        """
        Raise on the first invalid setting.

        Raises:
            TrimRangeError: trim_length outside [1, 40]
            InvalidConfigError: any other invalid setting
        """
        if not MIN_TRIM_LENGTH <= self.trim_length <= MAX_TRIM_LENGTH:
            raise TrimRangeError(self.trim_length, MIN_TRIM_LENGTH, MAX_TRIM_LENGTH)

        errors = self.validate()
        if errors:
            raise InvalidConfigError("config", self.mode.value, "; ".join(errors))
