"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the FASTA sanitiser.

- Provides clear exception hierarchy
- Separates fatal errors from recoverable lookup misses
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
SanitiserException (base)
├── ConfigurationError
│   ├── TrimRangeError
│   └── InvalidConfigError
├── InputFormatError
├── StreamError
│   ├── InputStreamError
│   └── OutputStreamError
├── StoreError
│   ├── StoreOpenError
│   ├── StoreWriteError
│   ├── StoreFinalizeError
│   ├── StoreReadError
│   └── StoreModeError
└── LookupMissError (recoverable)

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, the run continues."""

    HIGH = "high"
    """Serious issue, the run is aborted."""

    CRITICAL = "critical"
    """Store or stream corruption, the run is aborted."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Error is reported and processing continues."""

    NON_RECOVERABLE = "non_recoverable"
    """Error aborts the run."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class SanitiserException(Exception):
    """
    Base exception for all sanitiser errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - recoverable: whether the pipeline keeps going
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.HIGH
    default_recoverable: bool = False
    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(SanitiserException):
    """Error in configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class TrimRangeError(ConfigurationError):
    """Trim length is outside the digest length."""

    def __init__(self, trim_length: Any, minimum: int, maximum: int):
        super().__init__(
            message=f"trim value must be between {minimum} and {maximum}",
            config_key="trim_length",
            actual_value=trim_length,
        )
        self.trim_length = trim_length


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# INPUT ERRORS
# ============================================================

class InputFormatError(SanitiserException):
    """Input stream does not start with a FASTA header."""

    def __init__(self, message: str, line_number: Optional[int] = None, **kwargs):
        context = kwargs.pop("context", {})
        if line_number is not None:
            context["line_number"] = line_number
        super().__init__(message, context=context, **kwargs)
        self.line_number = line_number


# ============================================================
# STREAM ERRORS
# ============================================================

class StreamError(SanitiserException):
    """Base class for read/write failures on the data streams."""


class InputStreamError(StreamError):
    """Reading the input stream failed."""


class OutputStreamError(StreamError):
    """Writing the output stream failed."""


# ============================================================
# STORE ERRORS
# ============================================================

class StoreError(SanitiserException):
    """Base class for mapping store errors."""

    default_severity = Severity.CRITICAL

    def __init__(self, message: str, location: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if location:
            context["location"] = location
        super().__init__(message, context=context, **kwargs)


class StoreOpenError(StoreError):
    """Store could not be opened in the requested mode."""


class StoreWriteError(StoreError):
    """A mapping could not be persisted."""


class StoreModeError(StoreError):
    """Operation is not allowed in the mode the store was opened with."""


class StoreFinalizeError(StoreError):
    """Commit or index build failed at the end of an encode run."""


class StoreReadError(StoreError):
    """A lookup failed for a reason other than a missing key."""


# ============================================================
# LOOKUP ERRORS
# ============================================================

class LookupMissError(SanitiserException):
    """No mapping exists for an identifier. Never aborts a decode run."""

    default_severity = Severity.MEDIUM
    default_recoverable = True
    default_classification = ErrorClassification.RECOVERABLE

    def __init__(self, new_id: str):
        super().__init__(
            message=f"no mapping found for processed ID: {new_id}",
            context={"new_id": new_id},
        )
        self.new_id = new_id
