"""
Core Module Package.

This package contains the shared infrastructure that all
other modules depend on.

Components:
- exceptions: Custom exception hierarchy
- constants: System-wide constants
"""

from .exceptions import (
    Severity,
    ErrorClassification,
    SanitiserException,
    ConfigurationError,
    TrimRangeError,
    InvalidConfigError,
    InputFormatError,
    StreamError,
    InputStreamError,
    OutputStreamError,
    StoreError,
    StoreOpenError,
    StoreWriteError,
    StoreModeError,
    StoreFinalizeError,
    StoreReadError,
    LookupMissError,
)


__all__ = [
    "Severity",
    "ErrorClassification",
    "SanitiserException",
    "ConfigurationError",
    "TrimRangeError",
    "InvalidConfigError",
    "InputFormatError",
    "StreamError",
    "InputStreamError",
    "OutputStreamError",
    "StoreError",
    "StoreOpenError",
    "StoreWriteError",
    "StoreModeError",
    "StoreFinalizeError",
    "StoreReadError",
    "LookupMissError",
]
