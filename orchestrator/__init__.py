"""
Orchestrator Package.

Entry point for encode/decode/dump runs: logging setup,
configuration, store lifecycle and exit codes.
"""

from .core import (
    EXIT_FAILURE,
    EXIT_INTERRUPTED,
    EXIT_OK,
    SanitiserRunner,
    open_input,
    setup_logging,
    should_quote_csv,
)


__all__ = [
    "EXIT_FAILURE",
    "EXIT_INTERRUPTED",
    "EXIT_OK",
    "SanitiserRunner",
    "open_input",
    "setup_logging",
    "should_quote_csv",
]
