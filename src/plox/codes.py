"""Error code constants for plox.

These constants prevent stringly-typed error codes and ensure
client code uses the correct codes when inspecting failures.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Error and warning codes."""

    # Configuration errors (raised before any file is scanned)
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    PATTERN_COMPILE_ERROR = "PATTERN_COMPILE_ERROR"
    AMBIGUOUS_CAPTURE_GROUPS = "AMBIGUOUS_CAPTURE_GROUPS"
    UNRESOLVED_BINDING = "UNRESOLVED_BINDING"
    EMPTY_PANEL = "EMPTY_PANEL"

    # Data errors
    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    INPUT_FILE_ERROR = "INPUT_FILE_ERROR"
    DISJOINT_TIME_WINDOW = "DISJOINT_TIME_WINDOW"
    EMPTY_TIME_RANGE = "EMPTY_TIME_RANGE"

    # Warnings (non-blocking)
    CACHE_WRITE_FAILURE = "CACHE_WRITE_FAILURE"
    NO_MATCHES = "NO_MATCHES"
    UNUSED_INPUT = "UNUSED_INPUT"
