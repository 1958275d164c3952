"""Kernel exceptions.

Every error carries an ErrorCode so callers (CLI, validate()) can report
failures without matching on message text.
"""

from pathlib import Path
from typing import Optional, Sequence

from plox.codes import ErrorCode


class PloxError(Exception):
    """Base exception for all plox kernel errors."""
    code: ErrorCode = ErrorCode.INVALID_CONFIGURATION


class ConfigurationError(PloxError):
    """Raised for malformed config documents or conflicting options."""
    code = ErrorCode.INVALID_CONFIGURATION


class PatternCompileError(ConfigurationError):
    """Raised when a user supplied regex does not compile."""
    code = ErrorCode.PATTERN_COMPILE_ERROR

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid regex '{pattern}': {reason}")


class AmbiguousCaptureGroupsError(ConfigurationError):
    """Raised when a field regex declares more than two capture groups."""
    code = ErrorCode.AMBIGUOUS_CAPTURE_GROUPS

    def __init__(self, pattern: str, groups: int):
        self.pattern = pattern
        self.groups = groups
        super().__init__(
            f"Field regex shall have 1 or 2 capture groups (value, unit), got {groups}. Regex: {pattern}"
        )


class UnresolvedBindingError(ConfigurationError):
    """Raised when a line's file binding cannot be resolved to an input file."""
    code = ErrorCode.UNRESOLVED_BINDING

    def __init__(self, message: str, file_id: Optional[int] = None):
        self.file_id = file_id
        super().__init__(message)


class EmptyPanelError(ConfigurationError):
    """Raised when a panel resolves to zero lines."""
    code = ErrorCode.EMPTY_PANEL

    def __init__(self, panel_index: int, input_file: Optional[Path] = None):
        self.panel_index = panel_index
        self.input_file = input_file
        where = f" (duplicate for '{input_file}')" if input_file is not None else ""
        super().__init__(f"Panel {panel_index}{where} has no lines")


class InvalidTimestampError(PloxError):
    """Raised when a guard-matching line has no parsable timestamp prefix."""
    code = ErrorCode.INVALID_TIMESTAMP

    def __init__(self, path: Path, timestamp_format: str, line: str):
        self.path = path
        self.timestamp_format = timestamp_format
        self.line = line
        super().__init__(
            f"Timestamp extraction failed: file: '{path}' format: '{timestamp_format}' line: '{line}'"
        )


class InputFileError(PloxError):
    """Raised when an input log file cannot be read."""
    code = ErrorCode.INPUT_FILE_ERROR

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid input file '{path}': {reason}")


class DisjointTimeWindowError(PloxError):
    """Raised when an overlap window (best-fit / shared-overlap) is empty."""
    code = ErrorCode.DISJOINT_TIME_WINDOW

    def __init__(self, scope: str, members: Sequence[str], start, end):
        self.scope = scope
        self.members = list(members)
        self.start = start
        self.end = end
        members_str = ", ".join(self.members)
        super().__init__(
            f"No overlapping time window for {scope}: latest start {start} is after earliest end {end}"
            f"\n  Members: {members_str}"
        )


class EmptyTimeRangeError(PloxError):
    """Raised when no line produced any sample."""
    code = ErrorCode.EMPTY_TIME_RANGE

    def __init__(self):
        super().__init__("Empty ranges for all lines. No data or bad timestamp or bad regex?")


class CacheWriteFailure(PloxError):
    """Cache entry could not be persisted.

    Never propagated out of the cache: it is logged and the freshly
    extracted samples are served uncached.
    """
    code = ErrorCode.CACHE_WRITE_FAILURE

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Could not write cache file '{path}': {reason}")
