"""Sample extraction: turns raw log lines into timestamped numeric samples.

Per log line, in strict order (each stage short-circuits):
1. guard: literal substring test,
2. timestamp: parsed from the line prefix,
3. remainder: matched against the line's compiled regex,
4. value: unit-normalized capture (field lines) or event-derived value.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .errors import (
    AmbiguousCaptureGroupsError,
    InputFileError,
    InvalidTimestampError,
    PatternCompileError,
)
from .spec import EventCount, EventDelta, EventValue, FieldValue, Line, LineKind
from .timestamp import TimestampFormat
from .units import normalize_value

logger = logging.getLogger(__name__)

NUMERIC_LITERAL = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"


@dataclass(frozen=True)
class Sample:
    """One data point: timestamp, plotted value and 1-based match ordinal."""
    timestamp: datetime
    value: float
    count: int


@dataclass(frozen=True)
class MatchResult:
    """A line that passed the guard, carried a timestamp and matched the regex."""
    timestamp: datetime
    remainder: str
    value_text: Optional[str] = None
    unit_text: Optional[str] = None


def _field_capture_groups(field: str) -> Optional[int]:
    """Number of capture groups if `field` compiles as a regex, else None."""
    try:
        return re.compile(field).groups
    except re.error:
        return None


def classify(line: Line) -> LineKind:
    """Resolve the extraction kind of a line.

    A field that compiles as a regex with one or two capture groups is a
    regex capture; anything else is treated as a literal field name.
    """
    ds = line.data_source
    if isinstance(ds, EventValue):
        return LineKind.EVENT_MARKER
    if isinstance(ds, EventCount):
        return LineKind.EVENT_COUNT
    if isinstance(ds, EventDelta):
        return LineKind.EVENT_DELTA
    groups = _field_capture_groups(ds.field)
    if groups is not None and groups > 2:
        raise AmbiguousCaptureGroupsError(ds.field, groups)
    if groups in (1, 2):
        return LineKind.REGEX_CAPTURE
    return LineKind.NUMERIC_FIELD


def regex_pattern(line: Line) -> str:
    """The regex actually used for matching the remainder of a log line."""
    kind = classify(line)
    if kind == LineKind.NUMERIC_FIELD:
        name = re.escape(line.data_source.field)
        return rf"(?<!\w){name}[:=]\s*({NUMERIC_LITERAL})(\w+)?"
    return line.pattern


def compile_line(line: Line) -> "re.Pattern[str]":
    """Compile the line's regex, raising configuration errors up front."""
    pattern = regex_pattern(line)
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternCompileError(pattern, str(e)) from e


class SampleExtractor:
    """Stateful per-(file, line) matcher.

    Holds the running match count and the previous match timestamp, so one
    instance must be used for exactly one pass over one file.
    """

    def __init__(
        self,
        line: Line,
        timestamp_format: TimestampFormat,
        allow_invalid_timestamps: bool = False,
        source: Optional[Path] = None,
    ):
        self.line = line
        self.kind = classify(line)
        self.regex = compile_line(line)
        self.timestamp_format = timestamp_format
        self.allow_invalid_timestamps = allow_invalid_timestamps
        self.source = source
        self.count = 0
        self.last_timestamp: Optional[datetime] = None
        self.invalid_timestamps = 0

    def guard_matches(self, text: str) -> bool:
        guard = self.line.guard
        return guard is None or guard in text

    def match(self, text: str) -> Optional[MatchResult]:
        """Run guard, timestamp and regex stages; None if the line is skipped."""
        if not self.guard_matches(text):
            return None

        parsed = self.timestamp_format.parse_prefix(text)
        if parsed is None:
            self.invalid_timestamps += 1
            if not self.allow_invalid_timestamps:
                raise InvalidTimestampError(self.source or Path("<input>"), self.timestamp_format.fmt, text)
            logger.debug("Skipping line without valid timestamp: %r", text)
            return None
        timestamp, remainder = parsed

        m = self.regex.search(remainder)
        if m is None:
            return None

        value_text = unit_text = None
        if isinstance(self.line.data_source, FieldValue):
            value_text = m.group(1)
            if self.regex.groups >= 2:
                unit_text = m.group(2)
        return MatchResult(timestamp, remainder, value_text, unit_text)

    def feed(self, text: str) -> Optional[Sample]:
        """Process one log line, returning a sample or None."""
        result = self.match(text)
        if result is None:
            return None
        return self.process(result)

    def process(self, result: MatchResult) -> Optional[Sample]:
        self.count += 1
        previous, self.last_timestamp = self.last_timestamp, result.timestamp

        ds = self.line.data_source
        if isinstance(ds, EventValue):
            value = ds.yvalue
        elif isinstance(ds, EventCount):
            value = float(self.count)
        elif isinstance(ds, EventDelta):
            if previous is None:
                return None
            value = (result.timestamp - previous).total_seconds() * 1000.0
        else:
            value = normalize_value(result.value_text, result.unit_text)
            if value is None:
                logger.debug("Captured value %r is not a number", result.value_text)
                return None

        return Sample(result.timestamp, value, self.count)


def iter_log_lines(path: Path) -> Iterable[str]:
    """Yield lines of a log file without line terminators."""
    if not path.is_file():
        raise InputFileError(path, "Not a regular file")
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for raw in f:
                yield raw.rstrip("\r\n")
    except OSError as e:
        raise InputFileError(path, str(e)) from e


def extract_samples(
    path: Path,
    line: Line,
    timestamp_format: TimestampFormat,
    allow_invalid_timestamps: bool = False,
) -> List[Sample]:
    """Scan `path` once and return the line's samples ordered by timestamp.

    Ties keep input order.
    """
    extractor = SampleExtractor(line, timestamp_format, allow_invalid_timestamps, source=path)
    samples: List[Sample] = []
    for text in iter_log_lines(path):
        sample = extractor.feed(text)
        if sample is not None:
            samples.append(sample)

    samples.sort(key=lambda s: s.timestamp)

    if extractor.invalid_timestamps:
        logger.info(
            "Skipped %d lines with invalid timestamps in %s (format: %s)",
            extractor.invalid_timestamps, path, timestamp_format,
        )
    if not samples:
        logger.warning(
            "No matches. input_file=%s guard=%r regex=%s", path, line.guard, extractor.regex.pattern
        )
    else:
        logger.debug("Processed %s, regex: %s, matched %d", path, extractor.regex.pattern, len(samples))
    return samples


def preview_matches(
    path: Path,
    line: Line,
    timestamp_format: TimestampFormat,
    limit: int = 10,
) -> List[Tuple[str, Optional[MatchResult], Optional[Sample]]]:
    """Return (log line, match, sample) for the first `limit` guard-matching lines.

    Invalid timestamps do not abort the preview; they show up as a None match.
    """
    extractor = SampleExtractor(line, timestamp_format, allow_invalid_timestamps=True, source=path)
    previews = []
    for text in iter_log_lines(path):
        if not extractor.guard_matches(text):
            continue
        result = extractor.match(text)
        sample = extractor.process(result) if result is not None else None
        previews.append((text, result, sample))
        if len(previews) >= limit:
            break
    return previews
