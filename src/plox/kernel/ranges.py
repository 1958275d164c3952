"""Time window resolution for panels.

Two steps:
1. per panel, merge the spans of its lines according to the panel's
   time_range_mode (full: union, best-fit: overlap);
2. across panels, reconcile windows according to the alignment mode, unless
   an explicit time range override replaces everything.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional, Sequence, Union

from .errors import ConfigurationError, DisjointTimeWindowError, EmptyTimeRangeError
from .extractor import Sample
from .layout import ResolvedPanel, TimeWindow
from .spec import PanelAlignmentMode, PanelRangeMode
from .timestamp import TimestampFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RelativeRange:
    """Fractional window over the full data span, 0.0 <= start < end <= 1.0."""
    start: float
    end: float

    def __post_init__(self):
        if not (0.0 <= self.start <= 1.0 and 0.0 <= self.end <= 1.0) or self.start >= self.end:
            raise ConfigurationError("Relative range must be between 0.0 and 1.0, and start < end")


@dataclass(frozen=True)
class AbsoluteRange:
    """Two timestamps, parsed with the run's timestamp format."""
    start: str
    end: str


TimeRangeOverride = Union[RelativeRange, AbsoluteRange]


def parse_time_range(text: str) -> TimeRangeOverride:
    """Parse `--time-range` input: `0.1,0.5` or `<timestamp>,<timestamp>`."""
    pieces = [p.strip() for p in text.split(",")]
    if len(pieces) != 2:
        raise ConfigurationError("Expected two values separated by a comma")
    try:
        a, b = float(pieces[0]), float(pieces[1])
    except ValueError:
        return AbsoluteRange(pieces[0], pieces[1])
    return RelativeRange(a, b)


def _scale(duration: timedelta, frac: float) -> timedelta:
    micros = duration // timedelta(microseconds=1)
    return timedelta(microseconds=round(micros * frac))


def resolve_override(
    override: TimeRangeOverride,
    total: TimeWindow,
    timestamp_format: TimestampFormat,
) -> TimeWindow:
    """Turn a time range override into concrete timestamps."""
    if isinstance(override, RelativeRange):
        duration = total[1] - total[0]
        return total[0] + _scale(duration, override.start), total[0] + _scale(duration, override.end)
    try:
        start = timestamp_format.parse(override.start)
        end = timestamp_format.parse(override.end)
    except ValueError as e:
        raise ConfigurationError(f"Invalid time range: {e}") from e
    if start > end:
        raise ConfigurationError(f"Invalid time range: start {start} is after end {end}")
    return start, end


def series_span(samples: Sequence[Sample]) -> Optional[TimeWindow]:
    """(first, last) timestamp of a series, None if it is empty."""
    if not samples:
        return None
    return min(s.timestamp for s in samples), max(s.timestamp for s in samples)


def panel_window(
    mode: PanelRangeMode,
    spans: Sequence[Optional[TimeWindow]],
    labels: Sequence[str],
    panel_label: str = "panel",
) -> Optional[TimeWindow]:
    """Merge line spans into one panel window.

    Lines without data are ignored; a panel with no data has no window.
    """
    present = [(span, label) for span, label in zip(spans, labels) if span is not None]
    if not present:
        logger.debug("Empty range for %s", panel_label)
        return None
    starts = [span[0] for span, _ in present]
    ends = [span[1] for span, _ in present]

    if mode == PanelRangeMode.FULL:
        return min(starts), max(ends)

    start, end = max(starts), min(ends)
    if start > end:
        raise DisjointTimeWindowError(panel_label, [label for _, label in present], start, end)
    return start, end


def align_windows(
    windows: Sequence[Optional[TimeWindow]],
    mode: PanelAlignmentMode,
    labels: Sequence[str],
) -> List[Optional[TimeWindow]]:
    """Reconcile panel windows. Panels without a window are left untouched."""
    present = [w for w in windows if w is not None]
    if mode == PanelAlignmentMode.PER_PANEL or not present:
        return list(windows)

    if mode == PanelAlignmentMode.SHARED_FULL:
        shared = (min(w[0] for w in present), max(w[1] for w in present))
    else:
        shared = (max(w[0] for w in present), min(w[1] for w in present))
        if shared[0] > shared[1]:
            members = [label for w, label in zip(windows, labels) if w is not None]
            raise DisjointTimeWindowError("all panels (shared-overlap)", members, shared[0], shared[1])

    logger.debug("%s alignment found range %s - %s", mode.value, shared[0], shared[1])
    return [shared if w is not None else None for w in windows]


def global_span(spans: Sequence[Optional[TimeWindow]]) -> TimeWindow:
    present = [s for s in spans if s is not None]
    if not present:
        raise EmptyTimeRangeError()
    return min(s[0] for s in present), max(s[1] for s in present)


def resolve_time_windows(
    panels: Sequence[ResolvedPanel],
    line_spans: Sequence[Sequence[Optional[TimeWindow]]],
    alignment_mode: Optional[PanelAlignmentMode] = None,
    override: Optional[TimeRangeOverride] = None,
    timestamp_format: Optional[TimestampFormat] = None,
) -> List[ResolvedPanel]:
    """Compute and reconcile windows; returns panels with time_range set.

    `line_spans[i][j]` is the span of line j of panel i.

    Raises:
        ConfigurationError: both an override and an alignment mode were given
        EmptyTimeRangeError: no line produced any sample
        DisjointTimeWindowError: a best-fit or shared-overlap window is empty
    """
    if override is not None and alignment_mode is not None:
        raise ConfigurationError("--time-range conflicts with --panel-alignment-mode")

    total = global_span([span for spans in line_spans for span in spans])
    logger.debug("Global total range %s - %s", total[0], total[1])

    if override is not None:
        window = resolve_override(override, total, timestamp_format or TimestampFormat())
        logger.debug("Fixed time range %s - %s", window[0], window[1])
        return [p.with_time_range(window) for p in panels]

    labels = [_panel_label(p) for p in panels]
    windows = [
        panel_window(
            panel.panel.range_mode,
            spans,
            [rl.title(True) for rl in panel.lines],
            label,
        )
        for panel, spans, label in zip(panels, line_spans, labels)
    ]
    mode = alignment_mode or PanelAlignmentMode.PER_PANEL
    logger.debug("Resolved panel alignment mode %s", mode.value)
    aligned = align_windows(windows, mode, labels)
    return [p.with_time_range(w) for p, w in zip(panels, aligned)]


def _panel_label(panel: ResolvedPanel) -> str:
    label = f"panel {panel.panel_index}"
    if panel.panel.panel_title:
        label += f" '{panel.panel.panel_title}'"
    if panel.input_file is not None:
        label += f" [{panel.input_file.name}]"
    return label
