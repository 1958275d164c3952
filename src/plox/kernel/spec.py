"""Pydantic models for the graph config with strict validation.

A GraphConfig is what users write (config document or CLI flags): ordered
panels, each holding ordered lines. Nothing here is bound to input files yet;
see bindings.py and layout.py for resolution.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlotStyle(str, Enum):
    LINES = "lines"
    STEPS = "steps"
    POINTS = "points"
    LINES_POINTS = "lines-points"


class DashStyle(str, Enum):
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"
    DASH_DOT = "dash-dot"
    LONG_DASH = "long-dash"


class YAxis(str, Enum):
    """Which Y-axis a line is plotted against (left: y, right: y2)."""
    Y = "y"
    Y2 = "y2"


class AxisScale(str, Enum):
    LINEAR = "linear"
    LOG = "log"


class Color(str, Enum):
    RED = "red"
    BLUE = "blue"
    DARK_GREEN = "dark-green"
    PURPLE = "purple"
    CYAN = "cyan"
    GOLDENROD = "goldenrod"
    BROWN = "brown"
    OLIVE = "olive"
    NAVY = "navy"
    VIOLET = "violet"
    CORAL = "coral"
    SALMON = "salmon"
    STEEL_BLUE = "steel-blue"
    DARK_MAGENTA = "dark-magenta"
    DARK_CYAN = "dark-cyan"
    DARK_YELLOW = "dark-yellow"
    DARK_TURQUOISE = "dark-turquoise"
    YELLOW = "yellow"
    BLACK = "black"
    MAGENTA = "magenta"
    ORANGE = "orange"
    GREEN = "green"
    DARK_ORANGE = "dark-orange"


class MarkerType(str, Enum):
    DOT = "dot"
    TRIANGLE_FILLED = "triangle-filled"
    SQUARE_FILLED = "square-filled"
    DIAMOND_FILLED = "diamond-filled"
    PLUS = "plus"
    CROSS = "cross"
    CIRCLE = "circle"
    X = "x"
    TRIANGLE = "triangle"
    SQUARE = "square"
    DIAMOND = "diamond"


class PanelRangeMode(str, Enum):
    """How a panel's time window is computed from its lines' spans."""
    FULL = "full"  # min start, max end
    BEST_FIT = "best-fit"  # max start, min end


class PanelAlignmentMode(str, Enum):
    """How panel time windows are reconciled across panels."""
    PER_PANEL = "per-panel"
    SHARED_FULL = "shared-full"
    SHARED_OVERLAP = "shared-overlap"


class LineKind(str, Enum):
    NUMERIC_FIELD = "numeric_field"
    REGEX_CAPTURE = "regex_capture"
    EVENT_MARKER = "event_marker"
    EVENT_COUNT = "event_count"
    EVENT_DELTA = "event_delta"


# ---------------------------------------------------------------------------
# Data sources (tagged by `kind`)
# ---------------------------------------------------------------------------

class _DataSourceBase(BaseModel):
    guard: Optional[str] = Field(None, description="Literal substring a log line must contain")

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("guard")
    @classmethod
    def validate_guard(cls, v: Optional[str]) -> Optional[str]:
        """An empty guard would match every line; normalize it to None."""
        return v or None


class FieldValue(_DataSourceBase):
    """Plot a numeric field from logs.

    `field` is either a literal field name (`duration` matches `duration=12ms`
    and `duration: 12ms`) or a regex with one or two capture groups (value,
    optional unit).
    """
    kind: Literal["field_value"] = "field_value"
    field: str

    @property
    def pattern(self) -> str:
        return self.field


class EventValue(_DataSourceBase):
    """Plot a fixed value (`yvalue`) whenever `pattern` appears."""
    kind: Literal["event_value"] = "event_value"
    pattern: str
    yvalue: float


class EventCount(_DataSourceBase):
    """Plot a cumulative count of `pattern` occurrences."""
    kind: Literal["event_count"] = "event_count"
    pattern: str


class EventDelta(_DataSourceBase):
    """Plot the time (ms) between consecutive occurrences of `pattern`."""
    kind: Literal["event_delta"] = "event_delta"
    pattern: str


DataSource = Annotated[
    Union[FieldValue, EventValue, EventCount, EventDelta],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Bindings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Unbound:
    """Line applies to every input file."""


@dataclass(frozen=True)
class BoundToIndex:
    """Line applies to the n-th input file (0-based)."""
    index: int


@dataclass(frozen=True)
class BoundToName:
    """Line applies to an explicit file, listed as input or not."""
    path: Path


LineBinding = Union[Unbound, BoundToIndex, BoundToName]


# ---------------------------------------------------------------------------
# Lines, panels, graph
# ---------------------------------------------------------------------------

class Line(BaseModel):
    """A single line (data series) on a panel.

    Styling fields are opaque to the kernel: they are validated and passed
    through to renderers untouched.
    """
    data_source: DataSource
    file_name: Optional[Path] = Field(None, description="Bind the line to this file")
    file_id: Optional[int] = Field(None, ge=0, description="Bind the line to the n-th input file")
    title: Optional[str] = None
    style: PlotStyle = PlotStyle.LINES
    line_width: Optional[float] = Field(None, gt=0)
    line_color: Optional[Color] = None
    dash_style: Optional[DashStyle] = None
    yaxis: Optional[YAxis] = None
    marker_type: Optional[MarkerType] = None
    marker_color: Optional[Color] = None
    marker_size: float = Field(2.0, gt=0)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("data_source", mode="before")
    @classmethod
    def default_kind(cls, v):
        """A data source without `kind` is a plotted field."""
        if isinstance(v, dict) and "kind" not in v:
            return {**v, "kind": "field_value"}
        return v

    @property
    def guard(self) -> Optional[str]:
        return self.data_source.guard

    @property
    def pattern(self) -> str:
        return self.data_source.pattern

    @property
    def binding(self) -> LineBinding:
        if self.file_name is not None:
            return BoundToName(self.file_name)
        if self.file_id is not None:
            return BoundToIndex(self.file_id)
        return Unbound()

    def is_unbound(self) -> bool:
        return isinstance(self.binding, Unbound)

    def default_title(self) -> str:
        ds = self.data_source
        if isinstance(ds, FieldValue):
            return f"value of {ds.pattern}"
        if isinstance(ds, EventValue):
            return f"presence of {ds.pattern}"
        if isinstance(ds, EventCount):
            return f"count of {ds.pattern}"
        return f"delta {ds.pattern}"

    @classmethod
    def plot(cls, field: str, guard: Optional[str] = None, **params) -> "Line":
        return cls(data_source=FieldValue(guard=guard, field=field), **params)

    @classmethod
    def event(cls, pattern: str, yvalue: float, guard: Optional[str] = None, **params) -> "Line":
        return cls(data_source=EventValue(guard=guard, pattern=pattern, yvalue=yvalue), **params)

    @classmethod
    def event_count(cls, pattern: str, guard: Optional[str] = None, **params) -> "Line":
        return cls(data_source=EventCount(guard=guard, pattern=pattern), **params)

    @classmethod
    def event_delta(cls, pattern: str, guard: Optional[str] = None, **params) -> "Line":
        return cls(data_source=EventDelta(guard=guard, pattern=pattern), **params)


class Panel(BaseModel):
    """Lines drawn together, sharing one time axis."""
    lines: List[Line] = Field(default_factory=list)
    panel_title: Optional[str] = None
    legend: Optional[bool] = None
    height: Optional[float] = Field(None, gt=0, description="Height ratio relative to other panels")
    yaxis_scale: Optional[AxisScale] = None
    time_range_mode: Optional[PanelRangeMode] = None

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def range_mode(self) -> PanelRangeMode:
        return self.time_range_mode or PanelRangeMode.FULL

    def has_unbound_lines(self) -> bool:
        return any(line.is_unbound() for line in self.lines)


class GraphConfig(BaseModel):
    """A complete graph configuration: panels in declaration order."""
    panels: List[Panel]

    model_config = ConfigDict(extra="forbid", frozen=True)

    def all_lines(self) -> List[Line]:
        return [line for panel in self.panels for line in panel.lines]
