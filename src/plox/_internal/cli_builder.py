"""Builds a GraphConfig from order-sensitive CLI flags.

Layout flags are recorded in the order they appear, then replayed:

    --plot duration --line-color red --event-count ERROR --panel --plot cpu

- `--plot/--event/--event-count/--event-delta` start a new line,
- line parameters (`--title`, `--file-id`, ...) apply to the most recent line,
- panel parameters (`--panel-title`, `--height`, ...) apply to the current panel,
- `--panel` closes the current panel and opens a new one.
"""

import argparse
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from plox.kernel.errors import ConfigurationError
from plox.kernel.spec import (
    AxisScale,
    Color,
    DashStyle,
    EventCount,
    EventDelta,
    EventValue,
    FieldValue,
    GraphConfig,
    Line,
    MarkerType,
    Panel,
    PanelRangeMode,
    PlotStyle,
    YAxis,
)

LAYOUT_DEST = "layout"


@dataclass(frozen=True)
class LayoutToken:
    kind: str  # "source", "line_param", "panel_param" or "panel"
    name: str
    values: Sequence[str]


class _RecordLayout(argparse.Action):
    """Append the flag and its values to the shared, ordered layout list."""

    def __init__(self, option_strings, dest, kind, name, **kwargs):
        self.kind = kind
        self.name = name
        kwargs.setdefault("metavar", name.upper())
        super().__init__(option_strings, LAYOUT_DEST, **kwargs)

    def __call__(self, parser, namespace, values, option_string=None):
        tokens = getattr(namespace, LAYOUT_DEST, None)
        if tokens is None:
            tokens = []
            setattr(namespace, LAYOUT_DEST, tokens)
        if values is None:
            values = []
        elif not isinstance(values, list):
            values = [values]
        tokens.append(LayoutToken(self.kind, self.name, list(values)))


def _choices(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


SOURCE_FLAGS = {
    # flag: (source name, help)
    "--plot": ("field_value", "[GUARD] FIELD: plot a numeric field (literal name or regex)"),
    "--event": ("event_value", "[GUARD] PATTERN YVALUE: plot YVALUE whenever PATTERN matches"),
    "--event-count": ("event_count", "[GUARD] PATTERN: plot the running count of PATTERN"),
    "--event-delta": ("event_delta", "[GUARD] PATTERN: plot ms between occurrences of PATTERN"),
}

LINE_PARAMS = {
    # flag: (Line field, argparse kwargs)
    "--file-id": ("file_id", {"type": int, "metavar": "N"}),
    "--file-name": ("file_name", {"metavar": "PATH"}),
    "--title": ("title", {}),
    "--style": ("style", {"choices": _choices(PlotStyle)}),
    "--line-width": ("line_width", {"type": float}),
    "--line-color": ("line_color", {"choices": _choices(Color)}),
    "--dash-style": ("dash_style", {"choices": _choices(DashStyle)}),
    "--yaxis": ("yaxis", {"choices": _choices(YAxis)}),
    "--marker-type": ("marker_type", {"choices": _choices(MarkerType)}),
    "--marker-color": ("marker_color", {"choices": _choices(Color)}),
    "--marker-size": ("marker_size", {"type": float}),
}

PANEL_PARAMS = {
    "--panel-title": ("panel_title", {}),
    "--legend": ("legend", {"choices": ["true", "false"]}),
    "--height": ("height", {"type": float}),
    "--yaxis-scale": ("yaxis_scale", {"choices": _choices(AxisScale)}),
    "--time-range-mode": ("time_range_mode", {"choices": _choices(PanelRangeMode)}),
}


def add_line_source_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("Line sources")
    for flag, (name, help_text) in SOURCE_FLAGS.items():
        group.add_argument(flag, action=_RecordLayout, kind="source", name=name, nargs="+", help=help_text)


def add_layout_arguments(parser: argparse.ArgumentParser) -> None:
    """Register every order-sensitive layout flag on `parser`."""
    add_line_source_arguments(parser)

    line_group = parser.add_argument_group("Line parameters (apply to the preceding line)")
    for flag, (name, kwargs) in LINE_PARAMS.items():
        line_group.add_argument(flag, action=_RecordLayout, kind="line_param", name=name, **kwargs)

    panel_group = parser.add_argument_group("Panel parameters (apply to the current panel)")
    panel_group.add_argument(
        "--panel", action=_RecordLayout, kind="panel", name="panel", nargs=0,
        help="Close the current panel and start a new one",
    )
    for flag, (name, kwargs) in PANEL_PARAMS.items():
        panel_group.add_argument(flag, action=_RecordLayout, kind="panel_param", name=name, **kwargs)


def data_source_from_flag(name: str, values: Sequence[str]):
    """Build a data source from `--plot`-style flag values (optional leading guard)."""
    values = list(values)
    if name == "event_value":
        if len(values) not in (2, 3):
            raise ConfigurationError(f"--event expects [GUARD] PATTERN YVALUE, got {len(values)} value(s)")
        *rest, yvalue = values
        try:
            yvalue = float(yvalue)
        except ValueError as e:
            raise ConfigurationError(f"--event YVALUE must be a number, got '{values[-1]}'") from e
        guard = rest[0] if len(rest) == 2 else None
        return EventValue(guard=guard, pattern=rest[-1], yvalue=yvalue)

    if len(values) not in (1, 2):
        flag = next(f for f, (n, _) in SOURCE_FLAGS.items() if n == name)
        raise ConfigurationError(f"{flag} expects [GUARD] PATTERN, got {len(values)} value(s)")
    guard = values[0] if len(values) == 2 else None
    if name == "field_value":
        return FieldValue(guard=guard, field=values[-1])
    if name == "event_count":
        return EventCount(guard=guard, pattern=values[-1])
    return EventDelta(guard=guard, pattern=values[-1])


def _build_line(data_source, params: Dict[str, Any]) -> Line:
    try:
        return Line(data_source=data_source, **params)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid line parameters:\n{e}") from e


def _build_panel(lines: List[Line], params: Dict[str, Any]) -> Panel:
    if "legend" in params:
        params = {**params, "legend": params["legend"] == "true"}
    try:
        return Panel(lines=lines, **params)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid panel parameters:\n{e}") from e


def build_graph_config(tokens: Optional[Sequence[LayoutToken]]) -> GraphConfig:
    """Replay recorded layout flags into a GraphConfig."""
    panels: List[Panel] = []
    lines: List[Line] = []
    panel_params: Dict[str, Any] = {}
    source = None
    line_params: Dict[str, Any] = {}

    def close_line():
        nonlocal source, line_params
        if source is not None:
            lines.append(_build_line(source, line_params))
        source, line_params = None, {}

    def close_panel():
        nonlocal lines, panel_params
        close_line()
        if lines or panel_params:
            panels.append(_build_panel(lines, panel_params))
        lines, panel_params = [], {}

    for token in tokens or []:
        if token.kind == "panel":
            close_panel()
        elif token.kind == "source":
            close_line()
            source = data_source_from_flag(token.name, token.values)
        elif token.kind == "line_param":
            if source is None:
                raise ConfigurationError(f"Line parameter --{token.name.replace('_', '-')} has no associated line")
            line_params[token.name] = token.values[0]
        else:
            panel_params[token.name] = token.values[0]
    close_panel()

    return GraphConfig(panels=panels)


def build_single_line(tokens: Optional[Sequence[LayoutToken]]) -> Line:
    """The one line of `cat` / `match-preview`."""
    config = build_graph_config(tokens)
    all_lines = config.all_lines()
    if len(all_lines) != 1:
        raise ConfigurationError(
            f"Exactly one of {', '.join(SOURCE_FLAGS)} is required, got {len(all_lines)}"
        )
    return all_lines[0]
