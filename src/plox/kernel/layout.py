"""Panel layout resolution: binds every line to a file and replays panels per file."""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .bindings import InputFile, ResolvedSource, bind_line
from .errors import EmptyPanelError
from .spec import GraphConfig, Line, Panel

logger = logging.getLogger(__name__)

TimeWindow = Tuple[datetime, datetime]


@dataclass(frozen=True)
class ResolvedLine:
    """A line bound to exactly one file."""
    line: Line
    source: ResolvedSource

    @property
    def path(self) -> Path:
        return self.source.path

    def title(self, multi_input_files: bool) -> str:
        title = self.line.title or self.line.default_title()
        if multi_input_files:
            return f"{title} ({self.source.path.stem})"
        return title


@dataclass(frozen=True)
class ResolvedPanel:
    """A panel after binding and duplication.

    `input_file` is set on panels produced by per-file duplication.
    `time_range` is filled in by the range resolver.
    """
    panel: Panel
    lines: Tuple[ResolvedLine, ...]
    panel_index: int
    input_file: Optional[Path] = None
    time_range: Optional[TimeWindow] = field(default=None, compare=False)

    def with_time_range(self, window: Optional[TimeWindow]) -> "ResolvedPanel":
        return replace(self, time_range=window)

    def title(self) -> List[str]:
        titles = []
        if self.panel.panel_title:
            titles.append(self.panel.panel_title)
        if self.input_file is not None:
            titles.append(f"[{self.input_file.stem}]")
        return titles


def _resolve_all(line: Line, inputs: Sequence[InputFile]) -> List[ResolvedLine]:
    return [ResolvedLine(line, source) for source in bind_line(line, inputs)]


def _duplicate_per_file(
    panel: Panel, panel_index: int, inputs: Sequence[InputFile]
) -> List[ResolvedPanel]:
    """One panel per input file; unbound lines re-targeted, bound lines shared."""
    # binds (and validates) every line once, before any duplicate is built
    fixed = {
        i: _resolve_all(line, inputs)
        for i, line in enumerate(panel.lines)
        if not line.is_unbound()
    }
    if not inputs:
        first_unbound = next(line for line in panel.lines if line.is_unbound())
        bind_line(first_unbound, inputs)  # raises UnresolvedBindingError

    duplicates = []
    for input_file in inputs:
        lines: List[ResolvedLine] = []
        for i, line in enumerate(panel.lines):
            if line.is_unbound():
                lines.append(ResolvedLine(line, ResolvedSource.populated(input_file)))
            else:
                lines.extend(fixed[i])
        duplicates.append(
            ResolvedPanel(panel=panel, lines=tuple(lines), panel_index=panel_index, input_file=input_file.path)
        )
    return duplicates


def expand_graph_config(
    config: GraphConfig,
    inputs: Sequence[InputFile],
    per_file_panels: bool = False,
) -> List[ResolvedPanel]:
    """Expand a GraphConfig into resolved panels.

    - per_file_panels off: each panel keeps all its lines, each line fanned
      out to its bound files (an unbound line appears once per input).
    - per_file_panels on: a panel with any unbound line is duplicated once per
      input file; in each duplicate unbound lines resolve to that file only and
      bound lines are copied unchanged. Panels without unbound lines are kept
      as a single panel.

    Raises:
        UnresolvedBindingError: a file_id is out of range, or an unbound line has no inputs
        EmptyPanelError: a panel resolves to zero lines
    """
    resolved: List[ResolvedPanel] = []
    for panel_index, panel in enumerate(config.panels):
        if per_file_panels and panel.has_unbound_lines():
            panels = _duplicate_per_file(panel, panel_index, inputs)
            logger.debug("Panel %d duplicated into %d per-file panels", panel_index, len(panels))
        else:
            lines = [rl for line in panel.lines for rl in _resolve_all(line, inputs)]
            panels = [ResolvedPanel(panel=panel, lines=tuple(lines), panel_index=panel_index)]

        for p in panels:
            if not p.lines:
                raise EmptyPanelError(panel_index, p.input_file)
        resolved.extend(panels)
    return resolved
