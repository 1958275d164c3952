"""Public API for the plox package.

High-level functions that return complete, structured results.
The CLI uses these functions instead of importing from _internal.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel

from plox.codes import ErrorCode
from plox.context import SharedGraphContext
from plox.kernel.bindings import ResolvedSource
from plox.kernel.cache import SeriesCache
from plox.kernel.errors import ConfigurationError, PloxError
from plox.kernel.extractor import Sample, classify, compile_line, preview_matches
from plox.kernel.graph_spec import GraphSpec, assemble_graph_spec
from plox.kernel.layout import ResolvedLine, ResolvedPanel, expand_graph_config
from plox.kernel.ranges import resolve_time_windows, series_span
from plox.kernel.spec import GraphConfig, Line
from plox.kernel.timestamp import TimestampFormat
from plox._internal.io import config as config_io

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (log file, signature hash): one unit of extraction work
UnitKey = Tuple[Path, str]


def _normalize_path(path: Union[str, os.PathLike, Path]) -> Path:
    """Normalize path input to Path object."""
    return Path(path) if not isinstance(path, Path) else path


class ValidationIssue(BaseModel):
    """A single validation issue (error or warning)."""
    code: str
    message: str
    panel_index: Optional[int] = None
    line_index: Optional[int] = None
    path: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validation/preflight check."""
    ok: bool  # True if no errors (warnings don't block)
    errors: List[ValidationIssue]
    warnings: List[ValidationIssue]


def load_config(path: Union[str, os.PathLike, Path]) -> Tuple[GraphConfig, SharedGraphContext]:
    """Load a config document: the graph config and the context options it carries."""
    return config_io.load_config_document(_normalize_path(path))


def save_config(
    config: GraphConfig,
    path: Union[str, os.PathLike, Path],
    context: Optional[SharedGraphContext] = None,
) -> Path:
    """Write a config document that load_config() reads back unchanged."""
    path = _normalize_path(path)
    config_io.save_config_document(path, config, context)
    return path


def _check_lines(config: GraphConfig) -> None:
    """Compile every line pattern, raising on the first bad one."""
    for line in config.all_lines():
        classify(line)
        compile_line(line)


def resolve_layout(config: GraphConfig, context: SharedGraphContext) -> List[ResolvedPanel]:
    """Run every structural check and return the expanded panels.

    Nothing is scanned here: pattern, binding and layout errors surface
    before the first log file is opened.
    """
    if not config.panels:
        raise ConfigurationError("Graph config has no panels")
    _check_lines(config)
    context.resolved_timestamp_format()
    return expand_graph_config(config, context.input_files(), context.resolved_per_file_panels())


def validate(config: GraphConfig, context: Optional[SharedGraphContext] = None) -> ValidationResult:
    """
    Pure validation/preflight function for a graph config.

    Reports the errors build_graph() would raise before scanning, plus
    non-blocking warnings. Does NOT read log contents or write anything.
    """
    context = context or SharedGraphContext()
    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if not config.panels:
        errors.append(ValidationIssue(
            code=ErrorCode.INVALID_CONFIGURATION.value,
            message="Graph config has no panels",
        ))

    # 1. Patterns (ERROR)
    for panel_index, panel in enumerate(config.panels):
        for line_index, line in enumerate(panel.lines):
            try:
                classify(line)
                compile_line(line)
            except PloxError as e:
                errors.append(ValidationIssue(
                    code=e.code.value,
                    message=str(e),
                    panel_index=panel_index,
                    line_index=line_index,
                ))

    # 2. Bindings and layout (ERROR)
    try:
        panels = expand_graph_config(config, context.input_files(), context.resolved_per_file_panels())
    except PloxError as e:
        errors.append(ValidationIssue(code=e.code.value, message=str(e)))
        panels = []

    # 3. Input files (ERROR)
    for path in sorted({rl.path for p in panels for rl in p.lines}, key=str):
        if not path.is_file():
            errors.append(ValidationIssue(
                code=ErrorCode.INPUT_FILE_ERROR.value,
                message=f"Input file '{path}' does not exist or is not a regular file",
                path=str(path),
            ))

    # 4. Advisories (WARNING)
    used = {rl.path for p in panels for rl in p.lines}
    for input_file in context.input_files():
        if input_file.path not in used:
            warnings.append(ValidationIssue(
                code=ErrorCode.UNUSED_INPUT.value,
                message=f"Input file '{input_file.path}' is not used by any line",
                path=str(input_file.path),
            ))
    if context.per_file_panels and not any(p.has_unbound_lines() for p in config.panels):
        warnings.append(ValidationIssue(
            code=ErrorCode.INVALID_CONFIGURATION.value,
            message="per_file_panels has no effect: every line is bound to a file",
        ))

    def sort_key(issue: ValidationIssue) -> tuple:
        return (
            issue.code,
            -1 if issue.panel_index is None else issue.panel_index,
            -1 if issue.line_index is None else issue.line_index,
            issue.path or "",
        )

    return ValidationResult(
        ok=not errors,
        errors=sorted(errors, key=sort_key),
        warnings=sorted(warnings, key=sort_key),
    )


def _run_units(
    units: Dict[UnitKey, T],
    work: Callable[[T], List[Sample]],
    max_workers: int,
) -> Dict[UnitKey, List[Sample]]:
    """Run one job per unit; the first failure is re-raised once all jobs are done."""
    if max_workers == 1 or len(units) <= 1:
        return {key: work(unit) for key, unit in units.items()}

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="plox-extract") as pool:
        futures = {key: pool.submit(work, unit) for key, unit in units.items()}
    return {key: future.result() for key, future in futures.items()}


def build_graph(
    config: GraphConfig,
    context: Optional[SharedGraphContext] = None,
    cache: Optional[SeriesCache] = None,
) -> GraphSpec:
    """Extract, cache, lay out and window all series of a graph config.

    Raises:
        PloxError: any of the kernel errors; structural ones are raised
            before any log file is scanned
    """
    context = context or SharedGraphContext()
    timestamp_format = context.resolved_timestamp_format()
    panels = resolve_layout(config, context)
    cache = cache or SeriesCache(context.cache_root(), force_regen=context.force_csv_regen)

    # identical (file, signature) pairs are extracted once, whichever panel they come from
    unit_of: Dict[ResolvedLine, UnitKey] = {}
    units: Dict[UnitKey, Tuple[Path, Line]] = {}
    for panel in panels:
        for rl in panel.lines:
            key = (rl.path, cache.signature_hash(rl.line, timestamp_format))
            unit_of[rl] = key
            units.setdefault(key, (rl.path, rl.line))
    logger.info(
        "%d panel(s), %d line(s), %d distinct extraction unit(s)",
        len(panels), len(unit_of), len(units),
    )

    def work(unit: Tuple[Path, Line]) -> List[Sample]:
        path, line = unit
        return cache.get_or_extract(path, line, timestamp_format, context.allow_invalid_timestamps)

    started = time.perf_counter()
    results = _run_units(units, work, context.max_workers)
    logger.info(
        "Extraction took %.3fs (cache hits: %d, scans: %d)",
        time.perf_counter() - started, cache.stats.hits, cache.stats.scans,
    )

    line_spans = [[series_span(results[unit_of[rl]]) for rl in panel.lines] for panel in panels]
    windowed = resolve_time_windows(
        panels,
        line_spans,
        alignment_mode=context.panel_alignment_mode,
        override=context.time_range,
        timestamp_format=timestamp_format,
    )
    return assemble_graph_spec(windowed, lambda rl: results[unit_of[rl]])


def extract(
    path: Union[str, os.PathLike, Path],
    line: Line,
    context: Optional[SharedGraphContext] = None,
    cache: Optional[SeriesCache] = None,
) -> List[Sample]:
    """Samples of one line over one log file, through the cache."""
    context = context or SharedGraphContext()
    compile_line(line)
    cache = cache or SeriesCache(context.cache_root(), force_regen=context.force_csv_regen)
    return cache.get_or_extract(
        _normalize_path(path),
        line,
        context.resolved_timestamp_format(),
        context.allow_invalid_timestamps,
    )


def extract_all(
    line: Line, context: SharedGraphContext, cache: Optional[SeriesCache] = None
) -> List[Tuple[ResolvedSource, List[Sample]]]:
    """Samples of one line for every file it binds to, in input order."""
    config = GraphConfig(panels=[{"lines": [line]}])
    panels = resolve_layout(config, context)
    cache = cache or SeriesCache(context.cache_root(), force_regen=context.force_csv_regen)
    return [(rl.source, extract(rl.path, rl.line, context, cache)) for rl in panels[0].lines]


def match_preview(
    path: Union[str, os.PathLike, Path],
    line: Line,
    timestamp_format: Optional[str] = None,
    count: int = 5,
):
    """First `count` guard-matching lines of `path` with their match details."""
    tf = TimestampFormat(timestamp_format) if timestamp_format else TimestampFormat()
    return preview_matches(_normalize_path(path), line, tf, limit=count)
