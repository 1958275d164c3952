"""plox CLI: extract time series from logs and lay them out as graph panels."""

import argparse
import logging
import sys
from importlib.metadata import version as get_version, PackageNotFoundError
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def _configure_logging(verbose: int, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def _split_inputs(values: Optional[List[str]]) -> List[Path]:
    """`-i a.log,b.log -i c.log` -> [a.log, b.log, c.log]"""
    paths = []
    for value in values or []:
        paths.extend(Path(p) for p in value.split(",") if p)
    return paths


def _build_context(args, **options):
    from plox.context import SharedGraphContext
    from plox.kernel.errors import ConfigurationError
    from plox.kernel.ranges import parse_time_range

    fields = dict(
        input=_split_inputs(getattr(args, "input", None)),
        timestamp_format=args.timestamp_format,
        force_csv_regen=getattr(args, "force_csv_regen", False),
        cache_dir=getattr(args, "cache_dir", None),
        allow_invalid_timestamps=getattr(args, "allow_invalid_timestamps", False),
    )
    if getattr(args, "time_range", None):
        fields["time_range"] = parse_time_range(args.time_range)
    if getattr(args, "max_workers", None) is not None:
        fields["max_workers"] = args.max_workers
    fields.update(options)
    try:
        return SharedGraphContext(**fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid options:\n{e}") from e


def _print_graph_summary(graph) -> None:
    print("[OK] Graph built")
    print(f"  Panels: {len(graph.panels)}")
    for i, panel in enumerate(graph.panels):
        title = " ".join(panel.title) or f"panel {i}"
        if panel.time_range is not None:
            window = f"{panel.time_range[0]} - {panel.time_range[1]}"
        else:
            window = "no data"
        print(f"  {title}: {window}")
        for series in panel.series:
            print(f"    - {series.title}: {len(series.samples)} sample(s)")


def _run_graph(args) -> None:
    from plox import api
    from plox._internal.canonical_json import canonical_dumps
    from plox._internal.cli_builder import build_graph_config
    from plox.kernel.errors import ConfigurationError

    cli_config = build_graph_config(args.layout)
    context = _build_context(
        args,
        per_file_panels=True if args.per_file_panels else None,
        panel_alignment_mode=args.panel_alignment_mode,
        output_config_path=args.write_config,
    )

    if args.config is not None:
        if cli_config.panels:
            raise ConfigurationError("--config cannot be combined with line flags (--plot, --event, ...)")
        config, config_context = api.load_config(args.config)
        context = context.merge_with_other(config_context)
    else:
        config = cli_config

    if context.output_config_path is not None:
        api.save_config(config, context.output_config_path, context)
        if not args.quiet:
            print(f"[OK] Config written: {context.output_config_path}")

    graph = api.build_graph(config, context)

    if args.out is not None:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(canonical_dumps(graph.to_dict(), indent=2) + "\n", encoding="utf-8")

    if not args.quiet:
        _print_graph_summary(graph)
        if args.out is not None:
            print(f"  Graph: {args.out}")


def _run_cat(args) -> None:
    from plox import api
    from plox._internal.cli_builder import build_single_line
    from plox.codes import ErrorCode
    from plox.kernel.cache import CSV_COLUMNS

    line = build_single_line(args.layout)
    context = _build_context(args)
    for source, samples in api.extract_all(line, context):
        print(f"# {source.path}")
        print(",".join(CSV_COLUMNS))
        for s in samples:
            print(f"{s.timestamp.isoformat(timespec='microseconds')},{s.value!r},{s.count}")
        if not samples:
            print(f"[{ErrorCode.NO_MATCHES.value}] {source.path}: no matches", file=sys.stderr)


def _run_match_preview(args) -> None:
    from plox import api
    from plox._internal.cli_builder import build_single_line
    from plox.kernel.extractor import regex_pattern

    line = build_single_line(args.layout)
    context = _build_context(args)
    tf = context.resolved_timestamp_format()

    print(f"input file: {args.input_file}")
    if line.guard is not None:
        print(f"guard: {line.guard}")
    print(f"regex pattern: {regex_pattern(line)}")
    print(f"timestamp format: {tf.fmt}")

    previews = api.match_preview(args.input_file, line, tf.fmt, args.count)
    for text, result, sample in previews:
        print(f"line: {text}")
        if result is None:
            print("  no match")
            continue
        print(f"  timestamp: {result.timestamp.isoformat(timespec='microseconds')}")
        print(f"  remainder: {result.remainder}")
        if result.value_text is not None:
            unit = f" unit={result.unit_text}" if result.unit_text is not None else ""
            print(f"  captured: value={result.value_text}{unit}")
        if sample is not None:
            print(f"  sample: value={sample.value!r} count={sample.count}")

    if not previews and line.guard is not None:
        print(f"Warning: no lines matched against guard '{line.guard}'", file=sys.stderr)


def main():
    """Main CLI entry point for plox commands."""
    try:
        plox_version = get_version("plox")
    except PackageNotFoundError:
        plox_version = "dev"

    from plox._internal.cli_builder import add_layout_arguments, add_line_source_arguments
    from plox.kernel.errors import PloxError
    from plox.kernel.spec import PanelAlignmentMode

    parser = argparse.ArgumentParser(
        prog="plox",
        description="plox: turn timestamped logs into time-series panels"
    )
    parser.add_argument("--version", action="version", version=f"plox {plox_version}")
    # Common arguments
    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v: info, -vv: debug)."
    )
    parent_parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress all non-error output."
    )
    parent_parser.add_argument(
        "--timestamp-format",
        default=None,
        help="strftime-style format of the timestamp prefixing each log line "
             "(default: %%Y-%%m-%%d %%H:%%M:%%S%%.3f)"
    )

    scan_parser = argparse.ArgumentParser(add_help=False)
    scan_parser.add_argument(
        "-i", "--input",
        action="append",
        default=None,
        help="Input log file(s), comma separated or repeated"
    )
    scan_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Root directory for cached series (default: .plox/ next to each log)"
    )
    scan_parser.add_argument(
        "-f", "--force-csv-regen",
        action="store_true",
        help="Ignore cached series and re-extract"
    )
    scan_parser.add_argument(
        "--allow-invalid-timestamps",
        action="store_true",
        help="Skip matching lines without a valid timestamp instead of failing"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # graph command
    graph_parser = subparsers.add_parser(
        "graph",
        help="Extract all configured lines and resolve the panel layout",
        parents=[parent_parser, scan_parser]
    )
    graph_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a JSON config document (replaces line flags)"
    )
    graph_parser.add_argument(
        "--per-file-panels",
        action="store_true",
        help="Replay panels with unbound lines once per input file"
    )
    graph_parser.add_argument(
        "--panel-alignment-mode",
        choices=[mode.value for mode in PanelAlignmentMode],
        default=None,
        help="How panel time windows are reconciled (default: per-panel)"
    )
    graph_parser.add_argument(
        "--time-range",
        default=None,
        help="Fixed window for all panels: 'START,END' as fractions (0.1,0.5) or timestamps"
    )
    graph_parser.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Number of parallel extraction workers (1: serial)"
    )
    graph_parser.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Write the resolved graph as JSON to this path"
    )
    graph_parser.add_argument(
        "--write-config",
        type=Path,
        default=None,
        help="Save the effective config document to this path"
    )
    add_layout_arguments(graph_parser)

    # cat command
    cat_parser = subparsers.add_parser(
        "cat",
        help="Print the samples of one line for each input file",
        parents=[parent_parser, scan_parser]
    )
    add_line_source_arguments(cat_parser)

    # match-preview command
    preview_parser = subparsers.add_parser(
        "match-preview",
        help="Show how the first guard-matching lines of a log are parsed",
        parents=[parent_parser]
    )
    preview_parser.add_argument(
        "--input",
        dest="input_file",
        type=Path,
        required=True,
        help="Input log file"
    )
    preview_parser.add_argument(
        "--count",
        type=int,
        default=5,
        help="Number of guard-matching lines to show"
    )
    add_line_source_arguments(preview_parser)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    _configure_logging(args.verbose, args.quiet)

    handlers = {
        "graph": _run_graph,
        "cat": _run_cat,
        "match-preview": _run_match_preview,
    }
    try:
        handlers[args.command](args)
    except PloxError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
