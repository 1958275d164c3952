"""Tests for plox public API: build_graph() end to end."""

import json
import threading
from datetime import datetime
from pathlib import Path

import pytest

import plox
from plox.api import build_graph, extract, extract_all, match_preview
from plox.context import SharedGraphContext
from plox.kernel.cache import CacheRoot, SeriesCache
from plox.kernel.errors import (
    AmbiguousCaptureGroupsError,
    ConfigurationError,
    DisjointTimeWindowError,
    EmptyTimeRangeError,
    InputFileError,
    InvalidTimestampError,
    UnresolvedBindingError,
)
from plox.kernel.extractor import extract_samples
from plox.kernel.graph_spec import GraphSpec
from plox.kernel.spec import GraphConfig, Line, Panel, PanelAlignmentMode


A_LINES = [
    "2025-01-01 00:00:10.000 req duration=10ms",
    "2025-01-01 00:00:20.000 ERROR disk",
    "2025-01-01 00:00:30.000 req duration=30ms",
    "2025-01-01 00:00:50.000 ERROR net",
]
B_LINES = [
    "2025-01-01 00:00:20.000 req duration=5ms",
    "2025-01-01 00:00:40.000 ERROR disk",
    "2025-01-01 00:01:00.000 req duration=1s",
]


@pytest.fixture
def logs(write_log):
    return write_log("A.log", A_LINES), write_log("B.log", B_LINES)


def context_for(tmp_path, inputs, **options):
    return SharedGraphContext(input=list(inputs), cache_dir=tmp_path / "cache", **options)


def test_single_file_graph(logs, tmp_path):
    a, _ = logs
    config = GraphConfig(panels=[Panel(lines=[Line.plot("duration", guard="req"), Line.event_count("ERROR")])])

    graph = build_graph(config, context_for(tmp_path, [a]))

    assert isinstance(graph, GraphSpec)
    assert len(graph.panels) == 1
    panel = graph.panels[0]
    assert [s.title for s in panel.series] == ["value of duration", "count of ERROR"]
    assert [s.value for s in panel.series[0].samples] == [10.0, 30.0]
    assert [s.value for s in panel.series[1].samples] == [1.0, 2.0]
    assert panel.time_range == (datetime(2025, 1, 1, 0, 0, 10), datetime(2025, 1, 1, 0, 0, 50))


def test_multiple_inputs_suffix_titles(tmp_path, write_log):
    a = write_log("A.log", A_LINES)
    b = write_log("B.log", B_LINES)
    config = GraphConfig(panels=[Panel(lines=[Line.plot("duration")])])

    graph = build_graph(config, context_for(tmp_path, [a, b]))

    series = graph.panels[0].series
    assert [s.title for s in series] == ["value of duration (A)", "value of duration (B)"]
    assert [s.source for s in series] == [a, b]
    assert [s.value for s in series[1].samples] == [5.0, 1000.0]


def test_per_file_panels(tmp_path, write_log):
    a = write_log("A.log", A_LINES)
    b = write_log("B.log", ["2025-01-01 00:00:15.000 req duration=7ms"])
    config = GraphConfig(panels=[Panel(panel_title="latency", lines=[Line.plot("duration")])])

    graph = build_graph(config, context_for(tmp_path, [a, b], per_file_panels=True))

    assert [p.title for p in graph.panels] == [["latency", "[A]"], ["latency", "[B]"]]
    assert [p.input_file for p in graph.panels] == [a, b]
    assert graph.panels[1].series[0].samples[0].value == 7.0


def test_identical_lines_are_extracted_once(logs, tmp_path):
    a, _ = logs
    calls = []
    lock = threading.Lock()

    def scanner(*args, **kwargs):
        with lock:
            calls.append(args[0])
        return extract_samples(*args, **kwargs)

    config = GraphConfig(panels=[
        Panel(lines=[Line.plot("duration", title="first")]),
        Panel(lines=[Line.plot("duration", title="second", yaxis="y2")]),
    ])
    context = context_for(tmp_path, [a])
    cache = SeriesCache(context.cache_root(), extract=scanner)

    graph = build_graph(config, context, cache=cache)

    assert len(calls) == 1
    assert graph.panels[0].series[0].samples == graph.panels[1].series[0].samples
    assert graph.panels[1].uses_y2()


@pytest.mark.parametrize("max_workers", [1, 4])
def test_serial_and_parallel_agree(logs, tmp_path, max_workers):
    a, b = logs
    config = GraphConfig(panels=[
        Panel(lines=[Line.plot("duration"), Line.event_count("ERROR")]),
        Panel(lines=[Line.event_delta("req")]),
    ])
    context = context_for(tmp_path, [a, b], max_workers=max_workers, force_csv_regen=True)
    graph = build_graph(config, context)
    assert [len(s.samples) for s in graph.all_series()] == [2, 2, 2, 1, 1, 1]


def test_second_build_uses_cache(logs, tmp_path):
    a, b = logs
    config = GraphConfig(panels=[Panel(lines=[Line.plot("duration")])])
    context = context_for(tmp_path, [a, b])
    build_graph(config, context)

    cache = SeriesCache(context.cache_root())
    build_graph(config, context, cache=cache)
    assert cache.stats.scans == 0
    assert cache.stats.hits == 2


def test_shared_full_alignment(logs, tmp_path):
    a, b = logs
    config = GraphConfig(panels=[
        Panel(lines=[Line.plot("duration", file_id=0)]),
        Panel(lines=[Line.plot("duration", file_id=1)]),
    ])
    graph = build_graph(
        config, context_for(tmp_path, [a, b], panel_alignment_mode=PanelAlignmentMode.SHARED_FULL)
    )
    expected = (datetime(2025, 1, 1, 0, 0, 10), datetime(2025, 1, 1, 0, 1, 0))
    assert [p.time_range for p in graph.panels] == [expected, expected]


def test_best_fit_disjoint_lines(tmp_path, write_log):
    a = write_log("A.log", ["2025-01-01 00:00:01.000 x=1", "2025-01-01 00:00:02.000 x=2"])
    b = write_log("B.log", ["2025-01-01 00:00:05.000 x=1", "2025-01-01 00:00:06.000 x=2"])
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x")], time_range_mode="best-fit")])
    with pytest.raises(DisjointTimeWindowError):
        build_graph(config, context_for(tmp_path, [a, b]))


def test_relative_time_range(logs, tmp_path):
    a, _ = logs
    from plox.kernel.ranges import RelativeRange

    config = GraphConfig(panels=[Panel(lines=[Line.plot("duration")])])
    graph = build_graph(config, context_for(tmp_path, [a], time_range=RelativeRange(0.0, 0.5)))
    assert graph.panels[0].time_range == (datetime(2025, 1, 1, 0, 0, 10), datetime(2025, 1, 1, 0, 0, 20))


def test_time_range_conflicts_with_alignment_mode(tmp_path):
    from pydantic import ValidationError
    from plox.kernel.ranges import RelativeRange

    with pytest.raises(ValidationError):
        SharedGraphContext(time_range=RelativeRange(0.0, 0.5), panel_alignment_mode="shared-full")


def test_structural_errors_raised_before_scanning(logs, tmp_path):
    a, _ = logs
    calls = []

    def scanner(*args, **kwargs):
        calls.append(args)
        return extract_samples(*args, **kwargs)

    context = context_for(tmp_path, [a])
    cache = SeriesCache(context.cache_root(), extract=scanner)
    bad_regex = GraphConfig(panels=[Panel(lines=[Line.plot("duration"), Line.plot(r"(a)(b)(c)")])])
    bad_binding = GraphConfig(panels=[Panel(lines=[Line.plot("duration"), Line.plot("x", file_id=3)])])

    with pytest.raises(AmbiguousCaptureGroupsError):
        build_graph(bad_regex, context, cache=cache)
    with pytest.raises(UnresolvedBindingError):
        build_graph(bad_binding, context, cache=cache)
    assert calls == []


def test_no_panels(tmp_path):
    with pytest.raises(ConfigurationError):
        build_graph(GraphConfig(panels=[]), SharedGraphContext())


def test_no_data_anywhere(logs, tmp_path):
    a, _ = logs
    config = GraphConfig(panels=[Panel(lines=[Line.plot("nothing")])])
    with pytest.raises(EmptyTimeRangeError):
        build_graph(config, context_for(tmp_path, [a]))


def test_missing_input_file(tmp_path):
    config = GraphConfig(panels=[Panel(lines=[Line.plot("duration")])])
    with pytest.raises(InputFileError):
        build_graph(config, context_for(tmp_path, [tmp_path / "missing.log"]))


def test_invalid_timestamp_policy(tmp_path, write_log):
    log = write_log("A.log", ["2025-01-01 00:00:01.000 x=1", "broken x=2", "2025-01-01 00:00:03.000 x=3"])
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x")])])

    with pytest.raises(InvalidTimestampError):
        build_graph(config, context_for(tmp_path, [log]))

    graph = build_graph(config, context_for(tmp_path, [log], allow_invalid_timestamps=True))
    assert [s.value for s in graph.panels[0].series[0].samples] == [1.0, 3.0]


def test_graph_spec_json_export(logs, tmp_path):
    a, _ = logs
    config = GraphConfig(panels=[Panel(panel_title="t", lines=[Line.plot("duration", line_color="red")])])
    data = build_graph(config, context_for(tmp_path, [a])).to_dict()

    json.dumps(data)
    panel = data["panels"][0]
    assert panel["title"] == ["t"]
    assert panel["params"]["panel_title"] == "t"
    assert panel["params"]["lines"] == []
    assert panel["series"][0]["line"]["line_color"] == "red"
    assert panel["series"][0]["samples"][0]["value"] == 10.0


def test_extract_and_extract_all(logs, tmp_path):
    a, b = logs
    context = context_for(tmp_path, [a, b])
    assert [s.value for s in extract(a, Line.plot("duration"), context)] == [10.0, 30.0]

    per_file = extract_all(Line.event_count("ERROR"), context)
    assert [source.path for source, _ in per_file] == [a, b]
    assert [len(samples) for _, samples in per_file] == [2, 1]


def test_match_preview_api(logs):
    a, _ = logs
    previews = match_preview(a, Line.plot("duration", guard="req"), count=1)
    assert len(previews) == 1
    assert previews[0][2].value == 10.0


def test_public_exports():
    assert plox.build_graph is build_graph
    assert callable(plox.validate)
    assert isinstance(plox.__version__, str)
