"""Tests for the sample extractor: guard -> timestamp -> regex -> value."""

from datetime import datetime, timedelta

import pytest

from plox.kernel.errors import (
    AmbiguousCaptureGroupsError,
    InputFileError,
    InvalidTimestampError,
    PatternCompileError,
)
from plox.kernel.extractor import (
    SampleExtractor,
    classify,
    compile_line,
    extract_samples,
    preview_matches,
    regex_pattern,
)
from plox.kernel.spec import Line, LineKind
from plox.kernel.timestamp import TimestampFormat

T0 = datetime(2025, 1, 1, 0, 0, 0)


def ts(seconds: float) -> str:
    return (T0 + timedelta(seconds=seconds)).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


class TestClassify:

    def test_literal_field(self):
        assert classify(Line.plot("duration")) == LineKind.NUMERIC_FIELD

    def test_regex_with_one_or_two_groups(self):
        assert classify(Line.plot(r"took (\d+)")) == LineKind.REGEX_CAPTURE
        assert classify(Line.plot(r"duration:([\d\.]+)(\w+)?")) == LineKind.REGEX_CAPTURE

    def test_three_groups_rejected(self):
        with pytest.raises(AmbiguousCaptureGroupsError) as excinfo:
            classify(Line.plot(r"(a)(b)(c)"))
        assert excinfo.value.groups == 3

    def test_event_kinds(self):
        assert classify(Line.event("boot", 1.0)) == LineKind.EVENT_MARKER
        assert classify(Line.event_count("ERROR")) == LineKind.EVENT_COUNT
        assert classify(Line.event_delta("tick")) == LineKind.EVENT_DELTA

    def test_literal_field_regex(self):
        pattern = regex_pattern(Line.plot("duration"))
        assert pattern.startswith(r"(?<!\w)duration[:=]")

    def test_bad_event_pattern(self):
        with pytest.raises(PatternCompileError):
            compile_line(Line.event_count("unbalanced("))


class TestSampleExtractor:

    def test_literal_field_with_unit(self):
        ex = SampleExtractor(Line.plot("duration", guard="operation"), TimestampFormat())
        sample = ex.feed("2025-04-03 11:32:48.027 INFO main: operation duration=12.5ms")
        assert sample.value == 12.5
        assert sample.count == 1
        assert sample.timestamp == datetime(2025, 4, 3, 11, 32, 48, 27000)

    def test_literal_field_colon_form_and_unit_conversion(self):
        ex = SampleExtractor(Line.plot("duration"), TimestampFormat())
        assert ex.feed(f"{ts(0)} duration: 2s").value == 2000.0

    def test_literal_field_is_not_a_suffix_match(self):
        ex = SampleExtractor(Line.plot("duration"), TimestampFormat())
        assert ex.feed(f"{ts(0)} total_duration=5ms") is None

    def test_regex_capture_value_and_unit(self):
        line = Line.plot(r"duration:([\d\.]+)(\w+)?", guard="operation")
        ex = SampleExtractor(line, TimestampFormat())
        sample = ex.feed("2025-04-03 11:32:48.027 INFO main: operation duration:12.5us, val:127.0ms")
        assert sample.value == pytest.approx(0.0125)

    def test_column_regex_on_remainder(self):
        line = Line.plot(r"^\s+(?:[\d\.]+\s+){3}([\d\.]+)", guard="polkadot-parach")
        ex = SampleExtractor(line, TimestampFormat("%b %d %I:%M:%S %p"))
        text = "Apr 20 08:26:13 AM  1000     25131   6737.00      3.17 817575604 3179060   2.41  polkadot-parach"
        sample = ex.feed(text)
        assert sample.value == 3.17
        assert sample.timestamp == datetime(2025, 4, 20, 8, 26, 13)

    def test_guard_short_circuits_before_timestamp(self):
        ex = SampleExtractor(Line.plot("duration", guard="operation"), TimestampFormat())
        # no timestamp, but the guard fails first, so no error
        assert ex.feed("garbage duration=1") is None
        assert ex.invalid_timestamps == 0

    def test_invalid_timestamp_after_guard_is_fatal(self, tmp_path):
        ex = SampleExtractor(Line.plot("duration"), TimestampFormat(), source=tmp_path / "a.log")
        with pytest.raises(InvalidTimestampError) as excinfo:
            ex.feed("garbage duration=1")
        assert excinfo.value.line == "garbage duration=1"

    def test_invalid_timestamp_skipped_when_permissive(self):
        ex = SampleExtractor(Line.plot("duration"), TimestampFormat(), allow_invalid_timestamps=True)
        assert ex.feed("garbage duration=1") is None
        assert ex.invalid_timestamps == 1

    def test_event_value(self):
        ex = SampleExtractor(Line.event("boot", 7.5), TimestampFormat())
        assert ex.feed(f"{ts(0)} system boot").value == 7.5

    def test_event_count_is_one_to_n(self):
        ex = SampleExtractor(Line.event_count("ERROR"), TimestampFormat())
        values = [ex.feed(f"{ts(i)} ERROR x").value for i in range(4)]
        assert values == [1.0, 2.0, 3.0, 4.0]

    def test_event_delta_first_match_has_no_sample(self):
        ex = SampleExtractor(Line.event_delta("tick"), TimestampFormat())
        assert ex.feed(f"{ts(0)} tick") is None
        assert ex.feed(f"{ts(1.5)} tick").value == 1500.0
        assert ex.feed(f"{ts(1.75)} tick").value == 250.0

    def test_count_increments_on_every_regex_match(self):
        ex = SampleExtractor(Line.plot(r"v=(\w+)"), TimestampFormat())
        assert ex.feed(f"{ts(0)} v=abc") is None
        sample = ex.feed(f"{ts(1)} v=5")
        assert sample.count == 2


class TestExtractSamples:

    def test_samples_sorted_by_timestamp(self, write_log):
        log = write_log("a.log", [
            f"{ts(2)} duration=3",
            f"{ts(0)} duration=1",
            f"{ts(1)} duration=2",
        ])
        samples = extract_samples(log, Line.plot("duration"), TimestampFormat())
        assert [s.value for s in samples] == [1.0, 2.0, 3.0]
        # count keeps file order
        assert [s.count for s in samples] == [2, 3, 1]

    def test_guard_filters_lines(self, write_log):
        log = write_log("a.log", [
            f"{ts(0)} A duration=1",
            f"{ts(1)} B duration=2",
            "not a log line at all",
        ])
        samples = extract_samples(log, Line.plot("duration", guard=" A "), TimestampFormat())
        assert [s.value for s in samples] == [1.0]

    def test_no_matches_logs_warning(self, write_log, caplog):
        log = write_log("a.log", [f"{ts(0)} nothing here"])
        with caplog.at_level("WARNING", logger="plox.kernel.extractor"):
            assert extract_samples(log, Line.plot("duration"), TimestampFormat()) == []
        assert "No matches." in caplog.text

    def test_missing_file(self, tmp_path):
        with pytest.raises(InputFileError):
            extract_samples(tmp_path / "missing.log", Line.plot("duration"), TimestampFormat())

    def test_directory_is_not_an_input(self, tmp_path):
        with pytest.raises(InputFileError):
            extract_samples(tmp_path, Line.plot("duration"), TimestampFormat())


def test_preview_matches_reports_misses(write_log):
    log = write_log("a.log", [
        f"{ts(0)} req duration=1ms",
        f"{ts(1)} req no value",
        "req bad timestamp",
        f"{ts(2)} other duration=9ms",
    ])
    previews = preview_matches(log, Line.plot("duration", guard="req"), TimestampFormat(), limit=10)
    assert len(previews) == 3
    text, result, sample = previews[0]
    assert result.value_text == "1" and result.unit_text == "ms"
    assert sample.value == 1.0
    assert previews[1][1] is None
    assert previews[2][1] is None
