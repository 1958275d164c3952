"""Tests for validate() preflight checks."""

from plox.api import ValidationResult, validate
from plox.codes import ErrorCode
from plox.context import SharedGraphContext
from plox.kernel.spec import GraphConfig, Line, Panel


def test_valid_config(write_log):
    log = write_log("a.log", ["2025-01-01 00:00:00.000 x=1"])
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x")])])
    result = validate(config, SharedGraphContext(input=[log]))
    assert isinstance(result, ValidationResult)
    assert result.ok is True
    assert result.errors == []
    assert result.warnings == []


def test_reports_every_bad_pattern(write_log):
    log = write_log("a.log", [])
    config = GraphConfig(panels=[
        Panel(lines=[Line.plot("x"), Line.plot(r"(a)(b)(c)")]),
        Panel(lines=[Line.event_count("oops(")]),
    ])
    result = validate(config, SharedGraphContext(input=[log]))
    assert result.ok is False
    codes = [(e.code, e.panel_index, e.line_index) for e in result.errors]
    assert codes == [
        (ErrorCode.AMBIGUOUS_CAPTURE_GROUPS.value, 0, 1),
        (ErrorCode.PATTERN_COMPILE_ERROR.value, 1, 0),
    ]


def test_binding_and_missing_file_errors(tmp_path):
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x", file_id=4)])])
    result = validate(config, SharedGraphContext(input=[tmp_path / "a.log"]))
    assert [e.code for e in result.errors] == [ErrorCode.UNRESOLVED_BINDING.value]

    config = GraphConfig(panels=[Panel(lines=[Line.plot("x")])])
    result = validate(config, SharedGraphContext(input=[tmp_path / "a.log"]))
    assert [e.code for e in result.errors] == [ErrorCode.INPUT_FILE_ERROR.value]
    assert result.errors[0].path == str(tmp_path / "a.log")


def test_empty_panel_and_no_panels():
    result = validate(GraphConfig(panels=[Panel(lines=[Line.plot("x", file_name="x.log")]), Panel()]))
    assert ErrorCode.EMPTY_PANEL.value in [e.code for e in result.errors]

    result = validate(GraphConfig(panels=[]))
    assert [e.code for e in result.errors] == [ErrorCode.INVALID_CONFIGURATION.value]


def test_warnings_do_not_block(write_log):
    a = write_log("a.log", [])
    b = write_log("b.log", [])
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x", file_id=0)])])
    result = validate(config, SharedGraphContext(input=[a, b], per_file_panels=True))
    assert result.ok is True
    assert len(result.warnings) == 2
    assert {w.code for w in result.warnings} == {
        ErrorCode.UNUSED_INPUT.value,
        ErrorCode.INVALID_CONFIGURATION.value,
    }


def test_unused_input_is_named(write_log):
    a = write_log("a.log", [])
    b = write_log("b.log", [])
    config = GraphConfig(panels=[Panel(lines=[Line.plot("x", file_id=1)])])
    result = validate(config, SharedGraphContext(input=[a, b]))
    assert result.errors == []
    assert [(w.code, w.path) for w in result.warnings] == [(ErrorCode.UNUSED_INPUT.value, str(a))]
