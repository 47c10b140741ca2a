"""
Tests for pure output reconciliation.
"""
from nbsync.models import DisplayOutput, StreamOutput, create_markdown_cell
from nbsync.orchestration.outputs import (
    append_error,
    append_stream,
    apply_display,
    apply_reply,
    begin_execution,
    clear_execution,
)
from tests.test_utils import create_test_cell


def test_stream_always_appends():
    cell = create_test_cell("c1")
    cell = append_stream(cell, "stdout", "a")
    cell = append_stream(cell, "stdout", "b")
    cell = append_stream(cell, "stderr", "c")
    assert [o.text for o in cell.outputs] == ["a", "b", "c"]
    assert cell.outputs[2].name == "stderr"


def test_inputs_are_not_mutated():
    original = create_test_cell("c1")
    updated = append_stream(original, "stdout", "x")
    assert original.outputs == []
    assert updated is not original


def test_display_with_same_id_replaces_in_position():
    cell = create_test_cell("c1")
    cell = apply_display(cell, "display_data", {"text/plain": "a"}, {"display_id": "a"})
    cell = apply_display(cell, "display_data", {"text/plain": "b"}, {"display_id": "b"})
    cell = apply_display(cell, "update_display_data", {"text/plain": "new a"}, {"display_id": "a"})

    assert [o.data["text/plain"] for o in cell.outputs] == ["new a", "b"]
    assert cell.outputs[0].type == "display_data"


def test_display_without_id_appends():
    cell = create_test_cell("c1")
    cell = apply_display(cell, "execute_result", {"text/plain": "1"})
    cell = apply_display(cell, "execute_result", {"text/plain": "1"})
    assert len(cell.outputs) == 2
    assert all(o.type == "execute_result" for o in cell.outputs)


def test_update_for_unseen_display_id_appends():
    cell = create_test_cell("c1")
    cell = append_stream(cell, "stdout", "x")
    cell = apply_display(cell, "update_display_data", {"text/plain": "p"}, {"display_id": "p"})
    assert cell.outputs[0] == StreamOutput(name="stdout", text="x")
    assert cell.outputs[1] == DisplayOutput(type="display_data", data={"text/plain": "p"}, metadata={"display_id": "p"})


def test_error_appends_after_stream():
    cell = create_test_cell("c1")
    cell = append_stream(cell, "stdout", "before")
    cell = append_error(cell, "NameError", "name 'x' is not defined", ["tb"])
    assert [o.type for o in cell.outputs] == ["stream", "error"]
    assert cell.outputs[1].evalue == "name 'x' is not defined"


def test_apply_reply_records_bounds_and_count():
    cell = apply_reply(create_test_cell("c1", metadata={"display": {"collapsed": True}}), 25, "ok", 3, ended=1000.0)
    assert cell.execution.started == 975.0
    assert cell.execution.ended == 1000.0
    assert cell.exec_count == 3
    assert cell.metadata["display"] == {"collapsed": True, "execCount": 3}


def test_begin_execution_clears_outputs():
    cell = append_stream(create_test_cell("c1"), "stdout", "old")
    cell = begin_execution(cell, started=50.0)
    assert cell.outputs == []
    assert cell.execution.started == cell.execution.ended == 50.0


def test_clear_execution_drops_count():
    cell = apply_reply(create_test_cell("c1"), 1, "ok", 7)
    cell = clear_execution(cell)
    assert cell.exec_count is None
    assert cell.execution is None


def test_non_code_cells_pass_through():
    markdown = create_markdown_cell("# hi")
    assert append_stream(markdown, "stdout", "x") is markdown
    assert apply_display(markdown, "display_data", {}) is markdown
    assert apply_reply(markdown, 1, "ok", 0) is markdown
