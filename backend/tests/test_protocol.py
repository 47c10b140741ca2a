"""
Tests for kernel and collaboration frame parsing.
"""
import json

import pytest

from nbsync.kernel.types import (
    DisplayMessage,
    ErrorMessage,
    ExecuteReply,
    ExecuteRequest,
    HelloMessage,
    InterruptRequest,
    StatusMessage,
    StreamMessage,
    encode_message,
    parse_server_message,
)
from nbsync.websocket.types import (
    PresenceMessage,
    RequestStateMessage,
    StateMessage,
    UpdateMessage,
    parse_collab_client_message,
    parse_collab_message,
)
from tests.test_utils import code_notebook


def test_parse_each_kernel_frame_type():
    """Every documented server frame parses into its model."""
    frames = [
        ({"type": "hello", "notebookId": "nb-1", "sessionId": "s-1"}, HelloMessage),
        ({"type": "status", "state": "busy"}, StatusMessage),
        ({"type": "execute_reply", "cellId": "c1", "execTimeMs": 12.5, "status": "ok"}, ExecuteReply),
        ({"type": "stream", "cellId": "c1", "name": "stdout", "text": "hi\n"}, StreamMessage),
        ({"type": "error", "cellId": "c1", "ename": "ValueError", "evalue": "bad", "traceback": []}, ErrorMessage),
        ({"type": "display_data", "cellId": "c1", "data": {"text/plain": "1"}}, DisplayMessage),
        ({"type": "execute_result", "cellId": "c1", "data": {}}, DisplayMessage),
        ({"type": "update_display_data", "cellId": "c1", "data": {}, "metadata": {"display_id": "d"}}, DisplayMessage),
    ]
    for payload, model in frames:
        message = parse_server_message(json.dumps(payload))
        assert isinstance(message, model), payload["type"]


def test_parse_reply_fields():
    message = parse_server_message('{"type":"execute_reply","cellId":"c1","execTimeMs":40,"status":"error"}')
    assert message.cell_id == "c1"
    assert message.exec_time_ms == 40
    assert message.status == "error"


def test_unknown_frame_type_is_ignored():
    assert parse_server_message('{"type":"comm_open","cellId":"c1"}') is None


def test_malformed_frames_are_ignored():
    """Bad JSON, non-objects and missing types never raise."""
    assert parse_server_message("not json") is None
    assert parse_server_message("[1, 2, 3]") is None
    assert parse_server_message('{"cellId": "c1"}') is None
    assert parse_server_message('{"type": 7}') is None


def test_invalid_known_frame_is_ignored():
    """A known type with a bad payload is dropped, not raised."""
    assert parse_server_message('{"type":"status","state":"sleeping"}') is None
    assert parse_server_message('{"type":"stream","name":"stdout","text":"x"}') is None


def test_blank_error_cell_id_means_no_cell():
    message = parse_server_message('{"type":"error","cellId":"","ename":"KernelDied","evalue":""}')
    assert isinstance(message, ErrorMessage)
    assert message.cell_id is None


def test_extra_fields_are_tolerated():
    message = parse_server_message('{"type":"status","state":"idle","executionState":"idle"}')
    assert isinstance(message, StatusMessage)
    assert message.state == "idle"


def test_encode_execute_request_uses_camel_case():
    frame = json.loads(encode_message(ExecuteRequest(cell_id="c1", code="1 + 1", timeout_ms=5000)))
    assert frame == {
        "type": "execute_request",
        "cellId": "c1",
        "code": "1 + 1",
        "language": "python",
        "timeoutMs": 5000,
    }


def test_encode_interrupt_request():
    frame = json.loads(encode_message(InterruptRequest(notebook_id="nb-1")))
    assert frame == {"type": "interrupt_request", "notebookId": "nb-1"}


def test_execute_request_timeout_must_be_positive():
    with pytest.raises(ValueError):
        ExecuteRequest(cell_id="c1", code="", timeout_ms=0)
    # No client-side ceiling; long timeouts go to the kernel as is
    assert ExecuteRequest(cell_id="c1", code="", timeout_ms=900_000).timeout_ms == 900_000


def test_parse_collab_server_frames():
    notebook = code_notebook("c1").to_wire()

    state = parse_collab_message(json.dumps({"type": "state", "version": 3, "notebook": notebook}))
    assert isinstance(state, StateMessage)
    assert state.version == 3
    assert state.notebook.cells[0].id == "c1"

    update = parse_collab_message(json.dumps({
        "type": "update", "version": 4, "notebook": notebook, "actorId": "actor-a",
    }))
    assert isinstance(update, UpdateMessage)
    assert update.actor_id == "actor-a"

    presence = parse_collab_message(json.dumps({
        "type": "presence",
        "participants": [{"userId": "actor-a", "color": "#FF6B6B", "presence": {"cellId": "c1"}}],
    }))
    assert isinstance(presence, PresenceMessage)
    assert presence.participants[0].presence.cell_id == "c1"


def test_parse_collab_client_frames():
    assert isinstance(parse_collab_client_message('{"type":"request-state"}'), RequestStateMessage)
    assert parse_collab_client_message('{"type":"state"}') is None
    assert parse_collab_client_message("{") is None
