"""
Tests for terminal, command, HTTP and SQL cell runs.
"""
import pytest

from nbsync.core.errors import NoticeKind, ServiceError
from nbsync.models import (
    HttpRequest,
    HttpResponse,
    HttpResponseBody,
    HttpResponseHeader,
    SqlConnection,
    create_command_cell,
    create_http_cell,
    create_sql_cell,
    create_terminal_cell,
)
from nbsync.orchestration import CellRunner, compute_http_globals
from nbsync.orchestration.cells import PENDING_COMMAND_KEY
from tests.test_utils import create_test_notebook


@pytest.fixture
def runner(store, execution_service, notices):
    return CellRunner(store, execution_service, notices)


def _add(store, cell):
    store.add_cell(cell)
    return cell.id


@pytest.mark.asyncio
async def test_terminal_requires_command(store, runner, notices):
    cell_id = _add(store, create_terminal_cell(id="t1"))

    assert await runner.run(cell_id) is False
    assert notices.latest.kind is NoticeKind.VALIDATION
    assert notices.latest.message == "Enter a command to run"
    assert runner.state(cell_id).error == "Enter a command to run"

    assert await runner.run(cell_id, "  ls -la ") is True
    marker = store.current.find_cell(cell_id).metadata[PENDING_COMMAND_KEY]
    assert marker["command"] == "ls -la"
    assert marker["requestedAt"].endswith("Z")
    assert runner.state(cell_id).error is None


@pytest.mark.asyncio
async def test_command_cell_uses_its_own_command(store, runner):
    cell_id = _add(store, create_command_cell("make test", id="k1"))
    assert await runner.run(cell_id) is True

    marker = runner.take_pending_command(cell_id)
    assert marker["command"] == "make test"
    assert PENDING_COMMAND_KEY not in store.current.find_cell(cell_id).metadata
    assert runner.take_pending_command(cell_id) is None


@pytest.mark.asyncio
async def test_http_validation_messages(store, runner, notices, execution_service):
    cases = [
        (create_http_cell(id="h1"), "Request URL is required"),
        (create_http_cell(HttpRequest(url="https://x"), id="h2", assign_variable="1bad"),
         "Assignment target must be a valid identifier"),
        (create_http_cell(HttpRequest(url="https://x"), id="h3", assign_body="has space"),
         "Body assignment must be a valid identifier"),
        (create_http_cell(HttpRequest(url="https://x"), id="h4", assign_headers="a-b"),
         "Header assignment must be a valid identifier"),
    ]
    for cell, message in cases:
        _add(store, cell)
        assert await runner.run(cell.id) is False
        assert notices.latest.message == message
        assert notices.latest.cell_id == cell.id
    assert execution_service.http_calls == []


@pytest.mark.asyncio
async def test_http_run_writes_response(store, runner, execution_service):
    cell_id = _add(store, create_http_cell(
        HttpRequest(url="https://api.example.com/users"),
        id="h1",
        assign_variable="  users ",
        assign_body="",
    ))
    execution_service.http_response = HttpResponse(status=200, ok=True, assigned_variable="users")

    assert await runner.run(cell_id) is True
    call = execution_service.http_calls[0]
    assert call["url"] == "https://api.example.com/users"
    assert call["assign_variable"] == "users"
    assert call["assign_body"] is None
    assert store.current.find_cell(cell_id).response.status == 200
    assert runner.state(cell_id).busy is False


@pytest.mark.asyncio
async def test_http_service_errors_become_notices(store, runner, notices, execution_service):
    cell_id = _add(store, create_http_cell(HttpRequest(url="https://x"), id="h1"))

    execution_service.error = ServiceError("Invalid request", status_code=400)
    assert await runner.run(cell_id) is False
    assert notices.latest.kind is NoticeKind.VALIDATION

    execution_service.error = ServiceError("Upstream unavailable", status_code=502)
    assert await runner.run(cell_id) is False
    assert notices.latest.kind is NoticeKind.TRANSPORT
    assert runner.state(cell_id).error == "Upstream unavailable"
    assert store.current.find_cell(cell_id).response is None


@pytest.mark.asyncio
async def test_sql_validation_messages(store, runner, notices, execution_service):
    store.add_sql_connection(SqlConnection(id="db", name="Primary"))
    cases = [
        (create_sql_cell(None, "select 1", id="s1"), "Select a database connection before running the query"),
        (create_sql_cell("missing", "select 1", id="s2"), "Select a database connection before running the query"),
        (create_sql_cell("db", "   ", id="s3"), "SQL query cannot be empty"),
        (create_sql_cell("db", "select 1", id="s4", assign_variable="rows!"),
         "Assignment target must be a valid identifier"),
    ]
    for cell, message in cases:
        _add(store, cell)
        assert await runner.run(cell.id) is False
        assert notices.latest.message == message
    assert execution_service.sql_calls == []


@pytest.mark.asyncio
async def test_sql_run_writes_result(store, runner, execution_service):
    store.add_sql_connection(SqlConnection(id="db", name="Primary"))
    cell_id = _add(store, create_sql_cell("db", "  select 1 as n  ", id="s1", assign_variable="rows"))

    assert await runner.run(cell_id) is True
    assert execution_service.sql_calls[0]["query"] == "select 1 as n"
    assert execution_service.sql_calls[0]["assign_variable"] == "rows"
    assert store.current.find_cell(cell_id).result.row_count == 1


@pytest.mark.asyncio
async def test_read_only_runner_rejects(store, runner, notices):
    cell_id = _add(store, create_command_cell("ls", id="k1"))
    runner.read_only = True
    assert await runner.run(cell_id) is False
    assert notices.latest.message == "Notebook is read-only"


def test_compute_http_globals():
    response = HttpResponse(
        status=200,
        status_text="OK",
        ok=True,
        url="https://api.example.com",
        headers=[HttpResponseHeader(name="Content-Type", value="application/json"),
                 HttpResponseHeader(name=" ", value="skipped")],
        body=HttpResponseBody(type="json", json={"id": 1}, size=9),
        assigned_variable="resp",
        assigned_body="payload",
        assigned_headers="hdrs",
    )
    failed = HttpResponse(status=500, ok=False, assigned_variable="broken")
    notebook = create_test_notebook(cells=[
        create_http_cell(id="h1", response=response),
        create_http_cell(id="h2", response=failed),
        create_http_cell(id="h3"),
    ])

    values = compute_http_globals(notebook)
    assert set(values) == {"resp", "payload", "hdrs"}
    assert values["hdrs"] == {"Content-Type": "application/json"}
    assert values["payload"]["json"] == {"id": 1}
    assert values["payload"]["status"] == 200
    assert values["resp"]["statusText"] == "OK"
    assert values["resp"]["body"]["type"] == "json"
    assert compute_http_globals(None) == {}
