"""Run handling for cells that bypass the kernel: terminal, command, HTTP and SQL."""
from dataclasses import dataclass
from typing import Any, Dict, Optional

import structlog

from ..core.errors import CellValidationError, NoticeBoard, NoticeKind, ReadOnlyError, ServiceError
from ..models import (
    CommandCell,
    HttpCell,
    Notebook,
    SqlCell,
    TerminalCell,
    is_identifier,
    utc_now_iso,
)
from ..state.store import DocumentStore
from ..storage.base import ExecutionService

logger = structlog.get_logger(__name__)

PENDING_COMMAND_KEY = "pendingCommand"


def _assignment(value: Optional[str]) -> Optional[str]:
    trimmed = (value or "").strip()
    return trimmed or None


def compute_http_globals(notebook: Optional[Notebook]) -> Dict[str, Any]:
    """
    Values published by successful HTTP cells, keyed by their assignment names.

    `assignVariable` receives the whole response summary, `assignBody` the
    body plus status, and `assignHeaders` a name -> value header map.
    """
    if notebook is None:
        return {}

    values: Dict[str, Any] = {}
    for cell in notebook.cells:
        if not isinstance(cell, HttpCell):
            continue
        response = cell.response
        if response is None or response.error or response.ok is False:
            continue

        headers = {}
        for header in response.headers:
            name = header.name.strip()
            if name:
                headers[name] = header.value
        body = response.body
        body_fields = {
            "type": body.type if body else None,
            "json": body.json_ if body else None,
            "text": body.text if body else None,
            "encoding": body.encoding if body else None,
            "contentType": body.content_type if body else None,
            "size": body.size if body else None,
        }

        variable = _assignment(response.assigned_variable)
        if variable and is_identifier(variable):
            values[variable] = {
                "status": response.status,
                "statusText": response.status_text,
                "ok": response.ok,
                "url": response.url,
                "durationMs": response.duration_ms,
                "timestamp": response.timestamp,
                "headers": headers,
                "headerList": [h.to_wire() for h in response.headers],
                "body": body_fields,
            }

        body_name = _assignment(response.assigned_body)
        if body_name and is_identifier(body_name):
            values[body_name] = {
                **body_fields,
                "status": response.status,
                "ok": response.ok,
                "url": response.url,
                "timestamp": response.timestamp,
                "headers": headers,
            }

        headers_name = _assignment(response.assigned_headers)
        if headers_name and is_identifier(headers_name):
            values[headers_name] = headers

    return values


@dataclass
class CellRunState:
    busy: bool = False
    error: Optional[str] = None


class CellRunner:
    """
    Runs non-code cells.

    Terminal and command cells get a pending-command marker in their
    metadata for the shell backend to pick up. HTTP and SQL cells make one
    request/response call and write the result back into the cell. Busy and
    error state is tracked per cell id, separate from the kernel run queue.
    """

    def __init__(self, store: DocumentStore, services: ExecutionService, notices: Optional[NoticeBoard] = None):
        self.store = store
        self.services = services
        self.notices = notices or NoticeBoard()
        self.read_only = False
        self._states: Dict[str, CellRunState] = {}

    def state(self, cell_id: str) -> CellRunState:
        return self._states.setdefault(cell_id, CellRunState())

    def forget(self, cell_id: str) -> None:
        self._states.pop(cell_id, None)

    async def run(self, cell_id: str, command: Optional[str] = None) -> bool:
        """Run a non-code cell. Validation failures become notices, never exceptions."""
        state = self.state(cell_id)
        try:
            if self.read_only:
                raise ReadOnlyError(cell_id=cell_id)
            notebook = self.store.current
            cell = notebook.find_cell(cell_id) if notebook else None
            if isinstance(cell, (TerminalCell, CommandCell)):
                self.request_command(cell_id, command)
                return True
            if isinstance(cell, HttpCell):
                return await self.run_http(cell_id)
            if isinstance(cell, SqlCell):
                return await self.run_sql(cell_id)
        except CellValidationError as e:
            state.error = str(e)
            self.notices.post(NoticeKind.VALIDATION, str(e), cell_id=cell_id)
            logger.info("cell_run_rejected", cell_id=cell_id, reason=str(e))
            return False

        logger.debug("cell_run_ignored", cell_id=cell_id)
        return False

    # Terminal / command

    def request_command(self, cell_id: str, command: Optional[str] = None) -> Dict[str, str]:
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        if not isinstance(cell, (TerminalCell, CommandCell)):
            raise CellValidationError("Cell does not accept commands", cell_id)
        if command is None and isinstance(cell, CommandCell):
            command = cell.command
        command = (command or "").strip()
        if not command:
            raise CellValidationError("Enter a command to run", cell_id)

        marker = {"command": command, "requestedAt": utc_now_iso()}
        self.store.update_cell(
            cell_id,
            lambda c: c.model_copy(update={"metadata": {**c.metadata, PENDING_COMMAND_KEY: marker}}),
        )
        self.state(cell_id).error = None
        return marker

    def take_pending_command(self, cell_id: str) -> Optional[Dict[str, str]]:
        """Consume the marker left by `request_command`, if any."""
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        if cell is None:
            return None
        marker = cell.metadata.get(PENDING_COMMAND_KEY)
        if not isinstance(marker, dict):
            return None

        def clear(c):
            metadata = {k: v for k, v in c.metadata.items() if k != PENDING_COMMAND_KEY}
            return c.model_copy(update={"metadata": metadata})

        self.store.update_cell(cell_id, clear, persist=False, touch=False)
        return marker

    # HTTP

    def validate_http(self, cell: HttpCell) -> None:
        if not cell.request.url.strip():
            raise CellValidationError("Request URL is required", cell.id)
        checks = (
            (cell.assign_variable, "Assignment target must be a valid identifier"),
            (cell.assign_body, "Body assignment must be a valid identifier"),
            (cell.assign_headers, "Header assignment must be a valid identifier"),
        )
        for value, message in checks:
            name = _assignment(value)
            if name and not is_identifier(name):
                raise CellValidationError(message, cell.id)

    async def run_http(self, cell_id: str) -> bool:
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        if not isinstance(cell, HttpCell):
            return False
        self.validate_http(cell)

        state = self.state(cell_id)
        if state.busy:
            return False
        state.busy = True
        state.error = None
        try:
            response = await self.services.run_http(
                notebook.id,
                cell_id,
                cell.request,
                assign_variable=_assignment(cell.assign_variable),
                assign_body=_assignment(cell.assign_body),
                assign_headers=_assignment(cell.assign_headers),
            )
        except ServiceError as e:
            state.error = str(e)
            self.notices.post(NoticeKind.VALIDATION if e.status_code == 400 else NoticeKind.TRANSPORT, str(e), cell_id)
            logger.warning("http_cell_failed", cell_id=cell_id, status=e.status_code, error=str(e))
            return False
        finally:
            state.busy = False

        self.store.update_cell(
            cell_id,
            lambda c: c.model_copy(update={"response": response}) if isinstance(c, HttpCell) else c,
        )
        return True

    # SQL

    def validate_sql(self, notebook: Notebook, cell: SqlCell) -> str:
        """Returns the validated connection id."""
        connection = notebook.find_connection(cell.connection_id)
        if connection is None:
            raise CellValidationError("Select a database connection before running the query", cell.id)
        if not cell.query.strip():
            raise CellValidationError("SQL query cannot be empty", cell.id)
        name = _assignment(cell.assign_variable)
        if name and not is_identifier(name):
            raise CellValidationError("Assignment target must be a valid identifier", cell.id)
        return connection.id

    async def run_sql(self, cell_id: str) -> bool:
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        if not isinstance(cell, SqlCell):
            return False
        connection_id = self.validate_sql(notebook, cell)

        state = self.state(cell_id)
        if state.busy:
            return False
        state.busy = True
        state.error = None
        try:
            result = await self.services.run_sql(
                notebook.id,
                cell_id,
                connection_id,
                cell.query.strip(),
                assign_variable=_assignment(cell.assign_variable),
            )
        except ServiceError as e:
            state.error = str(e)
            self.notices.post(NoticeKind.VALIDATION if e.status_code == 400 else NoticeKind.TRANSPORT, str(e), cell_id)
            logger.warning("sql_cell_failed", cell_id=cell_id, status=e.status_code, error=str(e))
            return False
        finally:
            state.busy = False

        self.store.update_cell(
            cell_id,
            lambda c: c.model_copy(update={"result": result}) if isinstance(c, SqlCell) else c,
        )
        return True
