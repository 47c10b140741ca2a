"""Coordinates cell execution over a kernel session."""
from typing import List, Optional, Union

import structlog
from pydantic import ValidationError

from ..core.errors import NoticeBoard, NoticeKind
from ..kernel.types import (
    DisplayMessage,
    ErrorMessage,
    ExecuteReply,
    ExecuteRequest,
    HelloMessage,
    InterruptRequest,
    StatusMessage,
    StreamMessage,
    parse_server_message,
)
from ..models import CodeCell
from ..state.store import DocumentStore
from .cells import compute_http_globals
from .outputs import append_error, append_stream, apply_display, apply_reply, begin_execution
from .scheduler import RunDecision, RunScheduler

logger = structlog.get_logger(__name__)

NOT_CONNECTED_MESSAGE = "Kernel is not connected yet"


class ExecutionCoordinator:
    """
    Sends run requests for code cells one at a time and folds kernel
    frames back into the document.

    Scheduling decisions come from RunScheduler; this class does the I/O
    and the document updates. Frames are applied to whatever the store
    holds when they arrive.
    """

    def __init__(
        self,
        store: DocumentStore,
        session,
        notices: Optional[NoticeBoard] = None,
        scheduler: Optional[RunScheduler] = None,
    ):
        self.store = store
        self.session = session
        self.notices = notices or NoticeBoard()
        self.scheduler = scheduler or RunScheduler()

        session.on_message = self.handle_message
        session.on_open = self.drain
        session.on_disconnect = self.handle_disconnect
        session.on_reset = self.reset

    @property
    def running_cell_id(self) -> Optional[str]:
        return self.scheduler.running

    @property
    def queue(self) -> List[str]:
        return list(self.scheduler.queue)

    async def run(self, cell_id: str) -> RunDecision:
        if self._code_cell(cell_id) is None:
            logger.debug("run_ignored", cell_id=cell_id, reason="not a code cell")
            return RunDecision.IGNORED

        decision = self.scheduler.request(cell_id)
        if decision is RunDecision.QUEUED and not self.scheduler.is_busy:
            # Earlier submissions are still waiting; send the head first
            if not self.session.is_connected:
                self.notices.post(NoticeKind.TRANSPORT, NOT_CONNECTED_MESSAGE, cell_id)
            await self.drain()
        if decision is not RunDecision.DISPATCH:
            logger.debug("run_deferred", cell_id=cell_id, decision=decision.value, queue=self.queue)
            return decision
        return await self._dispatch(cell_id)

    async def run_all(self) -> None:
        """Run every code cell in document order."""
        notebook = self.store.current
        if notebook is None:
            return
        for cell in notebook.cells:
            if isinstance(cell, CodeCell):
                await self.run(cell.id)

    async def drain(self) -> None:
        """Dispatch queued cells in order until one is in flight."""
        while self.session.is_connected:
            next_cell = self.scheduler.pop_next()
            if next_cell is None:
                return
            if await self._dispatch(next_cell) is RunDecision.DISPATCH:
                return

    def _code_cell(self, cell_id: str) -> Optional[CodeCell]:
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        return cell if isinstance(cell, CodeCell) else None

    async def _dispatch(self, cell_id: str) -> RunDecision:
        """Build and send execute_request for a cell the scheduler let through."""
        cell = self._code_cell(cell_id)
        if cell is None:
            logger.debug("dispatch_skipped", cell_id=cell_id, reason="cell is gone")
            return RunDecision.IGNORED

        if not self.session.is_connected:
            self.notices.post(NoticeKind.TRANSPORT, NOT_CONNECTED_MESSAGE, cell_id)
            return RunDecision.REJECTED

        try:
            request = ExecuteRequest(
                cell_id=cell.id,
                code=cell.source,
                language=cell.language,
                timeout_ms=cell.timeout_ms,
                globals=compute_http_globals(self.store.current) or None,
            )
        except ValidationError as exc:
            logger.warning("execute_request_invalid", cell_id=cell_id, error=str(exc))
            self.notices.post(NoticeKind.VALIDATION, f"Cannot run cell: {exc.errors()[0]['msg']}", cell_id)
            return RunDecision.REJECTED

        self.scheduler.start(cell_id)
        self.store.update_cell(cell_id, begin_execution, persist=False)

        if not await self.session.send(request):
            self.scheduler.abort(cell_id)
            return RunDecision.REJECTED

        logger.info("execute_request_sent", cell_id=cell_id, session_id=self.session.session_id)
        return RunDecision.DISPATCH

    async def interrupt(self) -> bool:
        """Ask the kernel to abort. Running state is cleared only by the kernel's answer."""
        if not self.session.is_connected:
            self.notices.post(NoticeKind.TRANSPORT, NOT_CONNECTED_MESSAGE)
            return False
        return await self.session.send(InterruptRequest(notebook_id=self.session.notebook_id))

    async def handle_message(self, raw: Union[str, bytes]) -> None:
        message = parse_server_message(raw)
        if message is not None:
            await self.apply(message)

    async def apply(self, message) -> None:
        if isinstance(message, HelloMessage):
            logger.info("kernel_hello", session_id=message.session_id)
            self.reset()

        elif isinstance(message, StatusMessage):
            if message.state == "idle":
                await self._dispatch_next(self.scheduler.idle())

        elif isinstance(message, ExecuteReply):
            await self._apply_reply(message)

        elif isinstance(message, StreamMessage):
            self.store.update_cell(
                message.cell_id,
                lambda c: append_stream(c, message.name, message.text),
                persist=False,
                touch=False,
            )

        elif isinstance(message, ErrorMessage):
            self.scheduler.fail(message.cell_id)
            if message.cell_id:
                self.store.update_cell(
                    message.cell_id,
                    lambda c: append_error(c, message.ename, message.evalue, message.traceback),
                    persist=False,
                )
            else:
                self.notices.post(NoticeKind.KERNEL, f"{message.ename}: {message.evalue}".strip(": "))

        elif isinstance(message, DisplayMessage):
            self.store.update_cell(
                message.cell_id,
                lambda c: apply_display(c, message.type, message.data, message.metadata),
                persist=False,
            )

    async def _apply_reply(self, message: ExecuteReply) -> None:
        next_cell = self.scheduler.complete(message.cell_id)

        notebook = self.store.current
        cell = notebook.find_cell(message.cell_id) if notebook else None
        if isinstance(cell, CodeCell):
            count = self.scheduler.stamp(message.cell_id, cell.exec_count)
            self.store.update_cell(
                message.cell_id,
                lambda c: apply_reply(c, message.exec_time_ms, message.status, count),
            )
            logger.debug("execute_reply", cell_id=message.cell_id, status=message.status, exec_count=count)

        await self._dispatch_next(next_cell)

    async def _dispatch_next(self, cell_id: Optional[str]) -> None:
        if cell_id is None:
            return
        if await self._dispatch(cell_id) is not RunDecision.DISPATCH:
            await self.drain()

    async def handle_disconnect(self) -> None:
        if self.scheduler.running is not None:
            logger.info("kernel_disconnected_while_running", cell_id=self.scheduler.running)
        self.scheduler.disconnect()

    def reset(self) -> None:
        self.scheduler.reset()
