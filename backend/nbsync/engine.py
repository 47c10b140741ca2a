"""Facade wiring every component for one open notebook."""
from typing import Optional

import structlog

from .core import settings
from .core.errors import Notice, NoticeBoard, NoticeKind
from .kernel.channel import ChannelFactory, collab_channel_factory, kernel_channel_factory
from .kernel.manager import KernelSessionManager
from .models import TERMINAL_LIKE_TYPES, CodeCell, Notebook, new_id
from .orchestration import CellRunner, ExecutionCoordinator, RunDecision
from .state import STILL_SYNCING_MESSAGE, AutosaveReconciler, DocumentStore
from .storage.base import ExecutionService, PersistenceService, SessionService
from .storage.http import NotebookApiClient
from .websocket.synchronizer import CollaborationSynchronizer

logger = structlog.get_logger(__name__)

READ_ONLY_MESSAGE = "Notebook is read-only"


class NotebookEngine:
    """
    Session and synchronization engine for one notebook.

    Owns the document store, autosave, kernel session, execution
    coordinator, non-code cell runner and (optionally) the collaboration
    synchronizer. Recoverable problems are collected on `notices`.
    """

    def __init__(
        self,
        notebook_id: str,
        session_service: SessionService,
        persistence: PersistenceService,
        execution_service: ExecutionService,
        kernel_channels: ChannelFactory,
        collab_channels: Optional[ChannelFactory] = None,
        actor_id: Optional[str] = None,
        autosave_delay: Optional[float] = None,
    ):
        self.notebook_id = notebook_id
        self.actor_id = actor_id or new_id()
        self.read_only = True

        self.notices = NoticeBoard()
        self.store = DocumentStore()
        self.autosave = AutosaveReconciler(self.store, persistence, self.notices, delay=autosave_delay)
        self.session = KernelSessionManager(
            notebook_id, session_service, kernel_channels, self.notices, store=self.store
        )
        self.coordinator = ExecutionCoordinator(self.store, self.session, self.notices)
        self.cells = CellRunner(self.store, execution_service, self.notices)
        self.cells.read_only = True
        self.collab = None
        if collab_channels is not None:
            self.collab = CollaborationSynchronizer(
                notebook_id, self.actor_id, self.store, collab_channels, self.notices
            )

    @classmethod
    def from_api(cls, notebook_id: str, client: NotebookApiClient, actor_id: Optional[str] = None) -> "NotebookEngine":
        """Engine talking to the notebook API configured in settings."""
        actor_id = actor_id or new_id()
        return cls(
            notebook_id,
            session_service=client,
            persistence=client,
            execution_service=client,
            kernel_channels=kernel_channel_factory(settings.ws_base_url),
            collab_channels=collab_channel_factory(settings.ws_base_url, actor_id),
            actor_id=actor_id,
        )

    @property
    def notebook(self) -> Optional[Notebook]:
        return self.store.current

    @property
    def notice(self) -> Optional[Notice]:
        return self.notices.latest

    async def open(self, notebook: Notebook, editable: bool = True) -> None:
        self.store.replace(notebook)
        if self.collab is not None:
            await self.collab.start()
        await self.set_editable(editable)
        logger.info("notebook_opened", notebook_id=notebook.id, editable=editable, cells=len(notebook.cells))

    async def set_editable(self, editable: bool) -> None:
        self.read_only = not editable
        self.cells.read_only = not editable
        await self.session.set_editable(editable)

    def _reject_read_only(self, cell_id: Optional[str] = None) -> bool:
        if self.read_only:
            self.notices.post(NoticeKind.VALIDATION, READ_ONLY_MESSAGE, cell_id)
            return True
        return False

    async def add_cell(self, cell_type: str, index: Optional[int] = None):
        """Insert a cell; terminal-like cells are saved at once so a shell can attach."""
        if self._reject_read_only():
            return None
        try:
            cell = self.store.add_cell(cell_type, index)
        except ValueError as exc:
            logger.warning("add_cell_rejected", notebook_id=self.notebook_id, cell_type=cell_type)
            self.notices.post(NoticeKind.VALIDATION, str(exc))
            return None
        if cell.type in TERMINAL_LIKE_TYPES:
            self.autosave.mark_pending(cell.id)
            await self.autosave.save_now(resolve_ids=[cell.id])
        return cell

    async def delete_cell(self, cell_id: str) -> bool:
        if self._reject_read_only(cell_id):
            return False
        removed = self.store.delete_cell(cell_id)
        if removed:
            self.autosave.remove_pending(cell_id)
            self.cells.forget(cell_id)
        return removed

    async def run_cell(self, cell_id: str, command: Optional[str] = None) -> bool:
        """Run any cell kind. Returns True when the run was sent or queued."""
        if self._reject_read_only(cell_id):
            return False
        notebook = self.store.current
        cell = notebook.find_cell(cell_id) if notebook else None
        if cell is None:
            return False

        if isinstance(cell, CodeCell):
            decision = await self.coordinator.run(cell_id)
            return decision in (RunDecision.DISPATCH, RunDecision.QUEUED)

        if cell_id in self.autosave.pending:
            await self.autosave.save_now(resolve_ids=[cell_id])
            if cell_id in self.autosave.pending:
                self.notices.post(NoticeKind.CONSISTENCY, STILL_SYNCING_MESSAGE, cell_id)
                return False

        return await self.cells.run(cell_id, command)

    async def run_all(self) -> None:
        if not self._reject_read_only():
            await self.coordinator.run_all()

    async def interrupt(self) -> bool:
        return await self.coordinator.interrupt()

    async def reconnect(self) -> bool:
        return await self.session.reconnect()

    async def restart(self) -> bool:
        return await self.session.restart()

    async def close(self) -> None:
        """Tear down both channels and flush unsaved edits."""
        if self.collab is not None:
            await self.collab.stop()
        await self.session.close("unmount")
        if self.store.dirty:
            await self.autosave.save_now()
        await self.autosave.aclose()
        logger.info("notebook_closed", notebook_id=self.notebook_id)
