"""Debounced persistence and the pending-persistence set for terminal-like cells."""
import asyncio
from typing import FrozenSet, Iterable, Optional, Set

import structlog

from ..core import settings
from ..core.errors import NoticeBoard, NoticeKind, ServiceError
from ..models import TERMINAL_LIKE_TYPES, Notebook
from ..storage.base import NotebookUpdate, PersistenceService
from .store import DocumentStore, UpdateOptions

logger = structlog.get_logger(__name__)

STILL_SYNCING_MESSAGE = "Shell cell is still syncing. Please try again."


class AutosaveReconciler:
    """
    Saves the document a short while after the last persisted change.

    Cells whose durable identity has not been confirmed yet (terminal-like
    cells created locally) are tracked in `pending` until a save response
    lists them.
    """

    def __init__(
        self,
        store: DocumentStore,
        persistence: PersistenceService,
        notices: Optional[NoticeBoard] = None,
        delay: Optional[float] = None,
    ):
        self.store = store
        self.persistence = persistence
        self.notices = notices or NoticeBoard()
        self.delay = settings.autosave_delay if delay is None else delay
        self.error: Optional[str] = None
        self.warning: Optional[str] = None
        self._pending: Set[str] = set()
        self._timer: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._unsubscribe = store.subscribe(self._on_update)

    @property
    def pending(self) -> FrozenSet[str]:
        return frozenset(self._pending)

    @property
    def scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def _on_update(self, notebook: Notebook, options: UpdateOptions) -> None:
        if options.persist:
            self.schedule()

    def schedule(self, delay: Optional[float] = None, mark_dirty: bool = False) -> None:
        """(Re)start the debounce timer."""
        if mark_dirty:
            self.store.dirty = True
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the document stays dirty until the next save
            logger.debug("autosave_skipped_no_loop")
            return
        wait = self.delay if delay is None else delay
        self._timer = loop.create_task(self._save_after(wait))

    async def _save_after(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._timer = None
        await self.save_now()

    def cancel(self) -> None:
        if self._timer is not None:
            if self._timer is not asyncio.current_task():
                self._timer.cancel()
            self._timer = None

    def mark_pending(self, cell_id: str) -> None:
        self._pending.add(cell_id)

    def remove_pending(self, cell_id: str) -> None:
        self._pending.discard(cell_id)

    async def save_now(
        self,
        resolve_ids: Optional[Iterable[str]] = None,
        snapshot: Optional[Notebook] = None,
    ) -> Optional[Notebook]:
        """
        Persist immediately, cancelling any scheduled save.

        Returns the stored document, or None when the save failed or there
        was nothing to save. Failures are recorded, never raised.
        """
        self.cancel()
        notebook = snapshot or self.store.current
        if notebook is None:
            return None
        resolve = list(self._pending) if resolve_ids is None else list(resolve_ids)

        async with self._lock:
            try:
                saved = await self.persistence.save_notebook(
                    notebook.id, NotebookUpdate.from_notebook(notebook)
                )
            except ServiceError as e:
                self.error = str(e) or "Failed to save notebook"
                self.notices.post(NoticeKind.PERSISTENCE, self.error)
                logger.warning("autosave_failed", notebook_id=notebook.id, error=self.error)
                return None

        self._merge_saved(notebook, saved)
        self.error = None
        self.notices.dismiss(NoticeKind.PERSISTENCE)
        if resolve:
            self._resolve_pending(saved, resolve)
        logger.debug("notebook_saved", notebook_id=saved.id, cells=len(saved.cells))
        return saved

    def _merge_saved(self, sent: Notebook, saved: Notebook) -> None:
        latest = self.store.current
        if latest is None or latest.id != saved.id:
            self.store.replace(saved)
            return
        if latest is not sent:
            # Edited while the save was in flight; the newer edit is already scheduled
            return
        # Server owns top-level fields; the local cell array stays authoritative
        self.store.replace(saved.model_copy(update={"cells": latest.cells}), dirty=False)

    def _resolve_pending(self, saved: Notebook, resolve: list) -> None:
        durable = {cell.id for cell in saved.cells if cell.type in TERMINAL_LIKE_TYPES}
        missing = [cell_id for cell_id in resolve if cell_id not in durable]
        for cell_id in resolve:
            if cell_id in durable:
                self._pending.discard(cell_id)

        if missing:
            self.warning = STILL_SYNCING_MESSAGE
            self.notices.post(NoticeKind.CONSISTENCY, STILL_SYNCING_MESSAGE, cell_id=missing[0])
            logger.info("pending_cells_unconfirmed", notebook_id=saved.id, missing=missing)
        else:
            self.warning = None
            self.notices.dismiss(NoticeKind.CONSISTENCY)

    async def aclose(self) -> None:
        timer = self._timer
        self.cancel()
        self._unsubscribe()
        if timer is not None and timer is not asyncio.current_task():
            try:
                await timer
            except asyncio.CancelledError:
                pass
