"""Kernel session lifecycle for one notebook."""
from typing import Awaitable, Callable, Optional

import structlog
from pydantic import BaseModel

from ..core.errors import ChannelNotOpenError, NoticeBoard, NoticeKind, ServiceError
from ..models import Notebook
from ..orchestration.outputs import clear_execution
from ..storage.base import SessionService
from .channel import ChannelFactory, ChannelHandlers, DuplexChannel
from .types import encode_message

logger = structlog.get_logger(__name__)


async def _ignore(*_args) -> None:
    return None


class KernelSessionManager:
    """
    Owns one kernel session and the channel bound to it.

    A session is opened when the notebook becomes editable and torn down
    when it becomes read-only or the manager is closed. Channel and
    session failures are posted as notices; nothing here raises into the
    caller.

    Hooks (`on_message`, `on_open`, `on_disconnect`, `on_reset`) are set
    by the execution coordinator.
    """

    def __init__(
        self,
        notebook_id: str,
        session_service: SessionService,
        channel_factory: ChannelFactory,
        notices: Optional[NoticeBoard] = None,
        store=None,
    ):
        self.notebook_id = notebook_id
        self.session_service = session_service
        self.channel_factory = channel_factory
        self.notices = notices or NoticeBoard()
        self.store = store

        self.on_message: Callable[[str], Awaitable[None]] = _ignore
        self.on_open: Callable[[], Awaitable[None]] = _ignore
        self.on_disconnect: Callable[[], Awaitable[None]] = _ignore
        self.on_reset: Callable[[], None] = lambda: None

        self.session_id: Optional[str] = None
        self.editable = False
        self._channel: Optional[DuplexChannel] = None
        self._generation = 0

    @property
    def is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_open

    @property
    def log(self):
        return logger.bind(notebook_id=self.notebook_id, session_id=self.session_id)

    async def set_editable(self, editable: bool) -> None:
        self.editable = editable
        if editable and self.session_id is None:
            await self.open()
        elif not editable and self.session_id is not None:
            await self.close("read-only")

    async def open(self) -> bool:
        """Create a session (if none) and connect its channel."""
        if self.session_id is None:
            try:
                self.session_id = await self.session_service.create_session(self.notebook_id)
            except ServiceError as e:
                self.notices.post(NoticeKind.KERNEL, "Unable to open a session")
                self.log.warning("session_create_failed", error=str(e))
                return False
            self.log.info("session_opened")
        await self._connect()
        return True

    async def _connect(self) -> None:
        self._generation += 1
        generation = self._generation
        channel = self.channel_factory(self.session_id)
        self._channel = channel

        def current() -> bool:
            return generation == self._generation

        async def on_open() -> None:
            if current():
                self.notices.dismiss(NoticeKind.TRANSPORT)
                self.log.info("kernel_channel_open")
                await self.on_open()

        async def on_message(raw: str) -> None:
            if current():
                await self.on_message(raw)

        async def on_close() -> None:
            if current():
                self.log.info("kernel_channel_closed")
                await self.on_disconnect()

        async def on_error(exc: Exception) -> None:
            if current():
                self.notices.post(NoticeKind.TRANSPORT, "Kernel connection error")
                self.log.warning("kernel_channel_error", error=str(exc))

        await channel.connect(ChannelHandlers(
            on_open=on_open,
            on_message=on_message,
            on_close=on_close,
            on_error=on_error,
        ))

    async def _drop_channel(self, reason: str) -> None:
        # Bump the generation first so the old channel's close event is ignored
        self._generation += 1
        channel, self._channel = self._channel, None
        if channel is not None:
            await channel.close(reason)

    async def send(self, frame: BaseModel) -> bool:
        """Send one frame. Returns False (and posts a notice) when not connected."""
        if not self.is_connected:
            self.notices.post(NoticeKind.TRANSPORT, "Kernel is not connected yet")
            return False
        try:
            await self._channel.send(encode_message(frame))
        except ChannelNotOpenError:
            self.notices.post(NoticeKind.TRANSPORT, "Kernel is not connected yet")
            return False
        return True

    async def close(self, reason: str = "closed") -> None:
        """Close the channel and discard the session."""
        await self._drop_channel(reason)
        session_id, self.session_id = self.session_id, None
        self.on_reset()
        if session_id is not None:
            try:
                await self.session_service.delete_session(session_id)
            except ServiceError as e:
                logger.warning("session_delete_failed", session_id=session_id, error=str(e))
            logger.info("session_closed", notebook_id=self.notebook_id, session_id=session_id, reason=reason)

    async def reconnect(self) -> bool:
        """Reopen the channel against the same session, starting execution bookkeeping over."""
        if self.session_id is None:
            return await self.open()
        await self._drop_channel("reconnect")
        self.on_reset()
        self.notices.dismiss(NoticeKind.TRANSPORT)
        await self._connect()
        return True

    async def restart(self) -> bool:
        """Discard the session and its outputs, then open a brand-new session."""
        self.on_reset()
        if self.store is not None:
            self.store.update(_clear_all_execution)
        await self.close("user restart")
        self.notices.dismiss(NoticeKind.KERNEL)
        return await self.open()


def _clear_all_execution(notebook: Notebook) -> Notebook:
    cells = [clear_execution(cell) for cell in notebook.cells]
    if all(new is old for new, old in zip(cells, notebook.cells)):
        return notebook
    return notebook.model_copy(update={"cells": cells})
