"""Client side of the collaboration channel."""
import asyncio
from typing import List, Optional, Set, Union

import structlog
from pydantic import BaseModel

from ..core.errors import ChannelNotOpenError, NoticeBoard, NoticeKind
from ..kernel.channel import ChannelFactory, ChannelHandlers, DuplexChannel
from ..kernel.types import encode_message
from ..models import Notebook
from ..state.store import DocumentStore, UpdateOptions
from .types import (
    CollabErrorMessage,
    Participant,
    Presence,
    PresenceMessage,
    PresenceUpdate,
    RequestStateMessage,
    StateMessage,
    UpdateMessage,
    UpdateRequest,
    parse_collab_message,
)

logger = structlog.get_logger(__name__)

# Top-level fields the hub is authoritative for when it echoes our own save
ECHO_FIELDS = (
    "name",
    "env",
    "created_at",
    "updated_at",
    "published",
    "public_slug",
    "project_id",
    "project_order",
)


class CollaborationSynchronizer:
    """
    Keeps the local document in step with other collaborators.

    Every local mutation that is not suppressed is sent to the hub as a
    whole-document `update`. Incoming documents win wholesale (last writer
    wins), except echoes of our own updates, which only refresh top-level
    fields so in-flight local cell edits survive.
    """

    def __init__(
        self,
        notebook_id: str,
        actor_id: str,
        store: DocumentStore,
        channel_factory: ChannelFactory,
        notices: Optional[NoticeBoard] = None,
    ):
        self.notebook_id = notebook_id
        self.actor_id = actor_id
        self.store = store
        self.channel_factory = channel_factory
        self.notices = notices or NoticeBoard()

        self.participants: List[Participant] = []
        self.version: Optional[int] = None
        self.active_cell_id: Optional[str] = None

        self._channel: Optional[DuplexChannel] = None
        self._generation = 0
        self._unsubscribe = None
        self._outbound: Set[asyncio.Task] = set()

    @property
    def is_connected(self) -> bool:
        return self._channel is not None and self._channel.is_open

    @property
    def log(self):
        return logger.bind(notebook_id=self.notebook_id, actor_id=self.actor_id)

    async def start(self) -> None:
        if self._channel is not None:
            return
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self._on_local_update)

        self._generation += 1
        generation = self._generation
        channel = self.channel_factory(self.notebook_id)
        self._channel = channel

        def current() -> bool:
            return generation == self._generation

        async def on_open() -> None:
            if not current():
                return
            self.notices.dismiss(NoticeKind.TRANSPORT)
            self.log.info("collab_channel_open")
            await self._send(RequestStateMessage())
            if self.active_cell_id is not None:
                await self._send(PresenceUpdate(presence=Presence(cell_id=self.active_cell_id)))

        async def on_message(raw: str) -> None:
            if current():
                await self.handle_message(raw)

        async def on_close() -> None:
            if current():
                self.participants = []
                self.log.info("collab_channel_closed")

        async def on_error(exc: Exception) -> None:
            if current():
                self.notices.post(NoticeKind.TRANSPORT, "Collaboration connection error")
                self.log.warning("collab_channel_error", error=str(exc))

        await channel.connect(ChannelHandlers(
            on_open=on_open,
            on_message=on_message,
            on_close=on_close,
            on_error=on_error,
        ))

    async def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._outbound:
            await asyncio.gather(*self._outbound, return_exceptions=True)
        self._generation += 1
        channel, self._channel = self._channel, None
        self.participants = []
        if channel is not None:
            await channel.close("stop")

    async def announce_presence(self, cell_id: Optional[str]) -> None:
        """Best effort; remembered and re-sent on the next connect."""
        self.active_cell_id = cell_id
        if self.is_connected:
            await self._send(PresenceUpdate(presence=Presence(cell_id=cell_id)))

    async def _send(self, frame: BaseModel) -> bool:
        if not self.is_connected:
            return False
        try:
            await self._channel.send(encode_message(frame))
        except ChannelNotOpenError:
            self.log.warning("collab_send_failed", frame_type=getattr(frame, "type", None))
            return False
        return True

    def _on_local_update(self, notebook: Notebook, options: UpdateOptions) -> None:
        if not options.broadcast or not self.is_connected or notebook.id != self.notebook_id:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self._send(UpdateRequest(notebook=notebook)))
        self._outbound.add(task)
        task.add_done_callback(self._outbound.discard)

    async def handle_message(self, raw: Union[str, bytes]) -> None:
        message = parse_collab_message(raw)
        if message is not None:
            self.apply(message)

    def apply(self, message) -> None:
        if isinstance(message, PresenceMessage):
            self.participants = list(message.participants)
            return

        if isinstance(message, CollabErrorMessage):
            self.notices.post(NoticeKind.TRANSPORT, message.message or "Collaboration error")
            self.log.warning("collab_error", message=message.message)
            return

        if not isinstance(message, (StateMessage, UpdateMessage)):
            return

        incoming = message.notebook
        if incoming.id != self.notebook_id:
            self.log.debug("collab_frame_other_notebook", incoming_id=incoming.id)
            return
        if message.version is not None:
            self.version = message.version

        if isinstance(message, UpdateMessage) and message.actor_id == self.actor_id:
            self._merge_echo(incoming)
            return

        with self.store.suppress_broadcast():
            self.store.replace(incoming, dirty=False)
        self.log.debug("collab_document_replaced", frame_type=message.type, version=self.version)

    def _merge_echo(self, incoming: Notebook) -> None:
        local = self.store.current
        if local is None or local.id != incoming.id:
            with self.store.suppress_broadcast():
                self.store.replace(incoming, dirty=False)
            return
        changes = {field: getattr(incoming, field) for field in ECHO_FIELDS}
        with self.store.suppress_broadcast():
            self.store.replace(local.model_copy(update=changes), dirty=False)
