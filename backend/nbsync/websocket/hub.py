"""Server side of the collaboration channel: one room per notebook."""
import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

import structlog
from fastapi import WebSocket
from pydantic import BaseModel

from ..kernel.types import encode_message
from ..models import Notebook, create_empty_notebook, utc_now_iso
from ..storage.base import StorageBackend
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
    parse_collab_client_message,
)

logger = structlog.get_logger(__name__)

COLOR_PALETTE = [
    "#FF6B6B",
    "#4D96FF",
    "#6BCB77",
    "#FFB74D",
    "#9C27B0",
    "#009688",
    "#FF4081",
]


def color_for_actor(actor_id: str) -> str:
    """Stable palette colour from a 32-bit string hash."""
    h = 0
    for ch in actor_id:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return COLOR_PALETTE[abs(h) % len(COLOR_PALETTE)]


@dataclass
class HubClient:
    websocket: WebSocket
    actor_id: str
    name: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])


@dataclass
class NotebookRoom:
    notebook_id: str
    version: int
    notebook: Optional[Notebook] = None
    clients: Dict[str, HubClient] = field(default_factory=dict)
    presence: Dict[str, Optional[Presence]] = field(default_factory=dict)


class CollaborationHub:
    """Relays whole-document updates between the clients of each notebook"""

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self.rooms: Dict[str, NotebookRoom] = {}

    async def ensure_room(self, notebook_id: str) -> NotebookRoom:
        room = self.rooms.get(notebook_id)
        if room is None:
            notebook = await self.storage.load_notebook(notebook_id)
            room = NotebookRoom(
                notebook_id=notebook_id,
                version=int(time.time() * 1000),
                notebook=notebook,
            )
            self.rooms[notebook_id] = room
        return room

    def refresh(self, notebook: Notebook) -> None:
        """Keep an open room in step with a save made outside the channel"""
        room = self.rooms.get(notebook.id)
        if room is not None:
            room.notebook = notebook

    async def connect(self, notebook_id: str, websocket: WebSocket, actor_id: str, name: Optional[str] = None) -> HubClient:
        """Register an accepted websocket and send it the current snapshot"""
        room = await self.ensure_room(notebook_id)
        if room.notebook is None:
            room.notebook = create_empty_notebook(id=notebook_id)

        client = HubClient(websocket=websocket, actor_id=actor_id, name=name)
        room.clients[client.id] = client
        logger.info("collab_client_connected", notebook_id=notebook_id, actor_id=actor_id, clients=len(room.clients))

        await self.send(client, StateMessage(version=room.version, notebook=room.notebook))
        await self.broadcast_presence(room)
        return client

    async def disconnect(self, notebook_id: str, client: HubClient) -> None:
        room = self.rooms.get(notebook_id)
        if room is None:
            return
        room.clients.pop(client.id, None)
        if not any(c.actor_id == client.actor_id for c in room.clients.values()):
            room.presence.pop(client.actor_id, None)
        logger.info("collab_client_disconnected", notebook_id=notebook_id, actor_id=client.actor_id)
        await self.broadcast_presence(room)

    async def handle(self, notebook_id: str, client: HubClient, raw: str) -> None:
        room = await self.ensure_room(notebook_id)
        message = parse_collab_client_message(raw)
        if message is None:
            await self.send(client, CollabErrorMessage(message="Malformed message"))
            return

        if isinstance(message, RequestStateMessage):
            await self.send(client, StateMessage(version=room.version, notebook=room.notebook))
        elif isinstance(message, UpdateRequest):
            await self.apply_update(room, client, message.notebook)
        elif isinstance(message, PresenceUpdate):
            room.presence[client.actor_id] = message.presence
            await self.broadcast_presence(room)

    async def apply_update(self, room: NotebookRoom, client: HubClient, notebook: Notebook) -> None:
        if notebook.id != room.notebook_id:
            await self.send(client, CollabErrorMessage(message="Notebook id mismatch"))
            return

        stamped = notebook.model_copy(update={"updated_at": utc_now_iso()})
        try:
            await self.storage.save_notebook(stamped)
        except OSError as e:
            logger.error("collab_update_failed", notebook_id=room.notebook_id, error=str(e))
            await self.send(client, CollabErrorMessage(message="Failed to apply update"))
            return

        room.version += 1
        room.notebook = stamped
        await self.broadcast(room, UpdateMessage(
            version=room.version,
            notebook=stamped,
            actor_id=client.actor_id,
        ))

    async def send(self, client: HubClient, frame: BaseModel) -> None:
        try:
            await client.websocket.send_text(encode_message(frame))
        except (RuntimeError, OSError) as e:
            logger.debug("collab_send_failed", actor_id=client.actor_id, error=str(e))

    async def broadcast(self, room: NotebookRoom, frame: BaseModel) -> None:
        """Send to every client in the room, the sender included"""
        payload = encode_message(frame)
        dead_clients = []
        for client_id, client in list(room.clients.items()):
            try:
                await client.websocket.send_text(payload)
            except (RuntimeError, OSError):
                dead_clients.append(client_id)

        # Clean up dead connections
        for client_id in dead_clients:
            room.clients.pop(client_id, None)

    async def broadcast_presence(self, room: NotebookRoom) -> None:
        participants = [
            Participant(
                user_id=client.actor_id,
                name=client.name,
                color=color_for_actor(client.actor_id),
                presence=room.presence.get(client.actor_id),
            )
            for client in room.clients.values()
        ]
        await self.broadcast(room, PresenceMessage(participants=participants))
