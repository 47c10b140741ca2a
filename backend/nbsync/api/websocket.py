from typing import Optional

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from ..websocket.hub import CollaborationHub
from .deps import get_hub

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.websocket("/ws/notebooks/{notebook_id}/collab")
async def collaboration_websocket(
    websocket: WebSocket,
    notebook_id: str,
    actorId: str,
    name: Optional[str] = None,
    hub: CollaborationHub = Depends(get_hub),
):
    """
    Collaboration channel for one notebook.

    The client identifies itself with `?actorId=`; updates it sends are
    broadcast back to every client tagged with that id.
    """
    await websocket.accept()
    client = await hub.connect(notebook_id, websocket, actor_id=actorId, name=name)

    try:
        while True:
            raw = await websocket.receive_text()
            await hub.handle(notebook_id, client, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(notebook_id, client)
