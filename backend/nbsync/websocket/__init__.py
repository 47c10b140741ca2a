from .types import (
    Presence,
    Participant,
    RequestStateMessage,
    PresenceUpdate,
    UpdateRequest,
    StateMessage,
    UpdateMessage,
    PresenceMessage,
    CollabErrorMessage,
    parse_collab_message,
    parse_collab_client_message,
)
from .synchronizer import CollaborationSynchronizer
from .hub import CollaborationHub, color_for_actor

__all__ = [
    "Presence", "Participant",
    "RequestStateMessage", "PresenceUpdate", "UpdateRequest",
    "StateMessage", "UpdateMessage", "PresenceMessage", "CollabErrorMessage",
    "parse_collab_message", "parse_collab_client_message",
    "CollaborationSynchronizer", "CollaborationHub", "color_for_actor",
]
