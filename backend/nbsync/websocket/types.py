"""Frame definitions for the collaboration channel."""
from typing import Annotated, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from ..kernel.types import decode_frame, validate_frame
from ..models import Notebook, WireModel


class Presence(WireModel):
    cell_id: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)


# Client -> hub

class RequestStateMessage(WireModel):
    type: Literal["request-state"] = "request-state"


class PresenceUpdate(WireModel):
    type: Literal["presence"] = "presence"
    presence: Optional[Presence] = None


class UpdateRequest(WireModel):
    type: Literal["update"] = "update"
    notebook: Notebook


CollabClientMessage = Annotated[
    Union[RequestStateMessage, PresenceUpdate, UpdateRequest],
    Field(discriminator="type"),
]


# Hub -> client

class Participant(WireModel):
    user_id: str
    name: Optional[str] = None
    color: str
    presence: Optional[Presence] = None


class StateMessage(WireModel):
    """Full snapshot sent on connect and on request-state."""
    type: Literal["state"] = "state"
    version: Optional[int] = None
    notebook: Notebook


class UpdateMessage(WireModel):
    """A committed mutation, tagged with the actor that made it."""
    type: Literal["update"] = "update"
    version: Optional[int] = None
    notebook: Notebook
    actor_id: Optional[str] = None


class PresenceMessage(WireModel):
    type: Literal["presence"] = "presence"
    participants: List[Participant] = Field(default_factory=list)


class CollabErrorMessage(WireModel):
    type: Literal["error"] = "error"
    message: str = ""


CollabServerMessage = Annotated[
    Union[StateMessage, UpdateMessage, PresenceMessage, CollabErrorMessage],
    Field(discriminator="type"),
]

COLLAB_CLIENT_TYPES = frozenset({"request-state", "presence", "update"})
COLLAB_SERVER_TYPES = frozenset({"state", "update", "presence", "error"})

_client_adapter: TypeAdapter = TypeAdapter(CollabClientMessage)
_server_adapter: TypeAdapter = TypeAdapter(CollabServerMessage)


def parse_collab_message(raw: Union[str, bytes]) -> Optional[CollabServerMessage]:
    """Parse one frame received from the hub. Never raises."""
    payload = decode_frame(raw, COLLAB_SERVER_TYPES, "collab")
    if payload is None:
        return None
    return validate_frame(_server_adapter, payload, "collab")


def parse_collab_client_message(raw: Union[str, bytes]) -> Optional[CollabClientMessage]:
    """Parse one frame received from a client. Never raises."""
    payload = decode_frame(raw, COLLAB_CLIENT_TYPES, "collab-hub")
    if payload is None:
        return None
    return validate_frame(_client_adapter, payload, "collab-hub")
