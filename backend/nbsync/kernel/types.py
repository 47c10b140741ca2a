"""Frame definitions for the kernel channel."""
import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

import structlog
from pydantic import BaseModel, Field, TypeAdapter, ValidationError, field_validator

from ..models.base import WireModel

logger = structlog.get_logger(__name__)


# Client -> kernel

class ExecuteRequest(WireModel):
    """Request to execute a code cell."""
    type: Literal["execute_request"] = "execute_request"
    cell_id: str
    code: str
    language: str = "python"
    timeout_ms: Optional[int] = Field(default=None, gt=0)  # enforced by the kernel
    globals: Optional[Dict[str, Any]] = None


class InterruptRequest(WireModel):
    """Advisory request to abort the in-flight execution."""
    type: Literal["interrupt_request"] = "interrupt_request"
    notebook_id: str


KernelClientMessage = Union[ExecuteRequest, InterruptRequest]


# Kernel -> client

class HelloMessage(WireModel):
    """Sent when a kernel session is (re)established."""
    type: Literal["hello"] = "hello"
    notebook_id: Optional[str] = None
    session_id: Optional[str] = None


class StatusMessage(WireModel):
    type: Literal["status"] = "status"
    state: Literal["busy", "idle"]


class ExecuteReply(WireModel):
    type: Literal["execute_reply"] = "execute_reply"
    cell_id: str
    exec_time_ms: float = Field(default=0, ge=0)
    status: Literal["ok", "error", "aborted"] = "ok"


class StreamMessage(WireModel):
    type: Literal["stream"] = "stream"
    cell_id: str
    name: Literal["stdout", "stderr"]
    text: str


class ErrorMessage(WireModel):
    type: Literal["error"] = "error"
    cell_id: Optional[str] = None
    ename: str = ""
    evalue: str = ""
    traceback: List[str] = Field(default_factory=list)

    @field_validator("cell_id")
    @classmethod
    def _blank_is_absent(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class DisplayMessage(WireModel):
    """display_data, execute_result and update_display_data share one shape."""
    type: Literal["display_data", "execute_result", "update_display_data"]
    cell_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)


KernelServerMessage = Annotated[
    Union[HelloMessage, StatusMessage, ExecuteReply, StreamMessage, ErrorMessage, DisplayMessage],
    Field(discriminator="type"),
]

KERNEL_SERVER_TYPES = frozenset({
    "hello", "status", "execute_reply", "stream", "error",
    "display_data", "execute_result", "update_display_data",
})

_server_adapter: TypeAdapter = TypeAdapter(KernelServerMessage)


def decode_frame(raw: Union[str, bytes], known_types: frozenset, channel: str) -> Optional[Dict[str, Any]]:
    """
    Decode a JSON frame into a dict with a known `type`.

    Returns None for anything that is not a JSON object with a string
    `type`, and for types outside `known_types`.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning("frame_decode_failed", channel=channel, error=str(e))
        return None

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        logger.warning("frame_missing_type", channel=channel)
        return None

    if payload["type"] not in known_types:
        logger.debug("frame_ignored", channel=channel, frame_type=payload["type"])
        return None

    return payload


def validate_frame(adapter: TypeAdapter, payload: Dict[str, Any], channel: str):
    try:
        return adapter.validate_python(payload)
    except ValidationError as e:
        logger.warning(
            "frame_invalid",
            channel=channel,
            frame_type=payload.get("type"),
            errors=e.error_count(),
        )
        return None


def parse_server_message(raw: Union[str, bytes]) -> Optional[KernelServerMessage]:
    """Parse one inbound kernel frame. Never raises."""
    payload = decode_frame(raw, KERNEL_SERVER_TYPES, "kernel")
    if payload is None:
        return None
    return validate_frame(_server_adapter, payload, "kernel")


def encode_message(message: BaseModel) -> str:
    """Serialize a frame with camelCase keys, dropping unset optionals."""
    return json.dumps(message.model_dump(by_alias=True, mode="json", exclude_none=True))
