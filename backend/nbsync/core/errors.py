"""Error taxonomy and user-facing notices."""
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel


class NbsyncError(Exception):
    """Base class for engine errors."""


class ChannelNotOpenError(NbsyncError):
    """Raised when sending on a channel that is not open."""

    def __init__(self, message: str = "Channel is not open"):
        super().__init__(message)


class ServiceError(NbsyncError):
    """An HTTP collaborator returned an error or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PersistenceError(ServiceError):
    """Saving the notebook to durable storage failed."""


class CellValidationError(NbsyncError):
    """A run or edit was rejected before any I/O took place."""

    def __init__(self, message: str, cell_id: Optional[str] = None):
        super().__init__(message)
        self.cell_id = cell_id


class ReadOnlyError(CellValidationError):
    def __init__(self, message: str = "Notebook is read-only", cell_id: Optional[str] = None):
        super().__init__(message, cell_id)


class NoticeKind(str, Enum):
    TRANSPORT = "transport"
    KERNEL = "kernel"
    PERSISTENCE = "persistence"
    CONSISTENCY = "consistency"
    VALIDATION = "validation"


class Notice(BaseModel):
    """A recoverable condition surfaced to the user instead of raised."""
    kind: NoticeKind
    message: str
    cell_id: Optional[str] = None


class NoticeBoard:
    """Latest notice per kind. Components post here rather than raising."""

    def __init__(self):
        self._notices: Dict[NoticeKind, Notice] = {}
        self._latest: Optional[Notice] = None

    def post(self, kind: NoticeKind, message: str, cell_id: Optional[str] = None) -> Notice:
        notice = Notice(kind=kind, message=message, cell_id=cell_id)
        self._notices[kind] = notice
        self._latest = notice
        return notice

    def dismiss(self, kind: NoticeKind) -> None:
        notice = self._notices.pop(kind, None)
        if notice is not None and self._latest is notice:
            self._latest = None

    def get(self, kind: NoticeKind) -> Optional[Notice]:
        return self._notices.get(kind)

    @property
    def latest(self) -> Optional[Notice]:
        return self._latest

    def clear(self) -> None:
        self._notices.clear()
        self._latest = None
