from .config import settings, Settings
from .errors import (
    NbsyncError,
    ChannelNotOpenError,
    ServiceError,
    PersistenceError,
    CellValidationError,
    ReadOnlyError,
    Notice,
    NoticeKind,
    NoticeBoard,
)
from .logging import configure_logging, get_logger

__all__ = [
    "settings", "Settings",
    "NbsyncError", "ChannelNotOpenError", "ServiceError", "PersistenceError",
    "CellValidationError", "ReadOnlyError",
    "Notice", "NoticeKind", "NoticeBoard",
    "configure_logging", "get_logger",
]
