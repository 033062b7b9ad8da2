from .errors import (
    AlreadyConsumed,
    CreationFailed,
    DuplicateToken,
    GrantError,
    GrantExpired,
    RecordNotFound,
    StoreUnavailable,
    UploadFailed,
)
from .lifecycle import FinalizeResult, GrantManager
from .record import GrantState, TokenRecord
from .store import RecordStore, SqlRecordStore
from .tokens import generate_token

__all__ = [
    "AlreadyConsumed",
    "CreationFailed",
    "DuplicateToken",
    "GrantError",
    "GrantExpired",
    "RecordNotFound",
    "StoreUnavailable",
    "UploadFailed",
    "FinalizeResult",
    "GrantManager",
    "GrantState",
    "TokenRecord",
    "RecordStore",
    "SqlRecordStore",
    "generate_token",
]
