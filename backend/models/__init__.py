from .base import Base, build_engine, create_tables
from .media_grant import MediaGrant

__all__ = [
    "Base",
    "build_engine",
    "create_tables",
    "MediaGrant",
]
