"""FastAPI dependencies resolving the handles opened at startup."""

import logging

from fastapi import Depends, Request

from config import settings
from grants.lifecycle import GrantManager
from grants.store import RecordStore
from storage.cloudinary import CloudinaryClient
from storage.object_store import ObjectStore

logger = logging.getLogger(__name__)


def get_record_store(request: Request) -> RecordStore:
    return request.app.state.record_store


def get_object_store(request: Request) -> ObjectStore | None:
    """Return the object store, building it on first use.

    Credentials are only needed for uploads, so a missing setting disables
    ``/upload`` (None) instead of keeping the service from starting.
    """
    store = getattr(request.app.state, "object_store", None)
    if store is None:
        try:
            store = CloudinaryClient.from_settings(settings)
        except ValueError as e:
            logger.error(f"Object store not configured: {e}")
            return None
        request.app.state.object_store = store
    return store


def get_grant_manager(store: RecordStore = Depends(get_record_store)) -> GrantManager:
    return GrantManager(store, token_length=settings.token_length)
