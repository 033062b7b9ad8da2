"""Upload, view and expire endpoints.

POST /upload         — Store a file and return a single-view link
GET  /view/{token}   — Viewer page with countdown, or the expired page
POST /expire/{token} — Consume the link once the countdown ends
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from api import pages
from api.deps import get_grant_manager, get_object_store
from config import settings
from grants.errors import CreationFailed, GrantExpired, StoreUnavailable, UploadFailed
from grants.lifecycle import GrantManager
from storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["media"])


class UploadResponse(BaseModel):
    success: bool = True
    link: str


class ExpireResponse(BaseModel):
    success: bool = True


def _failure(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


@router.post("/upload", response_model=UploadResponse)
async def upload_media(
    file: UploadFile | None = File(None),
    object_store: ObjectStore | None = Depends(get_object_store),
    grants: GrantManager = Depends(get_grant_manager),
):
    """Upload a file to the object store and create its single-view grant."""
    if file is None:
        return _failure(status.HTTP_400_BAD_REQUEST, "No file uploaded")

    # Read one byte past the limit to detect oversize files without buffering them whole.
    content = await file.read(settings.max_upload_bytes + 1)
    if len(content) == 0:
        return _failure(status.HTTP_400_BAD_REQUEST, "File is empty")
    if len(content) > settings.max_upload_bytes:
        return _failure(
            413,
            f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB.",
        )

    if object_store is None:
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Uploads are not configured")

    filename = file.filename or "upload"
    try:
        media_url = await object_store.upload(content, filename, file.content_type)
    except UploadFailed as e:
        logger.error(f"Upload of '{filename}' failed: {e.message}")
        return _failure(status.HTTP_502_BAD_GATEWAY, e.message)

    try:
        token = await grants.create_grant(media_url)
    except (StoreUnavailable, CreationFailed) as e:
        logger.error(f"Could not create grant for '{filename}': {e}")
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Could not create link, please try again")

    return UploadResponse(link=f"{settings.public_base_url}/view/{token}")


@router.get("/view/{token}", response_class=HTMLResponse)
async def view_media(token: str, grants: GrantManager = Depends(get_grant_manager)):
    """Show the media once; unknown, consumed and expired links look the same."""
    try:
        media_ref = await grants.begin_view(token)
    except GrantExpired:
        return pages.expired_page()
    except StoreUnavailable:
        return pages.unavailable_page()
    return pages.viewer_page(token, media_ref, settings.view_countdown_seconds)


@router.post("/expire/{token}", response_model=ExpireResponse)
async def expire_media(token: str, grants: GrantManager = Depends(get_grant_manager)):
    """Consume the link. Reports success whether or not this call won the race."""
    try:
        await grants.finalize_view(token)
    except StoreUnavailable:
        return _failure(status.HTTP_503_SERVICE_UNAVAILABLE, "Store unavailable, please try again")
    return ExpireResponse()
