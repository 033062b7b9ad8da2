"""
Cloudinary Upload API Client

Async HTTP client for Cloudinary's signed upload endpoint. Only the one call
burnview needs: upload a file with ``resource_type=auto`` and hand back its
``secure_url``.

API Base URL: https://api.cloudinary.com/v1_1
Auth: api_key + SHA-1 signature of the signed params and the API secret
"""

import hashlib
import logging
import time
from collections.abc import Callable

import httpx

from grants.errors import UploadFailed

from .object_store import ObjectStore

logger = logging.getLogger(__name__)

CLOUDINARY_API_URL = "https://api.cloudinary.com/v1_1"


def sign_params(params: dict[str, str], api_secret: str) -> str:
    """Cloudinary signature: sorted ``k=v`` pairs joined by ``&``, then the secret, SHA-1."""
    to_sign = "&".join(f"{k}={params[k]}" for k in sorted(params) if params[k] != "")
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryClient(ObjectStore):
    """Async HTTP client for Cloudinary uploads."""

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        base_url: str = CLOUDINARY_API_URL,
        timeout: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        if not cloud_name:
            raise ValueError("Cloudinary cloud name is not configured")
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._clock = clock

    @classmethod
    def from_settings(cls, settings) -> "CloudinaryClient":
        return cls(
            cloud_name=settings.cloudinary_cloud_name,
            api_key=settings.cloudinary_api_key,
            api_secret=settings.cloudinary_api_secret,
        )

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/{self.cloud_name}/auto/upload"

    async def upload(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Upload a file and return its HTTPS delivery URL.

        Args:
            data: Raw file bytes.
            filename: Original filename, passed through to Cloudinary.
            content_type: MIME type reported by the client, if any.

        Returns:
            The ``secure_url`` of the stored asset.

        Raises:
            UploadFailed: On transport errors, error statuses or a malformed reply.
        """
        params = {"timestamp": str(int(self._clock()))}
        form = {**params, "api_key": self.api_key, "signature": sign_params(params, self.api_secret)}
        files = {"file": (filename, data, content_type or "application/octet-stream")}

        logger.info(f"Cloudinary upload: {filename} ({len(data)} bytes)")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.upload_url, data=form, files=files)
        except httpx.HTTPError as e:
            logger.error(f"Cloudinary upload request failed: {e}")
            raise UploadFailed(f"Upload request failed: {e}") from e

        logger.info(f"Cloudinary response: {response.status_code}")

        if response.status_code >= 400:
            logger.error(f"Cloudinary error response body: {response.text[:2000]}")
            try:
                body = response.json()
            except ValueError:
                body = {}

            error_msg = response.text or f"HTTP {response.status_code}"
            if isinstance(body.get("error"), dict):
                error_msg = body["error"].get("message", error_msg)
            elif isinstance(body.get("error"), str):
                error_msg = body["error"]
            raise UploadFailed(error_msg, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as e:
            raise UploadFailed("Upload response was not JSON") from e
        secure_url = body.get("secure_url") if isinstance(body, dict) else None
        if not secure_url:
            raise UploadFailed("Upload response had no secure_url")
        return secure_url
