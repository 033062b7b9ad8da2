"""Object store collaborator boundary."""

from abc import ABC, abstractmethod


class ObjectStore(ABC):
    """Accepts a binary payload and returns a stable URL for it."""

    @abstractmethod
    async def upload(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Store ``data`` and return its dereferenceable URL.

        Raises:
            UploadFailed: If the provider rejects or fails the upload.
        """
