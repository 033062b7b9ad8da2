from .cloudinary import CLOUDINARY_API_URL, CloudinaryClient
from .object_store import ObjectStore

__all__ = ["CLOUDINARY_API_URL", "CloudinaryClient", "ObjectStore"]
