"""Storage backends for blobgallery."""

from .base import BlobBackend
from .factory import make_backend

__all__ = ["BlobBackend", "make_backend"]
