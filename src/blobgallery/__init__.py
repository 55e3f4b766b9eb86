"""List and upload photos in a cloud blob container."""

from .access import BlobAccess
from .gallery import PhotoGallery
from .storage_models import BlobKind, BlobReference, ListingDetails, PhotoMetadata

__all__ = [
    "BlobAccess",
    "BlobKind",
    "BlobReference",
    "ListingDetails",
    "PhotoGallery",
    "PhotoMetadata",
]
