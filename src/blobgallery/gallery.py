"""Gallery view state: show the first photo of a container."""

import logging
from typing import Optional

from .access import BlobAccess
from .errors import ListingFailed
from .storage_models import BlobKind, PhotoMetadata

logger = logging.getLogger(__name__)


class PhotoGallery:
    """
    Loads the photo a gallery page displays when it becomes visible.

    Only block blobs are considered photos. When listing fails the gallery
    falls back to whatever the partial result holds and records the error
    for the page to show.
    """

    def __init__(self, access: BlobAccess, container: str, prefix: str = "", page_size: Optional[int] = None):
        self.access = access
        self.container = container
        self.prefix = prefix
        self.page_size = page_size
        self.is_loading = False
        self.photo: Optional[PhotoMetadata] = None
        self.error: Optional[str] = None

    async def on_appearing(self) -> Optional[PhotoMetadata]:
        """Refresh ``photo`` from the container's first blob."""
        self.is_loading = True
        self.error = None
        try:
            refs = await self.access.list_blobs(
                self.container, prefix=self.prefix, page_size=self.page_size, kind=BlobKind.BLOCK,
            )
        except ListingFailed as e:
            logger.warning("Gallery listing for %s failed: %s", self.container, e)
            self.error = str(e)
            refs = e.partial
        finally:
            self.is_loading = False

        self.photo = PhotoMetadata.from_reference(refs[0]) if refs else None
        return self.photo
