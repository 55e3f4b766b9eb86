"""Base protocol for blob storage backends."""

from typing import Optional, Protocol

from ..storage_models import BlobDescriptor, ListingDetails, ListingPage


class BlobBackend(Protocol):
    """
    Protocol for blob storage backends.

    All operations are coroutines. Backends raise the ``BackendError``
    family from ``blobgallery.errors`` and never return partial pages.
    A backend handle is read-only after construction and may be shared by
    concurrent callers.
    """

    async def list_page(
        self,
        container: str,
        *,
        prefix: str = "",
        page_size: Optional[int] = None,
        include: Optional[ListingDetails] = None,
        continuation_token: Optional[str] = None,
    ) -> ListingPage:
        """
        Fetch one page of a listing.

        Args:
            container: Container name
            prefix: Only names starting with this prefix
            page_size: Upper bound on items in this page (server may return fewer)
            include: Extended details to request
            continuation_token: Token from the previous page, None for the first

        Returns:
            ListingPage whose continuation_token is None on the last page
        """
        ...

    async def upload(
        self,
        container: str,
        name: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
    ) -> BlobDescriptor:
        """
        Upload a whole buffer in one request, overwriting any existing object.

        Returns:
            Descriptor of the written object
        """
        ...

    async def download(self, container: str, name: str) -> bytes:
        """Return the object's bytes."""
        ...

    async def create_container(self, container: str) -> bool:
        """Create a container. Returns False if it already existed."""
        ...

    async def close(self) -> None:
        """Release connections held by the backend."""
        ...
