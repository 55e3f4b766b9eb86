"""Blob access facade: listing and upload over a single backend handle.

The facade owns one backend (and thus one connection) for its lifetime and
is safe to share between concurrent callers; no two calls coordinate.

Failures are never swallowed. A listing that fails midway raises
``ListingFailed`` carrying the references collected so far, so an empty
container (``[]``) is always distinguishable from a failed listing.
"""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import List, Optional, Union

from .config import StorageSettings
from .errors import (
    BackendError,
    BlobNotFound,
    ContainerListingFailed,
    ContainerNotFound,
    ContainerUploadFailed,
    FetchFailed,
    ListingFailed,
    OperationCancelled,
    UploadFailed,
)
from .storage import BlobBackend, make_backend
from .storage_models import BlobKind, BlobReference, ListingDetails

logger = logging.getLogger(__name__)


def _require_name(value: str, what: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{what} must be a non-empty string")


def _check_cancel(cancel: Optional[asyncio.Event], operation: str, partial=()) -> None:
    if cancel is not None and cancel.is_set():
        logger.info("%s cancelled", operation)
        raise OperationCancelled(operation, partial)


class BlobAccess:
    """List and save blobs without exposing the backing connection."""

    def __init__(self, backend: BlobBackend):
        self._backend = backend

    @classmethod
    def from_settings(cls, settings: StorageSettings) -> "BlobAccess":
        """Build the backend once, at startup, from configuration."""
        return cls(make_backend(settings))

    async def __aenter__(self) -> "BlobAccess":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._backend.close()

    async def list_blobs(
        self,
        container: str,
        prefix: str = "",
        page_size: Optional[int] = None,
        include: Optional[ListingDetails] = None,
        kind: Optional[BlobKind] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[BlobReference]:
        """
        List every blob in a container, following continuation tokens.

        Pages are fetched strictly in sequence: each request carries the
        token from the previous response, starting with none, until the
        backend returns no token. All pages are buffered before returning.

        Args:
            container: Container name
            prefix: Only blobs whose name starts with this
            page_size: Items requested per round-trip (server may return fewer)
            include: Extended details passed through to the backend
            kind: Keep only blobs of this kind
            cancel: Set to abort before the next page request

        Returns:
            References in server order; empty if nothing matches

        Raises:
            ValueError: On an empty container name or page_size < 1
            ListingFailed: A page request failed (``partial`` holds earlier pages)
            ContainerListingFailed: The container is missing or inaccessible
            OperationCancelled: ``cancel`` was set
        """
        _require_name(container, "container")
        if page_size is not None and page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")

        results: List[BlobReference] = []
        token: Optional[str] = None
        pages = 0

        while True:
            _check_cancel(cancel, "list_blobs", results)
            try:
                page = await self._backend.list_page(
                    container,
                    prefix=prefix,
                    page_size=page_size,
                    include=include,
                    continuation_token=token,
                )
            except ContainerNotFound as e:
                logger.warning("Listing %s failed: %s", container, e)
                raise ContainerListingFailed(container, results, pages, str(e)) from e
            except BackendError as e:
                logger.warning(
                    "Listing %s failed after %d page(s): %s", container, pages, e
                )
                raise ListingFailed(container, results, pages, str(e)) from e

            pages += 1
            for item in page.items:
                if kind is None or item.kind == kind:
                    results.append(item.reference())
            logger.debug(
                "Page %d of %s: %d item(s), more=%s",
                pages, container, len(page.items), page.continuation_token is not None,
            )

            token = page.continuation_token
            if token is None:
                break

        logger.info("Listed %d blob(s) from %s in %d page(s)", len(results), container, pages)
        return results

    async def save_blob(
        self,
        container: str,
        data: bytes,
        name: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> BlobReference:
        """
        Upload ``data`` as ``name`` in one request.

        An existing blob with the same name is overwritten (last writer wins).

        Raises:
            ValueError: On an empty container or blob name
            UploadFailed: The backend rejected the upload
            ContainerUploadFailed: The container is missing or inaccessible
            OperationCancelled: ``cancel`` was set
        """
        _require_name(container, "container")
        _require_name(name, "name")
        _check_cancel(cancel, "save_blob")

        content_type = mimetypes.guess_type(name)[0]
        try:
            descriptor = await self._backend.upload(
                container, name, bytes(data), content_type=content_type
            )
        except ContainerNotFound as e:
            logger.warning("Upload of %s to %s failed: %s", name, container, e)
            raise ContainerUploadFailed(container, name, str(e)) from e
        except BackendError as e:
            logger.warning("Upload of %s to %s failed: %s", name, container, e)
            raise UploadFailed(container, name, str(e)) from e

        logger.info("Saved %s (%d bytes) to %s", name, len(data), container)
        return descriptor.reference()

    async def save_file(
        self,
        container: str,
        path: Union[str, Path],
        name: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> BlobReference:
        """Upload a local file, named after the file unless ``name`` is given."""
        path = Path(path)
        data = await asyncio.to_thread(path.read_bytes)
        return await self.save_blob(container, data, name or path.name, cancel=cancel)

    async def fetch_blob(self, container: str, name: str) -> bytes:
        """
        Download a blob's bytes.

        Raises:
            BlobNotFound: No blob with that name
            FetchFailed: Any other backend failure
        """
        _require_name(container, "container")
        _require_name(name, "name")
        try:
            return await self._backend.download(container, name)
        except BlobNotFound:
            raise
        except BackendError as e:
            logger.warning("Fetching %s from %s failed: %s", name, container, e)
            raise FetchFailed(container, name, str(e)) from e

    async def create_container(self, container: str) -> bool:
        """Create a container; False if it already existed."""
        _require_name(container, "container")
        return await self._backend.create_container(container)
