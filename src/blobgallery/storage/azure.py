"""Azure blob storage backend."""

import logging
from typing import Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
)
from azure.storage.blob import BlobType, ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from ..errors import BackendError, BlobNotFound, ContainerNotFound, InvalidContinuationToken
from ..storage_models import BlobDescriptor, BlobKind, ListingDetails, ListingPage

logger = logging.getLogger(__name__)

_KIND_BY_TYPE = {
    BlobType.BLOCKBLOB: BlobKind.BLOCK,
    BlobType.PAGEBLOB: BlobKind.PAGE,
    BlobType.APPENDBLOB: BlobKind.APPEND,
}

# Service error codes that mean the marker we sent was not one it issued
_BAD_TOKEN_CODES = {"InvalidQueryParameterValue", "OutOfRangeQueryParameterValue"}


def blob_kind(properties) -> BlobKind:
    """Map SDK blob properties onto a BlobKind.

    Hierarchical-namespace accounts mark folders with ``hdi_isfolder``.
    """
    metadata = getattr(properties, "metadata", None) or {}
    if str(metadata.get("hdi_isfolder", "")).lower() == "true":
        return BlobKind.DIRECTORY
    return _KIND_BY_TYPE.get(properties.blob_type, BlobKind.BLOCK)


class AzureBlobBackend:
    """
    Azure Blob Storage backend over the async SDK.

    One ``BlobServiceClient`` is built from the connection string and reused
    for every request.
    """

    def __init__(self, connection_string: str = "", client: Optional[BlobServiceClient] = None):
        """
        Initialize Azure backend.

        Args:
            connection_string: Azure Storage connection string
            client: Pre-built service client (takes precedence)
        """
        if client is None:
            if not connection_string:
                raise ValueError("connection_string or client required for Azure blob storage")
            client = BlobServiceClient.from_connection_string(connection_string)
        self.client = client

    async def list_page(
        self,
        container: str,
        *,
        prefix: str = "",
        page_size: Optional[int] = None,
        include: Optional[ListingDetails] = None,
        continuation_token: Optional[str] = None,
    ) -> ListingPage:
        container_client = self.client.get_container_client(container)
        include_flags = include.as_include() if include is not None else []
        # Folder markers are only recognizable through metadata
        if "metadata" not in include_flags:
            include_flags = include_flags + ["metadata"]

        pager = container_client.list_blobs(
            name_starts_with=prefix or None,
            include=include_flags,
            results_per_page=page_size,
        ).by_page(continuation_token=continuation_token)

        items = []
        try:
            async for page in pager:
                async for props in page:
                    items.append(self._describe(container_client, props))
                break
        except ResourceNotFoundError as e:
            raise ContainerNotFound(container) from e
        except HttpResponseError as e:
            if continuation_token is not None and getattr(e, "error_code", None) in _BAD_TOKEN_CODES:
                raise InvalidContinuationToken(continuation_token, e.message) from e
            raise self._translate(e, container) from e
        except AzureError as e:
            raise self._translate(e, container) from e

        # The service reports the last page with an empty marker
        next_token = pager.continuation_token or None
        logger.debug(
            "Listed %d blob(s) from %s (more=%s)", len(items), container, next_token is not None
        )
        return ListingPage(items=items, continuation_token=next_token)

    async def upload(
        self,
        container: str,
        name: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
    ) -> BlobDescriptor:
        blob_client = self.client.get_blob_client(container=container, blob=name)
        content_settings = ContentSettings(content_type=content_type) if content_type else None
        try:
            result = await blob_client.upload_blob(
                data,
                blob_type=BlobType.BLOCKBLOB,
                overwrite=True,
                content_settings=content_settings,
            )
        except ResourceNotFoundError as e:
            raise ContainerNotFound(container) from e
        except AzureError as e:
            raise self._translate(e, container) from e

        return BlobDescriptor(
            name=name,
            locator=blob_client.url,
            kind=BlobKind.BLOCK,
            size=len(data),
            etag=result.get("etag"),
            last_modified=result.get("last_modified"),
        )

    async def download(self, container: str, name: str) -> bytes:
        blob_client = self.client.get_blob_client(container=container, blob=name)
        try:
            stream = await blob_client.download_blob()
            return await stream.readall()
        except ResourceNotFoundError as e:
            if getattr(e, "error_code", None) == "ContainerNotFound":
                raise ContainerNotFound(container) from e
            raise BlobNotFound(container, name) from e
        except AzureError as e:
            raise self._translate(e, container) from e

    async def create_container(self, container: str) -> bool:
        container_client = self.client.get_container_client(container)
        try:
            if await container_client.exists():
                return False
            await container_client.create_container()
        except AzureError as e:
            raise self._translate(e, container) from e
        logger.info("Created container %s", container)
        return True

    async def close(self) -> None:
        await self.client.close()

    def _describe(self, container_client, props) -> BlobDescriptor:
        snapshot = getattr(props, "snapshot", None)
        return BlobDescriptor(
            name=props.name,
            locator=container_client.get_blob_client(props.name, snapshot=snapshot).url,
            kind=blob_kind(props),
            size=getattr(props, "size", None),
            etag=getattr(props, "etag", None),
            last_modified=getattr(props, "last_modified", None),
            snapshot=snapshot,
            metadata=dict(getattr(props, "metadata", None) or {}),
        )

    def _translate(self, error: AzureError, container: str) -> BackendError:
        """Turn an SDK failure into a BackendError."""
        if isinstance(error, ClientAuthenticationError):
            # 403 on a container is indistinguishable from "not yours"
            return ContainerNotFound(container)
        status = getattr(error, "status_code", None)
        if status is not None:
            return BackendError(f"Azure returned {status} for container '{container}': {error.message}")
        return BackendError(f"Azure request for container '{container}' failed: {error}")
