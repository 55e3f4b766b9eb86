"""Tests for the Azure backend with the SDK client mocked out."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceNotFoundError,
    ServiceRequestError,
)
from azure.storage.blob import BlobType

from blobgallery.errors import (
    BackendError,
    BlobNotFound,
    ContainerNotFound,
    InvalidContinuationToken,
)
from blobgallery.storage.azure import AzureBlobBackend, blob_kind
from blobgallery.storage_models import BlobKind, ListingDetails

ACCOUNT_URL = "https://acct.blob.core.windows.net"


class FakePage:
    """Async iterator over one page of blob properties."""

    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


class FakePager:
    """Mimics AsyncPageIterator: continuation_token updates as pages are read."""

    def __init__(self, items, next_token, error=None):
        self._pages = [FakePage(items)]
        self._next_token = next_token
        self._error = error
        self.continuation_token = None

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._error is not None:
            raise self._error
        if not self._pages:
            raise StopAsyncIteration
        self.continuation_token = self._next_token
        return self._pages.pop(0)


def _props(name, blob_type=BlobType.BLOCKBLOB, metadata=None, snapshot=None):
    return SimpleNamespace(
        name=name,
        blob_type=blob_type,
        size=len(name),
        etag='"0x8DB"',
        last_modified=None,
        snapshot=snapshot,
        metadata=metadata or {},
    )


def _blob_client(name, snapshot=None):
    url = f"{ACCOUNT_URL}/photos/{name}"
    if snapshot:
        url += f"?snapshot={snapshot}"
    return SimpleNamespace(url=url)


@pytest.fixture
def container_client():
    client = MagicMock()
    client.get_blob_client.side_effect = _blob_client
    return client


@pytest.fixture
def service_client(container_client):
    client = MagicMock()
    client.get_container_client.return_value = container_client
    client.close = AsyncMock()
    return client


@pytest.fixture
def backend(service_client):
    return AzureBlobBackend(client=service_client)


def _serve_pages(container_client, pages):
    """Serve ``pages`` ({token: (items, next_token)}) through list_blobs().by_page()."""
    def by_page(continuation_token=None):
        items, next_token = pages[continuation_token]
        return FakePager(items, next_token)
    container_client.list_blobs.return_value.by_page.side_effect = by_page


@pytest.mark.asyncio
async def test_list_page_follows_sdk_pager(backend, container_client):
    _serve_pages(container_client, {
        None: ([_props("a.png"), _props("b.png")], "marker-1"),
        "marker-1": ([_props("c.png")], ""),
    })

    first = await backend.list_page("photos", page_size=2)
    second = await backend.list_page("photos", page_size=2, continuation_token=first.continuation_token)

    assert [d.name for d in first.items] == ["a.png", "b.png"]
    assert first.continuation_token == "marker-1"
    assert [d.name for d in second.items] == ["c.png"]
    # Empty marker means the listing is complete
    assert second.continuation_token is None
    assert first.items[0].locator == f"{ACCOUNT_URL}/photos/a.png"


@pytest.mark.asyncio
async def test_list_page_passes_request_parameters(backend, container_client):
    _serve_pages(container_client, {None: ([], None)})

    await backend.list_page(
        "photos", prefix="2024/", page_size=10, include=ListingDetails(snapshots=True)
    )

    container_client.list_blobs.assert_called_once_with(
        name_starts_with="2024/",
        include=["snapshots", "metadata"],
        results_per_page=10,
    )


@pytest.mark.asyncio
async def test_list_page_empty_prefix_is_none(backend, container_client):
    _serve_pages(container_client, {None: ([], None)})

    await backend.list_page("photos")

    kwargs = container_client.list_blobs.call_args.kwargs
    assert kwargs["name_starts_with"] is None
    assert kwargs["include"] == ["metadata"]


@pytest.mark.asyncio
async def test_blob_kinds_are_tagged(backend, container_client):
    _serve_pages(container_client, {None: ([
        _props("disk.vhd", BlobType.PAGEBLOB),
        _props("log.txt", BlobType.APPENDBLOB),
        _props("folder", metadata={"hdi_isfolder": "true"}),
        _props("a.png"),
    ], None)})

    page = await backend.list_page("photos")

    assert [d.kind for d in page.items] == [
        BlobKind.PAGE, BlobKind.APPEND, BlobKind.DIRECTORY, BlobKind.BLOCK,
    ]


@pytest.mark.asyncio
async def test_snapshot_locator(backend, container_client):
    _serve_pages(container_client, {None: ([_props("a.png", snapshot="2024-01-01T00:00:00Z")], None)})

    page = await backend.list_page("photos", include=ListingDetails(snapshots=True))

    assert page.items[0].snapshot == "2024-01-01T00:00:00Z"
    assert page.items[0].locator.endswith("?snapshot=2024-01-01T00:00:00Z")


def test_blob_kind_defaults_to_block():
    assert blob_kind(SimpleNamespace(blob_type=None, metadata=None)) == BlobKind.BLOCK


@pytest.mark.asyncio
async def test_missing_container_translated(backend, container_client):
    container_client.list_blobs.return_value.by_page.return_value = FakePager(
        [], None, error=ResourceNotFoundError("The specified container does not exist.")
    )

    with pytest.raises(ContainerNotFound):
        await backend.list_page("photos")


@pytest.mark.asyncio
async def test_auth_failure_is_container_not_found(backend, container_client):
    container_client.list_blobs.return_value.by_page.return_value = FakePager(
        [], None, error=ClientAuthenticationError("Server failed to authenticate the request.")
    )

    with pytest.raises(ContainerNotFound):
        await backend.list_page("photos")


@pytest.mark.asyncio
async def test_rejected_marker_is_invalid_token(backend, container_client):
    error = HttpResponseError("One of the query parameters specified in the request URI is not valid.")
    error.error_code = "InvalidQueryParameterValue"
    container_client.list_blobs.return_value.by_page.return_value = FakePager([], None, error=error)

    with pytest.raises(InvalidContinuationToken):
        await backend.list_page("photos", continuation_token="bogus")


@pytest.mark.asyncio
async def test_network_failure_is_backend_error(backend, container_client):
    container_client.list_blobs.return_value.by_page.return_value = FakePager(
        [], None, error=ServiceRequestError("Connection aborted.")
    )

    with pytest.raises(BackendError, match="Connection aborted"):
        await backend.list_page("photos")


@pytest.mark.asyncio
async def test_upload_overwrites_block_blob(backend, service_client):
    blob_client = MagicMock()
    blob_client.url = f"{ACCOUNT_URL}/photos/new.png"
    blob_client.upload_blob = AsyncMock(return_value={"etag": '"0x1"', "last_modified": None})
    service_client.get_blob_client.return_value = blob_client

    descriptor = await backend.upload("photos", "new.png", b"x" * 17, content_type="image/png")

    service_client.get_blob_client.assert_called_once_with(container="photos", blob="new.png")
    kwargs = blob_client.upload_blob.call_args.kwargs
    assert kwargs["overwrite"] is True
    assert kwargs["blob_type"] == BlobType.BLOCKBLOB
    assert kwargs["content_settings"].content_type == "image/png"
    assert descriptor.name == "new.png"
    assert descriptor.size == 17
    assert descriptor.etag == '"0x1"'
    assert descriptor.locator == f"{ACCOUNT_URL}/photos/new.png"


@pytest.mark.asyncio
async def test_upload_to_missing_container(backend, service_client):
    blob_client = MagicMock()
    blob_client.upload_blob = AsyncMock(side_effect=ResourceNotFoundError("container missing"))
    service_client.get_blob_client.return_value = blob_client

    with pytest.raises(ContainerNotFound):
        await backend.upload("photos", "a.png", b"x")


@pytest.mark.asyncio
async def test_download(backend, service_client):
    stream = MagicMock()
    stream.readall = AsyncMock(return_value=b"bytes")
    blob_client = MagicMock()
    blob_client.download_blob = AsyncMock(return_value=stream)
    service_client.get_blob_client.return_value = blob_client

    assert await backend.download("photos", "a.png") == b"bytes"


@pytest.mark.asyncio
async def test_download_missing_blob(backend, service_client):
    blob_client = MagicMock()
    blob_client.download_blob = AsyncMock(side_effect=ResourceNotFoundError("The specified blob does not exist."))
    service_client.get_blob_client.return_value = blob_client

    with pytest.raises(BlobNotFound):
        await backend.download("photos", "a.png")


@pytest.mark.asyncio
async def test_create_container(backend, container_client):
    container_client.exists = AsyncMock(side_effect=[False, True])
    container_client.create_container = AsyncMock()

    assert await backend.create_container("photos") is True
    assert await backend.create_container("photos") is False
    container_client.create_container.assert_awaited_once()


@pytest.mark.asyncio
async def test_close_closes_client(backend, service_client):
    await backend.close()

    service_client.close.assert_awaited_once()


def test_requires_connection_string():
    with pytest.raises(ValueError, match="connection_string"):
        AzureBlobBackend()
