"""Shared test fixtures and utilities."""

from pathlib import Path
from typing import List, Optional

import pytest

from blobgallery.access import BlobAccess
from blobgallery.errors import BackendError
from blobgallery.storage.fs import FilesystemBlobBackend


class CountingBackend:
    """Wraps a backend and records every page request."""

    def __init__(self, inner):
        self.inner = inner
        self.page_calls: List[dict] = []
        self.page_sizes: List[int] = []
        self.upload_calls = 0

    async def list_page(self, container, **kwargs):
        self.page_calls.append({"container": container, **kwargs})
        page = await self.inner.list_page(container, **kwargs)
        self.page_sizes.append(len(page.items))
        return page

    async def upload(self, container, name, data, **kwargs):
        self.upload_calls += 1
        return await self.inner.upload(container, name, data, **kwargs)

    async def download(self, container, name):
        return await self.inner.download(container, name)

    async def create_container(self, container):
        return await self.inner.create_container(container)

    async def close(self):
        await self.inner.close()


class FlakyBackend(CountingBackend):
    """Fails the Nth page request (1-based) and every upload when asked."""

    def __init__(self, inner, fail_on_page: Optional[int] = None, fail_uploads: bool = False):
        super().__init__(inner)
        self.fail_on_page = fail_on_page
        self.fail_uploads = fail_uploads

    async def list_page(self, container, **kwargs):
        if self.fail_on_page is not None and len(self.page_calls) + 1 == self.fail_on_page:
            self.page_calls.append({"container": container, **kwargs})
            raise BackendError("connection reset by peer")
        return await super().list_page(container, **kwargs)

    async def upload(self, container, name, data, **kwargs):
        if self.fail_uploads:
            raise BackendError("503 Server Busy")
        return await super().upload(container, name, data, **kwargs)


@pytest.fixture
def store_root(tmp_path) -> Path:
    """Filesystem store root with an empty 'photos' container."""
    root = tmp_path / "store"
    (root / "photos").mkdir(parents=True)
    return root


@pytest.fixture
def fs_backend(store_root) -> FilesystemBlobBackend:
    return FilesystemBlobBackend(store_root)


@pytest.fixture
def counting(fs_backend) -> CountingBackend:
    return CountingBackend(fs_backend)


@pytest.fixture
def access(counting) -> BlobAccess:
    return BlobAccess(counting)


@pytest.fixture
def seed(store_root):
    """Factory fixture to write blobs straight into a container directory."""
    def _seed(*names: str, container: str = "photos", content: bytes = b"\x89PNG"):
        container_dir = store_root / container
        container_dir.mkdir(parents=True, exist_ok=True)
        for name in names:
            path = container_dir / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        return container_dir
    return _seed
