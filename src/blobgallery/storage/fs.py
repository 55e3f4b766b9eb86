"""Filesystem blob backend for tests and offline use."""

import asyncio
import base64
import binascii
import json
import logging
import mimetypes
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ..constants import MAX_PAGE_SIZE
from ..errors import BackendError, BlobNotFound, ContainerNotFound, InvalidContinuationToken
from ..storage_models import BlobDescriptor, BlobKind, ListingDetails, ListingPage

logger = logging.getLogger(__name__)

_META_SUFFIX = ".meta.json"
_TMP_PREFIX = ".tmp-"


class FilesystemBlobBackend:
    """
    Local filesystem store (avoids an Azurite dependency in unit tests).

    Each container is a directory under ``base_dir``; blob names map to
    relative paths, so ``2024/a.png`` lives at ``base_dir/<container>/2024/a.png``.
    Sub-directories are reported as ``BlobKind.DIRECTORY`` entries. Listings
    are ordered by name, and continuation tokens encode the last name served.
    """

    def __init__(self, base_dir: Path):
        """
        Initialize filesystem store.

        Args:
            base_dir: Base directory holding one directory per container
        """
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    async def list_page(
        self,
        container: str,
        *,
        prefix: str = "",
        page_size: Optional[int] = None,
        include: Optional[ListingDetails] = None,
        continuation_token: Optional[str] = None,
    ) -> ListingPage:
        return await asyncio.to_thread(
            self._list_page, container, prefix, page_size, include, continuation_token
        )

    async def upload(
        self,
        container: str,
        name: str,
        data: bytes,
        *,
        content_type: Optional[str] = None,
    ) -> BlobDescriptor:
        return await asyncio.to_thread(self._upload, container, name, data, content_type)

    async def download(self, container: str, name: str) -> bytes:
        return await asyncio.to_thread(self._download, container, name)

    async def create_container(self, container: str) -> bool:
        return await asyncio.to_thread(self._create_container, container)

    async def close(self) -> None:
        return None

    def _container_dir(self, container: str) -> Path:
        """Resolve a container directory, which must exist."""
        path = self._resolve(self.base_dir, container)
        if path is None or path.parent != self.base_dir.resolve() or not path.is_dir():
            raise ContainerNotFound(container)
        return path

    def _resolve(self, parent: Path, relative: str) -> Optional[Path]:
        """Resolve a path and ensure it stays under ``parent``."""
        root = parent.resolve()
        candidate = (parent / relative).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            return None
        if candidate == root:
            return None
        return candidate

    def _blob_path(self, container: str, name: str) -> Path:
        container_dir = self._container_dir(container)
        # Names must survive the round trip through a path unchanged
        segments = name.split("/")
        if any(s in ("", ".", "..") or s.startswith(_TMP_PREFIX) for s in segments):
            raise BackendError(f"Invalid blob name '{name}'")
        path = self._resolve(container_dir, name)
        if path is None or name.endswith(_META_SUFFIX):
            raise BackendError(f"Invalid blob name '{name}'")
        return path

    def _encode_token(self, container: str, last_name: str) -> str:
        payload = json.dumps({"c": container, "after": last_name}).encode()
        return base64.urlsafe_b64encode(payload).decode("ascii")

    def _decode_token(self, container: str, token: str) -> str:
        try:
            payload = json.loads(base64.urlsafe_b64decode(token.encode("ascii")))
        except (binascii.Error, ValueError, UnicodeEncodeError) as e:
            raise InvalidContinuationToken(token, "not a token issued by this store") from e
        if not isinstance(payload, dict) or not isinstance(payload.get("after"), str):
            raise InvalidContinuationToken(token, "malformed token")
        if payload.get("c") != container:
            raise InvalidContinuationToken(token, "issued for another container")
        return payload["after"]

    def _describe(self, container_dir: Path, path: Path, include: Optional[ListingDetails]) -> BlobDescriptor:
        name = path.relative_to(container_dir).as_posix()
        st = path.stat()
        modified = datetime.fromtimestamp(st.st_mtime, tz=timezone.utc)
        if path.is_dir():
            return BlobDescriptor(
                name=name,
                locator=path.as_uri(),
                kind=BlobKind.DIRECTORY,
                last_modified=modified,
            )
        metadata = {}
        if include is not None and include.metadata:
            metadata = self._read_metadata(path)
        return BlobDescriptor(
            name=name,
            locator=path.as_uri(),
            kind=BlobKind.BLOCK,
            size=st.st_size,
            etag=f'"{st.st_mtime_ns:x}-{st.st_size:x}"',
            last_modified=modified,
            metadata=metadata,
        )

    def _read_metadata(self, path: Path) -> dict:
        meta_path = path.with_name(path.name + _META_SUFFIX)
        if not meta_path.exists():
            return {}
        try:
            raw = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.debug("Ignoring unreadable metadata sidecar %s", meta_path)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _names(self, container_dir: Path) -> List[Path]:
        """All blob and directory paths, ordered by blob name."""
        paths = [
            p for p in container_dir.rglob("*")
            if not p.name.endswith(_META_SUFFIX) and not p.name.startswith(_TMP_PREFIX)
        ]
        return sorted(paths, key=lambda p: p.relative_to(container_dir).as_posix())

    def _list_page(
        self,
        container: str,
        prefix: str,
        page_size: Optional[int],
        include: Optional[ListingDetails],
        continuation_token: Optional[str],
    ) -> ListingPage:
        container_dir = self._container_dir(container)
        after = None
        if continuation_token is not None:
            after = self._decode_token(container, continuation_token)

        limit = page_size or MAX_PAGE_SIZE
        try:
            candidates = [
                p for p in self._names(container_dir)
                if p.relative_to(container_dir).as_posix().startswith(prefix)
            ]
            if after is not None:
                candidates = [
                    p for p in candidates
                    if p.relative_to(container_dir).as_posix() > after
                ]
            served = candidates[:limit]
            items = [self._describe(container_dir, p, include) for p in served]
        except OSError as e:
            raise BackendError(f"Listing {container_dir} failed: {e}") from e

        token = None
        if len(candidates) > limit:
            token = self._encode_token(container, items[-1].name)
        logger.debug("Listed %d item(s) from %s", len(items), container_dir)
        return ListingPage(items=items, continuation_token=token)

    def _upload(self, container: str, name: str, data: bytes, content_type: Optional[str]) -> BlobDescriptor:
        dest = self._blob_path(container, name)
        if dest.is_dir():
            raise BackendError(f"Blob name '{name}' is a directory")

        try:
            dest.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so readers never see a torn blob
            fd, tmp = tempfile.mkstemp(prefix=_TMP_PREFIX, dir=dest.parent)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, dest)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
            content_type = content_type or mimetypes.guess_type(name)[0]
            meta_path = dest.with_name(dest.name + _META_SUFFIX)
            if content_type:
                meta_path.write_text(json.dumps({"content_type": content_type}), encoding="utf-8")
            else:
                meta_path.unlink(missing_ok=True)
        except OSError as e:
            raise BackendError(f"Writing {dest} failed: {e}") from e

        container_dir = self._container_dir(container)
        return self._describe(container_dir, dest, None)

    def _download(self, container: str, name: str) -> bytes:
        src = self._blob_path(container, name)
        if not src.is_file():
            raise BlobNotFound(container, name)
        try:
            return src.read_bytes()
        except OSError as e:
            raise BackendError(f"Reading {src} failed: {e}") from e

    def _create_container(self, container: str) -> bool:
        path = self._resolve(self.base_dir, container)
        if path is None or path.parent != self.base_dir.resolve():
            raise BackendError(f"Invalid container name '{container}'")
        if path.is_dir():
            return False
        path.mkdir()
        return True
