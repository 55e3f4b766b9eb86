"""Custom exceptions for blobgallery.

Backends raise the ``BackendError`` family. The access facade translates
those into operation-level failures (``ListingFailed``, ``UploadFailed``,
``FetchFailed``) so callers can tell an empty result from a failed one.
"""

from typing import Sequence


class GalleryError(RuntimeError):
    """Base class for all blobgallery errors."""
    pass


# Configuration Errors
class ConfigError(GalleryError):
    """Invalid or missing configuration."""
    pass


# Storage Errors
class StorageError(GalleryError):
    """Base class for storage-related errors."""
    pass


class BackendError(StorageError):
    """The backing blob store rejected or could not complete a request."""
    pass


class ContainerNotFound(BackendError):
    """Container does not exist or is not accessible."""

    def __init__(self, container: str):
        self.container = container
        super().__init__(f"Container '{container}' does not exist or is not accessible")


class BlobNotFound(BackendError):
    """Blob does not exist in the container."""

    def __init__(self, container: str, name: str):
        self.container = container
        self.name = name
        super().__init__(f"Blob '{name}' not found in container '{container}'")


class InvalidContinuationToken(BackendError):
    """Continuation token was not issued for this listing."""

    def __init__(self, token: str, reason: str = ""):
        self.token = token
        token_display = token[:16] + "..." if len(token) > 16 else token
        message = f"Invalid continuation token '{token_display}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class InvalidContainer(StorageError):
    """Marker for operation failures caused by a missing or inaccessible container."""
    pass


class ListingFailed(StorageError):
    """A page request failed; carries whatever was accumulated before it."""

    def __init__(self, container: str, partial: Sequence = (), pages: int = 0, detail: str = ""):
        self.container = container
        self.partial = list(partial)
        self.pages = pages
        message = (
            f"Listing container '{container}' failed after {pages} page(s) "
            f"with {len(self.partial)} result(s) collected"
        )
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ContainerListingFailed(ListingFailed, InvalidContainer):
    """Listing failed because the container is missing or inaccessible."""
    pass


class UploadFailed(StorageError):
    """The backing store rejected or could not complete an upload."""

    def __init__(self, container: str, name: str, detail: str = ""):
        self.container = container
        self.name = name
        message = f"Upload of '{name}' to container '{container}' failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class ContainerUploadFailed(UploadFailed, InvalidContainer):
    """Upload failed because the container is missing or inaccessible."""
    pass


class FetchFailed(StorageError):
    """Downloading a blob's bytes failed."""

    def __init__(self, container: str, name: str, detail: str = ""):
        self.container = container
        self.name = name
        message = f"Fetching '{name}' from container '{container}' failed"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class OperationCancelled(StorageError):
    """Operation aborted through its cancellation signal."""

    def __init__(self, operation: str, partial: Sequence = ()):
        self.operation = operation
        self.partial = list(partial)
        super().__init__(
            f"{operation} cancelled with {len(self.partial)} result(s) collected"
        )
