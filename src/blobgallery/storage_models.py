"""Data models for blob listings and uploads.

``BlobDescriptor`` is what a backend returns on the wire; ``BlobReference``
is the immutable handle handed to callers; ``PhotoMetadata`` is the
display projection used by the gallery.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BlobKind(str, Enum):
    """Kind of object reported by a listing."""
    BLOCK = "block"
    PAGE = "page"
    APPEND = "append"
    DIRECTORY = "directory"  # Hierarchical-namespace folder marker


class BlobReference(BaseModel):
    """Reference to one stored object."""
    model_config = ConfigDict(frozen=True)

    name: str                      # Unique within its container
    locator: str                   # URI addressing the object's bytes

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v:
            raise ValueError("blob name cannot be empty")
        return v


class BlobDescriptor(BaseModel):
    """Object descriptor as returned by a backend listing or upload."""
    model_config = ConfigDict(frozen=True)

    name: str
    locator: str
    kind: BlobKind = BlobKind.BLOCK
    size: Optional[int] = None
    etag: Optional[str] = None
    last_modified: Optional[datetime] = None
    snapshot: Optional[str] = None
    metadata: Dict[str, str] = Field(default_factory=dict)

    def reference(self) -> BlobReference:
        """Project onto the caller-facing reference."""
        return BlobReference(name=self.name, locator=self.locator)


class ListingPage(BaseModel):
    """One page of a paginated listing.

    A ``continuation_token`` of None means the listing is complete.
    """
    items: List[BlobDescriptor] = Field(default_factory=list)
    continuation_token: Optional[str] = None


class ListingDetails(BaseModel):
    """Extended data to request from the backing store when listing."""
    model_config = ConfigDict(frozen=True)

    snapshots: bool = False
    metadata: bool = False
    deleted: bool = False
    versions: bool = False

    def as_include(self) -> List[str]:
        """Flags in the order the Azure ``include`` parameter names them."""
        return [
            flag for flag, enabled in (
                ("snapshots", self.snapshots),
                ("metadata", self.metadata),
                ("deleted", self.deleted),
                ("versions", self.versions),
            ) if enabled
        ]


def title_from_name(name: str) -> str:
    """Display title for a blob: its last path segment."""
    return name.rstrip("/").rsplit("/", 1)[-1] or name


class PhotoMetadata(BaseModel):
    """Title and image locator shown for one photo."""
    title: str
    locator: str

    @classmethod
    def from_reference(cls, ref: BlobReference) -> "PhotoMetadata":
        return cls(title=title_from_name(ref.name), locator=ref.locator)
