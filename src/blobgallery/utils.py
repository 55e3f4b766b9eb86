"""Utility functions for blobgallery."""

from typing import Optional


def humanize_size(size: Optional[float]) -> str:
    """Convert bytes to human-readable format."""
    if size is None:
        return "-"
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TB"
