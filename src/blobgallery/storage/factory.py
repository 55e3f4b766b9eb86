"""Factory for creating blob backend instances."""

from pathlib import Path

from ..config import StorageSettings
from ..constants import CONNECTION_STRING_ENV, ROOT_ENV
from ..errors import ConfigError
from .azure import AzureBlobBackend
from .base import BlobBackend
from .fs import FilesystemBlobBackend


def validate_azure_config(settings: StorageSettings) -> None:
    """
    Early validation of Azure configuration.

    Args:
        settings: Storage settings to validate

    Raises:
        ConfigError: If configuration is invalid
    """
    if not settings.connection_string:
        raise ConfigError(
            f"Set {CONNECTION_STRING_ENV} or storage.connection_string "
            "for Azure blob storage"
        )


def make_backend(settings: StorageSettings) -> BlobBackend:
    """
    Create a backend instance from settings.

    Args:
        settings: Storage settings

    Returns:
        BlobBackend for the configured provider

    Raises:
        ConfigError: If configuration is invalid
        NotImplementedError: If provider is not supported
    """
    if settings.provider == "azure":
        validate_azure_config(settings)
        try:
            return AzureBlobBackend(settings.connection_string)
        except ValueError as e:
            raise ConfigError(f"Invalid {CONNECTION_STRING_ENV}: {e}") from e

    elif settings.provider == "fs":
        if not settings.root:
            raise ConfigError(
                f"storage.root (directory path) or {ROOT_ENV} required for filesystem storage"
            )
        return FilesystemBlobBackend(Path(settings.root))

    else:
        raise NotImplementedError(f"Provider {settings.provider} not supported")
