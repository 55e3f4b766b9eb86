"""Storage configuration loading."""

import os
from pathlib import Path
from typing import Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from .constants import (
    BLOBGALLERY_DIR,
    CONFIG_FILE,
    CONNECTION_STRING_ENV,
    CONTAINER_ENV,
    DEFAULT_CONTAINER,
    DEFAULT_PROVIDER,
    MAX_PAGE_SIZE,
    PROVIDER_ENV,
    ROOT_ENV,
    SUPPORTED_PROVIDERS,
)
from .errors import ConfigError


class StorageSettings(BaseModel):
    """
    Where photos live and how to reach them.

    Providers:
    - "azure" (default): Azure Blob Storage, addressed by connection string
    - "fs": local directory with one sub-directory per container
    """
    provider: str = DEFAULT_PROVIDER      # "azure" | "fs"
    container: str = DEFAULT_CONTAINER    # Default container for commands
    connection_string: str = ""           # Azure only
    root: str = ""                        # fs only: base directory
    page_size: Optional[int] = Field(default=None, ge=1, le=MAX_PAGE_SIZE)

    @model_validator(mode="after")
    def validate_provider(self):
        """Reject providers we have no backend for."""
        if self.provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"Storage provider '{self.provider}' not supported. "
                f"Use one of: {', '.join(SUPPORTED_PROVIDERS)}"
            )
        return self


def config_path(root: Path) -> Path:
    """Location of the config file for a project root."""
    return root / BLOBGALLERY_DIR / CONFIG_FILE


def load_settings(root: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> StorageSettings:
    """Load settings from .blobgallery/config.yaml, then apply environment overrides.

    Args:
        root: Directory holding .blobgallery (defaults to current dir)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated StorageSettings

    Raises:
        ConfigError: If the file is unreadable or the settings are invalid
    """
    root = Path(root) if root is not None else Path.cwd()
    environ = os.environ if environ is None else environ

    cfg_path = config_path(root)
    data = {}
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {cfg_path}")

    storage = data.get("storage", data) or {}
    if not isinstance(storage, dict):
        raise ConfigError(f"Expected a mapping under storage in {cfg_path}")
    storage = dict(storage)

    # Environment wins over the file
    if environ.get(CONNECTION_STRING_ENV):
        storage["connection_string"] = environ[CONNECTION_STRING_ENV]
    if environ.get(PROVIDER_ENV):
        storage["provider"] = environ[PROVIDER_ENV]
    if environ.get(CONTAINER_ENV):
        storage["container"] = environ[CONTAINER_ENV]
    if environ.get(ROOT_ENV):
        storage["root"] = environ[ROOT_ENV]

    # Relative fs roots are relative to the project, not the cwd
    if storage.get("root") and not Path(storage["root"]).is_absolute():
        storage["root"] = str(root / storage["root"])

    try:
        return StorageSettings(**storage)
    except ValidationError as e:
        raise ConfigError(f"Invalid storage settings in {cfg_path}: {e}") from e
