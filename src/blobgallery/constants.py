"""Constants for blobgallery."""

# Project marker directory
BLOBGALLERY_DIR = ".blobgallery"

# Configuration file (inside BLOBGALLERY_DIR)
CONFIG_FILE = "config.yaml"

# Environment variables
CONNECTION_STRING_ENV = "AZURE_STORAGE_CONNECTION_STRING"
PROVIDER_ENV = "BLOBGALLERY_PROVIDER"
CONTAINER_ENV = "BLOBGALLERY_CONTAINER"
ROOT_ENV = "BLOBGALLERY_ROOT"

# Defaults
DEFAULT_PROVIDER = "azure"
DEFAULT_CONTAINER = "photos"
SUPPORTED_PROVIDERS = ("azure", "fs")

# Largest page the Azure list operation returns
MAX_PAGE_SIZE = 5000
