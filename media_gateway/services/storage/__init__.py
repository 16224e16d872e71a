"""Storage abstraction layer for uploaded media.

This module provides a unified interface for storing and deleting objects
on Google Cloud Storage (primary) and DigitalOcean Spaces (secondary), and a
router that picks the backend for a write or for an existing public URL.
"""

from media_gateway.services.storage.base import StorageBackendInterface
from media_gateway.services.storage.factory import (StorageConfig,
                                                    StorageRouter,
                                                    build_backends,
                                                    get_default_router)
from media_gateway.services.storage.gcs import GoogleCloudStorageBackend
from media_gateway.services.storage.spaces import DigitalSpacesBackend

__all__ = [
    "StorageBackendInterface",
    "GoogleCloudStorageBackend",
    "DigitalSpacesBackend",
    "StorageConfig",
    "StorageRouter",
    "build_backends",
    "get_default_router",
]
