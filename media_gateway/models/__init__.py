"""Domain models for stored media."""

from media_gateway.models.media import (SignedUploadUrl, StorageType,
                                        UploadOutcome, UploadStage)

__all__ = [
    "StorageType",
    "UploadStage",
    "SignedUploadUrl",
    "UploadOutcome",
]
