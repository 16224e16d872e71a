"""Domain types for stored media and upload credentials."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from media_gateway.core.exceptions import StorageErrorKind


class StorageType(str, Enum):
    """Object storage backends an object can live in."""

    GOOGLE = "google"  # primary: Google Cloud Storage
    DIGITAL = "digital"  # secondary: DigitalOcean Spaces


class UploadStage(str, Enum):
    """Steps of a single orchestrated upload."""

    DELEGATE = "delegate"
    STAGE = "stage"
    COMPRESS = "compress"
    STORE = "store"
    CLEANUP = "cleanup"


@dataclass(frozen=True)
class SignedUploadUrl:
    """Pre-signed credential a client uses to PUT an object directly."""

    signed_url: str
    public_url: str
    filename: str
    key: str
    expires_at: datetime

    def to_dict(self) -> dict:
        return {
            "signed_url": self.signed_url,
            "public_url": self.public_url,
            "filename": self.filename,
            "key": self.key,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class UploadOutcome:
    """Result of one orchestrated upload.

    Either ``url`` is set, or ``failed_stage`` and ``error_kind`` say where and
    why the upload stopped.
    """

    url: str | None = None
    failed_stage: UploadStage | None = None
    error_kind: StorageErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.url is not None

    @classmethod
    def failure(cls, stage: UploadStage, kind: StorageErrorKind) -> "UploadOutcome":
        return cls(url=None, failed_stage=stage, error_kind=kind)
