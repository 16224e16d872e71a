"""Error taxonomy for storage and upload operations.

Storage and upload operations do not raise these kinds at their call sites:
adapters and the orchestrator classify the underlying exception, log it and
return ``None``/``False``. The exception classes below are only raised for
caller mistakes (bad input, strict URL resolution).
"""

from enum import Enum

import httpx
import pyvips
from botocore.exceptions import (BotoCoreError, ClientError,
                                 EndpointConnectionError, NoCredentialsError)


class StorageErrorKind(str, Enum):
    """Why a storage or upload operation failed."""

    TRANSPORT = "transport"  # network or backend unreachable
    PERMISSION = "permission"  # credential or ACL rejected
    ENCODING = "encoding"  # compression step failed
    NOT_FOUND = "not_found"  # delete target missing or URL unparsable


class MediaGatewayError(Exception):
    """Base class for errors raised to callers."""


class UnknownStorageHostError(MediaGatewayError):
    """URL host does not belong to any configured storage backend."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"No storage backend owns URL host: {url}")


class InvalidFilenameError(MediaGatewayError, ValueError):
    """Requested filename cannot be turned into a destination key."""

    def __init__(self, filename: str):
        self.filename = filename
        super().__init__(f"Invalid filename: {filename!r}")


class UnparsableStorageUrlError(MediaGatewayError, ValueError):
    """Public URL does not match the backend's addressing scheme."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Cannot recover bucket and key from URL: {url}")


_PERMISSION_CODES = {
    "AccessDenied",
    "AllAccessDisabled",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "ExpiredToken",
    "InvalidToken",
    "AccountProblem",
    "403",
    "401",
}

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}


def classify_error(exc: BaseException) -> StorageErrorKind:
    """Map an exception raised by a backend, HTTP or image call to its kind."""
    if isinstance(exc, ClientError):
        code = str(exc.response.get("Error", {}).get("Code", ""))
        if code in _PERMISSION_CODES:
            return StorageErrorKind.PERMISSION
        if code in _NOT_FOUND_CODES:
            return StorageErrorKind.NOT_FOUND
        return StorageErrorKind.TRANSPORT
    if isinstance(exc, NoCredentialsError):
        return StorageErrorKind.PERMISSION
    if isinstance(exc, (EndpointConnectionError, BotoCoreError)):
        return StorageErrorKind.TRANSPORT
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return StorageErrorKind.PERMISSION
        if status == 404:
            return StorageErrorKind.NOT_FOUND
        return StorageErrorKind.TRANSPORT
    if isinstance(exc, UnparsableStorageUrlError):
        return StorageErrorKind.NOT_FOUND
    if isinstance(exc, pyvips.Error):
        return StorageErrorKind.ENCODING
    if isinstance(exc, PermissionError):
        return StorageErrorKind.PERMISSION
    return StorageErrorKind.TRANSPORT
