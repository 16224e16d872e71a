"""Google Cloud Storage backend (primary).

Talks to GCS through its S3-interoperable XML API with HMAC keys. Objects are
addressed path-style: ``https://storage.googleapis.com/<bucket>/<key>``.
"""

from urllib.parse import unquote, urlparse

import httpx

from media_gateway.core.exceptions import UnparsableStorageUrlError
from media_gateway.models.media import StorageType
from media_gateway.services.storage.s3_compat import S3CompatibleBackend

GCS_API_ENDPOINT = "https://storage.googleapis.com"
GCS_API_HOST = "storage.googleapis.com"


class GoogleCloudStorageBackend(S3CompatibleBackend):
    """Storage backend using Google Cloud Storage.

    Suitable for:
    - Default destination of server-side uploads
    - Fallback when no Spaces bucket is configured
    """

    storage_type = StorageType.GOOGLE
    addressing_style = "path"

    def __init__(
        self,
        bucket_name: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str = GCS_API_ENDPOINT,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize GCS backend.

        Args:
            bucket_name: GCS bucket name
            access_key_id: HMAC access id of a service account
            secret_access_key: HMAC secret
            endpoint_url: XML API endpoint
            http_transport: Transport for fetching source URLs
        """
        super().__init__(
            bucket_name=bucket_name,
            endpoint_url=endpoint_url,
            region_name="auto",
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            http_transport=http_transport,
        )

    def public_url(self, key: str) -> str:
        return f"{self.endpoint_url}/{self.bucket_name}/{key}"

    def parse_url(self, url: str) -> tuple[str, str]:
        """Bucket is the first path segment, the key is the rest."""
        try:
            path = unquote(urlparse(url).path).lstrip("/")
        except ValueError as e:
            raise UnparsableStorageUrlError(url) from e
        bucket, _, key = path.partition("/")
        if not bucket or not key:
            raise UnparsableStorageUrlError(url)
        return bucket, key
