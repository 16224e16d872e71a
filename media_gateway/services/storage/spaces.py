"""DigitalOcean Spaces backend (secondary).

Spaces buckets are addressed virtual-host style, so the bucket is the first
label of the URL host: ``https://<bucket>.<region>.digitaloceanspaces.com/<key>``.
"""

from urllib.parse import unquote, urlparse

import httpx

from media_gateway.core.exceptions import UnparsableStorageUrlError
from media_gateway.models.media import StorageType
from media_gateway.services.storage.s3_compat import S3CompatibleBackend

SPACES_DOMAIN_SUFFIX = "digitaloceanspaces.com"


class DigitalSpacesBackend(S3CompatibleBackend):
    """Storage backend using DigitalOcean Spaces.

    Suitable for:
    - Client-direct uploads through pre-signed URLs
    - Deployments with Spaces credentials configured
    """

    storage_type = StorageType.DIGITAL
    addressing_style = "virtual"

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str,
        bucket_domain: str = "",
        region_name: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize Spaces backend.

        Args:
            bucket_name: Spaces bucket name
            endpoint_url: Regional endpoint, e.g. https://sgp1.digitaloceanspaces.com
            bucket_domain: Public origin of the bucket (origin or CDN host);
                defaults to ``<scheme>://<bucket>.<endpoint host>``
            region_name: Spaces region
            access_key_id: Spaces access key
            secret_access_key: Spaces secret
            http_transport: Transport for fetching source URLs
        """
        super().__init__(
            bucket_name=bucket_name,
            endpoint_url=endpoint_url,
            region_name=region_name,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            http_transport=http_transport,
        )
        if not bucket_domain and self.endpoint_url:
            # Virtual-host origin on the regional endpoint
            endpoint = urlparse(self.endpoint_url)
            bucket_domain = f"{endpoint.scheme}://{bucket_name}.{endpoint.netloc}"
        self.bucket_domain = bucket_domain.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.bucket_domain}/{key}"

    def parse_url(self, url: str) -> tuple[str, str]:
        """Bucket is the first host label, the key is the whole path."""
        try:
            parsed = urlparse(url)
            host = parsed.hostname or ""
        except ValueError as e:
            raise UnparsableStorageUrlError(url) from e
        key = unquote(parsed.path).lstrip("/")
        if "." not in host or not key:
            raise UnparsableStorageUrlError(url)
        return host.split(".")[0], key
