"""Backend selection: which storage backend owns or should own an object."""

import asyncio
import logging
from dataclasses import dataclass
from urllib.parse import urlparse

import httpx

from media_gateway.core.exceptions import (StorageErrorKind,
                                           UnknownStorageHostError,
                                           UnparsableStorageUrlError)
from media_gateway.models.media import StorageType
from media_gateway.services.storage.base import (DEFAULT_SIGNED_URL_EXPIRES,
                                                 StorageBackendInterface)
from media_gateway.services.storage.gcs import (GCS_API_ENDPOINT, GCS_API_HOST,
                                                GoogleCloudStorageBackend)
from media_gateway.services.storage.spaces import (SPACES_DOMAIN_SUFFIX,
                                                   DigitalSpacesBackend)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Configuration for both storage backends, fixed at process start."""

    # Google Cloud Storage (primary)
    gg_bucket: str = ""
    gg_access_key_id: str | None = None
    gg_secret_access_key: str | None = None
    gg_endpoint: str = GCS_API_ENDPOINT

    # DigitalOcean Spaces (secondary)
    spaces_domain: str = ""
    spaces_region: str = ""
    spaces_key: str | None = None
    spaces_secret: str | None = None
    spaces_bucket: str = ""
    spaces_bucket_domain: str = ""

    @property
    def has_secondary(self) -> bool:
        return bool(self.spaces_bucket)

    @classmethod
    def from_settings(cls, settings=None) -> "StorageConfig":
        """Create configuration from application settings."""
        if settings is None:
            from media_gateway.core.config import settings

        return cls(
            gg_bucket=settings.GG_BUCKET,
            gg_access_key_id=settings.GG_ACCESS_KEY_ID,
            gg_secret_access_key=settings.GG_SECRET_ACCESS_KEY,
            gg_endpoint=settings.GG_ENDPOINT,
            spaces_domain=settings.SPACES_DOMAIN,
            spaces_region=settings.SPACES_REGION,
            spaces_key=settings.SPACES_KEY,
            spaces_secret=settings.SPACES_SECRET,
            spaces_bucket=settings.SPACES_BUCKET,
            spaces_bucket_domain=settings.SPACES_BUCKET_DOMAIN,
        )


def build_backends(
    config: StorageConfig, http_transport: httpx.AsyncBaseTransport | None = None
) -> dict[StorageType, StorageBackendInterface]:
    """Instantiate the configured backends. Spaces is skipped without a bucket."""
    backends: dict[StorageType, StorageBackendInterface] = {
        StorageType.GOOGLE: GoogleCloudStorageBackend(
            bucket_name=config.gg_bucket,
            access_key_id=config.gg_access_key_id,
            secret_access_key=config.gg_secret_access_key,
            endpoint_url=config.gg_endpoint,
            http_transport=http_transport,
        )
    }
    if config.has_secondary:
        backends[StorageType.DIGITAL] = DigitalSpacesBackend(
            bucket_name=config.spaces_bucket,
            endpoint_url=config.spaces_domain,
            bucket_domain=config.spaces_bucket_domain,
            region_name=config.spaces_region or None,
            access_key_id=config.spaces_key,
            secret_access_key=config.spaces_secret,
            http_transport=http_transport,
        )
    return backends


class StorageRouter:
    """Resolve backends for writes and for existing public URLs.

    Only the router branches on provider identity; everything else goes
    through ``StorageBackendInterface``.
    """

    def __init__(
        self,
        config: StorageConfig,
        backends: dict[StorageType, StorageBackendInterface] | None = None,
    ):
        """Initialize router.

        Args:
            config: Storage configuration
            backends: Backend instances keyed by type; built from ``config``
                when omitted
        """
        self.config = config
        self.backends = backends if backends is not None else build_backends(config)

    def select_for_write(self, storage_type: StorageType | None = None) -> StorageType:
        """Backend for a new object.

        Without a secondary bucket configured everything goes to the primary
        backend; otherwise the explicit choice wins, defaulting to primary.
        """
        if not self.config.has_secondary or StorageType.DIGITAL not in self.backends:
            return StorageType.GOOGLE
        return storage_type or StorageType.GOOGLE

    def get_service(self, storage_type: StorageType | None = None) -> StorageBackendInterface:
        return self.backends[self.select_for_write(storage_type)]

    def resolve_from_url(self, url: str, strict: bool = False) -> StorageType:
        """Backend that owns a public URL, decided by its host.

        Unknown hosts fall back to the primary backend unless ``strict`` is
        set, in which case ``UnknownStorageHostError`` is raised.

        Raises:
            UnparsableStorageUrlError: URL is malformed (non-strict mode)
        """
        try:
            host = (urlparse(url).hostname or "").lower()
        except ValueError as e:
            if strict:
                raise UnknownStorageHostError(url) from e
            raise UnparsableStorageUrlError(url) from e

        if host == GCS_API_HOST:
            return StorageType.GOOGLE
        if SPACES_DOMAIN_SUFFIX in host:
            return StorageType.DIGITAL

        if strict:
            raise UnknownStorageHostError(url)
        logger.warning(f"Unrecognized storage host '{host}', assuming {StorageType.GOOGLE.value}")
        return StorageType.GOOGLE

    async def delete_by_url(self, url: str) -> bool:
        try:
            storage_type = self.resolve_from_url(url)
        except UnparsableStorageUrlError as e:
            logger.warning(f"Cannot delete {url} [{StorageErrorKind.NOT_FOUND.value}]: {e}")
            return False

        backend = self.backends.get(storage_type)
        if backend is None:
            logger.warning(f"No {storage_type.value} backend configured, cannot delete {url}")
            return False
        return await backend.delete_by_url(url)

    async def delete_each_by_url(self, urls: list[str]) -> dict[str, bool]:
        """Delete URLs that may span both backends; outcome per URL."""
        unique_urls = list(dict.fromkeys(urls))
        results = await asyncio.gather(
            *(self.delete_by_url(url) for url in unique_urls), return_exceptions=True
        )
        return {url: result is True for url, result in zip(unique_urls, results)}

    async def delete_many_by_url(self, urls: list[str]) -> bool:
        """Best-effort delete of every URL. Always True once all have settled."""
        results = await self.delete_each_by_url(urls)
        failed = sum(1 for ok in results.values() if not ok)
        if failed:
            logger.warning(f"{failed}/{len(results)} deletions failed")
        return True

    async def issue_upload_credential(
        self, destination: str, expires_in: int = DEFAULT_SIGNED_URL_EXPIRES
    ) -> str:
        """Sign through Spaces when configured, otherwise the primary backend."""
        backend = self.get_service(StorageType.DIGITAL)
        return await backend.issue_upload_credential(destination, expires_in=expires_in)


# Global router instance (lazily initialized)
_storage_router: StorageRouter | None = None


def get_default_router() -> StorageRouter:
    """Get the default storage router (singleton).

    Uses application settings for configuration.
    """
    global _storage_router
    if _storage_router is None:
        _storage_router = StorageRouter(StorageConfig.from_settings())
    return _storage_router
