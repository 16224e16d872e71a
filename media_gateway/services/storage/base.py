"""Base interface for storage backends."""

import asyncio
import logging
import mimetypes
from abc import ABC, abstractmethod
from typing import Any

from media_gateway.models.media import StorageType
from media_gateway.services.storage.streams import AsyncReadable

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"
CACHE_MAX_AGE_SECONDS = 7 * 24 * 60 * 60
CACHE_CONTROL = f"public, max-age={CACHE_MAX_AGE_SECONDS}"
DEFAULT_SIGNED_URL_EXPIRES = 10 * 60


def guess_content_type(path: str) -> str:
    """Best-effort MIME type from a key, path or URL path; ``""`` if unknown."""
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or ""


class StorageBackendInterface(ABC):
    """Abstract base class for storage backends.

    Every backend exposes the same capability set over one physical provider.
    Provider quirks (URL shape, credentials, SDK calls) stay inside the
    implementation. Store and delete operations never raise: failures are
    logged and reported as ``None`` / ``False``.
    """

    storage_type: StorageType

    @abstractmethod
    async def store_from_path(
        self, local_path: str, destination: str, provider_options: dict[str, Any] | None = None
    ) -> str | None:
        """Upload a local file.

        Args:
            local_path: File to read fully into memory
            destination: Object key inside the backend
            provider_options: Request parameters overriding the public-read,
                cache-control and content-type defaults

        Returns:
            Public URL of the stored object, or None on failure
        """
        pass

    @abstractmethod
    async def store_from_url(
        self, source_url: str, destination: str, provider_options: dict[str, Any] | None = None
    ) -> str | None:
        """Stream a remote resource into the backend without buffering it.

        Args:
            source_url: Resource to fetch; its path decides the content type
            destination: Object key inside the backend
            provider_options: Request parameter overrides

        Returns:
            Public URL of the stored object, or None on failure
        """
        pass

    @abstractmethod
    async def store_from_stream(
        self,
        destination: str,
        readable: AsyncReadable,
        provider_options: dict[str, Any] | None = None,
    ) -> str | None:
        """Pipe an async readable into the backend.

        A failed transfer may leave a truncated object behind; it is not
        cleaned up.

        Args:
            destination: Object key inside the backend
            readable: Object with an ``async read(size)`` method
            provider_options: Request parameter overrides

        Returns:
            Public URL of the stored object, or None on failure
        """
        pass

    @abstractmethod
    async def delete_by_url(self, url: str) -> bool:
        """Delete the object a public URL points to.

        Returns:
            True if the object existed and was deleted
        """
        pass

    @abstractmethod
    async def issue_upload_credential(
        self, destination: str, expires_in: int = DEFAULT_SIGNED_URL_EXPIRES
    ) -> str:
        """Create a pre-signed PUT URL for a client-direct upload.

        Only the public-read ACL is signed (``host;x-amz-acl``). The client
        must send the ``x-amz-acl: public-read`` header with its PUT and may
        send any Content-Type or Cache-Control it likes.

        Args:
            destination: Object key the client may write
            expires_in: Seconds until the URL stops being accepted

        Returns:
            Signed URL
        """
        pass

    @abstractmethod
    def public_url(self, key: str) -> str:
        """Public URL for an object key in the configured bucket."""
        pass

    @abstractmethod
    def parse_url(self, url: str) -> tuple[str, str]:
        """Recover ``(bucket, key)`` from a public URL.

        Raises:
            UnparsableStorageUrlError: URL does not follow this backend's shape
        """
        pass

    async def delete_each_by_url(self, urls: list[str]) -> dict[str, bool]:
        """Delete all URLs concurrently and report the outcome per URL."""
        unique_urls = list(dict.fromkeys(urls))
        results = await asyncio.gather(
            *(self.delete_by_url(url) for url in unique_urls), return_exceptions=True
        )
        return {url: result is True for url, result in zip(unique_urls, results)}

    async def delete_many_by_url(self, urls: list[str]) -> bool:
        """Delete all URLs concurrently, waiting for every attempt.

        Always returns True; use ``delete_each_by_url`` for per-item results.
        """
        results = await self.delete_each_by_url(urls)
        failed = [url for url, ok in results.items() if not ok]
        if failed:
            logger.warning(
                f"{self.storage_type.value}: {len(failed)}/{len(results)} deletions failed"
            )
        return True

    def _object_params(
        self, content_type: str, provider_options: dict[str, Any] | None
    ) -> dict[str, Any]:
        """Default write parameters with caller overrides applied on top."""
        params: dict[str, Any] = {
            "ACL": PUBLIC_READ_ACL,
            "ContentType": content_type,
            "CacheControl": CACHE_CONTROL,
        }
        if provider_options:
            params.update(provider_options)
        return params
