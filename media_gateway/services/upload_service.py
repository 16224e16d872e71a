"""Upload orchestration and signed upload URL issuance.

This service provides:
- Server-side uploads from a URL, a local path or raw bytes, with image
  re-encoding and guaranteed scratch file cleanup
- Delegation of URL uploads to a peer gateway from non-production deployments
- Pre-signed PUT URLs for client-direct uploads
"""

import asyncio
import logging
import random
from datetime import datetime, timedelta
from pathlib import Path

import aiofiles
import aiofiles.os
import httpx

from media_gateway.core.config import Settings
from media_gateway.core.exceptions import (InvalidFilenameError,
                                           StorageErrorKind, classify_error)
from media_gateway.models.media import (SignedUploadUrl, StorageType,
                                        UploadOutcome, UploadStage)
from media_gateway.services.compression import (compress_image_async,
                                                is_image_extension)
from media_gateway.services.storage import StorageRouter, get_default_router
from media_gateway.utils.strings import (FILE_EXT_PATTERN,
                                         slugify_filename_stem, split_filename,
                                         unique_file_name)

logger = logging.getLogger(__name__)

SIGNED_UPLOAD_PREFIX = "event/medias"
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def build_signed_upload_key(filename: str, now: datetime | None = None) -> str:
    """Destination key for a client-direct upload.

    Structure: event/medias/{year}-{month}/{slug}-{epoch_ms}.{ext}
    """
    stem, ext = split_filename(filename)
    slug = slugify_filename_stem(stem)
    if not slug or not ext:
        raise InvalidFilenameError(filename)

    now = now or datetime.now()
    return f"{SIGNED_UPLOAD_PREFIX}/{now.year}-{now.month}/{slug}-{int(now.timestamp() * 1000)}.{ext}"


class UploadService:
    """Service for storing media on the configured object storage backends."""

    def __init__(
        self,
        settings: Settings | None = None,
        router: StorageRouter | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize upload service.

        Args:
            settings: Application settings (uses the global settings if not provided)
            router: Storage router (uses default if not provided)
            http_transport: Transport for source downloads and delegation calls
        """
        if settings is None:
            from media_gateway.core.config import settings
        self.settings = settings
        self.router = router or get_default_router()
        self.upload_dir = Path(self.settings.UPLOAD_DIR)
        self.http_transport = http_transport

    def _http_client(self, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.http_transport, follow_redirects=True, **kwargs)

    # =========================================================================
    # Server-side uploads
    # =========================================================================

    async def upload_file_to_cloud(
        self,
        topic: str,
        source_url: str,
        file_ext: str,
        storage_type: StorageType | None = None,
    ) -> str | None:
        """Store the resource at ``source_url`` under ``topic``.

        Returns:
            Public URL, or None if any step failed
        """
        outcome = await self.run_upload(
            topic, file_ext, source_url=source_url, storage_type=storage_type
        )
        return outcome.url

    async def upload_local_file(
        self,
        topic: str,
        local_path: str,
        file_ext: str,
        storage_type: StorageType | None = None,
    ) -> str | None:
        outcome = await self.run_upload(
            topic, file_ext, local_path=local_path, storage_type=storage_type
        )
        return outcome.url

    async def upload_bytes(
        self,
        topic: str,
        data: bytes,
        file_ext: str,
        storage_type: StorageType | None = None,
    ) -> str | None:
        outcome = await self.run_upload(topic, file_ext, data=data, storage_type=storage_type)
        return outcome.url

    async def run_upload(
        self,
        topic: str,
        file_ext: str,
        *,
        source_url: str | None = None,
        local_path: str | None = None,
        data: bytes | None = None,
        storage_type: StorageType | None = None,
        allow_delegation: bool = True,
    ) -> UploadOutcome:
        """Run one upload: [delegate] -> stage -> [compress] -> store -> cleanup.

        Exactly one of ``source_url``, ``local_path`` or ``data`` is expected,
        and ``file_ext`` must be alphanumeric (an optional leading dot is
        dropped).
        Nothing is retried; the first failing step decides the outcome.
        """
        if sum(src is not None for src in (source_url, local_path, data)) != 1:
            raise ValueError("Exactly one of source_url, local_path or data is required")

        file_ext = file_ext.lower().lstrip(".")
        if not FILE_EXT_PATTERN.match(file_ext):
            raise ValueError(f"Invalid file extension: {file_ext!r}")

        if source_url and allow_delegation and self.settings.delegation_enabled:
            delegated_url = await self._delegate(topic, source_url, file_ext)
            if delegated_url:
                return UploadOutcome(url=delegated_url)

        file_name = unique_file_name(file_ext)
        destination = f"{topic.strip('/')}/{file_name}"
        backend = self.router.get_service(storage_type)

        is_image = is_image_extension(file_ext)
        scratch_path = self.upload_dir / file_name if is_image or data is not None else None

        try:
            if scratch_path is None:
                # Non-image URL or path: straight to the backend
                if source_url:
                    url = await backend.store_from_url(source_url, destination)
                else:
                    url = await backend.store_from_path(local_path, destination)
            else:
                try:
                    await self._stage(scratch_path, source_url=source_url, data=data)
                except Exception as e:
                    kind = classify_error(e)
                    logger.error(f"Staging {source_url or local_path} failed [{kind.value}]: {e}")
                    return UploadOutcome.failure(UploadStage.STAGE, kind)

                if is_image:
                    try:
                        await compress_image_async(local_path or scratch_path, scratch_path)
                    except Exception as e:
                        logger.error(
                            f"Compressing {source_url or local_path or file_name} failed: {e}"
                        )
                        return UploadOutcome.failure(
                            UploadStage.COMPRESS, StorageErrorKind.ENCODING
                        )

                url = await backend.store_from_path(str(scratch_path), destination)

            if url is None:
                return UploadOutcome.failure(UploadStage.STORE, StorageErrorKind.TRANSPORT)

            logger.info(f"Stored {destination} on {backend.storage_type.value}")
            return UploadOutcome(url=url)
        finally:
            if scratch_path is not None:
                await self._cleanup(scratch_path)

    async def _stage(
        self, scratch_path: Path, source_url: str | None = None, data: bytes | None = None
    ) -> None:
        """Materialize the source in the scratch directory.

        Local paths are read in place by the compressor, so only the directory
        is prepared for them.
        """
        await aiofiles.os.makedirs(self.upload_dir, exist_ok=True)

        if data is not None:
            async with aiofiles.open(scratch_path, "wb") as f:
                await f.write(data)
        elif source_url is not None:
            async with self._http_client() as http:
                async with http.stream("GET", source_url) as response:
                    response.raise_for_status()
                    async with aiofiles.open(scratch_path, "wb") as f:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            await f.write(chunk)

    async def _cleanup(self, scratch_path: Path) -> None:
        try:
            if await aiofiles.os.path.exists(scratch_path):
                await aiofiles.os.remove(scratch_path)
        except OSError as e:
            logger.warning(f"Could not remove scratch file {scratch_path}: {e}")

    # =========================================================================
    # Delegation to peer gateways
    # =========================================================================

    async def _delegate(self, topic: str, source_url: str, file_ext: str) -> str | None:
        """Forward an upload to a random peer and wait a bounded time for it.

        Returns:
            The peer's URL, or None so the caller falls back to local handling
        """
        peer = random.choice(self.settings.CDN_MEDIA_SERVICES)
        task = asyncio.create_task(self._post_to_peer(peer, topic, source_url, file_ext))

        try:
            url = await asyncio.wait_for(task, timeout=self.settings.DELEGATION_TIMEOUT_SECONDS)
        except asyncio.TimeoutError:
            logger.warning(
                f"Delegation to {peer} timed out after {self.settings.DELEGATION_TIMEOUT_SECONDS}s"
            )
            return None
        except Exception as e:
            logger.warning(f"Delegation to {peer} failed [{classify_error(e).value}]: {e}")
            return None

        if not url:
            logger.warning(f"Delegation to {peer} returned no URL, uploading locally")
        return url

    async def _post_to_peer(
        self, peer: str, topic: str, source_url: str, file_ext: str
    ) -> str | None:
        async with self._http_client() as http:
            response = await http.post(
                f"{peer.rstrip('/')}/media/upload-file-from-url",
                params={"token": self.settings.CDN_UPLOAD_CREDENTIAL},
                json={"url": source_url, "folder": topic, "file_ext": file_ext},
            )
            response.raise_for_status()
            body = response.json()

        url = body.get("data") or body.get("url")
        return url if isinstance(url, str) else None

    # =========================================================================
    # Signed upload URLs
    # =========================================================================

    async def issue_signed_upload_url(self, filename: str) -> SignedUploadUrl:
        """Pre-signed PUT URL for one file.

        Raises:
            InvalidFilenameError: filename has no usable stem or extension
        """
        now = datetime.now()
        key = build_signed_upload_key(filename, now)
        expires_in = self.settings.PRESIGN_EXPIRES_SECONDS

        signed_url = await self.router.issue_upload_credential(key, expires_in=expires_in)

        return SignedUploadUrl(
            signed_url=signed_url,
            public_url=signed_url.split("?")[0],
            filename=filename,
            key=key,
            expires_at=now + timedelta(seconds=expires_in),
        )

    async def issue_signed_upload_urls(self, filenames: list[str]) -> list[SignedUploadUrl]:
        """Pre-signed PUT URLs for distinct filenames, signed concurrently.

        Duplicates are dropped. Filenames whose signing fails are logged and
        left out of the result.
        """
        unique_filenames = list(dict.fromkeys(filenames))
        results = await asyncio.gather(
            *(self.issue_signed_upload_url(name) for name in unique_filenames),
            return_exceptions=True,
        )

        signed: list[SignedUploadUrl] = []
        for filename, result in zip(unique_filenames, results):
            if isinstance(result, BaseException):
                logger.error(f"Signing upload URL for {filename!r} failed: {result}")
                continue
            signed.append(result)
        return signed

    # =========================================================================
    # Deletion
    # =========================================================================

    async def delete_by_url(self, url: str) -> bool:
        return await self.router.delete_by_url(url)

    async def delete_many_by_url(self, urls: list[str]) -> bool:
        return await self.router.delete_many_by_url(urls)

    async def delete_each_by_url(self, urls: list[str]) -> dict[str, bool]:
        return await self.router.delete_each_by_url(urls)
