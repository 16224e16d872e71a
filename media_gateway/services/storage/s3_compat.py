"""Shared implementation for backends speaking the S3 XML API."""

import logging
from typing import Any
from urllib.parse import urlparse

import aioboto3
import aiofiles
import httpx
from botocore.config import Config

from media_gateway.core.exceptions import classify_error
from media_gateway.services.storage.base import (DEFAULT_SIGNED_URL_EXPIRES,
                                                 PUBLIC_READ_ACL,
                                                 StorageBackendInterface,
                                                 guess_content_type)
from media_gateway.services.storage.streams import (AsyncReadable,
                                                    CountingReader,
                                                    HttpxStreamReader)

logger = logging.getLogger(__name__)

# Parameters put_object accepts but upload_fileobj's ExtraArgs does not
_STREAM_ONLY_PARAMS = ("Bucket", "Key", "Body", "ContentLength")


class S3CompatibleBackend(StorageBackendInterface):
    """Storage backend over an S3-compatible endpoint using aioboto3.

    Subclasses define how public URLs are built and parsed and which
    addressing style the endpoint expects.
    """

    addressing_style = "virtual"

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: str | None = None,
        region_name: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the backend.

        Args:
            bucket_name: Bucket that receives new objects
            endpoint_url: Provider endpoint for the S3 API
            region_name: Provider region used for request signing
            access_key_id: Access key (optional, uses env if not provided)
            secret_access_key: Secret key
            http_transport: Transport for fetching source URLs (tests inject
                ``httpx.MockTransport``)
        """
        self.bucket_name = bucket_name
        self.endpoint_url = endpoint_url.rstrip("/") if endpoint_url else None
        self.region_name = region_name
        self.http_transport = http_transport

        self.session_kwargs: dict[str, Any] = {}
        if region_name:
            self.session_kwargs["region_name"] = region_name
        if access_key_id and secret_access_key:
            self.session_kwargs["aws_access_key_id"] = access_key_id
            self.session_kwargs["aws_secret_access_key"] = secret_access_key

        self.client_kwargs: dict[str, Any] = {
            "config": Config(
                signature_version="s3v4",
                s3={"addressing_style": self.addressing_style},
            ),
        }
        if self.endpoint_url:
            self.client_kwargs["endpoint_url"] = self.endpoint_url

    async def _get_client(self):
        """Get an S3 client from the session."""
        session = aioboto3.Session(**self.session_kwargs)
        return session.client("s3", **self.client_kwargs)

    def _http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.http_transport, follow_redirects=True)

    async def store_from_path(
        self, local_path: str, destination: str, provider_options: dict[str, Any] | None = None
    ) -> str | None:
        """Upload a local file with public-read ACL and a 7 day cache directive."""
        try:
            async with aiofiles.open(local_path, "rb") as f:
                body: bytes = await f.read()

            params = self._object_params(guess_content_type(destination), provider_options)

            async with await self._get_client() as client:
                await client.put_object(
                    Bucket=self.bucket_name, Key=destination, Body=body, **params
                )

            return self.public_url(destination)
        except Exception as e:
            logger.error(
                f"{self.storage_type.value}: upload of {local_path} to {destination} failed "
                f"[{classify_error(e).value}]: {e}"
            )
            return None

    async def store_from_url(
        self, source_url: str, destination: str, provider_options: dict[str, Any] | None = None
    ) -> str | None:
        """Stream a remote resource into the bucket."""
        try:
            async with self._http_client() as http:
                async with http.stream("GET", source_url) as response:
                    response.raise_for_status()

                    options: dict[str, Any] = {
                        "ContentType": guess_content_type(urlparse(source_url).path)
                    }
                    # Length of the decoded body is only known for identity encoding
                    content_length = int(response.headers.get("content-length") or 0)
                    if content_length and not response.headers.get("content-encoding"):
                        options["ContentLength"] = content_length
                    if provider_options:
                        options.update(provider_options)

                    return await self.store_from_stream(
                        destination, HttpxStreamReader(response), options
                    )
        except Exception as e:
            logger.error(
                f"{self.storage_type.value}: fetching {source_url} for {destination} failed "
                f"[{classify_error(e).value}]: {e}"
            )
            return None

    async def store_from_stream(
        self,
        destination: str,
        readable: AsyncReadable,
        provider_options: dict[str, Any] | None = None,
    ) -> str | None:
        """Pipe a readable into the bucket through a managed (multipart) upload."""
        params = self._object_params(guess_content_type(destination), provider_options)
        expected_length = params.get("ContentLength")
        extra_args = {
            k: v for k, v in params.items() if k not in _STREAM_ONLY_PARAMS and v != ""
        }
        counter = CountingReader(readable)

        try:
            async with await self._get_client() as client:
                await client.upload_fileobj(
                    counter, self.bucket_name, destination, ExtraArgs=extra_args
                )
        except Exception as e:
            logger.error(
                f"{self.storage_type.value}: streaming to {destination} failed "
                f"[{classify_error(e).value}]: {e}"
            )
            return None

        if expected_length and counter.bytes_read != int(expected_length):
            logger.error(
                f"{self.storage_type.value}: stream for {destination} ended after "
                f"{counter.bytes_read} of {expected_length} bytes [transport]"
            )
            return None

        return self.public_url(destination)

    async def delete_by_url(self, url: str) -> bool:
        """Delete the object behind a public URL; False if missing or refused."""
        try:
            bucket, key = self.parse_url(url)
            async with await self._get_client() as client:
                await client.head_object(Bucket=bucket, Key=key)
                await client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            logger.warning(
                f"{self.storage_type.value}: delete of {url} failed "
                f"[{classify_error(e).value}]: {e}"
            )
            return False

        logger.info(f"{bucket}/{key} deleted")
        return True

    async def issue_upload_credential(
        self, destination: str, expires_in: int = DEFAULT_SIGNED_URL_EXPIRES
    ) -> str:
        """Get a pre-signed PUT URL whose only signed header is the ACL.

        Content-Type and Cache-Control would become signed headers the client
        has to echo byte for byte, so they are left out of the signature.
        """
        async with await self._get_client() as client:
            url: str = await client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.bucket_name, "Key": destination, "ACL": PUBLIC_READ_ACL},
                ExpiresIn=expires_in,
                HttpMethod="PUT",
            )

        return url
