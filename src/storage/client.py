"""Async client for the attachment object storage API."""

import logging
from typing import Optional
from urllib.parse import quote

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .models import UploadResponse

logger = logging.getLogger(__name__)


class ObjectStorageClient:
    """Uploads trip attachments to a storage bucket and returns public URLs."""

    def __init__(self, base_url: str, api_key: str, bucket: str):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the storage service.
            api_key: Service key used for uploads.
            bucket: Bucket holding trip attachments.
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.bucket = bucket
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy-load the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "apikey": self.api_key,
                },
                timeout=httpx.Timeout(120.0),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ObjectStorageClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def object_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{self.bucket}/{quote(path)}"

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        wait=wait_random_exponential(min=1, max=30),
        stop=stop_after_attempt(3),
        before_sleep=before_sleep_log(logger, logging.DEBUG),
        reraise=True,
    )
    async def upload_bytes(
        self, data: bytes, path: str, content_type: str
    ) -> UploadResponse:
        """
        Store raw bytes under a path in the bucket.

        Raises:
            httpx.HTTPStatusError: If the storage service rejects the upload.
        """
        response = await self.client.post(
            self.object_url(path),
            headers={"Content-Type": content_type, "x-upsert": "false"},
            content=data,
        )
        response.raise_for_status()
        return UploadResponse.model_validate(response.json())

    async def upload(self, data: bytes, content_type: str, filename: str) -> str:
        """Upload an attachment and return the URL it is served from."""
        await self.upload_bytes(data, filename, content_type)
        logger.info(f"Uploaded attachment {filename} ({len(data)} bytes)")
        return self.public_url(filename)
