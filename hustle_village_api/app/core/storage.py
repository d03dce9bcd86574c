"""
Binary object storage for listing images.

``BlobStore`` is the interface the image ingestion service depends on:
``upload`` stores bytes under a path and returns a stable public URL.
``SupabaseStorage`` implements it against the provider's storage API
using ``httpx``; uploads are bounded by the configured timeout and
transport failures surface as ``UnavailableError``.
"""

import logging
from typing import Optional

import httpx

from .errors import UnavailableError


logger = logging.getLogger(__name__)


class BlobStore:
    """Stores binary objects and returns their public URL."""

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        raise NotImplementedError


class SupabaseStorage(BlobStore):
    """Uploads objects to a Supabase‑compatible storage bucket."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self.transport = transport

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{path}"

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        if not self.base_url or not self.service_key:
            raise UnavailableError("Image storage is not configured")
        headers = {
            "apikey": self.service_key,
            "Authorization": f"Bearer {self.service_key}",
            "Content-Type": content_type,
            # Never overwrite an existing object; names are unique per upload.
            "x-upsert": "false",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/storage/v1/object/{self.bucket}/{path}",
                    content=data,
                    headers=headers,
                )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise UnavailableError("Image storage timed out") from exc
        except httpx.HTTPStatusError as exc:
            raise UnavailableError(
                f"Image storage rejected the upload ({exc.response.status_code})"
            ) from exc
        except httpx.HTTPError as exc:
            raise UnavailableError("Image storage is unreachable") from exc
        logger.debug("Uploaded %s bytes to %s/%s", len(data), self.bucket, path)
        return self.public_url(path)
