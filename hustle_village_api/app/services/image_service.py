"""
Image ingestion for service listings.

A listing's ``image_urls`` may mix already hosted URLs with inline
base64 payloads.  Hosted URLs pass through untouched; inline payloads
are decoded and uploaded to the blob store under a unique,
timestamp‑qualified name, and replaced by the URL the store returns.

Images are processed one at a time and independently.  By default a
failing image (undecodable payload, storage error or timeout) is
logged and left out so the listing is still saved with the images that
did succeed.  Setting ``STRICT_IMAGE_UPLOADS=true`` turns the first
failure into an error for the whole operation instead.
"""

import base64
import binascii
import logging
import time
import uuid
from typing import List, Optional, Tuple

from ..core.errors import UnavailableError, ValidationError
from ..core.storage import BlobStore


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


def is_hosted_url(reference: str) -> bool:
    return reference.startswith(("http://", "https://"))


def decode_inline_image(reference: str) -> Tuple[bytes, str]:
    """Decode a base64 payload, with or without a ``data:<mime>;base64,`` prefix.

    Returns the raw bytes and the content type.  Raises
    ``ValidationError`` if the payload is not a supported, decodable
    image.
    """
    content_type = DEFAULT_CONTENT_TYPE
    payload = reference.strip()
    if payload.startswith("data:"):
        header, _, payload = payload.partition(",")
        mime = header[len("data:"):].split(";", 1)[0].strip().lower()
        if mime:
            content_type = mime
    if content_type not in EXTENSIONS:
        raise ValidationError(f"Unsupported image type: {content_type}")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationError("Image is not valid base64") from exc
    if not data:
        raise ValidationError("Image is empty")
    return data, content_type


class ImageIngestionService:
    """Turns a list of image references into a list of hosted URLs."""

    def __init__(self, store: BlobStore, strict: bool = False) -> None:
        self.store = store
        self.strict = strict

    def object_path(self, index: int, content_type: str) -> str:
        timestamp = int(time.time() * 1000)
        return f"services/{timestamp}-{uuid.uuid4().hex}-{index}.{EXTENSIONS[content_type]}"

    async def ingest_one(self, reference: str, index: int = 0) -> str:
        """Return the hosted URL for one reference, uploading it if inline."""
        if is_hosted_url(reference):
            return reference
        data, content_type = decode_inline_image(reference)
        return await self.store.upload(self.object_path(index, content_type), data, content_type)

    async def ingest(self, references: Optional[List[str]]) -> List[str]:
        """Ingest every reference in order, keeping the ones that succeed."""
        urls: List[str] = []
        for index, reference in enumerate(references or []):
            try:
                urls.append(await self.ingest_one(reference, index))
            except (ValidationError, UnavailableError) as exc:
                if self.strict:
                    raise
                logger.warning("Skipping image %s: %s", index, exc.message)
        return urls
