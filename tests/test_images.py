"""
Tests for image ingestion on service listings and the storage adapter.
"""

import asyncio
import base64
import dataclasses

import httpx
import pytest
from fastapi.testclient import TestClient

from hustle_village_api.app.core.errors import UnavailableError, ValidationError
from hustle_village_api.app.core.storage import SupabaseStorage
from hustle_village_api.app.main import create_app
from hustle_village_api.app.services.image_service import (
    ImageIngestionService,
    decode_inline_image,
)
from hustle_village_api.app.services.user_service import UserDirectory

from conftest import MemoryBlobStore, service_payload

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"
PNG_B64 = base64.b64encode(PNG_BYTES).decode("ascii")
PNG_DATA_URL = f"data:image/png;base64,{PNG_B64}"
HOSTED = "https://img.test/existing.jpg"


def test_decode_data_url():
    data, content_type = decode_inline_image(PNG_DATA_URL)
    assert data == PNG_BYTES
    assert content_type == "image/png"


def test_decode_bare_base64_defaults_to_jpeg():
    _, content_type = decode_inline_image(PNG_B64)
    assert content_type == "image/jpeg"


@pytest.mark.parametrize(
    "reference",
    ["data:application/pdf;base64," + PNG_B64, "not base64 at all!", "data:image/png;base64,"],
)
def test_decode_rejects_bad_payloads(reference):
    with pytest.raises(ValidationError):
        decode_inline_image(reference)


def test_ingest_keeps_order_and_hosted_urls():
    store = MemoryBlobStore()
    urls = asyncio.run(ImageIngestionService(store).ingest([HOSTED, PNG_DATA_URL]))
    assert urls[0] == HOSTED
    assert urls[1].startswith("https://cdn.test/services/")
    assert urls[1].endswith("-1.png")
    assert list(store.objects.values()) == [PNG_BYTES]


def test_ingest_skips_failures_by_default():
    store = MemoryBlobStore()
    store.fail_after = 1
    urls = asyncio.run(
        ImageIngestionService(store).ingest([PNG_DATA_URL, "garbage!", HOSTED, PNG_DATA_URL])
    )
    assert len(urls) == 2
    assert urls[1] == HOSTED


def test_ingest_strict_raises():
    store = MemoryBlobStore()
    store.fail_after = 0
    with pytest.raises(UnavailableError):
        asyncio.run(ImageIngestionService(store, strict=True).ingest([PNG_DATA_URL]))


def test_object_paths_are_unique():
    service = ImageIngestionService(MemoryBlobStore())
    assert service.object_path(0, "image/png") != service.object_path(0, "image/png")


def test_create_service_uploads_inline_images(client, seller, store):
    response = client.post(
        "/api/v1/services",
        json=service_payload(imageUrls=[HOSTED, PNG_DATA_URL]),
        headers=seller.headers,
    )
    assert response.status_code == 201
    image_urls = response.json()["image_urls"]
    assert image_urls[0] == HOSTED
    assert image_urls[1].startswith("https://cdn.test/services/")
    assert len(store.objects) == 1


def test_create_service_survives_storage_outage(client, seller, store):
    store.fail_after = 0
    response = client.post(
        "/api/v1/services",
        json=service_payload(image_urls=[PNG_DATA_URL, HOSTED]),
        headers=seller.headers,
    )
    assert response.status_code == 201
    assert response.json()["image_urls"] == [HOSTED]


def test_strict_uploads_fail_the_operation(settings, resolver, provider, store):
    strict = dataclasses.replace(settings, strict_image_uploads=True)
    app = create_app(strict, identity_client=provider, blob_store=store, resolver=resolver)
    store.fail_after = 0
    with TestClient(app) as client:
        users = UserDirectory(app.state.db, strict)
        asyncio.run(users.upsert_verified("ama@ashesi.edu.gh", "sub", "Ama", "+233"))
        headers = {"Authorization": f"Bearer {resolver.register('ama@ashesi.edu.gh')}"}

        response = client.post(
            "/api/v1/services", json=service_payload(image_urls=[PNG_DATA_URL]), headers=headers
        )
        assert response.status_code == 503
        assert response.json()["error"] == "unavailable"
        assert client.get("/api/v1/services/mine", headers=headers).json() == []


# Storage adapter


def test_supabase_storage_upload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = request.content
        return httpx.Response(200, json={"Key": "service-images/services/a.png"})

    storage = SupabaseStorage(
        "https://project.test/", "service-key", "service-images",
        transport=httpx.MockTransport(handler),
    )
    url = asyncio.run(storage.upload("services/a.png", PNG_BYTES, "image/png"))

    assert url == "https://project.test/storage/v1/object/public/service-images/services/a.png"
    assert seen["url"] == "https://project.test/storage/v1/object/service-images/services/a.png"
    assert seen["headers"]["Authorization"] == "Bearer service-key"
    assert seen["headers"]["Content-Type"] == "image/png"
    assert seen["headers"]["x-upsert"] == "false"
    assert seen["body"] == PNG_BYTES


def test_supabase_storage_rejection_is_unavailable():
    storage = SupabaseStorage(
        "https://project.test", "service-key", "service-images",
        transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"error": "bad"})),
    )
    with pytest.raises(UnavailableError):
        asyncio.run(storage.upload("services/a.png", PNG_BYTES, "image/png"))


def test_unconfigured_storage_is_unavailable():
    with pytest.raises(UnavailableError):
        asyncio.run(SupabaseStorage("", "", "service-images").upload("a.png", b"x", "image/png"))
