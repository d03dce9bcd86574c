import asyncio
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from hustle_village_api.app.core.config import Settings
from hustle_village_api.app.core.errors import UnauthenticatedError, UnavailableError, ValidationError
from hustle_village_api.app.core.identity import (
    IdentityClaims,
    IdentityProviderClient,
    ProviderSession,
    TokenResolver,
)
from hustle_village_api.app.core.storage import BlobStore
from hustle_village_api.app.main import create_app
from hustle_village_api.app.services.user_service import UserDirectory

VALID_CODE = "123456"


class StaticTokenResolver(TokenResolver):
    """Resolves tokens registered by the tests; everything else is rejected."""

    def __init__(self) -> None:
        self.tokens: Dict[str, IdentityClaims] = {}

    def register(self, email: str) -> str:
        token = f"token-{email}"
        self.tokens[token] = IdentityClaims(subject=f"sub-{email}", email=email)
        return token

    async def resolve(self, token: str) -> IdentityClaims:
        if token not in self.tokens:
            raise UnauthenticatedError("Invalid or expired token")
        return self.tokens[token]


class FakeIdentityProvider(IdentityProviderClient):
    """In-memory provider: accepts ``VALID_CODE`` for any e-mail it has sent a code to."""

    def __init__(self) -> None:
        super().__init__("https://identity.test", "anon-key")
        self.sent: Dict[str, Dict[str, Any]] = {}
        self.unavailable = False

    async def send_otp(self, email: str, metadata: Dict[str, Any]) -> None:
        if self.unavailable:
            raise UnavailableError("Identity provider is unavailable")
        self.sent[email] = metadata

    async def verify_otp(self, email: str, code: str) -> ProviderSession:
        if self.unavailable:
            raise UnavailableError("Identity provider is unavailable")
        if code != VALID_CODE or email not in self.sent:
            raise ValidationError("Invalid verification code")
        return ProviderSession(
            claims=IdentityClaims(subject=f"sub-{email}", email=email, metadata=self.sent[email]),
            access_token=f"access-{email}",
            refresh_token=f"refresh-{email}",
        )


class MemoryBlobStore(BlobStore):
    def __init__(self) -> None:
        self.objects: Dict[str, bytes] = {}
        self.fail_after: Optional[int] = None

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        if self.fail_after is not None and len(self.objects) >= self.fail_after:
            raise UnavailableError("Image storage timed out")
        self.objects[path] = data
        return f"https://cdn.test/{path}"


@pytest.fixture(name="settings")
def settings_fixture(tmp_path):
    return Settings(
        database_url=str(tmp_path / "hustle_village_test.db"),
        identity_provider_url="https://identity.test",
        identity_provider_anon_key="anon-key",
        identity_provider_service_key="service-key",
        auth_mode="remote",
        jwt_secret="test-secret",
        allowed_email_domains="ashesi.edu.gh",
        admin_emails="admin@ashesi.edu.gh",
        enforce_admin_role=True,
        strict_image_uploads=False,
    )


@pytest.fixture(name="resolver")
def resolver_fixture():
    return StaticTokenResolver()


@pytest.fixture(name="provider")
def provider_fixture():
    return FakeIdentityProvider()


@pytest.fixture(name="store")
def store_fixture():
    return MemoryBlobStore()


@pytest.fixture(name="app")
def app_fixture(settings, resolver, provider, store):
    return create_app(settings, identity_client=provider, blob_store=store, resolver=resolver)


@pytest.fixture(name="client")
def client_fixture(app):
    """Test client; entering the context runs startup, which applies migrations."""
    with TestClient(app) as client:
        yield client


@pytest.fixture(name="make_user")
def make_user_fixture(client, app, resolver):
    """Create a profile and return it with ready-to-use auth headers."""

    def _make_user(email: str, full_name: str = "Test User", role: Optional[str] = None):
        users = UserDirectory(app.state.db, app.state.settings)
        user = asyncio.run(users.upsert_verified(email, f"sub-{email}", full_name, "+233200000000"))
        if role is not None:
            user = asyncio.run(users.set_role(email, role))
        token = resolver.register(email)
        return SimpleNamespace(
            id=user.id,
            email=user.email,
            role=user.role,
            headers={"Authorization": f"Bearer {token}"},
        )

    return _make_user


@pytest.fixture(name="seller")
def seller_fixture(make_user):
    return make_user("ama.mensah@ashesi.edu.gh", "Ama Mensah")


@pytest.fixture(name="other_seller")
def other_seller_fixture(make_user):
    return make_user("kofi.boateng@ashesi.edu.gh", "Kofi Boateng")


@pytest.fixture(name="admin")
def admin_fixture(make_user):
    return make_user("admin@ashesi.edu.gh", "Campus Admin")


def service_payload(**overrides) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "title": "Calculus tutoring",
        "description": "One-on-one sessions for MATH 141",
        "category": "tutoring",
        "price": 20,
        "pricing_type": "hourly",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(name="create_service")
def create_service_fixture(client):
    def _create_service(owner, **overrides) -> Dict[str, Any]:
        response = client.post(
            "/api/v1/services", json=service_payload(**overrides), headers=owner.headers
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create_service


def ids(items: List[Dict[str, Any]]) -> List[int]:
    return [item["id"] for item in items]
