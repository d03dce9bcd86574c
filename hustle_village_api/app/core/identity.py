"""
Adapters for the external identity provider.

The provider (a Supabase‑compatible auth API) issues one‑time
passcodes, exchanges them for bearer tokens and can be asked who a
token belongs to.  This module keeps every provider call in one place:

* ``IdentityProviderClient`` talks to the provider over HTTP with
  ``httpx``; every call is bounded by the configured timeout and
  transport failures surface as ``UnavailableError``.
* ``TokenResolver`` turns a bearer token into ``IdentityClaims``.  The
  default ``RemoteTokenResolver`` asks the provider.  The
  ``LocalClaimsTokenResolver`` is a fast path for deployments that
  share the provider's HS256 signing secret: the signature is the trust
  boundary, after which the embedded claims and ``exp`` are read
  locally.  Tokens whose signature cannot be checked are never trusted.
"""

import base64
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

from .errors import UnauthenticatedError, UnavailableError, ValidationError


logger = logging.getLogger(__name__)


@dataclass
class IdentityClaims:
    """What the provider vouches for: the subject id, e‑mail and profile metadata."""

    subject: str
    email: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProviderSession:
    """Result of a successful passcode verification."""

    claims: IdentityClaims
    access_token: Optional[str]
    refresh_token: Optional[str]


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC‑SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def encode_hs256(claims: Dict[str, Any], secret: str) -> str:
    """Serialise ``claims`` as a signed ``header.payload.signature`` token."""
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(claims, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, secret))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def _json_object(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError as exc:
        raise UnavailableError("Identity provider returned an invalid response") from exc
    if not isinstance(data, dict):
        raise UnavailableError("Identity provider returned an invalid response")
    return data


def _claims_from_user(user: Dict[str, Any]) -> IdentityClaims:
    metadata = user.get("user_metadata")
    if not isinstance(metadata, dict):
        metadata = {}
    email = user.get("email") or metadata.get("email")
    if not user.get("id") or not email:
        raise UnauthenticatedError("Missing or invalid credential")
    return IdentityClaims(
        subject=str(user["id"]),
        email=str(email).lower(),
        metadata=dict(metadata),
    )


class IdentityProviderClient:
    """Thin ``httpx`` client for the provider's auth endpoints.

    ``transport`` is only passed in tests (``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[dict] = None,
        bearer: Optional[str] = None,
    ) -> httpx.Response:
        if not self.base_url or not self.api_key:
            raise UnavailableError("Identity provider is not configured")
        headers = {"apikey": self.api_key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, json=json_body, headers=headers)
        except httpx.TimeoutException as exc:
            logger.warning("Identity provider timed out on %s %s", method, path)
            raise UnavailableError("Identity provider timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable on %s %s: %s", method, path, exc)
            raise UnavailableError("Identity provider is unreachable") from exc
        if response.status_code >= 500:
            logger.warning(
                "Identity provider returned %s on %s %s", response.status_code, method, path
            )
            raise UnavailableError("Identity provider is unavailable")
        return response

    async def get_user(self, access_token: str) -> IdentityClaims:
        """Ask the provider who ``access_token`` belongs to."""
        response = await self._request("GET", "/auth/v1/user", bearer=access_token)
        if response.status_code != 200:
            raise UnauthenticatedError("Invalid or expired token")
        return _claims_from_user(_json_object(response))

    async def send_otp(self, email: str, metadata: Dict[str, Any]) -> None:
        """Ask the provider to e‑mail a one‑time passcode, creating the identity if needed."""
        response = await self._request(
            "POST",
            "/auth/v1/otp",
            json_body={"email": email, "create_user": True, "data": metadata},
        )
        if response.status_code >= 400:
            raise ValidationError("Failed to send verification code")

    async def verify_otp(self, email: str, code: str) -> ProviderSession:
        """Exchange an e‑mailed passcode for a session."""
        response = await self._request(
            "POST",
            "/auth/v1/verify",
            json_body={"type": "email", "email": email, "token": code},
        )
        if response.status_code >= 400:
            raise ValidationError("Invalid verification code")
        data = _json_object(response)
        user = data.get("user")
        if not isinstance(user, dict) or not user:
            raise ValidationError("User verification failed")
        return ProviderSession(
            claims=_claims_from_user(user),
            access_token=data.get("access_token"),
            refresh_token=data.get("refresh_token"),
        )


class TokenResolver:
    """Resolves a bearer token to ``IdentityClaims`` or raises ``UnauthenticatedError``."""

    async def resolve(self, token: str) -> IdentityClaims:
        raise NotImplementedError


class RemoteTokenResolver(TokenResolver):
    """Validates every token with the provider.  The default resolver."""

    def __init__(self, client: IdentityProviderClient) -> None:
        self.client = client

    async def resolve(self, token: str) -> IdentityClaims:
        return await self.client.get_user(token)


class LocalClaimsTokenResolver(TokenResolver):
    """Reads claims from tokens signed with the shared HS256 secret.

    Only the signature establishes trust; ``exp`` is then compared with
    the current time.  ``clock`` is injectable for tests.
    """

    def __init__(self, secret: str, clock=time.time) -> None:
        if not secret:
            raise ValueError("Local token verification requires a signing secret")
        self.secret = secret
        self.clock = clock

    async def resolve(self, token: str) -> IdentityClaims:
        invalid = UnauthenticatedError("Missing or invalid credential")
        parts = token.split(".")
        if len(parts) != 3:
            raise invalid
        header_b64, payload_b64, signature_b64 = parts
        signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
        try:
            actual_sig = _b64_url_decode(signature_b64)
            payload = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError) as exc:
            raise invalid from exc
        # Constant‑time comparison to prevent timing attacks
        if not hmac.compare_digest(_sign(signing_input, self.secret), actual_sig):
            raise invalid
        if not isinstance(payload, dict) or not payload.get("sub"):
            raise invalid
        try:
            exp = int(payload["exp"])
        except (KeyError, TypeError, ValueError) as exc:
            raise invalid from exc
        if exp < int(self.clock()):
            raise UnauthenticatedError("Token has expired")
        metadata = payload.get("user_metadata") or {}
        email = payload.get("email") or metadata.get("email")
        if not email:
            raise invalid
        return IdentityClaims(subject=str(payload["sub"]), email=str(email).lower(), metadata=dict(metadata))
