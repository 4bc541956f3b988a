"""
Identity provider integration.

The identity provider (Supabase Auth) issues an HS256-signed JWT access
token and the browser keeps it in a cookie. We validate the token locally
with the project's JWT secret, so resolving a session costs no network
round trip.

The cookie value comes in a few shapes depending on the client library
version: a bare JWT, a JSON session object, a JSON array whose first
element is the access token, or any of those base64-encoded behind a
"base64-" prefix. Large values are split across "<name>.0", "<name>.1", ...

Mock mode keeps an in-memory token registry for local development.
"""

import base64
import binascii
import json
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional
from urllib.parse import unquote

from jose import JWTError, jwt

from ...core.videos.models import ProviderSession
from ...core.videos.session import IdentityProvider

logger = logging.getLogger(__name__)

BASE64_PREFIX = "base64-"


@dataclass
class IdentityConfig:
    jwt_secret: str
    cookie_name: str = "sb-access-token"
    audience: str = "authenticated"
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if not self.jwt_secret:
            raise ValueError("JWT secret is required")


# ---------------------------------------------------------------------------
# Cookie parsing
# ---------------------------------------------------------------------------

def read_session_cookie(cookies: Mapping[str, str], cookie_name: str) -> Optional[str]:
    """Return the raw cookie value, reassembling chunked cookies."""
    if cookies.get(cookie_name):
        return cookies[cookie_name]

    chunks = []
    index = 0
    while f"{cookie_name}.{index}" in cookies:
        chunks.append(cookies[f"{cookie_name}.{index}"])
        index += 1

    return "".join(chunks) or None


def extract_access_token(raw_value: str) -> Optional[str]:
    """Pull the access token out of any supported cookie encoding."""
    value = unquote(raw_value).strip()

    if value.startswith(BASE64_PREFIX):
        encoded = value[len(BASE64_PREFIX):]
        try:
            value = base64.urlsafe_b64decode(encoded + "=" * (-len(encoded) % 4)).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError, ValueError):
            logger.debug("Session cookie has an undecodable base64 payload")
            return None

    if value.startswith(("{", "[")):
        try:
            data = json.loads(value)
        except json.JSONDecodeError:
            logger.debug("Session cookie is not valid JSON")
            return None

        if isinstance(data, dict):
            token = data.get("access_token")
        elif isinstance(data, list) and data:
            token = data[0]
        else:
            token = None
        return token if isinstance(token, str) and token else None

    return value or None


# ---------------------------------------------------------------------------
# JWT-backed provider
# ---------------------------------------------------------------------------

class SupabaseJWTIdentityProvider:
    """Validates session cookies as provider-signed JWTs."""

    def __init__(self, config: IdentityConfig) -> None:
        self._config = config

    async def get_session_from_cookies(
        self,
        cookies: Mapping[str, str],
    ) -> Optional[ProviderSession]:
        raw_value = read_session_cookie(cookies, self._config.cookie_name)
        if not raw_value:
            return None

        token = extract_access_token(raw_value)
        if not token:
            return None

        try:
            claims = jwt.decode(
                token,
                self._config.jwt_secret,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
            )
        except JWTError as e:
            logger.info("Rejected session token", extra={"error": str(e)})
            return None

        return self._session_from_claims(claims)

    async def sign_out(self, cookies: Mapping[str, str]) -> None:
        """
        Access tokens are stateless and expire on their own; signing out
        means the presentation layer drops the cookie.
        """
        session = await self.get_session_from_cookies(cookies)
        if session:
            logger.info("User signed out", extra={"user_id": session.user_id})

    def _session_from_claims(self, claims: dict[str, Any]) -> Optional[ProviderSession]:
        user_id = str(claims.get("sub") or "").strip()
        if not user_id:
            logger.info("Session token missing subject")
            return None

        exp = claims.get("exp")
        expires_at = datetime.fromtimestamp(int(exp), tz=timezone.utc) if exp else None
        metadata = claims.get("user_metadata")

        return ProviderSession(
            user_id=user_id,
            email=claims.get("email") or None,
            expires_at=expires_at,
            metadata=metadata if isinstance(metadata, dict) else {},
        )


# ---------------------------------------------------------------------------
# Mock provider for Local Development
# ---------------------------------------------------------------------------

class MockIdentityProvider:
    """
    In-memory session registry.

    issue_session() hands out an opaque token; put it in the session
    cookie to act as that user.
    """

    def __init__(self, cookie_name: str = "sb-access-token") -> None:
        self._cookie_name = cookie_name
        self._sessions: dict[str, ProviderSession] = {}
        logger.info("Initialized mock identity provider (in-memory)")

    def issue_session(
        self,
        user_id: str,
        email: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        expires_at: Optional[datetime] = None,
    ) -> str:
        token = secrets.token_urlsafe(24)
        self._sessions[token] = ProviderSession(
            user_id=user_id,
            email=email,
            expires_at=expires_at,
            metadata=metadata or {},
        )
        return token

    async def get_session_from_cookies(
        self,
        cookies: Mapping[str, str],
    ) -> Optional[ProviderSession]:
        raw_value = read_session_cookie(cookies, self._cookie_name)
        token = extract_access_token(raw_value) if raw_value else None
        session = self._sessions.get(token) if token else None

        if session and session.expires_at and session.expires_at <= datetime.now(timezone.utc):
            return None
        return session

    async def sign_out(self, cookies: Mapping[str, str]) -> None:
        raw_value = read_session_cookie(cookies, self._cookie_name)
        token = extract_access_token(raw_value) if raw_value else None
        if token:
            self._sessions.pop(token, None)


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_identity_provider(
    config: Optional[IdentityConfig] = None,
    mock_mode: bool = False,
    cookie_name: str = "sb-access-token",
) -> IdentityProvider:
    if mock_mode:
        return MockIdentityProvider(cookie_name=cookie_name)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return SupabaseJWTIdentityProvider(config)
