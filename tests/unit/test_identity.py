"""Tests for session cookie parsing and JWT validation."""

import base64
import json
import time
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import pytest
from jose import jwt

from clipshare.infrastructure.identity.client import (
    IdentityConfig,
    MockIdentityProvider,
    SupabaseJWTIdentityProvider,
    extract_access_token,
    read_session_cookie,
)

SECRET = "test-jwt-secret"
COOKIE = "sb-access-token"


def make_token(secret=SECRET, audience="authenticated", expires_in=3600, **claims) -> str:
    payload = {
        "sub": "user-1",
        "email": "ada@example.com",
        "aud": audience,
        "exp": int(time.time()) + expires_in,
        "user_metadata": {"full_name": "Ada Lovelace"},
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def provider() -> SupabaseJWTIdentityProvider:
    return SupabaseJWTIdentityProvider(IdentityConfig(jwt_secret=SECRET, cookie_name=COOKIE))


class TestCookieParsing:

    def test_reads_plain_cookie(self):
        assert read_session_cookie({COOKIE: "abc"}, COOKIE) == "abc"

    def test_reassembles_chunked_cookie(self):
        cookies = {f"{COOKIE}.0": "ab", f"{COOKIE}.1": "cd", f"{COOKIE}.3": "ignored"}
        assert read_session_cookie(cookies, COOKIE) == "abcd"

    def test_missing_cookie(self):
        assert read_session_cookie({"other": "x"}, COOKIE) is None

    def test_raw_token(self):
        assert extract_access_token("header.payload.sig") == "header.payload.sig"

    def test_json_session_object(self):
        raw = quote(json.dumps({"access_token": "tok", "refresh_token": "r"}))
        assert extract_access_token(raw) == "tok"

    def test_base64_prefixed_json_array(self):
        encoded = base64.urlsafe_b64encode(json.dumps(["tok", "refresh"]).encode()).decode()
        assert extract_access_token("base64-" + encoded.rstrip("=")) == "tok"

    def test_garbage_json_is_rejected(self):
        assert extract_access_token("{not json") is None
        assert extract_access_token(json.dumps({"refresh_token": "r"})) is None


class TestSupabaseJWTIdentityProvider:

    def test_secret_is_required(self):
        with pytest.raises(ValueError):
            IdentityConfig(jwt_secret="")

    @pytest.mark.asyncio
    async def test_valid_token_gives_session(self, provider):
        session = await provider.get_session_from_cookies({COOKIE: make_token()})

        assert session.user_id == "user-1"
        assert session.email == "ada@example.com"
        assert session.metadata == {"full_name": "Ada Lovelace"}
        assert session.expires_at > datetime.now(timezone.utc)

    @pytest.mark.asyncio
    async def test_token_inside_session_object(self, provider):
        cookie = json.dumps({"access_token": make_token()})
        session = await provider.get_session_from_cookies({COOKIE: cookie})
        assert session.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_no_cookie_is_anonymous(self, provider):
        assert await provider.get_session_from_cookies({}) is None

    @pytest.mark.asyncio
    async def test_wrong_secret_is_rejected(self, provider):
        token = make_token(secret="someone-elses-secret")
        assert await provider.get_session_from_cookies({COOKIE: token}) is None

    @pytest.mark.asyncio
    async def test_wrong_audience_is_rejected(self, provider):
        token = make_token(audience="anon")
        assert await provider.get_session_from_cookies({COOKIE: token}) is None

    @pytest.mark.asyncio
    async def test_expired_token_is_rejected(self, provider):
        token = make_token(expires_in=-60)
        assert await provider.get_session_from_cookies({COOKIE: token}) is None

    @pytest.mark.asyncio
    async def test_token_without_subject_is_rejected(self, provider):
        token = make_token(sub="")
        assert await provider.get_session_from_cookies({COOKIE: token}) is None


class TestMockIdentityProvider:

    @pytest.mark.asyncio
    async def test_issued_session_resolves_until_sign_out(self):
        provider = MockIdentityProvider(cookie_name=COOKIE)
        token = provider.issue_session("user-1", email="ada@example.com")
        cookies = {COOKIE: token}

        session = await provider.get_session_from_cookies(cookies)
        assert session.user_id == "user-1"

        await provider.sign_out(cookies)
        assert await provider.get_session_from_cookies(cookies) is None

    @pytest.mark.asyncio
    async def test_expired_session_is_ignored(self):
        provider = MockIdentityProvider(cookie_name=COOKIE)
        token = provider.issue_session(
            "user-1",
            expires_at=datetime.now(timezone.utc) - timedelta(seconds=1),
        )

        assert await provider.get_session_from_cookies({COOKIE: token}) is None
