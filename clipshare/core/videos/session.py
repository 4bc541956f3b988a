"""
Session resolution.

Turns request cookies into an Identity (or None for anonymous callers)
and makes sure every signed-in user has a profile row. Profiles are
created lazily the first time we see a valid session.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Protocol

from .models import Identity, ProviderSession, UserProfile

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class IdentityProvider(Protocol):
    """
    Interface for the session authority.

    Returns None for a missing, malformed, or expired session. Raising is
    reserved for the provider itself being unreachable.
    """

    async def get_session_from_cookies(
        self,
        cookies: Mapping[str, str],
    ) -> Optional[ProviderSession]:
        ...

    async def sign_out(self, cookies: Mapping[str, str]) -> None:
        ...


class UserProfileStore(Protocol):
    """Persistence for user profiles."""

    def get(self, user_id: str) -> Optional[UserProfile]:
        ...

    def create_if_absent(self, profile: UserProfile) -> bool:
        """Insert the profile unless one exists. Returns True if inserted."""
        ...


class DuplicateProfileError(Exception):
    """Raised by a profile store when a unique constraint rejects an insert."""
    pass


# ---------------------------------------------------------------------------
# Metadata fallbacks
# ---------------------------------------------------------------------------

def display_name_from_metadata(metadata: Mapping[str, Any]) -> Optional[str]:
    """Provider metadata name chain: full_name, then name."""
    return metadata.get("full_name") or metadata.get("name") or None


def avatar_from_metadata(metadata: Mapping[str, Any]) -> Optional[str]:
    return metadata.get("avatar_url") or None


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

class SessionResolver:
    """
    Resolves the caller for one request.

    Stateless apart from its collaborators; build one per request.
    """

    def __init__(
        self,
        identity_provider: IdentityProvider,
        profiles: UserProfileStore,
    ) -> None:
        self._identity_provider = identity_provider
        self._profiles = profiles

    async def resolve(self, cookies: Mapping[str, str]) -> Optional[Identity]:
        session = await self._identity_provider.get_session_from_cookies(cookies)
        if session is None:
            return None

        profile = await asyncio.to_thread(self._profiles.get, session.user_id)
        if profile is None:
            profile = await self._provision_profile(session)

        metadata = session.metadata or {}

        return Identity(
            id=session.user_id,
            email=session.email,
            name=(profile.name if profile else None) or display_name_from_metadata(metadata),
            image=(profile.avatar_url if profile else None) or avatar_from_metadata(metadata),
            subscription_status=profile.subscription_status if profile else None,
            expires_at=session.expires_at,
        )

    async def _provision_profile(self, session: ProviderSession) -> Optional[UserProfile]:
        """
        Create the profile row for a first-time user.

        Two concurrent first requests may both get here. Insert-if-absent
        makes the loser a no-op; a store that still reports a duplicate key
        is handled by re-reading the winner's row.
        """
        metadata = session.metadata or {}
        profile = UserProfile(
            id=session.user_id,
            email=session.email,
            name=display_name_from_metadata(metadata),
            avatar_url=avatar_from_metadata(metadata),
        )

        try:
            created = await asyncio.to_thread(self._profiles.create_if_absent, profile)
        except DuplicateProfileError:
            logger.info(
                "Profile created concurrently, re-reading",
                extra={"user_id": session.user_id}
            )
            return await asyncio.to_thread(self._profiles.get, session.user_id)

        if created:
            logger.info("Provisioned user profile", extra={"user_id": session.user_id})
            return profile

        return await asyncio.to_thread(self._profiles.get, session.user_id)
