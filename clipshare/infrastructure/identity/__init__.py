"""
Identity provider integration.

Implements the IdentityProvider protocol from core.videos.session.
"""

from .client import (
    IdentityConfig,
    MockIdentityProvider,
    SupabaseJWTIdentityProvider,
    create_identity_provider,
    extract_access_token,
    read_session_cookie,
)

__all__ = [
    "IdentityConfig",
    "MockIdentityProvider",
    "SupabaseJWTIdentityProvider",
    "create_identity_provider",
    "extract_access_token",
    "read_session_cookie",
]
