"""
FastAPI dependency injection.

Dependencies provide instances of services, clients, and configuration
to route handlers. Routes never instantiate their own collaborators, so
tests can swap any of them through app.dependency_overrides.

Each request gets its own repositories and VideoAccessService. In mock
mode the in-memory backends are shared across requests so that data
persists during a local session.
"""

import logging
from typing import Annotated, Generator, Optional

from fastapi import Depends, Request

from ..config.settings import Settings, get_settings
from ..core.videos.errors import UnauthenticatedError
from ..core.videos.models import Identity
from ..core.videos.service import EventEmitter, VideoAccessService
from ..core.videos.session import IdentityProvider, SessionResolver
from ..core.videos.signing import ObjectStorage, SignedUrlIssuer
from ..infrastructure.identity.client import IdentityConfig, create_identity_provider
from ..infrastructure.snowflake.client import (
    MockSnowflakeConnection,
    SnowflakeConfig,
    SnowflakeConnection,
    create_snowflake_connection,
)
from ..infrastructure.snowflake.repositories.user_profiles import UserProfileRepository
from ..infrastructure.snowflake.repositories.videos import VideoRepository
from ..infrastructure.storage.client import StorageConfig, create_storage_client
from ..infrastructure.telemetry.emitter import create_event_emitter

logger = logging.getLogger(__name__)

# Global mock instances (shared across requests in mock mode)
_mock_storage_client = None
_mock_snowflake_connection = None
_mock_identity_provider = None


# ---------------------------------------------------------------------------
# Backing services
# ---------------------------------------------------------------------------

def get_snowflake_connection(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[SnowflakeConnection, None, None]:
    """
    Provide a database connection for the lifetime of one request.

    This is a generator so FastAPI closes the real connection after the
    response is sent. In mock mode the same in-memory connection is
    reused so data persists between requests.
    """
    global _mock_snowflake_connection

    if settings.snowflake_mock_mode:
        if _mock_snowflake_connection is None:
            _mock_snowflake_connection = MockSnowflakeConnection()
            logger.info("Created shared mock Snowflake connection")
        yield _mock_snowflake_connection
    else:
        config = snowflake_config_from_settings(settings)

        with create_snowflake_connection(config=config) as conn:
            yield conn


def snowflake_config_from_settings(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_video_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_snowflake_connection)],
) -> VideoRepository:
    return VideoRepository(connection)


def get_user_profile_repository(
    connection: Annotated[SnowflakeConnection, Depends(get_snowflake_connection)],
) -> UserProfileRepository:
    return UserProfileRepository(connection)


def get_storage_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> ObjectStorage:
    """Provide the R2 client, or the shared mock client in mock mode."""
    global _mock_storage_client

    if settings.r2_mock_mode:
        if _mock_storage_client is None:
            _mock_storage_client = create_storage_client(mock_mode=True)
            logger.info("Created shared mock storage client")
        return _mock_storage_client

    config = StorageConfig(
        access_key_id=settings.r2_access_key_id,
        secret_access_key=settings.r2_secret_access_key,
        endpoint_url=settings.r2_endpoint,
    )
    return create_storage_client(config=config)


def get_identity_provider(
    settings: Annotated[Settings, Depends(get_settings)],
) -> IdentityProvider:
    global _mock_identity_provider

    if settings.identity_mock_mode:
        if _mock_identity_provider is None:
            _mock_identity_provider = create_identity_provider(
                mock_mode=True,
                cookie_name=settings.session_cookie_name,
            )
            logger.info("Created shared mock identity provider")
        return _mock_identity_provider

    config = IdentityConfig(
        jwt_secret=settings.supabase_jwt_secret,
        cookie_name=settings.session_cookie_name,
        audience=settings.supabase_jwt_audience,
    )
    return create_identity_provider(config=config)


def get_event_emitter(
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventEmitter:
    return create_event_emitter(enabled=settings.telemetry_enabled)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def get_session_resolver(
    identity_provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
    profiles: Annotated[UserProfileRepository, Depends(get_user_profile_repository)],
) -> SessionResolver:
    return SessionResolver(identity_provider, profiles)


async def get_optional_identity(
    request: Request,
    resolver: Annotated[SessionResolver, Depends(get_session_resolver)],
) -> Optional[Identity]:
    """The signed-in caller, or None for anonymous requests."""
    return await resolver.resolve(request.cookies)


async def require_identity(
    identity: Annotated[Optional[Identity], Depends(get_optional_identity)],
) -> Identity:
    """
    The signed-in caller. Raises UnauthenticatedError (401) otherwise;
    the front end turns that into a redirect to the sign-in page.
    """
    if identity is None:
        raise UnauthenticatedError()
    return identity


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_video_access_service(
    settings: Annotated[Settings, Depends(get_settings)],
    videos: Annotated[VideoRepository, Depends(get_video_repository)],
    storage: Annotated[ObjectStorage, Depends(get_storage_client)],
    events: Annotated[EventEmitter, Depends(get_event_emitter)],
) -> VideoAccessService:
    """Build the service for this request with its collaborators injected."""
    signer = SignedUrlIssuer(storage, upload_ttl_seconds=settings.upload_url_ttl_seconds)

    return VideoAccessService(
        videos=videos,
        signer=signer,
        events=events,
        bucket=settings.r2_bucket_name,
        subscription_gating_enabled=settings.subscription_gating_enabled,
        active_subscription_status=settings.active_subscription_status,
        download_ttl_seconds=settings.download_url_ttl_seconds,
        enforce_share_link_expiry=settings.enforce_share_link_expiry,
    )


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

SettingsDep = Annotated[Settings, Depends(get_settings)]
CurrentIdentity = Annotated[Identity, Depends(require_identity)]
OptionalIdentity = Annotated[Optional[Identity], Depends(get_optional_identity)]
IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]
VideoAccessServiceDep = Annotated[VideoAccessService, Depends(get_video_access_service)]
