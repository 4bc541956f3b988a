"""
Video access control and upload brokering.

Contains the domain models, the error taxonomy, the entitlement policy,
session resolution, signed URL issuance and the orchestrating service.
"""

from .entitlement import EntitlementDecision, check_upload_entitlement
from .errors import (
    ForbiddenError,
    QuotaExceededError,
    UnauthenticatedError,
    UpstreamUnavailableError,
    VideoAccessError,
    VideoNotFoundError,
)
from .models import (
    DeleteResult,
    Identity,
    ProviderSession,
    SignedUpload,
    UploadSlot,
    UserProfile,
    Video,
    VideoView,
)
from .service import EventEmitter, VideoAccessService, VideoRepository
from .session import DuplicateProfileError, IdentityProvider, SessionResolver, UserProfileStore
from .signing import ObjectStorage, SignedUrlIssuer, thumbnail_object_path, video_object_path

__all__ = [
    "DeleteResult",
    "DuplicateProfileError",
    "EntitlementDecision",
    "EventEmitter",
    "ForbiddenError",
    "Identity",
    "IdentityProvider",
    "ObjectStorage",
    "ProviderSession",
    "QuotaExceededError",
    "SessionResolver",
    "SignedUpload",
    "SignedUrlIssuer",
    "UnauthenticatedError",
    "UploadSlot",
    "UpstreamUnavailableError",
    "UserProfile",
    "UserProfileStore",
    "Video",
    "VideoAccessError",
    "VideoAccessService",
    "VideoNotFoundError",
    "VideoRepository",
    "VideoView",
    "check_upload_entitlement",
    "thumbnail_object_path",
    "video_object_path",
]
