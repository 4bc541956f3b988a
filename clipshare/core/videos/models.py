"""
Domain models for video access.

These models represent the core business concepts. They have no dependencies
on external frameworks, databases, or APIs: a Video is the same thing
whether it came from Snowflake or from an in-memory test double.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UserProfile:
    """
    A user known to ClipShare.

    The id is issued by the identity provider; we never mint our own.
    subscription_status is written by the billing webhook and only read here.
    """
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    subscription_status: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ProviderSession:
    """A session as reported by the identity provider."""
    user_id: str
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Identity:
    """
    The authenticated caller for one request.

    Frozen because it is resolved once and then only passed around.
    """
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    image: Optional[str] = None
    subscription_status: Optional[str] = None
    expires_at: Optional[datetime] = None


@dataclass
class Video:
    """
    A video record.

    The record is created before any bytes are uploaded, so it represents
    an upload slot rather than a verified upload.
    """
    owner_id: str
    title: str
    id: str = field(default_factory=lambda: str(uuid4()))
    sharing: bool = False
    delete_after_link_expires: bool = False
    share_link_expires_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def is_owned_by(self, user_id: Optional[str]) -> bool:
        return user_id is not None and self.owner_id == user_id

    def share_link_expired(self, now: Optional[datetime] = None) -> bool:
        """True once an expiry has been set and has passed."""
        if self.share_link_expires_at is None:
            return False
        expires_at = self.share_link_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= (now or utcnow())

    def is_visible_to(
        self,
        user_id: Optional[str],
        enforce_expiry: bool = True,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Owners always see their videos. Everyone else (anonymous included)
        needs sharing turned on and, when enforced, an unexpired link.
        """
        if self.is_owned_by(user_id):
            return True
        if not self.sharing:
            return False
        if enforce_expiry and self.share_link_expired(now):
            return False
        return True


@dataclass(frozen=True)
class SignedUpload:
    """A pre-signed, single-use upload slot in object storage."""
    url: str
    token: str


@dataclass
class VideoView:
    """A video augmented with the signed URLs a client needs to render it."""
    video: Video
    thumbnail_url: str = ""
    video_url: Optional[str] = None


@dataclass(frozen=True)
class UploadSlot:
    """Returned by request_upload: the new record id and where to PUT bytes."""
    id: str
    signed_video_url: str
    signed_thumbnail_url: str
    video_token: str
    thumbnail_token: str


@dataclass(frozen=True)
class DeleteResult:
    video_id: str
    video_object_removed: bool
    thumbnail_object_removed: bool
