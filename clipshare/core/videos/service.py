"""
Video access service.

This is the orchestrator for every video operation. It composes the
repository, the signed URL issuer and the event emitter, all passed in
through the constructor so tests can supply in-memory doubles.

Ownership is enforced by the repository's owner-scoped statements: an
update or delete that touches zero rows means "not yours or not there",
and both cases surface as the same ForbiddenError. Mutations never do a
separate existence lookup first.

Repositories are blocking DB-API code, so every repository call runs in a
worker thread via asyncio.to_thread and never holds the event loop.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Optional, Protocol

from .entitlement import ACTIVE_SUBSCRIPTION_STATUS, check_upload_entitlement
from .errors import (
    ForbiddenError,
    QuotaExceededError,
    UnauthenticatedError,
    VideoNotFoundError,
)
from .models import DeleteResult, Identity, UploadSlot, Video, VideoView
from .signing import (
    DEFAULT_DOWNLOAD_TTL_SECONDS,
    SignedUrlIssuer,
    thumbnail_object_path,
    video_object_path,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class VideoRepository(Protocol):
    """
    Persistence for video records.

    update_scoped and delete_scoped must be single conditional statements
    with owner_id in the predicate, returning the affected row count.
    """

    def list_by_owner(self, owner_id: str) -> list[Video]: ...
    def count_by_owner(self, owner_id: str) -> int: ...
    def get_by_id(self, video_id: str) -> Optional[Video]: ...
    def create(self, owner_id: str, title: str) -> Video: ...
    def update_scoped(self, video_id: str, owner_id: str, fields: dict[str, Any]) -> int: ...
    def delete_scoped(self, video_id: str, owner_id: str) -> int: ...


class EventEmitter(Protocol):
    """Fire-and-forget product analytics sink."""

    def capture(self, event: str, distinct_id: str, properties: dict[str, Any]) -> None: ...


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class VideoAccessService:
    """
    List, read, upload, update and delete videos on behalf of a caller.

    Every method takes the resolved Identity (or None for anonymous) as its
    first argument. Methods that need a signed-in caller raise
    UnauthenticatedError for None.
    """

    def __init__(
        self,
        videos: VideoRepository,
        signer: SignedUrlIssuer,
        events: EventEmitter,
        bucket: str,
        subscription_gating_enabled: bool = False,
        active_subscription_status: str = ACTIVE_SUBSCRIPTION_STATUS,
        download_ttl_seconds: int = DEFAULT_DOWNLOAD_TTL_SECONDS,
        enforce_share_link_expiry: bool = True,
    ) -> None:
        self._videos = videos
        self._signer = signer
        self._events = events
        self._bucket = bucket
        self._gating_enabled = subscription_gating_enabled
        self._active_status = active_subscription_status
        self._download_ttl = download_ttl_seconds
        self._enforce_expiry = enforce_share_link_expiry

    # -- reads --------------------------------------------------------------

    async def list_videos(self, identity: Optional[Identity]) -> list[VideoView]:
        """The caller's own videos, each with a best-effort thumbnail URL."""
        caller = self._require_identity(identity)
        videos = await asyncio.to_thread(self._videos.list_by_owner, caller.id)

        self._emit("viewing video list", caller.id, {"videoAmount": len(videos)})

        thumbnail_urls = await asyncio.gather(*(
            self._signer.issue_download_url(
                self._bucket,
                thumbnail_object_path(video.owner_id, video.id),
                self._download_ttl,
            )
            for video in videos
        ))

        return [
            VideoView(video=video, thumbnail_url=url)
            for video, url in zip(videos, thumbnail_urls)
        ]

    async def get_video(self, identity: Optional[Identity], video_id: str) -> VideoView:
        """
        One video with signed playback and thumbnail URLs.

        Owners always get through. Anyone else needs sharing on and an
        unexpired share link (when expiry is enforced).
        """
        caller_id = identity.id if identity else None
        video = await asyncio.to_thread(self._videos.get_by_id, video_id)

        if video is None:
            logger.info(
                "Video lookup missed",
                extra={"video_id": video_id, "user_id": caller_id}
            )
            raise VideoNotFoundError()

        if not video.is_visible_to(caller_id, enforce_expiry=self._enforce_expiry):
            logger.warning(
                "Video read denied",
                extra={"video_id": video_id, "user_id": caller_id}
            )
            raise ForbiddenError()

        if identity is not None:
            self._emit("viewing video", identity.id, {
                "videoId": video.id,
                "videoCreatedAt": _iso(video.created_at),
                "videoUpdatedAt": _iso(video.updated_at),
                "videoUser": video.owner_id,
                "videoSharing": video.sharing,
                "videoDeleteAfterLinkExpires": video.delete_after_link_expires,
                "videoShareLinkExpiresAt": _iso(video.share_link_expires_at),
            })

        video_url, thumbnail_url = await asyncio.gather(
            self._signer.issue_download_url(
                self._bucket, video_object_path(video.owner_id, video.id), self._download_ttl
            ),
            self._signer.issue_download_url(
                self._bucket, thumbnail_object_path(video.owner_id, video.id), self._download_ttl
            ),
        )

        return VideoView(video=video, video_url=video_url, thumbnail_url=thumbnail_url)

    # -- upload -------------------------------------------------------------

    async def request_upload(self, identity: Optional[Identity], title: str) -> UploadSlot:
        """
        Reserve an upload slot.

        The entitlement check runs before anything is written, so a denied
        caller leaves no row behind. On success the row is created first
        and the two upload URLs are keyed by its id. If signing fails the
        slot still exists with empty URLs and the client may retry.
        """
        caller = self._require_identity(identity)
        video_count = await asyncio.to_thread(self._videos.count_by_owner, caller.id)

        decision = check_upload_entitlement(
            caller,
            video_count,
            self._gating_enabled,
            active_status=self._active_status,
        )

        if not decision.allowed:
            logger.warning(
                "Upload denied by entitlement",
                extra={
                    "user_id": caller.id,
                    "reason": decision.reason,
                    "subscription_status": decision.subscription_status,
                }
            )
            self._emit("hit video upload limit", caller.id, {
                "videoAmount": decision.video_count,
                "stripeSubscriptionStatus": decision.subscription_status,
            })
            raise QuotaExceededError()

        self._emit("uploading video", caller.id, {
            "videoAmount": decision.video_count,
            "stripeSubscriptionStatus": decision.subscription_status,
        })

        video = await asyncio.to_thread(self._videos.create, caller.id, title)

        video_upload, thumbnail_upload = await asyncio.gather(
            self._signer.issue_upload_url(self._bucket, video_object_path(caller.id, video.id)),
            self._signer.issue_upload_url(self._bucket, thumbnail_object_path(caller.id, video.id)),
        )

        logger.info(
            "Upload slot created",
            extra={
                "user_id": caller.id,
                "video_id": video.id,
                "video_url_issued": video_upload is not None,
                "thumbnail_url_issued": thumbnail_upload is not None,
            }
        )

        return UploadSlot(
            id=video.id,
            signed_video_url=video_upload.url if video_upload else "",
            signed_thumbnail_url=thumbnail_upload.url if thumbnail_upload else "",
            video_token=video_upload.token if video_upload else "",
            thumbnail_token=thumbnail_upload.token if thumbnail_upload else "",
        )

    # -- owner-scoped updates -----------------------------------------------

    async def set_sharing(self, identity: Optional[Identity], video_id: str, sharing: bool) -> int:
        return await self._update_owned(
            identity,
            video_id,
            {"sharing": sharing},
            "update video setSharing",
            {"videoId": video_id, "videoSharing": sharing},
        )

    async def set_delete_after_link_expires(
        self,
        identity: Optional[Identity],
        video_id: str,
        delete_after_link_expires: bool,
    ) -> int:
        return await self._update_owned(
            identity,
            video_id,
            {"delete_after_link_expires": delete_after_link_expires},
            "update video delete_after_link_expires",
            {"videoId": video_id, "delete_after_link_expires": delete_after_link_expires},
        )

    async def set_share_link_expires_at(
        self,
        identity: Optional[Identity],
        video_id: str,
        share_link_expires_at: Optional[datetime],
    ) -> int:
        return await self._update_owned(
            identity,
            video_id,
            {"share_link_expires_at": share_link_expires_at},
            "update video shareLinkExpiresAt",
            {"videoId": video_id, "shareLinkExpiresAt": _iso(share_link_expires_at)},
        )

    async def rename(self, identity: Optional[Identity], video_id: str, title: str) -> int:
        return await self._update_owned(
            identity,
            video_id,
            {"title": title},
            "update video title",
            {"videoId": video_id, "title": title},
        )

    # -- delete -------------------------------------------------------------

    async def delete_video(self, identity: Optional[Identity], video_id: str) -> DeleteResult:
        """
        Delete the row, then clean up storage.

        The row deletion is authoritative. Storage removal is best-effort:
        a failure leaves orphaned objects but never resurrects the row or
        fails the call. Re-deleting returns ForbiddenError, which a retrying
        client can treat as already done.
        """
        caller = self._require_identity(identity)
        affected = await asyncio.to_thread(self._videos.delete_scoped, video_id, caller.id)

        if affected == 0:
            logger.warning(
                "Scoped delete matched no rows",
                extra={"video_id": video_id, "user_id": caller.id}
            )
            raise ForbiddenError()

        self._emit("video delete", caller.id, {"videoId": video_id})

        video_path = video_object_path(caller.id, video_id)
        thumbnail_path = thumbnail_object_path(caller.id, video_id)

        removed_video, removed_thumbnail = await asyncio.gather(
            self._signer.remove_objects(self._bucket, [video_path]),
            self._signer.remove_objects(self._bucket, [thumbnail_path]),
        )

        return DeleteResult(
            video_id=video_id,
            video_object_removed=video_path in removed_video,
            thumbnail_object_removed=thumbnail_path in removed_thumbnail,
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _require_identity(self, identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise UnauthenticatedError()
        return identity

    async def _update_owned(
        self,
        identity: Optional[Identity],
        video_id: str,
        fields: dict[str, Any],
        event: str,
        properties: dict[str, Any],
    ) -> int:
        caller = self._require_identity(identity)
        affected = await asyncio.to_thread(self._videos.update_scoped, video_id, caller.id, fields)

        if affected == 0:
            logger.warning(
                "Scoped update matched no rows",
                extra={"video_id": video_id, "user_id": caller.id, "fields": list(fields)}
            )
            raise ForbiddenError()

        self._emit(event, caller.id, properties)
        return affected

    def _emit(self, event: str, distinct_id: str, properties: dict[str, Any]) -> None:
        """Telemetry never changes the outcome of a request."""
        try:
            self._events.capture(event, distinct_id, properties)
        except Exception as e:
            logger.debug(
                "Telemetry capture failed",
                extra={"event": event, "error": str(e)}
            )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
