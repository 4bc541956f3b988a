"""
Video API endpoints.

Thin handlers over VideoAccessService. Access decisions live in the
service; the errors it raises are turned into HTTP responses by the
exception handler registered in main.py, so handlers never build error
responses themselves.

Anonymous callers may only read a shared video. Everything else needs a
session cookie.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from ...core.videos.models import VideoView
from ..dependencies import CurrentIdentity, OptionalIdentity, VideoAccessServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoItem(BaseModel):
    """A video as rendered in the library or player."""
    id: str
    user_id: str = Field(description="Owner of the video")
    title: str
    sharing: bool
    delete_after_link_expires: bool
    share_link_expires_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    thumbnail_url: str = Field(
        default="",
        description="Signed thumbnail URL; empty if it could not be signed",
    )
    video_url: Optional[str] = Field(
        default=None,
        description="Signed playback URL (single-video reads only)",
    )


class VideoListResponse(BaseModel):
    videos: list[VideoItem]


class UploadRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)


class UploadResponse(BaseModel):
    """Where to PUT the video and thumbnail bytes for a new record."""
    success: bool = True
    id: str
    signed_video_url: str
    signed_thumbnail_url: str
    video_token: str
    thumbnail_token: str


class SharingRequest(BaseModel):
    sharing: bool


class DeleteAfterLinkExpiresRequest(BaseModel):
    delete_after_link_expires: bool


class ShareLinkExpiresAtRequest(BaseModel):
    # Required but nullable: the key must be present, null clears the expiry
    share_link_expires_at: Optional[datetime] = Field(
        ...,
        description="When the share link stops working; null clears it",
    )


class TitleRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)


class UpdateResponse(BaseModel):
    success: bool = True
    updated: int = Field(description="Number of rows changed")


class DeleteResponse(BaseModel):
    success: bool = True
    video_object_removed: bool
    thumbnail_object_removed: bool


def _to_item(view: VideoView) -> VideoItem:
    video = view.video
    return VideoItem(
        id=video.id,
        user_id=video.owner_id,
        title=video.title,
        sharing=video.sharing,
        delete_after_link_expires=video.delete_after_link_expires,
        share_link_expires_at=video.share_link_expires_at,
        created_at=video.created_at,
        updated_at=video.updated_at,
        thumbnail_url=view.thumbnail_url,
        video_url=view.video_url,
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=VideoListResponse,
    summary="List my videos",
    description="The caller's videos, newest first, with signed thumbnail URLs",
)
async def list_videos(
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> VideoListResponse:
    views = await service.list_videos(identity)
    return VideoListResponse(videos=[_to_item(view) for view in views])


@router.post(
    "/upload-url",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve an upload slot",
    description="Creates the video record and returns signed upload URLs for the video and its thumbnail",
)
async def request_upload(
    request: UploadRequest,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> UploadResponse:
    """
    The record exists as soon as this returns, before any bytes arrive.
    An empty signed URL means signing failed and the client should retry.
    """
    slot = await service.request_upload(identity, request.title)

    return UploadResponse(
        id=slot.id,
        signed_video_url=slot.signed_video_url,
        signed_thumbnail_url=slot.signed_thumbnail_url,
        video_token=slot.video_token,
        thumbnail_token=slot.thumbnail_token,
    )


@router.get(
    "/{video_id}",
    response_model=VideoItem,
    summary="Get a video",
    description="Owners always; anyone else only while the video is shared",
)
async def get_video(
    video_id: str,
    identity: OptionalIdentity,
    service: VideoAccessServiceDep,
) -> VideoItem:
    view = await service.get_video(identity, video_id)
    return _to_item(view)


@router.patch("/{video_id}/sharing", response_model=UpdateResponse)
async def set_sharing(
    video_id: str,
    request: SharingRequest,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> UpdateResponse:
    updated = await service.set_sharing(identity, video_id, request.sharing)
    return UpdateResponse(updated=updated)


@router.patch("/{video_id}/delete-after-link-expires", response_model=UpdateResponse)
async def set_delete_after_link_expires(
    video_id: str,
    request: DeleteAfterLinkExpiresRequest,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> UpdateResponse:
    updated = await service.set_delete_after_link_expires(
        identity, video_id, request.delete_after_link_expires
    )
    return UpdateResponse(updated=updated)


@router.patch("/{video_id}/share-link-expires-at", response_model=UpdateResponse)
async def set_share_link_expires_at(
    video_id: str,
    request: ShareLinkExpiresAtRequest,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> UpdateResponse:
    updated = await service.set_share_link_expires_at(
        identity, video_id, request.share_link_expires_at
    )
    return UpdateResponse(updated=updated)


@router.patch("/{video_id}/title", response_model=UpdateResponse)
async def rename_video(
    video_id: str,
    request: TitleRequest,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> UpdateResponse:
    updated = await service.rename(identity, video_id, request.title)
    return UpdateResponse(updated=updated)


@router.delete(
    "/{video_id}",
    response_model=DeleteResponse,
    summary="Delete a video",
    description="Removes the record, then the stored video and thumbnail (best effort)",
)
async def delete_video(
    video_id: str,
    identity: CurrentIdentity,
    service: VideoAccessServiceDep,
) -> DeleteResponse:
    result = await service.delete_video(identity, video_id)

    if not (result.video_object_removed and result.thumbnail_object_removed):
        logger.info(
            "Video deleted with objects left in storage",
            extra={
                "video_id": video_id,
                "video_object_removed": result.video_object_removed,
                "thumbnail_object_removed": result.thumbnail_object_removed,
            }
        )

    return DeleteResponse(
        video_object_removed=result.video_object_removed,
        thumbnail_object_removed=result.thumbnail_object_removed,
    )
