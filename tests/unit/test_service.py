"""
Tests for VideoAccessService.

These exercise the access rules end to end over the in-memory backends:
ownership, sharing, share-link expiry, upload entitlement, delete
semantics and the telemetry side channel.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from clipshare.core.videos.errors import (
    ForbiddenError,
    QuotaExceededError,
    UnauthenticatedError,
    VideoNotFoundError,
)
from clipshare.core.videos.models import Identity
from clipshare.core.videos.signing import SignedUrlIssuer, thumbnail_object_path, video_object_path
from clipshare.infrastructure.snowflake.repositories.videos import VideoRepository
from clipshare.infrastructure.storage.client import StorageError

BUCKET = "videos"


class SelectivelyBrokenStorage:
    """Mock storage that fails for the listed paths."""

    def __init__(self, inner, failing_paths=(), fail_uploads=False, fail_removes=False):
        self._inner = inner
        self._failing_paths = set(failing_paths)
        self._fail_uploads = fail_uploads
        self._fail_removes = fail_removes

    async def create_signed_download_url(self, bucket, path, expiry_seconds):
        if path in self._failing_paths:
            raise StorageError("signing failed")
        return await self._inner.create_signed_download_url(bucket, path, expiry_seconds)

    async def create_signed_upload_url(self, bucket, path, expiry_seconds):
        if self._fail_uploads:
            raise StorageError("signing failed")
        return await self._inner.create_signed_upload_url(bucket, path, expiry_seconds)

    async def remove(self, bucket, paths):
        if self._fail_removes:
            raise StorageError("delete failed")
        return await self._inner.remove(bucket, paths)


class ExplodingEmitter:
    def capture(self, event, distinct_id, properties):
        raise RuntimeError("analytics down")


async def upload(service, identity, title="Clip") -> str:
    slot = await service.request_upload(identity, title)
    return slot.id


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------

class TestListVideos:

    @pytest.mark.asyncio
    async def test_lists_only_own_videos(self, service, alice, bob):
        await upload(service, alice, "Mine")
        await upload(service, bob, "Theirs")

        views = await service.list_videos(alice)

        assert [view.video.title for view in views] == ["Mine"]
        assert views[0].thumbnail_url.startswith("mock://storage/videos/user-a/")

    @pytest.mark.asyncio
    async def test_anonymous_cannot_list(self, service):
        with pytest.raises(UnauthenticatedError):
            await service.list_videos(None)

    @pytest.mark.asyncio
    async def test_one_failing_thumbnail_does_not_fail_the_list(
        self, make_service, video_repository, storage, alice
    ):
        ids = [video_repository.create(alice.id, f"Clip {n}").id for n in range(3)]
        broken = SelectivelyBrokenStorage(
            storage, failing_paths={thumbnail_object_path(alice.id, ids[1])}
        )
        service = make_service(signer=SignedUrlIssuer(broken))

        views = await service.list_videos(alice)

        assert len(views) == 3
        urls = {view.video.id: view.thumbnail_url for view in views}
        assert urls[ids[1]] == ""
        assert urls[ids[0]] and urls[ids[2]]

    @pytest.mark.asyncio
    async def test_emits_list_event(self, service, events, alice):
        await upload(service, alice)
        await upload(service, alice)

        await service.list_videos(alice)

        assert events.events[-1] == ("viewing video list", alice.id, {"videoAmount": 2})


# ---------------------------------------------------------------------------
# Reading one video
# ---------------------------------------------------------------------------

class TestGetVideo:

    @pytest.mark.asyncio
    async def test_owner_reads_private_video(self, service, alice):
        video_id = await upload(service, alice)

        view = await service.get_video(alice, video_id)

        assert view.video.id == video_id
        assert view.video_url == f"mock://storage/{BUCKET}/user-a/{video_id}?expires_in=3600"
        assert view.thumbnail_url == (
            f"mock://storage/{BUCKET}/user-a/{video_id}-thumbnail?expires_in=3600"
        )

    @pytest.mark.asyncio
    async def test_non_owner_cannot_read_private_video(self, service, alice, bob):
        video_id = await upload(service, alice)

        with pytest.raises(ForbiddenError):
            await service.get_video(bob, video_id)

    @pytest.mark.asyncio
    async def test_non_owner_reads_shared_video(self, service, alice, bob):
        video_id = await upload(service, alice)
        await service.set_sharing(alice, video_id, True)

        view = await service.get_video(bob, video_id)

        assert view.video_url
        assert view.thumbnail_url

    @pytest.mark.asyncio
    async def test_missing_and_private_look_identical(self, service, alice, bob):
        video_id = await upload(service, alice)

        with pytest.raises(ForbiddenError) as private:
            await service.get_video(bob, video_id)
        with pytest.raises(ForbiddenError) as missing:
            await service.get_video(bob, "does-not-exist")

        assert isinstance(missing.value, VideoNotFoundError)
        assert str(private.value) == str(missing.value)
        assert private.value.code == missing.value.code

    @pytest.mark.asyncio
    async def test_expired_share_link_blocks_others_not_owner(self, service, alice, bob):
        video_id = await upload(service, alice)
        await service.set_sharing(alice, video_id, True)
        await service.set_share_link_expires_at(
            alice, video_id, datetime.now(timezone.utc) - timedelta(minutes=5)
        )

        with pytest.raises(ForbiddenError):
            await service.get_video(bob, video_id)
        with pytest.raises(ForbiddenError):
            await service.get_video(None, video_id)

        assert (await service.get_video(alice, video_id)).video.id == video_id

    @pytest.mark.asyncio
    async def test_expiry_not_enforced_when_disabled(self, make_service, alice, bob):
        service = make_service(enforce_share_link_expiry=False)
        video_id = await upload(service, alice)
        await service.set_sharing(alice, video_id, True)
        await service.set_share_link_expires_at(
            alice, video_id, datetime.now(timezone.utc) - timedelta(minutes=5)
        )

        assert (await service.get_video(bob, video_id)).video.id == video_id

    @pytest.mark.asyncio
    async def test_view_event_only_for_signed_in_callers(self, service, events, alice):
        video_id = await upload(service, alice)
        await service.set_sharing(alice, video_id, True)
        before = len(events.events)

        await service.get_video(None, video_id)
        assert len(events.events) == before

        await service.get_video(alice, video_id)
        name, distinct_id, properties = events.events[-1]
        assert name == "viewing video"
        assert distinct_id == alice.id
        assert properties["videoId"] == video_id
        assert properties["videoSharing"] is True
        assert properties["videoUser"] == alice.id


# ---------------------------------------------------------------------------
# Upload slots
# ---------------------------------------------------------------------------

class TestRequestUpload:

    @pytest.mark.asyncio
    async def test_creates_row_and_signed_urls(self, service, connection, storage, alice):
        slot = await service.request_upload(alice, "Holiday")

        rows = connection._rows("videos")
        assert len(rows) == 1
        assert rows[0]["video_id"] == slot.id
        assert rows[0]["owner_id"] == alice.id
        assert rows[0]["title"] == "Holiday"
        assert rows[0]["sharing"] is False

        assert slot.signed_video_url.startswith(f"mock://storage/{BUCKET}/user-a/{slot.id}?")
        assert slot.signed_thumbnail_url.startswith(
            f"mock://storage/{BUCKET}/user-a/{slot.id}-thumbnail?"
        )
        assert slot.video_token and slot.thumbnail_token
        assert storage.has_object(BUCKET, video_object_path(alice.id, slot.id))

    @pytest.mark.asyncio
    async def test_anonymous_cannot_upload(self, service, connection):
        with pytest.raises(UnauthenticatedError):
            await service.request_upload(None, "Nope")
        assert connection._rows("videos") == []

    @pytest.mark.asyncio
    async def test_inactive_subscriber_is_denied_without_creating_a_row(
        self, make_service, connection, events
    ):
        service = make_service(subscription_gating_enabled=True)
        caller = Identity(id="free-user", subscription_status="canceled")

        with pytest.raises(QuotaExceededError):
            await service.request_upload(caller, "Blocked")

        assert connection._rows("videos") == []
        assert events.names() == ["hit video upload limit"]

    @pytest.mark.asyncio
    async def test_active_subscriber_creates_exactly_one_row(
        self, make_service, connection, events
    ):
        service = make_service(subscription_gating_enabled=True)
        caller = Identity(id="paid-user", subscription_status="active")

        await service.request_upload(caller, "Allowed")

        assert len(connection._rows("videos")) == 1
        name, _, properties = events.events[-1]
        assert name == "uploading video"
        assert properties == {"videoAmount": 0, "stripeSubscriptionStatus": "active"}

    @pytest.mark.asyncio
    async def test_signing_failure_keeps_row_with_empty_urls(
        self, make_service, storage, connection, alice
    ):
        broken = SelectivelyBrokenStorage(storage, fail_uploads=True)
        service = make_service(signer=SignedUrlIssuer(broken))

        slot = await service.request_upload(alice, "Retry me")

        assert slot.signed_video_url == ""
        assert slot.signed_thumbnail_url == ""
        assert slot.video_token == ""
        assert [row["video_id"] for row in connection._rows("videos")] == [slot.id]


# ---------------------------------------------------------------------------
# Owner-scoped updates
# ---------------------------------------------------------------------------

class TestScopedUpdates:

    @pytest.mark.asyncio
    async def test_owner_can_update_every_field(self, service, video_repository, alice):
        video_id = await upload(service, alice)
        expires = datetime(2030, 1, 1, tzinfo=timezone.utc)

        assert await service.set_sharing(alice, video_id, True) == 1
        assert await service.set_delete_after_link_expires(alice, video_id, True) == 1
        assert await service.set_share_link_expires_at(alice, video_id, expires) == 1
        assert await service.rename(alice, video_id, "Renamed") == 1

        video = video_repository.get_by_id(video_id)
        assert video.sharing is True
        assert video.delete_after_link_expires is True
        assert video.share_link_expires_at == expires
        assert video.title == "Renamed"

    @pytest.mark.asyncio
    async def test_non_owner_set_sharing_is_forbidden_and_changes_nothing(
        self, service, video_repository, alice, bob
    ):
        video_id = await upload(service, alice)

        with pytest.raises(ForbiddenError):
            await service.set_sharing(bob, video_id, True)

        assert video_repository.get_by_id(video_id).sharing is False

    @pytest.mark.asyncio
    async def test_non_owner_rename_is_forbidden_and_changes_nothing(
        self, service, video_repository, alice, bob
    ):
        video_id = await upload(service, alice, "Original")

        with pytest.raises(ForbiddenError):
            await service.rename(bob, video_id, "Hijacked")

        assert video_repository.get_by_id(video_id).title == "Original"

    @pytest.mark.asyncio
    async def test_update_of_missing_video_is_forbidden(self, service, alice):
        with pytest.raises(ForbiddenError):
            await service.set_delete_after_link_expires(alice, "does-not-exist", True)

    @pytest.mark.asyncio
    async def test_update_after_owner_deleted_video_is_forbidden(
        self, service, video_repository, alice
    ):
        video_id = await upload(service, alice)
        await service.delete_video(alice, video_id)

        with pytest.raises(ForbiddenError):
            await service.set_sharing(alice, video_id, True)
        with pytest.raises(ForbiddenError):
            await service.rename(alice, video_id, "Too late")

        assert video_repository.get_by_id(video_id) is None

    @pytest.mark.asyncio
    async def test_anonymous_update_is_unauthenticated(self, service, alice):
        video_id = await upload(service, alice)

        with pytest.raises(UnauthenticatedError):
            await service.set_sharing(None, video_id, True)

    @pytest.mark.asyncio
    async def test_update_events(self, service, events, alice):
        video_id = await upload(service, alice)

        await service.set_sharing(alice, video_id, True)
        await service.set_delete_after_link_expires(alice, video_id, False)
        await service.set_share_link_expires_at(alice, video_id, None)
        await service.rename(alice, video_id, "New")

        assert events.names()[-4:] == [
            "update video setSharing",
            "update video delete_after_link_expires",
            "update video shareLinkExpiresAt",
            "update video title",
        ]

    @pytest.mark.asyncio
    async def test_failed_update_emits_nothing(self, service, events, alice, bob):
        video_id = await upload(service, alice)
        before = list(events.events)

        with pytest.raises(ForbiddenError):
            await service.rename(bob, video_id, "Nope")

        assert events.events == before


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

class TestDeleteVideo:

    @pytest.mark.asyncio
    async def test_owner_delete_removes_row_and_objects(
        self, service, video_repository, storage, alice
    ):
        video_id = await upload(service, alice)

        result = await service.delete_video(alice, video_id)

        assert video_repository.get_by_id(video_id) is None
        assert result.video_object_removed is True
        assert result.thumbnail_object_removed is True
        assert not storage.has_object(BUCKET, video_object_path(alice.id, video_id))
        assert not storage.has_object(BUCKET, thumbnail_object_path(alice.id, video_id))

    @pytest.mark.asyncio
    async def test_second_delete_is_forbidden(self, service, alice):
        video_id = await upload(service, alice)
        await service.delete_video(alice, video_id)

        with pytest.raises(ForbiddenError):
            await service.delete_video(alice, video_id)

    @pytest.mark.asyncio
    async def test_owner_cannot_read_deleted_video(self, service, alice):
        video_id = await upload(service, alice)
        await service.delete_video(alice, video_id)

        with pytest.raises(VideoNotFoundError):
            await service.get_video(alice, video_id)

    @pytest.mark.asyncio
    async def test_non_owner_delete_is_forbidden_and_keeps_row(
        self, service, video_repository, alice, bob
    ):
        video_id = await upload(service, alice)

        with pytest.raises(ForbiddenError):
            await service.delete_video(bob, video_id)

        assert video_repository.get_by_id(video_id) is not None

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_undo_row_deletion(
        self, make_service, video_repository, storage, alice
    ):
        video_id = video_repository.create(alice.id, "Clip").id
        broken = SelectivelyBrokenStorage(storage, fail_removes=True)
        service = make_service(signer=SignedUrlIssuer(broken))

        result = await service.delete_video(alice, video_id)

        assert video_repository.get_by_id(video_id) is None
        assert result.video_object_removed is False
        assert result.thumbnail_object_removed is False

    @pytest.mark.asyncio
    async def test_delete_event(self, service, events, alice):
        video_id = await upload(service, alice)

        await service.delete_video(alice, video_id)

        assert events.events[-1] == ("video delete", alice.id, {"videoId": video_id})


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_share_lifecycle_across_three_callers(service, alice, bob):
    video_id = await upload(service, alice, "Trip")

    with pytest.raises(ForbiddenError):
        await service.get_video(bob, video_id)

    await service.set_sharing(alice, video_id, True)
    assert (await service.get_video(bob, video_id)).video.title == "Trip"
    assert (await service.get_video(None, video_id)).video.title == "Trip"

    await service.set_sharing(alice, video_id, False)
    with pytest.raises(ForbiddenError):
        await service.get_video(None, video_id)
    with pytest.raises(ForbiddenError):
        await service.get_video(bob, video_id)


@pytest.mark.asyncio
async def test_telemetry_failure_never_changes_outcome(make_service, connection, alice):
    service = make_service(events=ExplodingEmitter())

    slot = await service.request_upload(alice, "Still works")
    await service.set_sharing(alice, slot.id, True)
    views = await service.list_videos(alice)
    await service.delete_video(alice, slot.id)

    assert [view.video.id for view in views] == [slot.id]
    assert connection._rows("videos") == []


class SlowVideoRepository(VideoRepository):
    """Blocks like a real database round trip on every read."""

    delay = 0.2

    def get_by_id(self, video_id):
        time.sleep(self.delay)
        return super().get_by_id(video_id)


@pytest.mark.asyncio
async def test_concurrent_reads_do_not_block_each_other(make_service, connection, alice):
    repository = SlowVideoRepository(connection)
    service = make_service(videos=repository)
    video_id = repository.create(alice.id, "Clip").id

    started = time.perf_counter()
    views = await asyncio.gather(*(service.get_video(alice, video_id) for _ in range(4)))
    elapsed = time.perf_counter() - started

    assert len(views) == 4
    assert elapsed < 3 * SlowVideoRepository.delay
