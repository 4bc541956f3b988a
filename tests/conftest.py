"""
Shared fixtures.

Everything runs against the in-memory backends: the mock Snowflake
connection, the mock storage client and a recording event emitter.
"""

from typing import Any

import pytest

from clipshare.core.videos.models import Identity
from clipshare.core.videos.service import VideoAccessService
from clipshare.core.videos.signing import SignedUrlIssuer
from clipshare.infrastructure.snowflake.client import MockSnowflakeConnection
from clipshare.infrastructure.snowflake.repositories.user_profiles import UserProfileRepository
from clipshare.infrastructure.snowflake.repositories.videos import VideoRepository
from clipshare.infrastructure.storage.client import MockStorageClient

BUCKET = "videos"


class RecordingEmitter:
    """Keeps every captured event for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, Any]]] = []

    def capture(self, event: str, distinct_id: str, properties: dict[str, Any]) -> None:
        self.events.append((event, distinct_id, properties))

    def names(self) -> list[str]:
        return [event for event, _, _ in self.events]


@pytest.fixture
def connection() -> MockSnowflakeConnection:
    return MockSnowflakeConnection()


@pytest.fixture
def video_repository(connection) -> VideoRepository:
    return VideoRepository(connection)


@pytest.fixture
def profile_repository(connection) -> UserProfileRepository:
    return UserProfileRepository(connection)


@pytest.fixture
def storage() -> MockStorageClient:
    return MockStorageClient()


@pytest.fixture
def events() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def make_service(video_repository, storage, events):
    """Build a VideoAccessService; keyword arguments override the defaults."""

    def _make(**overrides) -> VideoAccessService:
        options = {
            "videos": video_repository,
            "signer": SignedUrlIssuer(storage),
            "events": events,
            "bucket": BUCKET,
        }
        options.update(overrides)
        return VideoAccessService(**options)

    return _make


@pytest.fixture
def service(make_service) -> VideoAccessService:
    return make_service()


@pytest.fixture
def alice() -> Identity:
    return Identity(id="user-a", email="a@example.com", name="Alice")


@pytest.fixture
def bob() -> Identity:
    return Identity(id="user-b", email="b@example.com", name="Bob")
