"""
Snowflake repository for video records.

Every mutation is a single conditional statement with owner_id in the
WHERE clause, and reports the affected row count back to the caller. A
non-owner's update or delete is therefore indistinguishable, at this
layer, from one aimed at a video that doesn't exist.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from ....core.videos.errors import UpstreamUnavailableError
from ....core.videos.models import Video
from ..client import SnowflakeConnection

logger = logging.getLogger(__name__)

VIDEO_COLUMNS = (
    "video_id",
    "owner_id",
    "title",
    "sharing",
    "delete_after_link_expires",
    "share_link_expires_at",
    "created_at",
    "updated_at",
)

# owner_id and video_id are immutable after creation
UPDATABLE_FIELDS = frozenset({
    "title",
    "sharing",
    "delete_after_link_expires",
    "share_link_expires_at",
})

_SELECT_VIDEO = f"SELECT {', '.join(VIDEO_COLUMNS)} FROM videos"


class VideoRepository:
    """
    Repository for video persistence.

    get_by_id is the only unscoped read; visibility is the service's job.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def list_by_owner(self, owner_id: str) -> list[Video]:
        """All of one owner's videos, newest first."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"{_SELECT_VIDEO} WHERE owner_id = %s ORDER BY created_at DESC",
                (owner_id,),
            )
            return [self._build_video(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(
                "Failed to list videos",
                extra={"owner_id": owner_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

    def count_by_owner(self, owner_id: str) -> int:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                "SELECT COUNT(*) FROM videos WHERE owner_id = %s",
                (owner_id,),
            )
            row = cursor.fetchone()
            return int(row[0]) if row else 0
        except Exception as e:
            logger.error(
                "Failed to count videos",
                extra={"owner_id": owner_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

    def get_by_id(self, video_id: str) -> Optional[Video]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(f"{_SELECT_VIDEO} WHERE video_id = %s", (video_id,))
            row = cursor.fetchone()
            return self._build_video(row) if row else None
        except Exception as e:
            logger.error(
                "Failed to load video",
                extra={"video_id": video_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

    def create(self, owner_id: str, title: str) -> Video:
        """Insert a new private video row and return it."""
        now = datetime.now(timezone.utc)
        video = Video(
            id=str(uuid4()),
            owner_id=owner_id,
            title=title,
            created_at=now,
            updated_at=now,
        )

        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"INSERT INTO videos ({', '.join(VIDEO_COLUMNS)}) "
                f"VALUES ({', '.join(['%s'] * len(VIDEO_COLUMNS))})",
                (
                    video.id,
                    video.owner_id,
                    video.title,
                    video.sharing,
                    video.delete_after_link_expires,
                    video.share_link_expires_at,
                    video.created_at,
                    video.updated_at,
                ),
            )
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to create video",
                extra={"owner_id": owner_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

        logger.info(
            "Created video record",
            extra={"video_id": video.id, "owner_id": owner_id}
        )
        return video

    def update_scoped(self, video_id: str, owner_id: str, fields: dict[str, Any]) -> int:
        """
        Apply a partial update if and only if owner_id owns the video.

        Returns the affected row count (0 or 1). Column names come from
        UPDATABLE_FIELDS only, never from caller input.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown or not fields:
            raise ValueError(f"Cannot update video fields: {sorted(unknown) or 'none given'}")

        columns = sorted(fields)
        assignments = ", ".join(f"{column} = %s" for column in columns + ["updated_at"])
        params = tuple(fields[column] for column in columns) + (
            datetime.now(timezone.utc),
            video_id,
            owner_id,
        )

        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"UPDATE videos SET {assignments} WHERE video_id = %s AND owner_id = %s",
                params,
            )
            affected = cursor.rowcount or 0
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to update video",
                extra={"video_id": video_id, "owner_id": owner_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

        return affected

    def delete_scoped(self, video_id: str, owner_id: str) -> int:
        """Delete the row if owner_id owns it. Returns affected row count."""
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                "DELETE FROM videos WHERE video_id = %s AND owner_id = %s",
                (video_id, owner_id),
            )
            affected = cursor.rowcount or 0
            self._conn.commit()
        except Exception as e:
            logger.error(
                "Failed to delete video",
                extra={"video_id": video_id, "owner_id": owner_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

        if affected:
            logger.info(
                "Deleted video record",
                extra={"video_id": video_id, "owner_id": owner_id}
            )
        return affected

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _build_video(self, row) -> Video:
        """Construct a Video from a row in VIDEO_COLUMNS order."""
        values = dict(zip(VIDEO_COLUMNS, row))
        return Video(
            id=str(values["video_id"]),
            owner_id=str(values["owner_id"]),
            title=values["title"] or "",
            sharing=bool(values["sharing"]),
            delete_after_link_expires=bool(values["delete_after_link_expires"]),
            share_link_expires_at=values["share_link_expires_at"],
            created_at=values["created_at"],
            updated_at=values["updated_at"],
        )
