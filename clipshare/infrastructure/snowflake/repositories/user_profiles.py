"""
Snowflake repository for user profiles.

Profiles are created lazily by the session resolver. Snowflake doesn't
enforce unique constraints, so insert-if-absent is a MERGE keyed on
user_id rather than an INSERT that relies on a violation.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from ....core.videos.errors import UpstreamUnavailableError
from ....core.videos.models import UserProfile
from ....core.videos.session import DuplicateProfileError
from ..client import SnowflakeConnection

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = (
    "user_id",
    "email",
    "name",
    "avatar_url",
    "subscription_status",
    "created_at",
)


class UserProfileRepository:
    """Repository for user profile persistence."""

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    def get(self, user_id: str) -> Optional[UserProfile]:
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                f"SELECT {', '.join(PROFILE_COLUMNS)} FROM user_profiles WHERE user_id = %s",
                (user_id,),
            )
            row = cursor.fetchone()
        except Exception as e:
            logger.error(
                "Failed to load user profile",
                extra={"user_id": user_id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

        if not row:
            return None

        values = dict(zip(PROFILE_COLUMNS, row))
        return UserProfile(
            id=str(values["user_id"]),
            email=values["email"],
            name=values["name"],
            avatar_url=values["avatar_url"],
            subscription_status=values["subscription_status"],
            created_at=values["created_at"] or datetime.now(timezone.utc),
        )

    def create_if_absent(self, profile: UserProfile) -> bool:
        """
        Insert the profile unless a row with the same user_id exists.

        Returns True if this call inserted the row. Raises
        DuplicateProfileError if the store rejects it as a duplicate
        (e.g. the email is already taken by a seeded account).
        """
        cursor = self._conn.cursor()

        try:
            cursor.execute(
                "MERGE INTO user_profiles AS target "
                "USING (SELECT %s AS user_id) AS source "
                "ON target.user_id = source.user_id "
                f"WHEN NOT MATCHED THEN INSERT ({', '.join(PROFILE_COLUMNS)}) "
                f"VALUES ({', '.join(['%s'] * len(PROFILE_COLUMNS))})",
                (
                    profile.id,
                    profile.id,
                    profile.email,
                    profile.name,
                    profile.avatar_url,
                    profile.subscription_status,
                    profile.created_at,
                ),
            )
            inserted = (cursor.rowcount or 0) > 0
            self._conn.commit()
        except Exception as e:
            if _is_unique_violation(e):
                raise DuplicateProfileError(f"Profile {profile.id} already exists") from e
            logger.error(
                "Failed to create user profile",
                extra={"user_id": profile.id, "error": str(e)}
            )
            raise UpstreamUnavailableError() from e
        finally:
            cursor.close()

        return inserted


def _is_unique_violation(error: Exception) -> bool:
    from snowflake.connector.errors import IntegrityError

    return isinstance(error, IntegrityError)
