"""
Repository pattern implementations for Snowflake.

Repositories translate between domain models and database representations.
"""

from .user_profiles import UserProfileRepository
from .videos import VideoRepository

__all__ = ["UserProfileRepository", "VideoRepository"]
