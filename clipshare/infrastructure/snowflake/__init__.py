"""
Snowflake persistence for user profiles and video records.
"""

from .client import (
    MockSnowflakeConnection,
    SnowflakeConfig,
    SnowflakeConnectionError,
    create_snowflake_connection,
)

__all__ = [
    "MockSnowflakeConnection",
    "SnowflakeConfig",
    "SnowflakeConnectionError",
    "create_snowflake_connection",
]
