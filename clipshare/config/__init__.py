"""
Application configuration.

Settings come from environment variables (or a .env file). Every external
service has a mock mode for local development.
"""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
