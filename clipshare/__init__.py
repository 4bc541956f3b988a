"""
ClipShare - a video-sharing backend.

This package contains the complete application:
- core: Framework-agnostic video access rules
- infrastructure: External service integrations
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
