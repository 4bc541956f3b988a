"""
Errors raised by the video access core.

The HTTP layer maps each class to a status code; nothing in core knows
about HTTP. Messages are safe to show to end users.
"""


class VideoAccessError(Exception):
    """Base class for all video access errors."""
    code = "video_access_error"
    default_message = "Video access failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class UnauthenticatedError(VideoAccessError):
    """Raised when an operation needs a signed-in caller and there is none."""
    code = "unauthenticated"
    default_message = "You need to sign in to do that."


class ForbiddenError(VideoAccessError):
    """Raised when the caller may not see or change a video."""
    code = "forbidden"
    default_message = "You don't have access to this video."


class VideoNotFoundError(ForbiddenError):
    """
    Raised when no video row exists at all.

    Subclasses ForbiddenError so callers outside the core see exactly the
    same signal as for someone else's private video.
    """


class QuotaExceededError(VideoAccessError):
    """Raised when the caller is not entitled to upload another video."""
    code = "quota_exceeded"
    default_message = (
        "Sorry, you have reached the maximum video upload limit on our free tier. "
        "Please upgrade to upload more."
    )


class UpstreamUnavailableError(VideoAccessError):
    """Raised when the data store, storage, or identity provider call fails."""
    code = "upstream_unavailable"
    default_message = "A backing service is temporarily unavailable. Please retry."
