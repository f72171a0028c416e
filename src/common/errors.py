"""
Feed error taxonomy.

Every failure the feed engine can surface is one of these. The resource
client converts HTTP statuses and transport failures into them, and the
mutation engine turns them into notifications and reverts.
"""

from typing import Optional


class FeedError(Exception):
    """Base exception for all feed errors."""

    user_message = "Something went wrong. Please try again later."

    def __init__(self, message: str = "", user_message: Optional[str] = None):
        super().__init__(message or self.user_message)
        if user_message:
            self.user_message = user_message


class AuthRequired(FeedError):
    """Raised when there is no authenticated session (401)."""

    user_message = "You need to sign in to do that."


class ValidationError(FeedError):
    """Raised when content is rejected before or by the API (400/422)."""

    user_message = "The content is not valid."


class PermissionDenied(FeedError):
    """Raised when the viewer is not allowed to act on a resource (403)."""

    user_message = "You are not permitted to do that."


class NotFound(FeedError):
    """Raised when the resource no longer exists (404)."""

    user_message = "This content is no longer available."


class NetworkOrServerError(FeedError):
    """Raised on transport failures and any other non-success status."""

    user_message = "Could not reach the server. Please try again later."

    def __init__(
        self,
        message: str = "",
        user_message: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, user_message)
        self.status_code = status_code
