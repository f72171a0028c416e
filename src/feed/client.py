import logging
import sys
from typing import Any, Optional

import httpx

from src.common.auth import SessionHandler
from src.common.config import DEFAULT_PAGE_SIZE, Settings
from src.common.errors import (
    AuthRequired,
    NetworkOrServerError,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from src.common.models import (
    BookmarkResult,
    Comment,
    CommentLikeResult,
    FeedPage,
    Post,
    PostLikeResult,
    PostType,
)

logging.basicConfig(
    level=logging.INFO,
    format="[FeedClient] %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

MIN_TITLE_LENGTH = 3
MIN_CONTENT_LENGTH = 10
POST_TYPES = ("regular", "study")


def validate_post(title: str, content: str, type: str) -> None:
    """
    Check a new post before it is sent.

    Raises:
        ValidationError: If the title or content is too short, or the type is unknown
    """
    if len(title.strip()) < MIN_TITLE_LENGTH:
        raise ValidationError(user_message=f"The title must have at least {MIN_TITLE_LENGTH} characters.")
    if len(content.strip()) < MIN_CONTENT_LENGTH:
        raise ValidationError(user_message=f"The content must have at least {MIN_CONTENT_LENGTH} characters.")
    if type not in POST_TYPES:
        raise ValidationError(user_message="Choose the post type.")


def raise_for_status(response: httpx.Response) -> None:
    """Convert a non-success response into a FeedError."""
    if response.is_success:
        return

    status = response.status_code
    message = _error_message(response)

    if status == 401:
        raise AuthRequired(message)
    if status == 403:
        raise PermissionDenied(message)
    if status == 404:
        raise NotFound(message)
    if status in (400, 422):
        raise ValidationError(message, user_message=message or None)
    raise NetworkOrServerError(f"HTTP {status}: {message}", status_code=status)


def _error_message(response: httpx.Response) -> str:
    """Pull the API's error text out of a failed response."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return body.get("error") or body.get("message") or ""
    return ""


class FeedClient:
    """Client for the reading club REST API."""

    def __init__(
        self,
        session: SessionHandler,
        base_url: str = "http://localhost:3000/api",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """Issue one API call and return its decoded JSON body (None if empty)."""
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                cookies=self.session.cookies(),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, params=params, json=json)
        except httpx.TransportError as e:
            raise NetworkOrServerError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} -> {response.status_code}")
        raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetworkOrServerError(f"{method} {path} returned invalid JSON") from e

    async def get_posts(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> FeedPage:
        """
        Fetch a single page of the feed, newest first.

        Args:
            page: 1-based page number
            limit: Page size (the server over-fetches by one to compute hasMore)

        Returns:
            FeedPage with the page's posts and the hasMore flag
        """
        data = await self._request("GET", "/posts", params={"page": page, "limit": limit})
        feed_page = FeedPage.model_validate(data)

        # The sentinel row may come through untrimmed
        if len(feed_page.posts) > limit:
            feed_page = FeedPage(posts=feed_page.posts[:limit], has_more=True)

        logger.info(f"Fetched page {page}: {len(feed_page.posts)} posts, has_more={feed_page.has_more}")
        return feed_page

    async def get_saved_posts(self) -> list[Post]:
        """Get every post the viewer has bookmarked."""
        data = await self._request("GET", "/posts/saved")
        if isinstance(data, dict):
            data = data.get("posts", [])
        return [Post.model_validate(item) for item in data or []]

    async def create_post(
        self,
        title: str,
        content: str,
        type: PostType = "regular",
        image_url: Optional[str] = None,
        published: bool = True,
        tags: Optional[list[str]] = None,
    ) -> Post:
        """Publish a new post (validated locally first)."""
        validate_post(title, content, type)

        payload: dict[str, Any] = {
            "title": title,
            "content": content,
            "type": type,
            "imageUrl": image_url,
            "published": published,
        }
        if tags:
            payload["tags"] = tags

        data = await self._request("POST", "/posts", json=payload)
        return Post.model_validate(data["post"] if "post" in data else data)

    async def get_post_like(self, post_id: str) -> bool:
        """Whether the viewer has liked the post."""
        data = await self._request("GET", f"/posts/{post_id}/like")
        return bool(data.get("liked"))

    async def toggle_post_like(self, post_id: str) -> PostLikeResult:
        data = await self._request("POST", f"/posts/{post_id}/like")
        return PostLikeResult.model_validate(data)

    async def get_post_bookmark(self, post_id: str) -> bool:
        """Whether the viewer has bookmarked the post."""
        data = await self._request("GET", f"/posts/{post_id}/bookmark")
        return bool(data.get("bookMarked", data.get("bookmarked")))

    async def toggle_bookmark(self, post_id: str) -> BookmarkResult:
        data = await self._request("POST", f"/posts/{post_id}/bookmark")
        return BookmarkResult.model_validate(data)

    async def get_comments(self, post_id: str) -> list[Comment]:
        """Get a post's comments, newest first."""
        data = await self._request("GET", f"/posts/{post_id}/comment")
        return [Comment.model_validate(item) for item in data or []]

    async def add_comment(self, post_id: str, content: str) -> Comment:
        data = await self._request("POST", f"/posts/{post_id}/comment", json={"content": content})
        return Comment.model_validate(data)

    async def get_comment_like(self, comment_id: str) -> CommentLikeResult:
        data = await self._request("GET", f"/comments/{comment_id}/like")
        return CommentLikeResult.model_validate(data)

    async def toggle_comment_like(self, comment_id: str) -> CommentLikeResult:
        data = await self._request("POST", f"/comments/{comment_id}/like")
        return CommentLikeResult.model_validate(data)

    async def edit_comment(self, comment_id: str, content: str) -> Optional[Comment]:
        """Replace a comment's text; returns the updated comment when the API sends it back."""
        data = await self._request("PUT", f"/comments/{comment_id}", json={"content": content})
        return Comment.model_validate(data) if data else None

    async def delete_comment(self, comment_id: str) -> None:
        await self._request("DELETE", f"/comments/{comment_id}")

    @classmethod
    def from_env(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "FeedClient":
        """Create a FeedClient from environment variables."""
        settings = Settings.from_env()
        return cls(
            session=SessionHandler.from_env(),
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            transport=transport,
        )
