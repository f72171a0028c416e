"""Builders and a fake API used across the test suite."""

import asyncio
from typing import Any, Optional

import httpx

from src.common.models import Comment, Post

BASE_URL = "http://club.test/api"


def post_json(
    post_id: str,
    likes: int = 0,
    has_liked: bool = False,
    has_bookmarked: bool = False,
    comments: Optional[list[dict]] = None,
    title: Optional[str] = None,
    content: str = "<p>A post about books</p>",
    author_id: str = "author-1",
) -> dict:
    comments = comments or []
    return {
        "id": post_id,
        "title": title or f"Post {post_id}",
        "content": content,
        "type": "regular",
        "imageUrl": None,
        "createdAt": "2024-05-01T12:00:00Z",
        "author": {"id": author_id, "name": "Ana", "image": None, "slug": "ana"},
        "comments": comments,
        "likes": likes,
        "commentsCount": len(comments),
        "hasLiked": has_liked,
        "hasBookMarked": has_bookmarked,
        "tags": [],
    }


def comment_json(comment_id: str, author_id: str = "author-1", likes: int = 0, has_liked: bool = False) -> dict:
    return {
        "id": comment_id,
        "content": f"Comment {comment_id}",
        "createdAt": "2024-05-01T13:00:00Z",
        "author": {"id": author_id, "name": "Ana"},
        "likesCount": likes,
        "hasLiked": has_liked,
    }


def make_post(post_id: str, **kwargs: Any) -> Post:
    return Post.model_validate(post_json(post_id, **kwargs))


def make_comment(comment_id: str, **kwargs: Any) -> Comment:
    return Comment.model_validate(comment_json(comment_id, **kwargs))


class FakeApi:
    """Routes requests from an httpx.MockTransport to canned responses."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, json: Any = None, status: int = 200, handler: Any = None) -> None:
        """Answer method+path with a JSON body, or with handler(request) (may be async)."""
        self.routes[(method, path)] = handler or (status, json)

    def hold(self, method: str, path: str, json: Any = None, status: int = 200) -> asyncio.Event:
        """Answer method+path only once the returned event is set."""
        release = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return httpx.Response(status, json=json)

        self.on(method, path, handler=handler)
        return release

    def calls(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and self._path(r) == path)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        return request.url.path.removeprefix("/api")

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, self._path(request)))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            response = route(request)
            if asyncio.iscoroutine(response):
                response = await response
            return response
        status, body = route
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


async def settle(condition, attempts: int = 100) -> None:
    """Yield to the event loop until condition() holds."""
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


