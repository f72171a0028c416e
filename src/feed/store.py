"""In-memory feed state: the ordered post list and per-post comment drafts.

Every update builds a new tuple of posts and swaps it in, so consumers that
compare references see each change, and an update always works on the
current state instead of a copy taken before an await.
"""

import logging
from typing import Any, Callable, Iterable, Optional

from src.common.models import Comment, Post

logger = logging.getLogger(__name__)

Listener = Callable[[tuple[Post, ...]], None]


class FeedStore:
    """Ordered list of posts plus the draft comment map."""

    def __init__(self, posts: Optional[Iterable[Post]] = None):
        self._posts: tuple[Post, ...] = tuple(posts or ())
        self._drafts: dict[str, str] = {}
        self._listeners: list[Listener] = []

    @property
    def posts(self) -> tuple[Post, ...]:
        return self._posts

    def get(self, post_id: str) -> Optional[Post]:
        for post in self._posts:
            if post.id == post_id:
                return post
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called with every new post list; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, posts: tuple[Post, ...]) -> None:
        self._posts = posts
        for listener in list(self._listeners):
            listener(posts)

    # Post list updates

    def replace_all(self, posts: Iterable[Post]) -> None:
        """Replace the whole list (first page or reset)."""
        self._commit(tuple(posts))

    def append(self, posts: Iterable[Post]) -> int:
        """Append a later page, skipping posts already in the list. Returns how many were added."""
        seen = {post.id for post in self._posts}
        new_posts = []
        for post in posts:
            if post.id in seen:
                continue
            seen.add(post.id)
            new_posts.append(post)

        if len(new_posts) > 0:
            self._commit(self._posts + tuple(new_posts))
        return len(new_posts)

    def prepend(self, post: Post) -> None:
        self._commit((post,) + tuple(p for p in self._posts if p.id != post.id))

    def update_one(self, post_id: str, updater: Callable[[Post], Post]) -> Optional[Post]:
        """Replace one post with updater(post). Returns the new post, or None if it is not in the list."""
        updated = None
        new_posts = []
        for post in self._posts:
            if post.id == post_id:
                updated = updater(post)
                new_posts.append(updated)
            else:
                new_posts.append(post)

        if updated is None:
            return None
        self._commit(tuple(new_posts))
        return updated

    def patch_one(self, post_id: str, **changes: Any) -> Optional[Post]:
        """Set fields on one post in a single update."""
        return self.update_one(post_id, lambda post: post.model_copy(update=changes))

    def remove_one(self, post_id: str) -> Optional[tuple[int, Post]]:
        """Remove a post. Returns (index, post) so the removal can be undone."""
        for index, post in enumerate(self._posts):
            if post.id == post_id:
                self._commit(self._posts[:index] + self._posts[index + 1:])
                return index, post
        return None

    def insert_one(self, index: int, post: Post) -> None:
        posts = tuple(p for p in self._posts if p.id != post.id)
        self._commit(posts[:index] + (post,) + posts[index:])

    # Comment updates (a post owns its comment list)

    def patch_comment(self, post_id: str, comment_id: str, **changes: Any) -> Optional[Comment]:
        """Set fields on one comment. Returns the new comment, or None if it is missing."""
        post = self.get(post_id)
        if post is None or post.find_comment(comment_id) is None:
            return None

        comments = [
            comment.model_copy(update=changes) if comment.id == comment_id else comment
            for comment in post.comments
        ]
        self.patch_one(post_id, comments=comments)
        return self.get(post_id).find_comment(comment_id)

    def insert_comment(self, post_id: str, comment: Comment, index: int = 0, count_delta: int = 1) -> bool:
        """Insert a comment (newest first by default) and adjust the post's comment count."""

        def updater(post: Post) -> Post:
            comments = [c for c in post.comments if c.id != comment.id]
            comments.insert(index, comment)
            return post.model_copy(update={
                "comments": comments,
                "comments_count": max(post.comments_count + count_delta, 0),
            })

        return self.update_one(post_id, updater) is not None

    def remove_comment(self, post_id: str, comment_id: str, count_delta: int = -1) -> Optional[tuple[int, Comment]]:
        """Remove a comment and adjust the count. Returns (index, comment) so it can be restored."""
        post = self.get(post_id)
        if post is None:
            return None

        for index, comment in enumerate(post.comments):
            if comment.id == comment_id:
                comments = post.comments[:index] + post.comments[index + 1:]
                self.patch_one(
                    post_id,
                    comments=comments,
                    comments_count=max(post.comments_count + count_delta, 0),
                )
                return index, comment
        return None

    # Drafts

    @property
    def drafts(self) -> dict[str, str]:
        return dict(self._drafts)

    def get_draft(self, post_id: str) -> str:
        return self._drafts.get(post_id, "")

    def set_draft(self, post_id: str, text: str) -> None:
        self._drafts = {**self._drafts, post_id: text}

    def clear_draft(self, post_id: str) -> None:
        if post_id in self._drafts:
            self._drafts = {k: v for k, v in self._drafts.items() if k != post_id}

    def clear(self) -> None:
        """Drop all posts and drafts."""
        self._drafts = {}
        self.replace_all(())
        logger.debug("Feed store cleared")
