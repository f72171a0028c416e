"""Optimistic mutations for posts and comments.

Each user action is a Mutation command: ``apply`` changes the store right
away, ``dispatch`` calls the API, ``reconcile`` writes the server's values
back, and ``invert`` restores the snapshot taken before ``apply`` when the
call fails. The engine runs commands, guards against duplicate in-flight
actions, and turns failures into notifications.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Literal, Optional

from src.common.auth import SessionHandler, build_sign_in_url, can_moderate
from src.common.errors import (
    AuthRequired,
    FeedError,
    NetworkOrServerError,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from src.common.models import BookmarkResult, Comment, CommentLikeResult, PostLikeResult
from src.feed.client import FeedClient, validate_post
from src.feed.notifications import LogNotifier, Notifier
from src.feed.store import FeedStore

logger = logging.getLogger(__name__)

Status = Literal["confirmed", "reverted", "skipped"]
CommentAction = Literal["like", "edit", "delete"]

# Errors whose own message is more useful to the viewer than the action's generic one
SPECIFIC_ERRORS = (AuthRequired, ValidationError, PermissionDenied, NotFound)


def _noop(*args: Any) -> None:
    return None


@dataclass
class MutationResult:
    """Outcome of one user action."""

    status: Status
    error: Optional[FeedError] = None

    @property
    def ok(self) -> bool:
        return self.status == "confirmed"


@dataclass
class Mutation:
    """A user action as a paired forward/inverse operation."""

    resource_id: str
    action: str
    dispatch: Callable[[], Awaitable[Any]]
    apply: Callable[[], None] = _noop
    invert: Callable[[], None] = _noop
    reconcile: Callable[[Any], None] = _noop
    on_not_found: Callable[[], None] = _noop
    error_message: str = "Something went wrong. Please try again later."
    success_message: Callable[[Any], Optional[str]] = _noop

    @property
    def key(self) -> tuple[str, str]:
        return self.resource_id, self.action


class MutationEngine:
    """Runs optimistic mutations against one feed store for one session."""

    def __init__(
        self,
        client: FeedClient,
        store: FeedStore,
        session: SessionHandler,
        notifier: Optional[Notifier] = None,
        on_auth_required: Optional[Callable[[str], None]] = None,
        sign_in_url: str = "/signin",
    ):
        self.client = client
        self.store = store
        self.session = session
        self.notifier = notifier or LogNotifier()
        self.on_auth_required = on_auth_required
        self.sign_in_url = sign_in_url
        self._in_flight: set[tuple[str, str]] = set()
        self._closed = False

    def close(self) -> None:
        """Stop applying results; responses still in flight are discarded."""
        self._closed = True

    def is_pending(self, resource_id: str, action: str) -> bool:
        return (resource_id, action) in self._in_flight

    def require_auth(self, callback_url: Optional[str] = None) -> Optional[MutationResult]:
        """Redirect to sign-in when there is no session. Returns the skip result in that case."""
        if self.session.is_authenticated():
            return None
        self._redirect_to_sign_in(callback_url)
        return MutationResult("skipped", AuthRequired())

    def _redirect_to_sign_in(self, callback_url: Optional[str] = None) -> None:
        url = build_sign_in_url(self.sign_in_url, callback_url)
        logger.info(f"Sign-in required, redirecting to {url}")
        if self.on_auth_required:
            self.on_auth_required(url)

    def _reject(self, error: FeedError) -> MutationResult:
        """Refuse an action before anything is applied or sent."""
        self.notifier.error(error.user_message)
        return MutationResult("skipped", error)

    async def run(self, mutation: Mutation) -> MutationResult:
        """
        Apply a mutation optimistically, call the API, then reconcile or revert.

        A second run for the same (resource, action) while the first is still
        in flight is dropped without a network call.
        """
        if self._closed:
            return MutationResult("skipped")

        if mutation.key in self._in_flight:
            logger.debug(f"Ignoring {mutation.action} on {mutation.resource_id}: already in flight")
            return MutationResult("skipped")

        self._in_flight.add(mutation.key)
        mutation.apply()

        error: Optional[FeedError] = None
        response: Any = None
        try:
            response = await mutation.dispatch()
        except FeedError as e:
            error = e
        except Exception as e:
            logger.exception(f"Unexpected failure during {mutation.action} on {mutation.resource_id}")
            error = NetworkOrServerError(str(e))
        finally:
            self._in_flight.discard(mutation.key)

        if self._closed:
            logger.debug(f"Discarding {mutation.action} result for {mutation.resource_id}: engine closed")
            return MutationResult("skipped", error)

        if error is None:
            mutation.reconcile(response)
            logger.info(f"Confirmed {mutation.action} on {mutation.resource_id}")
            message = mutation.success_message(response)
            if message:
                self.notifier.success(message)
            return MutationResult("confirmed")

        mutation.invert()
        logger.warning(f"Reverted {mutation.action} on {mutation.resource_id}: {error}")

        if isinstance(error, NotFound):
            mutation.on_not_found()
        if isinstance(error, AuthRequired):
            self._redirect_to_sign_in()

        if isinstance(error, SPECIFIC_ERRORS):
            self.notifier.error(error.user_message)
        else:
            self.notifier.error(mutation.error_message)
        return MutationResult("reverted", error)

    # Post actions

    async def toggle_post_like(self, post_id: str) -> MutationResult:
        """Like or unlike a post."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        post = self.store.get(post_id)
        if post is None:
            return MutationResult("skipped", NotFound())

        prev_likes, prev_liked = post.likes, post.has_liked

        def reconcile(result: PostLikeResult) -> None:
            likes = result.likes
            if likes is None:
                # Flag-only response: derive the count from the snapshot
                likes = prev_likes + int(result.liked) - int(prev_liked)
            self.store.patch_one(post_id, likes=likes, has_liked=result.liked)

        return await self.run(Mutation(
            resource_id=post_id,
            action="post-like",
            dispatch=lambda: self.client.toggle_post_like(post_id),
            apply=lambda: self.store.patch_one(
                post_id,
                likes=prev_likes - 1 if prev_liked else prev_likes + 1,
                has_liked=not prev_liked,
            ),
            invert=lambda: self.store.patch_one(post_id, likes=prev_likes, has_liked=prev_liked),
            reconcile=reconcile,
            on_not_found=lambda: self.store.remove_one(post_id),
            error_message="Could not like the post.",
        ))

    async def toggle_bookmark(self, post_id: str) -> MutationResult:
        """Save or unsave a post."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        post = self.store.get(post_id)
        if post is None:
            return MutationResult("skipped", NotFound())

        prev_bookmarked = post.has_bookmarked

        def reconcile(result: BookmarkResult) -> None:
            self.store.patch_one(post_id, has_bookmarked=result.bookmarked)

        return await self.run(Mutation(
            resource_id=post_id,
            action="bookmark",
            dispatch=lambda: self.client.toggle_bookmark(post_id),
            apply=lambda: self.store.patch_one(post_id, has_bookmarked=not prev_bookmarked),
            invert=lambda: self.store.patch_one(post_id, has_bookmarked=prev_bookmarked),
            reconcile=reconcile,
            on_not_found=lambda: self.store.remove_one(post_id),
            error_message="Could not save the post.",
            success_message=lambda result: "Post saved" if result.bookmarked else "Post removed from saved",
        ))

    # Comment actions

    async def add_comment(self, post_id: str, content: Optional[str] = None) -> MutationResult:
        """
        Publish a comment on a post.

        Args:
            post_id: The post to comment on
            content: Comment text; defaults to the post's draft

        The comment is added to the store only once the API confirms it, and
        the draft is cleared only then.
        """
        rejected = self.require_auth()
        if rejected:
            return rejected

        text = content if content is not None else self.store.get_draft(post_id)
        if not text.strip():
            return self._reject(ValidationError(user_message="The comment cannot be empty."))

        if self.store.get(post_id) is None:
            return MutationResult("skipped", NotFound())

        def reconcile(comment: Comment) -> None:
            self.store.insert_comment(post_id, comment)
            self.store.clear_draft(post_id)

        return await self.run(Mutation(
            resource_id=post_id,
            action="comment",
            dispatch=lambda: self.client.add_comment(post_id, text.strip()),
            reconcile=reconcile,
            on_not_found=lambda: self.store.remove_one(post_id),
            error_message="Could not add the comment.",
        ))

    async def toggle_comment_like(self, post_id: str, comment_id: str) -> MutationResult:
        """Like or unlike a comment."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        post = self.store.get(post_id)
        comment = post.find_comment(comment_id) if post else None
        if comment is None:
            return MutationResult("skipped", NotFound())

        prev_likes, prev_liked = comment.likes, comment.has_liked

        def reconcile(result: CommentLikeResult) -> None:
            self.store.patch_comment(post_id, comment_id, likes=result.likes, has_liked=result.has_liked)

        return await self.run(Mutation(
            resource_id=comment_id,
            action="comment-like",
            dispatch=lambda: self.client.toggle_comment_like(comment_id),
            apply=lambda: self.store.patch_comment(
                post_id,
                comment_id,
                likes=prev_likes - 1 if prev_liked else prev_likes + 1,
                has_liked=not prev_liked,
            ),
            invert=lambda: self.store.patch_comment(post_id, comment_id, likes=prev_likes, has_liked=prev_liked),
            reconcile=reconcile,
            on_not_found=lambda: self.store.remove_comment(post_id, comment_id),
            error_message="Could not like the comment.",
        ))

    def comment_actions(self, post_id: str, comment_id: str) -> frozenset[CommentAction]:
        """Actions the render layer may offer on a comment for the current viewer."""
        post = self.store.get(post_id)
        comment = post.find_comment(comment_id) if post else None
        viewer = self.session.viewer
        if comment is None or viewer is None:
            return frozenset()
        if can_moderate(viewer, comment.author.id):
            return frozenset(("like", "edit", "delete"))
        return frozenset(("like",))

    def _check_moderation(self, post_id: str, comment_id: str) -> tuple[Optional[Comment], Optional[MutationResult]]:
        """Look up a comment the viewer wants to edit or delete, applying the permission gate."""
        post = self.store.get(post_id)
        comment = post.find_comment(comment_id) if post else None
        if comment is None:
            return None, MutationResult("skipped", NotFound())
        if not can_moderate(self.session.viewer, comment.author.id):
            return None, self._reject(PermissionDenied())
        return comment, None

    async def edit_comment(self, post_id: str, comment_id: str, content: str) -> MutationResult:
        """Replace a comment's text (author, moderators and admins only)."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        comment, rejected = self._check_moderation(post_id, comment_id)
        if rejected:
            return rejected

        if not content.strip():
            return self._reject(ValidationError(user_message="The comment cannot be empty."))

        prev_content = comment.content

        def reconcile(updated: Optional[Comment]) -> None:
            if updated is not None:
                self.store.patch_comment(post_id, comment_id, content=updated.content)

        return await self.run(Mutation(
            resource_id=comment_id,
            action="edit",
            dispatch=lambda: self.client.edit_comment(comment_id, content.strip()),
            apply=lambda: self.store.patch_comment(post_id, comment_id, content=content.strip()),
            invert=lambda: self.store.patch_comment(post_id, comment_id, content=prev_content),
            reconcile=reconcile,
            on_not_found=lambda: self.store.remove_comment(post_id, comment_id),
            error_message="Could not edit the comment.",
            success_message=lambda _: "Comment updated",
        ))

    async def delete_comment(self, post_id: str, comment_id: str) -> MutationResult:
        """Delete a comment (author, moderators and admins only)."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        _, rejected = self._check_moderation(post_id, comment_id)
        if rejected:
            return rejected

        removed: list[tuple[int, Comment]] = []

        def apply() -> None:
            result = self.store.remove_comment(post_id, comment_id)
            if result:
                removed.append(result)

        def invert() -> None:
            if removed:
                index, original = removed.pop()
                self.store.insert_comment(post_id, original, index=index)

        return await self.run(Mutation(
            resource_id=comment_id,
            action="delete",
            dispatch=lambda: self.client.delete_comment(comment_id),
            apply=apply,
            invert=invert,
            # Already gone on the server
            on_not_found=lambda: self.store.remove_comment(post_id, comment_id),
            error_message="Could not delete the comment.",
            success_message=lambda _: "Comment deleted",
        ))

    async def create_post(
        self,
        title: str,
        content: str,
        type: str = "regular",
        image_url: Optional[str] = None,
        tags: Optional[list[str]] = None,
    ) -> MutationResult:
        """Publish a post; it is put at the top of the feed once the API confirms it."""
        rejected = self.require_auth()
        if rejected:
            return rejected

        try:
            validate_post(title, content, type)
        except ValidationError as e:
            return self._reject(e)

        return await self.run(Mutation(
            resource_id="new-post",
            action="create",
            dispatch=lambda: self.client.create_post(title, content, type=type, image_url=image_url, tags=tags),
            reconcile=self.store.prepend,
            error_message="Could not publish the post.",
            success_message=lambda _: "Post published",
        ))
