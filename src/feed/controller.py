import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from src.common.auth import SessionHandler
from src.common.config import DEFAULT_PAGE_SIZE, Settings
from src.common.errors import FeedError
from src.common.models import Post
from src.feed.client import FeedClient
from src.feed.mutations import CommentAction, MutationEngine, MutationResult
from src.feed.notifications import LogNotifier, Notifier
from src.feed.pagination import PaginationController
from src.feed.scroll import InfiniteScrollTrigger
from src.feed.store import FeedStore
from src.feed.utils import search_posts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeedState:
    """Everything the render layer needs to draw the feed."""

    posts: tuple[Post, ...]
    loading: bool
    error: Optional[FeedError]
    has_more: bool
    new_comments: dict[str, str]


class FeedController:
    """One viewer's feed: posts, paging, drafts and the actions on them."""

    def __init__(
        self,
        client: FeedClient,
        session: SessionHandler,
        notifier: Optional[Notifier] = None,
        on_auth_required: Optional[Callable[[str], None]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        sign_in_url: str = "/signin",
    ):
        self.client = client
        self.session = session
        self.notifier = notifier or LogNotifier()
        self.store = FeedStore()
        self.pagination = PaginationController(client, self.store, page_size=page_size)
        self.engine = MutationEngine(
            client,
            self.store,
            session,
            notifier=self.notifier,
            on_auth_required=on_auth_required,
            sign_in_url=sign_in_url,
        )
        self.scroll = InfiniteScrollTrigger(
            load_more=self.load_more_posts,
            is_loading=lambda: self.pagination.loading,
            has_more=lambda: self.pagination.has_more,
        )
        self._unsubscribe = self.store.subscribe(self._track_last_post)

    def _track_last_post(self, posts: tuple[Post, ...]) -> None:
        self.scroll.observe(posts[-1].id if posts else None)

    # Lifecycle

    async def start(self, initial_posts: Optional[list[Post]] = None) -> None:
        """
        Fill the feed.

        Args:
            initial_posts: A server-rendered batch to show as-is (no further
                pages are requested). When omitted, page 1 is fetched.
        """
        if initial_posts is not None:
            self.store.replace_all(initial_posts)
            self.pagination.seed(has_more=False)
            return
        await self.pagination.load_page(1)

    async def refresh(self) -> None:
        """Start the feed over from page 1."""
        logger.info("Refreshing feed from page 1")
        self.pagination.reset()
        await self.pagination.load_page(1)

    async def load_saved(self) -> None:
        """Fill the feed with the viewer's bookmarked posts."""
        if self.engine.require_auth(callback_url="/posts/saved"):
            return
        await self.pagination.load_all(self.client.get_saved_posts, "saved posts")

    def close(self) -> None:
        """Tear down: stop observing and discard any response still in flight."""
        self.scroll.disconnect()
        self.engine.close()
        self.pagination.close()
        self._unsubscribe()

    # State

    @property
    def posts(self) -> tuple[Post, ...]:
        return self.store.posts

    @property
    def loading(self) -> bool:
        return self.pagination.loading

    @property
    def error(self) -> Optional[FeedError]:
        return self.pagination.error

    @property
    def has_more(self) -> bool:
        return self.pagination.has_more

    @property
    def new_comments(self) -> dict[str, str]:
        return self.store.drafts

    def state(self) -> FeedState:
        # A load error replaces the whole list
        return FeedState(
            posts=() if self.error else self.posts,
            loading=self.loading,
            error=self.error,
            has_more=self.has_more,
            new_comments=self.new_comments,
        )

    # Handlers

    async def load_more_posts(self) -> bool:
        return await self.pagination.load_more()

    async def handle_like(self, post_id: str) -> MutationResult:
        return await self.engine.toggle_post_like(post_id)

    async def handle_like_comment(self, comment_id: str, post_id: str) -> MutationResult:
        return await self.engine.toggle_comment_like(post_id, comment_id)

    async def handle_bookmark(self, post_id: str) -> MutationResult:
        return await self.engine.toggle_bookmark(post_id)

    async def handle_comment(self, post_id: str, content: Optional[str] = None) -> MutationResult:
        return await self.engine.add_comment(post_id, content)

    def set_new_comment(self, post_id: str, text: str) -> None:
        self.store.set_draft(post_id, text)

    async def handle_edit_comment(self, post_id: str, comment_id: str, content: str) -> MutationResult:
        return await self.engine.edit_comment(post_id, comment_id, content)

    async def handle_delete_comment(self, post_id: str, comment_id: str) -> MutationResult:
        return await self.engine.delete_comment(post_id, comment_id)

    def comment_actions(self, post_id: str, comment_id: str) -> frozenset[CommentAction]:
        return self.engine.comment_actions(post_id, comment_id)

    async def create_post(self, title: str, content: str, type: str = "regular", **kwargs) -> MutationResult:
        return await self.engine.create_post(title, content, type=type, **kwargs)

    def search_posts(self, queries: list[str], match_all: bool = True, limit: Optional[int] = None) -> list[Post]:
        """Fuzzy search the posts currently in the feed."""
        return search_posts(self.posts, queries, match_all=match_all, limit=limit)

    @classmethod
    def from_env(
        cls,
        notifier: Optional[Notifier] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "FeedController":
        """Create a FeedController from environment variables."""
        settings = Settings.from_env()
        session = SessionHandler.from_env()
        client = FeedClient(
            session=session,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            transport=transport,
        )
        return cls(
            client,
            session,
            notifier=notifier,
            page_size=settings.page_size,
            sign_in_url=settings.sign_in_url,
        )
