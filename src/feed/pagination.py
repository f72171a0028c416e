import logging
from typing import Any, Awaitable, Callable, Optional

from src.common.config import DEFAULT_PAGE_SIZE
from src.common.errors import FeedError, NetworkOrServerError
from src.common.models import Post
from src.feed.client import FeedClient
from src.feed.store import FeedStore

logger = logging.getLogger(__name__)


class PaginationController:
    """Loads feed pages into a store, one page at a time."""

    def __init__(self, client: FeedClient, store: FeedStore, page_size: int = DEFAULT_PAGE_SIZE):
        self.client = client
        self.store = store
        self.page_size = page_size
        self.page = 0
        self.has_more = True
        self.loading = False
        self.error: Optional[FeedError] = None
        # Bumped on reset/close so late responses can be recognised and dropped
        self._generation = 0
        self._closed = False

    async def load_page(self, page: int) -> bool:
        """
        Fetch one page and commit it to the store.

        Page 1 replaces the list; later pages are appended. On failure the
        feed-level error is set and nothing from the page is committed.

        Args:
            page: 1-based page number

        Returns:
            True if the page was committed
        """
        if self._closed:
            return False

        committed, feed_page = await self._fetch(
            lambda: self.client.get_posts(page=page, limit=self.page_size),
            f"page {page}",
        )
        if not committed:
            return False

        if page == 1:
            self.store.replace_all(feed_page.posts)
        else:
            self.store.append(feed_page.posts)

        self.page = page
        self.has_more = feed_page.has_more
        self.error = None
        logger.info(f"Loaded page {page} ({len(self.store.posts)} posts in feed)")
        return True

    async def load_all(self, fetch: Callable[[], Awaitable[list[Post]]], description: str = "posts") -> bool:
        """
        Replace the feed with one unpaged batch, such as the saved posts.

        Starts over like reset(), so a page still in flight is dropped, and is
        itself dropped if the feed is reset again before it arrives.

        Returns:
            True if the batch was committed
        """
        if self._closed:
            return False

        self.reset()
        committed, posts = await self._fetch(fetch, description)
        if not committed:
            return False

        self.store.replace_all(posts)
        self.seed(has_more=False)
        logger.info(f"Loaded {len(posts)} {description}")
        return True

    async def _fetch(self, fetch: Callable[[], Awaitable[Any]], description: str) -> tuple[bool, Any]:
        """Await fetch under the loading flag. Returns (False, None) on failure or when the result is stale."""
        generation = self._generation
        self.loading = True
        try:
            result = await fetch()
        except FeedError as e:
            if generation == self._generation:
                logger.error(f"Error loading {description}: {e}")
                self.error = e
            return False, None
        except Exception as e:
            if generation == self._generation:
                logger.exception(f"Unexpected error loading {description}")
                self.error = NetworkOrServerError(str(e))
            return False, None
        finally:
            if generation == self._generation:
                self.loading = False

        if generation != self._generation:
            logger.debug(f"Discarding stale {description}")
            return False, None
        return True, result

    async def load_more(self) -> bool:
        """Load the next page unless a load is in flight or there is nothing more."""
        if self.loading or not self.has_more or self._closed:
            return False
        return await self.load_page(self.page + 1)

    def seed(self, has_more: bool, page: int = 1) -> None:
        """Mark the store as already holding `page` pages (server-rendered batch)."""
        self.page = page
        self.has_more = has_more
        self.error = None

    def reset(self) -> None:
        """Back to before the first page; any in-flight result is dropped."""
        self._generation += 1
        self.page = 0
        self.has_more = True
        self.loading = False
        self.error = None

    def close(self) -> None:
        self._generation += 1
        self._closed = True
        self.loading = False
