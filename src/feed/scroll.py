import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class InfiniteScrollTrigger:
    """
    Calls load_more when the last rendered item scrolls into view.

    The render layer reports visibility with on_visibility(). The trigger
    fires at most once per visible period of the tracked item and re-arms
    when the item leaves the viewport or a different item becomes the last
    one. After disconnect() every event is ignored.
    """

    def __init__(
        self,
        load_more: Callable[[], Awaitable[Any]],
        is_loading: Callable[[], bool],
        has_more: Callable[[], bool],
    ):
        self.load_more = load_more
        self.is_loading = is_loading
        self.has_more = has_more
        self._target: Optional[str] = None
        self._visible = False
        self._fired = False
        self._connected = True

    @property
    def target(self) -> Optional[str]:
        return self._target

    @property
    def connected(self) -> bool:
        return self._connected

    def observe(self, item_id: Optional[str]) -> None:
        """Track item_id as the last rendered item."""
        if not self._connected or item_id == self._target:
            return
        self._target = item_id
        self._visible = False
        self._fired = False

    async def on_visibility(self, item_id: str, visible: bool) -> bool:
        """
        Report that item_id entered or left the viewport.

        Returns:
            True if this event triggered a load
        """
        if not self._connected or item_id != self._target:
            return False

        if not visible:
            self._visible = False
            self._fired = False
            return False

        self._visible = True
        return await self._maybe_fire()

    async def refresh(self) -> bool:
        """Re-check after loading state changes while the item stays visible."""
        if not self._connected or not self._visible:
            return False
        return await self._maybe_fire()

    async def _maybe_fire(self) -> bool:
        if self._fired or self.is_loading() or not self.has_more():
            return False
        self._fired = True
        logger.debug(f"Last item {self._target} visible, loading more")
        await self.load_more()
        return True

    def disconnect(self) -> None:
        """Stop observing; later events never reach load_more."""
        self._connected = False
        self._target = None
        self._visible = False
