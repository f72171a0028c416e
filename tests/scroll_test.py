from src.feed.scroll import InfiniteScrollTrigger


class FakeFeed:
    def __init__(self, has_more: bool = True):
        self.loading = False
        self.has_more = has_more
        self.loads = 0

    async def load_more(self):
        self.loads += 1

    def trigger(self) -> InfiniteScrollTrigger:
        trigger = InfiniteScrollTrigger(
            load_more=self.load_more,
            is_loading=lambda: self.loading,
            has_more=lambda: self.has_more,
        )
        trigger.observe("p10")
        return trigger


async def test_fires_once_per_visible_period():
    feed = FakeFeed()
    trigger = feed.trigger()

    assert await trigger.on_visibility("p10", True)
    assert not await trigger.on_visibility("p10", True)
    assert not await trigger.refresh()
    assert feed.loads == 1


async def test_rearms_after_leaving_view():
    feed = FakeFeed()
    trigger = feed.trigger()

    await trigger.on_visibility("p10", True)
    await trigger.on_visibility("p10", False)
    await trigger.on_visibility("p10", True)

    assert feed.loads == 2


async def test_rearms_for_new_last_item():
    feed = FakeFeed()
    trigger = feed.trigger()

    await trigger.on_visibility("p10", True)
    trigger.observe("p20")
    assert not await trigger.on_visibility("p10", True)
    assert await trigger.on_visibility("p20", True)

    assert feed.loads == 2
    assert trigger.target == "p20"


async def test_waits_while_loading():
    feed = FakeFeed()
    feed.loading = True
    trigger = feed.trigger()

    assert not await trigger.on_visibility("p10", True)
    feed.loading = False
    assert await trigger.refresh()

    assert feed.loads == 1


async def test_nothing_more_to_load():
    feed = FakeFeed(has_more=False)
    trigger = feed.trigger()

    assert not await trigger.on_visibility("p10", True)
    assert feed.loads == 0


async def test_disconnect_ignores_later_events():
    feed = FakeFeed()
    trigger = feed.trigger()

    trigger.disconnect()
    trigger.observe("p11")

    assert not trigger.connected
    assert not await trigger.on_visibility("p10", True)
    assert not await trigger.on_visibility("p11", True)
    assert not await trigger.refresh()
    assert feed.loads == 0
