import asyncio

import httpx
import pytest

from src.common.errors import NetworkOrServerError
from src.feed.controller import FeedController
from tests.factories import make_post, post_json, settle


@pytest.fixture
def controller(client, session, notifier, redirects) -> FeedController:
    controller = FeedController(client, session, notifier=notifier, on_auth_required=redirects.append)
    yield controller
    controller.close()


def serve_pages(api, pages: dict[int, dict]) -> None:
    def handler(request):
        return httpx.Response(200, json=pages[int(request.url.params["page"])])

    api.on("GET", "/posts", handler=handler)


async def test_start_loads_first_page(controller, api):
    serve_pages(api, {1: {"posts": [post_json("p1"), post_json("p2")], "hasMore": True}})

    await controller.start()

    state = controller.state()
    assert [p.id for p in state.posts] == ["p1", "p2"]
    assert state.has_more is True
    assert state.loading is False
    assert state.error is None
    assert controller.scroll.target == "p2"


async def test_seeded_feed_does_not_page(controller, api):
    await controller.start(initial_posts=[make_post("p1", has_bookmarked=True)])

    assert controller.has_more is False
    assert await controller.load_more_posts() is False
    assert api.requests == []


async def test_scrolling_to_last_post_loads_next_page(controller, api):
    serve_pages(api, {
        1: {"posts": [post_json("p1"), post_json("p2")], "hasMore": True},
        2: {"posts": [post_json("p3")], "hasMore": False},
    })
    await controller.start()

    assert await controller.scroll.on_visibility("p2", True)

    assert [p.id for p in controller.posts] == ["p1", "p2", "p3"]
    assert controller.scroll.target == "p3"
    assert not await controller.scroll.on_visibility("p3", True)
    assert api.calls("GET", "/posts") == 2


async def test_load_error_replaces_the_list(controller, api):
    serve_pages(api, {1: {"posts": [post_json("p1")], "hasMore": True}})
    await controller.start()
    api.on("GET", "/posts", {"error": "down"}, status=503)

    await controller.load_more_posts()

    state = controller.state()
    assert isinstance(state.error, NetworkOrServerError)
    assert state.posts == ()


async def test_refresh_starts_over(controller, api):
    serve_pages(api, {
        1: {"posts": [post_json("p1")], "hasMore": True},
        2: {"posts": [post_json("p2")], "hasMore": False},
    })
    await controller.start()
    await controller.load_more_posts()

    await controller.refresh()

    assert [p.id for p in controller.posts] == ["p1"]
    assert controller.pagination.page == 1


async def test_comment_from_draft(controller, api):
    await controller.start(initial_posts=[make_post("p1")])
    api.on("POST", "/posts/p1/comment", {
        "id": "c1",
        "content": "Great pick",
        "createdAt": "2024-05-02T09:00:00Z",
        "author": {"id": "viewer-1", "name": "Reader"},
    })

    controller.set_new_comment("p1", "Great pick")
    assert controller.state().new_comments == {"p1": "Great pick"}

    result = await controller.handle_comment("p1")

    assert result.ok
    assert controller.state().new_comments == {}
    assert controller.posts[0].comments_count == 1
    assert controller.comment_actions("p1", "c1") == {"like", "edit", "delete"}


async def test_handlers_route_to_engine(controller, api):
    await controller.start(initial_posts=[make_post("p1", likes=1)])
    api.on("POST", "/posts/p1/like", {"liked": True, "likes": 2})
    api.on("POST", "/posts/p1/bookmark", {"bookmarked": True})

    assert (await controller.handle_like("p1")).ok
    assert (await controller.handle_bookmark("p1")).ok

    post = controller.posts[0]
    assert (post.likes, post.has_liked, post.has_bookmarked) == (2, True, True)


async def test_search_loaded_posts(controller):
    await controller.start(initial_posts=[
        make_post("p1", title="Dune reading group"),
        make_post("p2", title="Poetry night", content="<p>Bring a poem</p>"),
    ])

    assert [p.id for p in controller.search_posts(["dune"])] == ["p1"]
    assert [p.id for p in controller.search_posts(["poem"])] == ["p2"]


async def test_load_saved_posts(controller, api):
    api.on("GET", "/posts/saved", [post_json("p7", has_bookmarked=True)])

    await controller.load_saved()

    assert [p.id for p in controller.posts] == ["p7"]
    assert controller.has_more is False


async def test_load_saved_requires_sign_in(client, anonymous, redirects, api):
    controller = FeedController(client, anonymous, on_auth_required=redirects.append)

    await controller.load_saved()

    assert api.requests == []
    assert redirects == ["/signin?callbackUrl=%2Fposts%2Fsaved"]


async def test_close_stops_scroll_and_mutations(controller, api):
    serve_pages(api, {1: {"posts": [post_json("p1")], "hasMore": True}})
    await controller.start()

    controller.close()

    assert not controller.scroll.connected
    assert not await controller.scroll.on_visibility("p1", True)
    assert (await controller.handle_like("p1")).status == "skipped"
    assert api.calls("GET", "/posts") == 1


async def test_refresh_during_saved_load_wins(controller, api):
    serve_pages(api, {1: {"posts": [post_json("fresh")], "hasMore": True}})
    release = api.hold("GET", "/posts/saved", [post_json("saved")])

    saved = asyncio.create_task(controller.load_saved())
    await settle(lambda: api.calls("GET", "/posts/saved") == 1)
    await controller.refresh()
    assert [p.id for p in controller.posts] == ["fresh"]

    release.set()
    await saved

    assert [p.id for p in controller.posts] == ["fresh"]
    assert controller.has_more is True
    assert controller.loading is False


async def test_saved_load_keeps_loading_flag_of_newer_page(controller, api):
    saved_release = api.hold("GET", "/posts/saved", [post_json("saved")])
    page_release = api.hold("GET", "/posts", {"posts": [post_json("fresh")], "hasMore": True})

    saved = asyncio.create_task(controller.load_saved())
    await settle(lambda: api.calls("GET", "/posts/saved") == 1)
    refresh = asyncio.create_task(controller.refresh())
    await settle(lambda: api.calls("GET", "/posts") == 1)

    saved_release.set()
    await saved
    assert controller.loading is True
    assert await controller.load_more_posts() is False

    page_release.set()
    await refresh
    assert api.calls("GET", "/posts") == 1
    assert [p.id for p in controller.posts] == ["fresh"]


async def test_malformed_saved_posts_set_feed_error(controller, api):
    api.on("GET", "/posts/saved", [{"id": "p1"}])

    await controller.load_saved()

    state = controller.state()
    assert isinstance(state.error, NetworkOrServerError)
    assert state.posts == ()
    assert state.loading is False
