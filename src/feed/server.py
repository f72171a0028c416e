import json
import logging
import sys
from typing import Optional

from mcp.server.fastmcp import FastMCP

from src.feed.controller import FeedController
from src.feed.mutations import MutationResult
from src.feed.utils import search_posts, simplify_post

logging.basicConfig(
    level=logging.INFO,
    format="[FeedServer] %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

mcp = FastMCP("Reading Club Feed Server")

# Global controller instance (initialized and loaded on first use)
_controller: Optional[FeedController] = None


async def get_controller() -> FeedController:
    """Get or create the feed controller, loading the first page on creation."""
    global _controller
    if _controller is None:
        _controller = FeedController.from_env()
        await _controller.start()
    return _controller


def _feed_json(controller: FeedController, max_content_length: int = 280) -> str:
    state = controller.state()
    if state.error:
        return json.dumps({"error": state.error.user_message}, indent=2)
    return json.dumps(
        {
            "posts": [simplify_post(post, max_content_length) for post in state.posts],
            "has_more": state.has_more,
        },
        indent=2,
    )


def _result_json(result: MutationResult, controller: FeedController, post_id: Optional[str] = None) -> str:
    data = {"status": result.status}
    if result.error:
        data["error"] = result.error.user_message
    post = controller.store.get(post_id) if post_id else None
    if post:
        data["post"] = simplify_post(post)
    return json.dumps(data, indent=2)


@mcp.tool()
async def get_feed(max_content_length: int = 280) -> str:
    """
    Get the posts currently loaded in the reading club feed.

    Args:
        max_content_length: Truncate post and comment bodies to this many characters

    Returns:
        JSON object with the posts (newest first) and whether more pages exist
    """
    controller = await get_controller()
    return _feed_json(controller, max_content_length)


@mcp.tool()
async def load_more_posts() -> str:
    """
    Load the next page of the feed.

    Returns:
        JSON object with all loaded posts and whether more pages exist
    """
    controller = await get_controller()
    await controller.load_more_posts()
    return _feed_json(controller)


@mcp.tool()
async def like_post(post_id: str) -> str:
    """
    Like or unlike a post.

    Args:
        post_id: ID of the post

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_like(post_id)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def bookmark_post(post_id: str) -> str:
    """
    Save or unsave a post.

    Args:
        post_id: ID of the post

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_bookmark(post_id)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def comment_on_post(post_id: str, content: str) -> str:
    """
    Add a comment to a post.

    Args:
        post_id: ID of the post
        content: Comment text (must not be empty)

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_comment(post_id, content)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def like_comment(post_id: str, comment_id: str) -> str:
    """
    Like or unlike a comment.

    Args:
        post_id: ID of the post the comment belongs to
        comment_id: ID of the comment

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_like_comment(comment_id, post_id)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def edit_comment(post_id: str, comment_id: str, content: str) -> str:
    """
    Change the text of a comment. Only its author, moderators and admins may do this.

    Args:
        post_id: ID of the post the comment belongs to
        comment_id: ID of the comment
        content: New comment text

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_edit_comment(post_id, comment_id, content)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def delete_comment(post_id: str, comment_id: str) -> str:
    """
    Delete a comment. Only its author, moderators and admins may do this.

    Args:
        post_id: ID of the post the comment belongs to
        comment_id: ID of the comment

    Returns:
        JSON object with the outcome and the post's updated state
    """
    controller = await get_controller()
    result = await controller.handle_delete_comment(post_id, comment_id)
    return _result_json(result, controller, post_id)


@mcp.tool()
async def get_saved_posts(limit: int = 50) -> str:
    """
    Fetch the posts the viewer has bookmarked.

    Args:
        limit: Maximum number of posts to return (default 50)

    Returns:
        JSON array of saved posts
    """
    controller = await get_controller()
    posts = await controller.client.get_saved_posts()
    return json.dumps([simplify_post(post) for post in posts[:limit]], indent=2)


@mcp.tool()
async def search_saved_posts(
    queries: list[str],
    match_all: bool = True,
    fuzzy_threshold: int = 2,
    limit: int = 50,
) -> str:
    """
    Search the viewer's bookmarked posts with fuzzy matching.

    Args:
        queries: Search terms (matched against title, body and tags)
        match_all: If True, every query must match. If False, any query may match.
        fuzzy_threshold: Max edit distance for typos (0 = exact only)
        limit: Maximum number of results to return (default 50)

    Returns:
        JSON array of matching saved posts
    """
    controller = await get_controller()
    posts = await controller.client.get_saved_posts()
    results = search_posts(posts, queries, match_all=match_all, fuzzy_threshold=fuzzy_threshold, limit=limit)
    logger.info(f"Search {queries} matched {len(results)} of {len(posts)} saved posts")
    return json.dumps([simplify_post(post) for post in results], indent=2)


@mcp.resource("club://feed")
async def feed_resource() -> str:
    """The loaded feed as a resource."""
    controller = await get_controller()
    return _feed_json(controller)


def main():
    """Entry point for the reading club feed MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
