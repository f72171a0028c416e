"""Helpers for turning feed posts into plain, compact output."""

import html
import re
from typing import Iterable, Optional

from src.common.fuzzy_search import fuzzy_search
from src.common.models import Comment, Post

TAG_RE = re.compile(r"<[^>]+>")
BLOCK_TAG_RE = re.compile(r"</?(p|div|br|li|h[1-6]|blockquote)[^>]*>", re.IGNORECASE)


def html_to_text(content: str) -> str:
    """Strip editor HTML from a post body, keeping paragraph breaks as spaces."""
    text = BLOCK_TAG_RE.sub(" ", content)
    text = TAG_RE.sub("", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def clean_text(text: str, max_length: Optional[int] = 280) -> str:
    """Normalize typographic characters and optionally truncate."""
    replacements = {
        "\u2019": "'",  # right single quote
        "\u2018": "'",  # left single quote
        "\u201c": '"',  # left double quote
        "\u201d": '"',  # right double quote
        "\u2026": "...",  # ellipsis
        "\u00a0": " ",  # non-breaking space from the editor
    }
    for old, new in replacements.items():
        text = text.replace(old, new)

    if max_length and len(text) > max_length:
        text = text[: max_length - 3] + "..."

    return text


def simplify_comment(comment: Comment, max_content_length: int = 280) -> dict:
    return {
        "id": comment.id,
        "author": comment.author.name or comment.author.slug or comment.author.id,
        "content": clean_text(comment.content, max_content_length),
        "created_at": comment.created_at.isoformat().replace("+00:00", "Z"),
        "likes": comment.likes,
        "has_liked": comment.has_liked,
    }


def simplify_post(post: Post, max_content_length: int = 280, max_comments: int = 3) -> dict:
    """Convert a Post to a simplified dict for LLM consumption."""
    result = {
        "id": post.id,
        "title": post.title,
        "author": post.author.name or post.author.slug or post.author.id,
        "content": clean_text(html_to_text(post.content), max_content_length),
        "created_at": post.created_at.isoformat().replace("+00:00", "Z"),
        "likes": post.likes,
        "comments_count": post.comments_count,
        "has_liked": post.has_liked,
        "has_bookmarked": post.has_bookmarked,
    }

    # Only include optional parts when present
    if post.image_url:
        result["image"] = post.image_url
    if post.tags:
        result["tags"] = [tag.name for tag in post.tags]
    if post.comments and max_comments:
        result["comments"] = [
            simplify_comment(comment, max_content_length) for comment in post.comments[:max_comments]
        ]

    return result


def post_search_text(post: Post) -> str:
    """Text a post is searched by: title, body and tag names."""
    parts = [post.title, html_to_text(post.content)]
    parts.extend(tag.name for tag in post.tags)
    return " ".join(parts)


def search_posts(
    posts: Iterable[Post],
    queries: list[str],
    match_all: bool = True,
    fuzzy_threshold: int = 2,
    limit: Optional[int] = None,
) -> list[Post]:
    """
    Search posts with fuzzy matching.

    Args:
        posts: Posts to search
        queries: Search terms
        match_all: If True, all queries must match (AND). If False, any query matches (OR).
        fuzzy_threshold: Max edit distance for fuzzy matching (0 = exact only)
        limit: Maximum results to return

    Returns:
        Matching posts, in their original order
    """
    results = []
    for post in posts:
        if fuzzy_search(post_search_text(post), queries, match_all, fuzzy_threshold):
            results.append(post)
            if limit and len(results) >= limit:
                break
    return results
