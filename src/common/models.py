from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

Role = Literal["USER", "MODERATOR", "ADMIN"]
PostType = Literal["regular", "study"]


class FeedModel(BaseModel):
    """Base for API entities: immutable, camelCase on the wire."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


def _unpack_relation(data: dict, relation: str, flag_keys: tuple[str, ...]) -> None:
    """
    Turn a relation list into a viewer flag.

    The feed routes include the viewer's own like/bookmark rows under the
    relation name; a non-empty list means the viewer has liked/bookmarked.
    """
    rows = data.get(relation)
    if not isinstance(rows, list):
        return
    del data[relation]
    if not any(key in data for key in flag_keys):
        data[flag_keys[0]] = len(rows) > 0


def _count(data: dict, name: str) -> Optional[int]:
    counts = data.get("_count")
    if isinstance(counts, dict):
        return counts.get(name)
    return None


class Author(FeedModel):
    """Represents the author of a post or comment."""

    id: str = ""
    name: Optional[str] = None
    image: Optional[str] = None
    slug: Optional[str] = None


class Tag(FeedModel):
    id: str
    name: str


class Comment(FeedModel):
    """A comment on a post, with viewer-relative like state."""

    id: str
    content: str
    author: Author = Field(default_factory=Author)
    created_at: datetime = Field(alias="createdAt")
    likes: int = Field(default=0, validation_alias=AliasChoices("likes", "likesCount"))
    has_liked: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasLiked", "hasLikedComment", "has_liked"),
        serialization_alias="hasLiked",
    )

    @model_validator(mode="before")
    @classmethod
    def _read_counts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        _unpack_relation(data, "likes", ("hasLiked", "hasLikedComment", "has_liked"))

        likes = _count(data, "likes")
        if likes is not None and "likes" not in data and "likesCount" not in data:
            data["likes"] = likes
        return data


class Post(FeedModel):
    """A feed post, with viewer-relative like and bookmark state."""

    id: str
    title: str
    content: str
    type: PostType = "regular"
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    published: bool = True
    created_at: datetime = Field(alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")
    author: Author = Field(default_factory=Author)
    comments: list[Comment] = Field(default_factory=list)
    likes: int = 0
    comments_count: int = Field(default=0, alias="commentsCount")
    has_liked: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasLiked", "has_liked"),
        serialization_alias="hasLiked",
    )
    has_bookmarked: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasBookMarked", "hasBookmarked", "bookmarked", "has_bookmarked"),
        serialization_alias="hasBookMarked",
    )
    tags: list[Tag] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _read_counts(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        _unpack_relation(data, "likes", ("hasLiked", "has_liked"))
        _unpack_relation(data, "bookmarks", ("hasBookMarked", "hasBookmarked", "bookmarked", "has_bookmarked"))

        likes = _count(data, "likes")
        if likes is not None and "likes" not in data:
            data["likes"] = likes

        if "commentsCount" not in data and "comments_count" not in data:
            comments = _count(data, "comments")
            if comments is None and isinstance(data.get("comments"), list):
                comments = len(data["comments"])
            if comments is not None:
                data["commentsCount"] = comments
        return data

    def find_comment(self, comment_id: str) -> Optional[Comment]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None


class FeedPage(FeedModel):
    """One page of the feed as returned by the API."""

    posts: list[Post] = Field(default_factory=list)
    has_more: bool = Field(default=False, alias="hasMore")


class PostLikeResult(FeedModel):
    liked: bool
    # Older backends answer with the flag only
    likes: Optional[int] = None


class BookmarkResult(FeedModel):
    bookmarked: bool = Field(validation_alias=AliasChoices("bookmarked", "bookMarked"))


class CommentLikeResult(FeedModel):
    likes: int = Field(validation_alias=AliasChoices("likesCount", "likes"))
    has_liked: bool = Field(validation_alias=AliasChoices("hasLiked", "liked"))


class Viewer(FeedModel):
    """The authenticated user whose flags are rendered."""

    id: str
    name: Optional[str] = None
    role: Role = "USER"
    slug: Optional[str] = None
