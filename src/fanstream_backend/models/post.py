# fanstream_backend/models/post.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_AVATAR_URL = "https://i.pravatar.cc/150?img=50"


class Comment(BaseModel):
    id: str
    post_id: str
    user_id: str
    username: str = "Unknown"
    text: str
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Comment":
        user = row.get("users") or {}
        return cls(
            id=row["id"],
            post_id=row.get("post_id") or "",
            user_id=row.get("user_id") or "",
            username=user.get("username") or "Unknown",
            text=row.get("text") or "",
            created_at=row.get("created_at"),
        )


class PostUser(BaseModel):
    id: str
    username: str
    avatar_url: str = DEFAULT_AVATAR_URL


class Post(BaseModel):
    id: str
    user_id: str
    user: PostUser
    image_url: str
    caption: str = ""
    created_at: Optional[str] = None
    like_count: int = 0
    comment_count: int = 0
    is_liked: bool = False
    is_saved: bool = False
    comments: List[Comment] = Field(default_factory=list)

    @classmethod
    def from_row(
        cls,
        row: Dict[str, Any],
        *,
        is_liked: bool = False,
        is_saved: bool = False,
        comments: Optional[List[Comment]] = None,
    ) -> "Post":
        user = row.get("users") or {}
        return cls(
            id=row["id"],
            user_id=row.get("user_id") or "",
            user=PostUser(
                id=user.get("id") or row.get("user_id") or "",
                username=user.get("username") or "Unknown",
                avatar_url=user.get("avatar_url") or DEFAULT_AVATAR_URL,
            ),
            image_url=row.get("image_url") or "",
            caption=row.get("caption") or "",
            created_at=row.get("created_at"),
            like_count=row.get("like_count") or 0,
            comment_count=row.get("comment_count") or 0,
            is_liked=is_liked,
            is_saved=is_saved,
            comments=comments or [],
        )


class CreatePostRequest(BaseModel):
    image_url: str
    caption: str = ""


class UpdatePostRequest(BaseModel):
    caption: Optional[str] = None
    image_url: Optional[str] = None


class CommentRequest(BaseModel):
    text: str
