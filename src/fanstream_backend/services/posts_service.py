import logging
from collections import defaultdict
from typing import Dict, List, Optional

from fanstream_backend.core.result import BackendError, ErrorKind, Result, returns_result
from fanstream_backend.models.post import Comment, Post
from fanstream_backend.services.local_cache import LocalCache
from fanstream_backend.services.supabase_rest import SupabaseRestClient, eq

log = logging.getLogger(__name__)

POST_COLUMNS = "*,users:user_id(id,username,avatar_url)"
COMMENT_COLUMNS = "*,users:user_id(username)"


async def ensure_owner(rest: SupabaseRestClient, table: str, row_id: str, user_id: str, what: str) -> Optional[Result]:
    """Failure result when ``user_id`` does not own the row, ``None`` when it does."""
    row = await rest.select(table, "user_id", filters=[eq("id", row_id)], single=True)
    if row.get("user_id") != user_id:
        return Result.failure(ErrorKind.PERMISSION_DENIED, f"You do not have permission to {what}")
    return None


async def bump_counter(rest: SupabaseRestClient, post_id: str, column: str, function: str, delta: int) -> None:
    """Adjusts a post counter through its RPC, falling back to read-modify-write."""
    try:
        await rest.rpc(function, {"post_id": post_id})
        return
    except BackendError as e:
        log.warning("RPC %s failed (%s), updating %s manually", function, e.message, column)

    try:
        post = await rest.select("posts", column, filters=[eq("id", post_id)], single=True)
    except BackendError as e:
        if e.kind == ErrorKind.NOT_FOUND:
            return
        raise
    current = post.get(column) or 0
    if delta < 0 and current <= 0:
        return
    await rest.update("posts", {column: current + delta}, [eq("id", post_id)])


class PostsService:
    """Feed posts, likes and saves."""

    def __init__(self, rest: SupabaseRestClient, cache: LocalCache):
        self.rest = rest
        self.cache = cache

    async def get_feed(self, current_user_id: str) -> Result[List[Post]]:
        return await self.cache.read_through(
            f"posts:feed:{current_user_id}",
            lambda: self._get_feed(current_user_id),
            lambda posts: [p.model_dump(mode="json") for p in posts],
            lambda data: [Post.model_validate(p) for p in data],
        )

    @returns_result(log, "Fetch feed")
    async def _get_feed(self, current_user_id: str) -> List[Post]:
        rows = await self.rest.select("posts", POST_COLUMNS, order="created_at.desc")
        likes = await self.rest.select("likes", "post_id", filters=[eq("user_id", current_user_id)])
        saves = await self.rest.select("saves", "post_id", filters=[eq("user_id", current_user_id)])
        comment_rows = await self.rest.select("comments", COMMENT_COLUMNS, order="created_at.asc")

        liked = {r["post_id"] for r in likes or []}
        saved = {r["post_id"] for r in saves or []}
        by_post: Dict[str, List[Comment]] = defaultdict(list)
        for c in comment_rows or []:
            by_post[c.get("post_id")].append(Comment.from_row(c))

        return [
            Post.from_row(
                row,
                is_liked=row["id"] in liked,
                is_saved=row["id"] in saved,
                comments=by_post.get(row["id"], []),
            )
            for row in rows or []
        ]

    async def create_post(self, user_id: str, image_url: str, caption: str = "") -> Result[Post]:
        if not image_url or not image_url.strip():
            return Result.failure(ErrorKind.VALIDATION_FAILED, "A post needs an image")
        return await self._create_post(user_id, image_url.strip(), caption or "")

    @returns_result(log, "Create post")
    async def _create_post(self, user_id: str, image_url: str, caption: str) -> Post:
        row = await self.rest.insert(
            "posts",
            {
                "user_id": user_id,
                "image_url": image_url,
                "caption": caption,
                "like_count": 0,
                "comment_count": 0,
            },
            columns=POST_COLUMNS,
            single=True,
        )
        log.info("Post %s created by %s", row.get("id"), user_id)
        return Post.from_row(row)

    async def update_post(
            self,
            post_id: str,
            user_id: str,
            caption: Optional[str] = None,
            image_url: Optional[str] = None,
    ) -> Result[None]:
        values = {}
        if caption is not None:
            values["caption"] = caption
        if image_url is not None:
            if not image_url.strip():
                return Result.failure(ErrorKind.VALIDATION_FAILED, "image_url cannot be empty")
            values["image_url"] = image_url.strip()
        if not values:
            return Result.failure(ErrorKind.VALIDATION_FAILED, "Nothing to update")
        return await self._update_post(post_id, user_id, values)

    @returns_result(log, "Update post")
    async def _update_post(self, post_id: str, user_id: str, values: dict):
        denied = await ensure_owner(self.rest, "posts", post_id, user_id, "edit this post")
        if denied:
            return denied
        await self.rest.update("posts", values, [eq("id", post_id)])
        return None

    @returns_result(log, "Delete post")
    async def delete_post(self, post_id: str, user_id: str):
        denied = await ensure_owner(self.rest, "posts", post_id, user_id, "delete this post")
        if denied:
            return denied
        await self.rest.delete("posts", [eq("id", post_id)])
        log.info("Post %s deleted by %s", post_id, user_id)
        return None

    @returns_result(log, "Like post")
    async def like_post(self, post_id: str, user_id: str) -> None:
        await self.rest.insert("likes", {"post_id": post_id, "user_id": user_id})
        await bump_counter(self.rest, post_id, "like_count", "increment_likes", +1)

    @returns_result(log, "Unlike post")
    async def unlike_post(self, post_id: str, user_id: str) -> None:
        await self.rest.delete("likes", [eq("post_id", post_id), eq("user_id", user_id)])
        await bump_counter(self.rest, post_id, "like_count", "decrement_likes", -1)

    @returns_result(log, "Save post")
    async def save_post(self, post_id: str, user_id: str) -> None:
        await self.rest.insert("saves", {"post_id": post_id, "user_id": user_id})

    @returns_result(log, "Unsave post")
    async def unsave_post(self, post_id: str, user_id: str) -> None:
        await self.rest.delete("saves", [eq("post_id", post_id), eq("user_id", user_id)])
