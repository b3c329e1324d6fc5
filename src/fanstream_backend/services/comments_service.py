import logging
from typing import List

from fanstream_backend.core.result import ErrorKind, Result, returns_result
from fanstream_backend.models.post import Comment
from fanstream_backend.services.local_cache import LocalCache
from fanstream_backend.services.posts_service import COMMENT_COLUMNS, bump_counter, ensure_owner
from fanstream_backend.services.supabase_rest import SupabaseRestClient, eq

log = logging.getLogger(__name__)


class CommentsService:
    def __init__(self, rest: SupabaseRestClient, cache: LocalCache):
        self.rest = rest
        self.cache = cache

    async def get_comments(self, post_id: str) -> Result[List[Comment]]:
        return await self.cache.read_through(
            f"comments:{post_id}",
            lambda: self._get_comments(post_id),
            lambda comments: [c.model_dump(mode="json") for c in comments],
            lambda data: [Comment.model_validate(c) for c in data],
        )

    @returns_result(log, "Fetch comments")
    async def _get_comments(self, post_id: str) -> List[Comment]:
        rows = await self.rest.select(
            "comments", COMMENT_COLUMNS,
            filters=[eq("post_id", post_id)], order="created_at.asc",
        )
        return [Comment.from_row(r) for r in rows or []]

    async def add_comment(self, post_id: str, user_id: str, text: str) -> Result[Comment]:
        if not text or not text.strip():
            return Result.failure(ErrorKind.VALIDATION_FAILED, "Comment text is required")
        return await self._add_comment(post_id, user_id, text.strip())

    @returns_result(log, "Add comment")
    async def _add_comment(self, post_id: str, user_id: str, text: str) -> Comment:
        row = await self.rest.insert(
            "comments",
            {"post_id": post_id, "user_id": user_id, "text": text},
            columns=COMMENT_COLUMNS,
            single=True,
        )
        await bump_counter(self.rest, post_id, "comment_count", "increment_comments", +1)
        return Comment.from_row(row)

    async def update_comment(self, comment_id: str, user_id: str, text: str) -> Result[None]:
        if not text or not text.strip():
            return Result.failure(ErrorKind.VALIDATION_FAILED, "Comment text is required")
        return await self._update_comment(comment_id, user_id, text.strip())

    @returns_result(log, "Update comment")
    async def _update_comment(self, comment_id: str, user_id: str, text: str):
        denied = await ensure_owner(self.rest, "comments", comment_id, user_id, "edit this comment")
        if denied:
            return denied
        await self.rest.update("comments", {"text": text}, [eq("id", comment_id)])
        return None

    @returns_result(log, "Delete comment")
    async def delete_comment(self, comment_id: str, user_id: str, post_id: str):
        denied = await ensure_owner(self.rest, "comments", comment_id, user_id, "delete this comment")
        if denied:
            return denied
        await self.rest.delete("comments", [eq("id", comment_id)])
        await bump_counter(self.rest, post_id, "comment_count", "decrement_comments", -1)
        return None
