# fanstream_backend/api/deps.py
from typing import Any, Optional, TypeVar

from fastapi import Header, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder

from fanstream_backend.core.result import ErrorKind, Result
from fanstream_backend.playback.session import PlaybackSession
from fanstream_backend.services.comments_service import CommentsService
from fanstream_backend.services.music_service import MusicService
from fanstream_backend.services.posts_service import PostsService

T = TypeVar("T")

STALE_HEADER = "X-Data-Stale"

HTTP_STATUS = {
    ErrorKind.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.SUPERSEDED: status.HTTP_409_CONFLICT,
    ErrorKind.RESOURCE_ACQUISITION_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.BACKEND_REJECTED: status.HTTP_502_BAD_GATEWAY,
    ErrorKind.NETWORK_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def unwrap(result: Result[T], response: Optional[Response] = None) -> T:
    """Value of a successful result; failed results become HTTP errors."""
    if result.error is not None:
        raise HTTPException(
            status_code=HTTP_STATUS.get(result.error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            detail={"kind": result.error.kind.value, "message": result.error.message},
        )
    if result.stale and response is not None:
        response.headers[STALE_HEADER] = "1"
    return result.value


class StaleData(Exception):
    """A stale payload from a response-cached route; rendered with the stale
    header and kept out of the response cache."""

    def __init__(self, payload: Any):
        super().__init__("stale data")
        self.payload = payload


def unwrap_fresh(result: Result[T]) -> T:
    """Like ``unwrap`` for routes behind ``@cache``: stale values are raised, not returned."""
    value = unwrap(result)
    if result.stale:
        raise StaleData(jsonable_encoder(value))
    return value


def get_player(request: Request) -> PlaybackSession:
    return request.app.state.player


def get_music_service(request: Request) -> MusicService:
    return request.app.state.music_service


def get_posts_service(request: Request) -> PostsService:
    return request.app.state.posts_service


def get_comments_service(request: Request) -> CommentsService:
    return request.app.state.comments_service


def current_user(x_user_id: Optional[str] = Header(None)) -> str:
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    return x_user_id


def optional_user(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None
