"""
fanstream backend: playback session and community data service
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi_cache import FastAPICache
from fastapi_cache.backends.redis import RedisBackend
from redis.asyncio import ConnectionPool, Redis

from fanstream_backend.api.deps import HTTP_STATUS, STALE_HEADER, StaleData
from fanstream_backend.api.middleware import RateLimitMiddleware, RequestTimingMiddleware
from fanstream_backend.api.v1.health import router as health_router
from fanstream_backend.api.v1.music import router as music_router
from fanstream_backend.api.v1.playback import router as playback_router
from fanstream_backend.api.v1.posts import router as posts_router
from fanstream_backend.core.config import settings
from fanstream_backend.core.log_setup import setup_logging
from fanstream_backend.core.result import ResultError
from fanstream_backend.playback.session import PlaybackSession
from fanstream_backend.services.comments_service import CommentsService
from fanstream_backend.services.local_cache import LocalCache
from fanstream_backend.services.music_service import ListenerAccess, MusicService
from fanstream_backend.services.posts_service import PostsService
from fanstream_backend.services.supabase_rest import SupabaseRestClient

log = logging.getLogger("fanstream_backend")

API_VERSION = "1.0.0"


# ========================= Redis =========================

class RedisManager:
    """One text-mode pool shared by the local cache and the response cache."""
    _pool: Optional[ConnectionPool] = None
    _client: Optional[Redis] = None

    @classmethod
    def client(cls) -> Redis:
        if cls._client is None:
            cls._pool = ConnectionPool.from_url(
                settings.redis_url,
                max_connections=settings.redis_max_connections,
                decode_responses=True,
                socket_timeout=5,
                socket_keepalive=True,
                retry_on_timeout=True,
                health_check_interval=30,
            )
            cls._client = Redis(connection_pool=cls._pool)
        return cls._client

    @classmethod
    async def close(cls) -> None:
        if cls._client is not None:
            await cls._client.aclose()
        if cls._pool is not None:
            await cls._pool.disconnect()
        cls._pool = cls._client = None


def attach_services(app: FastAPI, redis: Redis) -> SupabaseRestClient:
    rest = SupabaseRestClient()
    local_cache = LocalCache(redis)
    app.state.rest = rest
    app.state.music_service = MusicService(rest, local_cache)
    app.state.posts_service = PostsService(rest, local_cache)
    app.state.comments_service = CommentsService(rest, local_cache)
    return rest


# ========================= Lifespan =========================

@asynccontextmanager
async def lifespan(app: FastAPI):
    log.info("🎧 fanstream backend starting (debug=%s)", settings.debug)
    if not settings.supabase_configured():
        log.warning("Supabase credentials are placeholders; remote reads will fail "
                    "and only locally cached data can be served")

    driver = None
    rest = None
    try:
        redis = RedisManager.client()
        await redis.ping()
        log.info("✅ Redis reachable at %s", settings.redis_url)
        FastAPICache.init(RedisBackend(redis), prefix="fanstream:cache:", expire=settings.cache_ttl)

        rest = attach_services(app, redis)

        # deferred so the API can be imported where libVLC is absent
        from fanstream_backend.playback.vlc_driver import VlcAudioDriver
        driver = VlcAudioDriver(settings.vlc_args, settings.player_status_interval_ms)
        app.state.player = PlaybackSession(driver, ListenerAccess(app.state.music_service))
        log.info("✅ Audio driver ready")
        yield
    except Exception:
        log.exception("❌ Startup aborted")
        raise
    finally:
        log.info("🛑 Shutting down")
        player = getattr(app.state, "player", None)
        if player is not None:
            await player.cleanup()
        if driver is not None:
            driver.release()
        if rest is not None:
            await rest.close()
        await RedisManager.close()
        log.info("👋 Bye")


# ========================= Application =========================

def create_application(use_lifespan: bool = True) -> FastAPI:
    setup_logging()

    app = FastAPI(
        title="fanstream backend",
        description="Player transport, music catalogue and community feed",
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan if use_lifespan else None,
        openapi_tags=[
            {"name": "health", "description": "Liveness"},
            {"name": "playback", "description": "Player transport and queue"},
            {"name": "music", "description": "Artists, tracks, votes, follows, purchases"},
            {"name": "posts", "description": "Feed, likes, saves and comments"},
        ],
    )

    app.add_middleware(GZipMiddleware, minimum_size=1024)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time", "X-Data-Stale"],
    )
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.rate_limit_rpm)
    # outermost, so timings include the other middleware
    app.add_middleware(RequestTimingMiddleware)

    app.include_router(health_router, prefix="/health", tags=["health"])
    app.include_router(playback_router, prefix="/api/v1/playback", tags=["playback"])
    app.include_router(music_router, prefix="/api/v1/music", tags=["music"])
    app.include_router(posts_router, prefix="/api/v1/posts", tags=["posts"])

    @app.exception_handler(ResultError)
    async def result_error_handler(request: Request, exc: ResultError):
        return JSONResponse(
            status_code=HTTP_STATUS.get(exc.error.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
            content={"detail": {"kind": exc.error.kind.value, "message": exc.error.message}},
        )

    @app.exception_handler(StaleData)
    async def stale_data_handler(request: Request, exc: StaleData):
        return JSONResponse(content=exc.payload, headers={STALE_HEADER: "1"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.get("/", include_in_schema=False)
    async def index():
        return {"service": "fanstream backend", "version": API_VERSION, "docs": "/api/docs"}

    return app


app = create_application()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fanstream_backend.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
        access_log=False,
        loop="asyncio" if sys.platform == "win32" else "uvloop",
    )
