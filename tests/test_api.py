import json
from functools import partial

import pytest
from fastapi.testclient import TestClient
from fastapi_cache import FastAPICache
from fastapi_cache.backends.inmemory import InMemoryBackend

from fakes import FakeAudioDriver, FakeRedis, FakeRest, make_track, settle
from fanstream_backend.core.result import BackendError, ErrorKind
from fanstream_backend.main import create_application
from fanstream_backend.playback.session import PlaybackSession
from fanstream_backend.services.comments_service import CommentsService
from fanstream_backend.services.local_cache import LocalCache
from fanstream_backend.services.music_service import ListenerAccess, MusicService
from fanstream_backend.services.posts_service import PostsService

OFFLINE = BackendError(ErrorKind.NETWORK_UNAVAILABLE, "connection refused")

TRACK_ROW = {
    "id": "t1", "artist_id": "a1", "title": "Night Drive", "audio_url": "t1.mp3",
    "duration_seconds": 200, "price": None, "artists": {"name": "Dana"},
}


class Env:
    def __init__(self):
        self.driver = FakeAudioDriver()
        self.rest = FakeRest()
        self.redis = FakeRedis()
        cache = LocalCache(self.redis, prefix="test:", ttl=60)
        music = MusicService(self.rest, cache)
        self.app = create_application(use_lifespan=False)
        self.app.state.player = PlaybackSession(self.driver, ListenerAccess(music))
        self.app.state.music_service = music
        self.app.state.posts_service = PostsService(self.rest, cache)
        self.app.state.comments_service = CommentsService(self.rest, cache)


@pytest.fixture
def env():
    FastAPICache.init(InMemoryBackend(), prefix="test")
    return Env()


@pytest.fixture
def client(env):
    with TestClient(env.app) as c:
        yield c


def _json(*tracks):
    return [t.model_dump(mode="json") for t in tracks]


async def _emit(handle, fields):
    handle.emit(**fields)
    await settle()


def emit(client, handle, **fields):
    """Delivers a status update on the app's event loop."""
    client.portal.call(partial(_emit, handle, fields))


def test_health(client):
    r = client.get("/health/")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "backend_configured" in r.json()


def test_queue_then_next(client, env):
    r = client.put("/api/v1/playback/queue", json={"tracks": _json(make_track("A"), make_track("B"))})
    assert r.status_code == 200
    assert r.json()["current_index"] == 0
    assert r.json()["current_track"] is None

    r = client.post("/api/v1/playback/next")

    assert r.json()["current_track"]["title"] == "B"
    assert r.json()["is_playing"]
    assert env.driver.log == ["load:B"]

    r = client.post("/api/v1/playback/next")
    assert r.status_code == 200
    assert r.json()["current_index"] == 1


def test_play_counts_the_play(client, env):
    r = client.post("/api/v1/playback/play", json={"track": _json(make_track("A"))[0]})

    assert r.status_code == 200
    assert r.json()["current_track"]["id"] == "id-A"
    assert env.rest.called("rpc", "increment_track_plays")[0][2]["params"] == {"track_uuid": "id-A"}


def test_play_failure_is_bad_gateway(client, env):
    env.driver.failing.add("broken")

    r = client.post("/api/v1/playback/play", json={"track": _json(make_track("broken"))[0]})

    assert r.status_code == 502
    assert r.json()["detail"]["kind"] == "resource_acquisition_failed"
    assert env.rest.called("rpc") == []


def test_queue_start_out_of_range(client):
    r = client.put("/api/v1/playback/queue", json={"tracks": _json(make_track("A")), "start_index": 3})

    assert r.status_code == 400
    assert r.json()["detail"]["kind"] == "validation_failed"


def test_stop_resets_snapshot(client):
    client.post("/api/v1/playback/play", json={"track": _json(make_track("A"))[0]})

    r = client.post("/api/v1/playback/stop")

    assert r.json()["current_track"] is None
    assert not r.json()["is_playing"]


def test_artists_offline_without_local_copy(client, env):
    env.rest.on("select", "artists", OFFLINE)

    r = client.get("/api/v1/music/artists")

    assert r.status_code == 503
    assert r.json()["detail"]["kind"] == "network_unavailable"


def test_stale_tracks_are_flagged(client, env):
    env.rest.on("select", "tracks", [TRACK_ROW], OFFLINE)

    fresh = client.get("/api/v1/music/tracks")
    stale = client.get("/api/v1/music/tracks")

    assert fresh.status_code == stale.status_code == 200
    assert "X-Data-Stale" not in fresh.headers
    assert stale.headers["X-Data-Stale"] == "1"
    assert stale.json()[0]["artist_name"] == "Dana"


def test_feed_requires_user(client):
    r = client.get("/api/v1/posts/feed")
    assert r.status_code == 401


def test_editing_someone_elses_post_is_forbidden(client, env):
    env.rest.on("select", "posts", {"user_id": "owner"})

    r = client.patch("/api/v1/posts/p1", json={"caption": "mine now"}, headers={"X-User-Id": "intruder"})

    assert r.status_code == 403
    assert env.rest.called("update") == []


def test_invalid_vote_is_bad_request(client, env):
    r = client.post("/api/v1/music/tracks/t1/vote", json={"vote_type": "meh"}, headers={"X-User-Id": "u1"})

    assert r.status_code == 400
    assert env.rest.calls == []


def test_duplicate_follow_reports_following(client, env):
    env.rest.on("insert", "artist_followers", BackendError(ErrorKind.CONFLICT, "dup", code="23505"))

    r = client.put("/api/v1/music/artists/a1/follow", headers={"X-User-Id": "u1"})

    assert r.status_code == 200
    assert r.json() == {"value": True}


def test_add_comment(client, env):
    env.rest.on("insert", "comments", {"id": "c1", "post_id": "p1", "user_id": "u1", "text": "hi",
                                       "users": {"username": "ren"}})

    r = client.post("/api/v1/posts/p1/comments", json={"text": "hi"}, headers={"X-User-Id": "u1"})

    assert r.status_code == 201
    assert r.json()["username"] == "ren"


def test_snippet_limit_follows_skips(client, env):
    snippets = _json(make_track("A", is_snippet_only=True), make_track("B", is_snippet_only=True))
    headers = {"X-User-Id": "u1"}

    client.put("/api/v1/playback/queue", json={"tracks": snippets, "autoplay": True}, headers=headers)
    r = client.post("/api/v1/playback/next", headers=headers)

    assert r.json()["current_track"]["title"] == "B"
    assert len(env.rest.called("select", "track_purchases")) == 2
    assert len(env.rest.called("rpc", "increment_track_plays")) == 2

    emit(client, env.driver.handles[1], position_ms=31000, duration_ms=180000, is_playing=True)
    r = client.get("/api/v1/playback/")

    assert "pause:B" in env.driver.log
    assert not r.json()["is_playing"]


def test_purchased_snippet_plays_in_full(client, env):
    env.rest.on("select", "track_purchases", [{"id": "p1"}])

    client.post(
        "/api/v1/playback/play",
        json={"track": _json(make_track("A", is_snippet_only=True))[0]},
        headers={"X-User-Id": "u1"},
    )
    emit(client, env.driver.handles[0], position_ms=60000, duration_ms=180000, is_playing=True)
    client.get("/api/v1/playback/")

    assert "pause:A" not in env.driver.log


def test_stale_artist_list_is_flagged_and_not_cached(client, env):
    env.redis.store["test:music:artists"] = json.dumps([{"id": "a1", "name": "Dana"}])
    env.rest.on("select", "artists", OFFLINE)

    first = client.get("/api/v1/music/artists")
    second = client.get("/api/v1/music/artists")

    assert first.status_code == second.status_code == 200
    assert first.headers["X-Data-Stale"] == "1"
    assert second.headers["X-Data-Stale"] == "1"
    assert first.json()[0]["name"] == "Dana"
    assert len(env.rest.called("select", "artists")) == 2


def test_transport_failure_is_reported(client, env):
    client.post("/api/v1/playback/play", json={"track": _json(make_track("A"))[0]})
    env.driver.handles[0].broken.add("pause")

    r = client.post("/api/v1/playback/pause")

    assert r.status_code == 502
    assert r.json()["detail"]["kind"] == "resource_acquisition_failed"
