import pytest

from fakes import make_track
from fanstream_backend.core.result import BackendError, ErrorKind
from fanstream_backend.services.music_service import ListenerAccess, MusicService

TRACK_ROW = {
    "id": "t1",
    "artist_id": "a1",
    "title": "Night Drive",
    "album_id": None,
    "cover_art": "https://cdn/cover.jpg",
    "audio_url": "https://cdn/t1.mp3",
    "duration_seconds": 200,
    "price": "1.99",
    "is_snippet_only": True,
    "snippet_duration_seconds": 45,
    "play_count": None,
    "hot_votes": 7,
    "not_votes": 1,
    "purchase_count": 3,
    "is_hot": True,
    "created_at": "2024-05-01T10:00:00Z",
}

ARTIST_ROW = {
    "id": "a1",
    "name": "Dana",
    "stage_name": "DJ Dana",
    "avatar": "https://cdn/dana.jpg",
    "bio": "",
    "follower_count": 120,
    "artist_header_images": [
        {"image_url": "second.jpg", "sort_order": 2},
        {"image_url": "first.jpg", "sort_order": 1},
    ],
    "artist_social_links": [{"instagram": "@dana", "twitter": None}],
    "tracks": [TRACK_ROW],
    "albums": [{"id": "al1", "artist_id": "a1", "title": "EP", "price": None, "release_date": "2024-01-01"}],
}

OFFLINE = BackendError(ErrorKind.NETWORK_UNAVAILABLE, "connection refused")


@pytest.fixture
def music(rest, local_cache):
    return MusicService(rest, local_cache)


@pytest.mark.asyncio
async def test_fetch_artists_maps_rows(music, rest):
    rest.on("select", "artists", [ARTIST_ROW])

    result = await music.fetch_artists()

    artist = result.value[0]
    assert artist.header_images == ["first.jpg", "second.jpg"]
    assert artist.social_links["instagram"] == "@dana"
    assert artist.social_links["twitter"] == ""
    assert artist.social_links["spotify"] == ""
    track = artist.tracks[0]
    assert track.price == 1.99
    assert track.play_count == 0
    assert track.duration == 200
    assert track.preview_seconds == 45
    assert artist.albums[0].price is None
    assert rest.calls[0][2]["order"] == "follower_count.desc"


@pytest.mark.asyncio
async def test_fetch_artist_missing_is_not_found(music, rest):
    rest.on("select", "artists", BackendError(ErrorKind.NOT_FOUND, "no rows", code="PGRST116"))

    result = await music.fetch_artist("ghost")

    assert result.error.kind == ErrorKind.NOT_FOUND


@pytest.mark.asyncio
async def test_tracks_served_from_local_copy_when_offline(music, rest):
    row = dict(TRACK_ROW, artists={"name": "Dana", "avatar": "a.jpg"})
    rest.on("select", "tracks", [row], OFFLINE)

    fresh = await music.fetch_all_tracks()
    offline = await music.fetch_all_tracks()

    assert not fresh.stale
    assert offline.is_ok and offline.stale
    assert offline.value[0].artist_name == "Dana"
    assert offline.value == fresh.value


@pytest.mark.asyncio
async def test_tracks_for_sale_prefer_stage_name(music, rest):
    rest.on("select", "tracks", [dict(TRACK_ROW, artists={"name": "Dana", "stage_name": "DJ Dana"})])

    result = await music.fetch_tracks_for_sale()

    assert result.value[0].artist_name == "DJ Dana"
    filters = rest.calls[0][2]["filters"]
    assert ("price", "not.is", None) in filters
    assert ("price", "gt", 0) in filters


@pytest.mark.asyncio
async def test_missing_artist_join_defaults_name(music, rest):
    rest.on("select", "tracks", [dict(TRACK_ROW, artists=None)])

    result = await music.fetch_all_tracks()

    assert result.value[0].artist_name == "Unknown Artist"


@pytest.mark.asyncio
async def test_new_vote_is_inserted(music, rest):
    rest.on("select", "track_votes", [])

    result = await music.vote_on_track("t1", "u1", "hot")

    assert result.value is True
    assert rest.called("insert", "track_votes")[0][2]["row"]["vote_type"] == "hot"


@pytest.mark.asyncio
async def test_same_vote_toggles_off(music, rest):
    rest.on("select", "track_votes", [{"id": "v1", "vote_type": "hot"}])

    result = await music.vote_on_track("t1", "u1", "hot")

    assert result.value is False
    assert len(rest.called("delete", "track_votes")) == 1


@pytest.mark.asyncio
async def test_different_vote_switches(music, rest):
    rest.on("select", "track_votes", [{"id": "v1", "vote_type": "not"}])

    result = await music.vote_on_track("t1", "u1", "hot")

    assert result.value is True
    assert rest.called("update", "track_votes")[0][2]["values"] == {"vote_type": "hot"}


@pytest.mark.asyncio
async def test_invalid_vote_never_reaches_backend(music, rest):
    result = await music.vote_on_track("t1", "u1", "meh")

    assert result.error.kind == ErrorKind.VALIDATION_FAILED
    assert rest.calls == []


@pytest.mark.asyncio
async def test_duplicate_follow_counts_as_success(music, rest):
    rest.on("insert", "artist_followers", BackendError(ErrorKind.CONFLICT, "dup", code="23505"))

    result = await music.follow_artist("u1", "a1")

    assert result.is_ok and result.value is True


@pytest.mark.asyncio
async def test_follow_failure_is_reported(music, rest):
    rest.on("insert", "artist_followers", OFFLINE)

    result = await music.follow_artist("u1", "a1")

    assert result.error.kind == ErrorKind.NETWORK_UNAVAILABLE


@pytest.mark.asyncio
async def test_is_following(music, rest):
    rest.on("select", "artist_followers", [{"id": "f1"}], [])

    assert (await music.is_following_artist("u1", "a1")).value is True
    assert (await music.is_following_artist("u1", "a2")).value is False


@pytest.mark.asyncio
async def test_purchase_increments_counter(music, rest):
    result = await music.record_track_purchase("u1", "t1", 1.99)

    assert result.value is True
    assert rest.called("rpc", "increment_track_purchase_count")[0][2]["params"] == {"track_uuid": "t1"}


@pytest.mark.asyncio
async def test_repeat_purchase_skips_counter(music, rest):
    rest.on("insert", "track_purchases", BackendError(ErrorKind.CONFLICT, "dup", code="23505"))

    result = await music.record_track_purchase("u1", "t1", 1.99)

    assert result.value is True
    assert rest.called("rpc") == []


@pytest.mark.asyncio
async def test_negative_price_rejected(music, rest):
    result = await music.record_track_purchase("u1", "t1", -1)

    assert result.error.kind == ErrorKind.VALIDATION_FAILED
    assert rest.calls == []


@pytest.mark.asyncio
async def test_purchased_tracks_skip_missing_rows(music, rest):
    rest.on("select", "track_purchases", [{"track_id": "t1", "tracks": TRACK_ROW}, {"track_id": "t2", "tracks": None}])

    result = await music.fetch_user_purchased_tracks("u1")

    assert [t.id for t in result.value] == ["t1"]


@pytest.mark.asyncio
async def test_play_count_rpc(music, rest):
    result = await music.increment_play_count("t1")

    assert result.is_ok
    assert rest.called("rpc", "increment_track_plays")[0][2]["params"] == {"track_uuid": "t1"}


@pytest.mark.asyncio
async def test_snippet_limits_for_non_owner(music, rest):
    snippet = make_track("S", is_snippet_only=True, snippet_duration=None)
    rest.on("select", "track_purchases", [], [{"id": "p1"}])

    assert (await music.playable_seconds(make_track("F"), "u1")).value is None
    assert (await music.playable_seconds(snippet, None)).value == 30
    assert (await music.playable_seconds(snippet, "u1")).value == 30
    assert (await music.playable_seconds(snippet, "u1")).value is None


@pytest.mark.asyncio
async def test_listener_access_limits_in_milliseconds(music, rest):
    access = ListenerAccess(music, "u1")
    rest.on("select", "track_purchases", [])

    assert await access.limit_ms(make_track("S", is_snippet_only=True, snippet_duration=20)) == 20000
    assert await access.limit_ms(make_track("F")) is None


@pytest.mark.asyncio
async def test_listener_access_previews_when_ownership_unknown(music, rest):
    access = ListenerAccess(music, "u1")
    rest.on("select", "track_purchases", OFFLINE)

    assert await access.limit_ms(make_track("S", is_snippet_only=True)) == 30000


@pytest.mark.asyncio
async def test_listener_access_counts_plays_and_tolerates_failure(music, rest):
    access = ListenerAccess(music)
    rest.on("rpc", "increment_track_plays", None, OFFLINE)

    await access.track_started(make_track("A"))
    await access.track_started(make_track("B"))

    assert [c[2]["params"]["track_uuid"] for c in rest.called("rpc")] == ["id-A", "id-B"]
