import logging
from typing import List, Optional

from fanstream_backend.core.result import BackendError, ErrorKind, Result, returns_result
from fanstream_backend.models.music import Artist, Track, TrackWithArtist
from fanstream_backend.services.local_cache import LocalCache
from fanstream_backend.services.supabase_rest import SupabaseRestClient, eq

log = logging.getLogger(__name__)

ARTIST_COLUMNS = (
    "*,artist_header_images(image_url,sort_order),"
    "artist_social_links(*),tracks(*),albums(*)"
)
VOTE_TYPES = ("hot", "not")


def _dump_list(items):
    return [i.model_dump(mode="json") for i in items]


class MusicService:
    """Artists, tracks, votes, follows and purchases in the hosted store."""

    def __init__(self, rest: SupabaseRestClient, cache: LocalCache):
        self.rest = rest
        self.cache = cache

    # ---------- catalog reads (served from the local copy when offline) ----------

    async def fetch_artists(self) -> Result[List[Artist]]:
        return await self.cache.read_through(
            "music:artists",
            self._fetch_artists,
            _dump_list,
            lambda data: [Artist.model_validate(a) for a in data],
        )

    @returns_result(log, "Fetch artists")
    async def _fetch_artists(self) -> List[Artist]:
        rows = await self.rest.select("artists", ARTIST_COLUMNS, order="follower_count.desc")
        if not rows:
            log.info("No artists found in database")
        return [Artist.from_row(r) for r in rows or []]

    async def fetch_artist(self, artist_id: str) -> Result[Artist]:
        return await self.cache.read_through(
            f"music:artist:{artist_id}",
            lambda: self._fetch_artist(artist_id),
            lambda a: a.model_dump(mode="json"),
            Artist.model_validate,
        )

    @returns_result(log, "Fetch artist")
    async def _fetch_artist(self, artist_id: str) -> Artist:
        row = await self.rest.select(
            "artists", ARTIST_COLUMNS, filters=[eq("id", artist_id)], single=True,
        )
        return Artist.from_row(row)

    async def fetch_all_tracks(self) -> Result[List[TrackWithArtist]]:
        return await self.cache.read_through(
            "music:tracks:recent",
            self._fetch_all_tracks,
            _dump_list,
            lambda data: [TrackWithArtist.model_validate(t) for t in data],
        )

    @returns_result(log, "Fetch tracks")
    async def _fetch_all_tracks(self) -> List[TrackWithArtist]:
        rows = await self.rest.select(
            "tracks", "*,artists!inner(name,avatar)",
            order="created_at.desc", limit=100,
        )
        return [TrackWithArtist.from_row(r) for r in rows or []]

    async def fetch_hot_tracks(self) -> Result[List[Track]]:
        return await self.cache.read_through(
            "music:tracks:hot",
            self._fetch_hot_tracks,
            _dump_list,
            lambda data: [Track.model_validate(t) for t in data],
        )

    @returns_result(log, "Fetch hot tracks")
    async def _fetch_hot_tracks(self) -> List[Track]:
        rows = await self.rest.select(
            "tracks", filters=[eq("is_hot", True)], order="hot_votes.desc", limit=20,
        )
        return [Track.from_row(r) for r in rows or []]

    async def fetch_tracks_for_sale(self) -> Result[List[TrackWithArtist]]:
        return await self.cache.read_through(
            "music:tracks:for_sale",
            self._fetch_tracks_for_sale,
            _dump_list,
            lambda data: [TrackWithArtist.model_validate(t) for t in data],
        )

    @returns_result(log, "Fetch tracks for sale")
    async def _fetch_tracks_for_sale(self) -> List[TrackWithArtist]:
        rows = await self.rest.select(
            "tracks", "*,artists!inner(name,stage_name,avatar)",
            filters=[("price", "not.is", None), ("price", "gt", 0)],
            order="hot_votes.desc", limit=50,
        )
        return [TrackWithArtist.from_row(r) for r in rows or []]

    # ---------- counters and votes ----------

    @returns_result(log, "Increment play count")
    async def increment_play_count(self, track_id: str) -> None:
        await self.rest.rpc("increment_track_plays", {"track_uuid": track_id})
        log.debug("Play count incremented for track %s", track_id)

    async def vote_on_track(self, track_id: str, user_id: str, vote_type: str) -> Result[bool]:
        """Returns True when the user's vote is active afterwards, False when it was toggled off."""
        if vote_type not in VOTE_TYPES:
            return Result.failure(ErrorKind.VALIDATION_FAILED, f"vote_type must be one of {VOTE_TYPES}")
        return await self._vote(track_id, user_id, vote_type)

    @returns_result(log, "Vote on track")
    async def _vote(self, track_id: str, user_id: str, vote_type: str) -> bool:
        keys = [eq("track_id", track_id), eq("user_id", user_id)]
        existing = await self.rest.select("track_votes", "id,vote_type", filters=keys, limit=1)
        if not existing:
            await self.rest.insert(
                "track_votes",
                {"track_id": track_id, "user_id": user_id, "vote_type": vote_type},
            )
            return True
        if existing[0].get("vote_type") == vote_type:
            await self.rest.delete("track_votes", keys)
            return False
        await self.rest.update("track_votes", {"vote_type": vote_type}, keys)
        return True

    # ---------- follows ----------

    @returns_result(log, "Follow artist")
    async def follow_artist(self, user_id: str, artist_id: str) -> bool:
        try:
            await self.rest.insert("artist_followers", {"follower_id": user_id, "artist_id": artist_id})
        except BackendError as e:
            if e.kind != ErrorKind.CONFLICT:
                raise
            log.debug("User %s already follows artist %s", user_id, artist_id)
        return True

    @returns_result(log, "Unfollow artist")
    async def unfollow_artist(self, user_id: str, artist_id: str) -> bool:
        await self.rest.delete(
            "artist_followers", [eq("follower_id", user_id), eq("artist_id", artist_id)],
        )
        return True

    @returns_result(log, "Check follow")
    async def is_following_artist(self, user_id: str, artist_id: str) -> bool:
        rows = await self.rest.select(
            "artist_followers", "id",
            filters=[eq("follower_id", user_id), eq("artist_id", artist_id)], limit=1,
        )
        return bool(rows)

    # ---------- purchases ----------

    @returns_result(log, "Check purchase")
    async def has_user_purchased_track(self, user_id: str, track_id: str) -> bool:
        rows = await self.rest.select(
            "track_purchases", "id",
            filters=[eq("user_id", user_id), eq("track_id", track_id)], limit=1,
        )
        return bool(rows)

    @returns_result(log, "Fetch purchased tracks")
    async def fetch_user_purchased_tracks(self, user_id: str) -> List[Track]:
        rows = await self.rest.select(
            "track_purchases", "track_id,tracks(*)", filters=[eq("user_id", user_id)],
        )
        return [Track.from_row(r["tracks"]) for r in rows or [] if r.get("tracks")]

    async def record_track_purchase(self, user_id: str, track_id: str, price_paid: float) -> Result[bool]:
        if price_paid is None or price_paid < 0:
            return Result.failure(ErrorKind.VALIDATION_FAILED, "price_paid must be zero or positive")
        return await self._record_purchase(user_id, track_id, float(price_paid))

    @returns_result(log, "Record purchase")
    async def _record_purchase(self, user_id: str, track_id: str, price_paid: float) -> bool:
        try:
            await self.rest.insert(
                "track_purchases",
                {"user_id": user_id, "track_id": track_id, "price_paid": price_paid},
            )
        except BackendError as e:
            if e.kind == ErrorKind.CONFLICT:
                log.debug("Track %s already purchased by %s", track_id, user_id)
                return True
            raise
        await self.rest.rpc("increment_track_purchase_count", {"track_uuid": track_id})
        log.info("Track purchase recorded: %s", track_id)
        return True

    async def playable_seconds(self, track: Track, user_id: Optional[str]) -> Result[Optional[int]]:
        """Seconds a user may listen to: ``None`` for the full track, the preview length for snippets."""
        if not track.is_snippet_only:
            return Result.success(None)
        if user_id:
            owned = await self.has_user_purchased_track(user_id, track.id)
            if not owned.is_ok:
                return Result(error=owned.error)
            if owned.value:
                return Result.success(None)
        return Result.success(track.preview_seconds)


class ListenerAccess:
    """Snippet limits and play counts for whoever is currently driving the player.

    ``user_id`` is updated by the playback routes; auto-advance keeps using the
    last listener. When ownership cannot be checked, snippet-only tracks play
    as previews.
    """

    def __init__(self, music: MusicService, user_id: Optional[str] = None):
        self.music = music
        self.user_id = user_id

    async def limit_ms(self, track: Track) -> Optional[int]:
        result = await self.music.playable_seconds(track, self.user_id)
        if result.is_ok:
            seconds = result.value
        else:
            log.warning("Could not check access to %s: %s", track.id, result.error.message)
            seconds = track.preview_seconds if track.is_snippet_only else None
        return seconds * 1000 if seconds else None

    async def track_started(self, track: Track) -> None:
        played = await self.music.increment_play_count(track.id)
        if not played.is_ok:
            log.warning("Play of %s not counted: %s", track.id, played.error.message)
