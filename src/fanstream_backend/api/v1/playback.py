# fanstream_backend/api/v1/playback.py
from typing import Optional

from fastapi import APIRouter, Depends

from fanstream_backend.api.deps import get_music_service, get_player, optional_user, unwrap
from fanstream_backend.models.playback import PlayRequest, PlaybackSnapshot, QueueRequest, SeekRequest
from fanstream_backend.playback.session import PlaybackSession
from fanstream_backend.services.music_service import ListenerAccess, MusicService

router = APIRouter(prefix="")


def snapshot(player: PlaybackSession) -> PlaybackSnapshot:
    s = player.state
    return PlaybackSnapshot(
        current_track=s.current_track,
        is_playing=s.is_playing,
        is_loading=s.is_loading,
        position=s.position,
        duration=s.duration,
        queue=s.queue,
        current_index=s.current_index,
    )


def listening_player(
    player: PlaybackSession = Depends(get_player),
    user_id: Optional[str] = Depends(optional_user),
) -> PlaybackSession:
    """The player, with snippet checks switched to the calling user."""
    if isinstance(player.access, ListenerAccess):
        player.access.user_id = user_id
    return player


@router.get("/", response_model=PlaybackSnapshot, summary="Current player state")
async def get_state(player: PlaybackSession = Depends(get_player)):
    return snapshot(player)


@router.post("/play", response_model=PlaybackSnapshot, summary="Play a single track")
async def play(body: PlayRequest, player: PlaybackSession = Depends(listening_player)):
    unwrap(await player.play_track(body.track))
    return snapshot(player)


@router.post("/pause", response_model=PlaybackSnapshot)
async def pause(player: PlaybackSession = Depends(get_player)):
    unwrap(await player.pause_track())
    return snapshot(player)


@router.post("/resume", response_model=PlaybackSnapshot)
async def resume(player: PlaybackSession = Depends(get_player)):
    unwrap(await player.resume_track())
    return snapshot(player)


@router.post("/stop", response_model=PlaybackSnapshot)
async def stop(player: PlaybackSession = Depends(get_player)):
    unwrap(await player.stop_track())
    return snapshot(player)


@router.post("/seek", response_model=PlaybackSnapshot)
async def seek(body: SeekRequest, player: PlaybackSession = Depends(get_player)):
    unwrap(await player.seek_to(body.position_ms))
    return snapshot(player)


@router.post("/next", response_model=PlaybackSnapshot)
async def next_track(player: PlaybackSession = Depends(listening_player)):
    unwrap(await player.skip_next())
    return snapshot(player)


@router.post("/previous", response_model=PlaybackSnapshot)
async def previous_track(player: PlaybackSession = Depends(listening_player)):
    unwrap(await player.skip_previous())
    return snapshot(player)


@router.put("/queue", response_model=PlaybackSnapshot, summary="Replace the queue")
async def set_queue(body: QueueRequest, player: PlaybackSession = Depends(listening_player)):
    unwrap(player.set_queue(body.tracks, body.start_index))
    if body.autoplay and player.state.queue:
        unwrap(await player.play_track(player.state.queue[player.state.current_index]))
    return snapshot(player)


@router.post(
    "/artists/{artist_id}",
    response_model=PlaybackSnapshot,
    summary="Queue an artist's tracks and play the first one",
)
async def play_artist(
    artist_id: str,
    player: PlaybackSession = Depends(listening_player),
    music: MusicService = Depends(get_music_service),
):
    artist = unwrap(await music.fetch_artist(artist_id))
    unwrap(player.set_queue(artist.tracks, 0))
    if artist.tracks:
        unwrap(await player.play_track(artist.tracks[0]))
    return snapshot(player)
