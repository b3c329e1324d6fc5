"""
Single playback session with a linear, non-wrapping queue.

The session owns at most one audio handle. ``play_track`` hands the previous
handle off synchronously before its first ``await`` and tags every load with a
generation number, so the most recent call wins and an older load that
finishes late releases its own handle instead of committing.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Set

from fanstream_backend.core.result import ErrorKind, Result
from fanstream_backend.models.music import Track
from fanstream_backend.playback.audio import AudioDriver, AudioHandle, PlaybackStatus

log = logging.getLogger(__name__)


@dataclass
class PlaybackState:
    current_track: Optional[Track] = None
    is_playing: bool = False
    is_loading: bool = False
    position: int = 0
    duration: int = 0
    queue: List[Track] = field(default_factory=list)
    current_index: int = -1


class TrackAccess(Protocol):
    """Decides how much of a track the listener may hear and records plays."""

    async def limit_ms(self, track: Track) -> Optional[int]:
        ...

    async def track_started(self, track: Track) -> None:
        ...


class PlaybackSession:
    def __init__(self, driver: AudioDriver, access: Optional[TrackAccess] = None):
        self.driver = driver
        self.access = access
        self.state = PlaybackState()
        self._handle: Optional[AudioHandle] = None
        self._generation = 0
        self._preview_limit_ms: Optional[int] = None
        self._tasks: Set[asyncio.Task] = set()

    @property
    def has_session(self) -> bool:
        return self._handle is not None

    async def _release(self, handle: AudioHandle) -> None:
        try:
            await handle.stop()
        except Exception:
            log.exception("Failed to stop audio handle")
        try:
            await handle.unload()
        except Exception:
            log.exception("Failed to unload audio handle")

    # ---------- transport ----------

    async def play_track(self, track: Track, preview_limit_ms: Optional[int] = None) -> Result[Track]:
        """Loads and starts ``track``. Without an explicit ``preview_limit_ms`` the
        limit comes from ``access``; every track started here counts as a play."""
        log.info("Playing track: %s", track.title)
        self._generation += 1
        generation = self._generation

        previous, self._handle = self._handle, None
        if previous is not None:
            await self._release(previous)

        self.state.is_loading = True
        self.state.current_track = track
        self.state.position = 0
        self.state.duration = 0

        if preview_limit_ms is None and self.access is not None:
            preview_limit_ms = await self.access.limit_ms(track)
            if generation != self._generation:
                return Result.failure(ErrorKind.SUPERSEDED, "A newer track was requested")
        try:
            handle = await self.driver.load(track.audio_url, autoplay=True, on_status=self._on_status)
        except Exception as e:
            log.error("Error playing track %s: %s", track.id, e)
            if generation == self._generation:
                self.state.is_loading = False
                self.state.is_playing = False
            return Result.failure(ErrorKind.RESOURCE_ACQUISITION_FAILED, f"Could not load audio: {e}")

        if generation != self._generation:
            log.debug("Load of %s superseded by a newer request", track.id)
            await self._release(handle)
            return Result.failure(ErrorKind.SUPERSEDED, "A newer track was requested")

        self._handle = handle
        self._preview_limit_ms = preview_limit_ms
        self.state.is_playing = True
        self.state.is_loading = False
        log.info("Track loaded and playing")
        if self.access is not None:
            await self.access.track_started(track)
        return Result.success(track)

    async def _drive(self, action: str, call) -> Optional[Result[None]]:
        """Runs a handle call; a failure result when the audio layer raises."""
        try:
            await call
        except Exception as e:
            log.error("Failed to %s: %s", action, e)
            return Result.failure(ErrorKind.RESOURCE_ACQUISITION_FAILED, f"Could not {action}: {e}")
        return None

    async def pause_track(self) -> Result[None]:
        if self._handle is None:
            return Result.success()
        failed = await self._drive("pause", self._handle.pause())
        if failed:
            return failed
        self.state.is_playing = False
        log.info("Track paused")
        return Result.success()

    async def resume_track(self) -> Result[None]:
        if self._handle is None:
            return Result.success()
        failed = await self._drive("resume", self._handle.play())
        if failed:
            return failed
        self.state.is_playing = True
        log.info("Track resumed")
        return Result.success()

    async def stop_track(self) -> Result[None]:
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            await self._release(handle)
        self.state.is_playing = False
        self.state.is_loading = False
        self.state.position = 0
        self.state.current_track = None
        log.info("Track stopped")
        return Result.success()

    async def seek_to(self, position_ms: int) -> Result[None]:
        if self._handle is None:
            return Result.success()
        failed = await self._drive("seek", self._handle.set_position(position_ms))
        if failed:
            return failed
        log.debug("Seeked to %s ms", position_ms)
        return Result.success()

    # ---------- queue ----------

    async def skip_next(self) -> Result[Optional[Track]]:
        """Plays the following queue entry; ``None`` at the end of the queue."""
        if self.state.current_index >= len(self.state.queue) - 1:
            return Result.success(None)
        self.state.current_index += 1
        result = await self.play_track(self.state.queue[self.state.current_index])
        log.info("Skipped to next track")
        return result

    async def skip_previous(self) -> Result[Optional[Track]]:
        if self.state.current_index <= 0:
            return Result.success(None)
        self.state.current_index -= 1
        result = await self.play_track(self.state.queue[self.state.current_index])
        log.info("Skipped to previous track")
        return result

    def set_queue(self, tracks: List[Track], start_index: int = 0) -> Result[None]:
        tracks = list(tracks)
        if not tracks:
            self.state.queue = []
            self.state.current_index = -1
            return Result.success()
        if not 0 <= start_index < len(tracks):
            return Result.failure(
                ErrorKind.VALIDATION_FAILED,
                f"start_index {start_index} outside queue of {len(tracks)}",
            )
        self.state.queue = tracks
        self.state.current_index = start_index
        log.info("Queue set with %d tracks", len(tracks))
        return Result.success()

    # ---------- status ----------

    def _on_status(self, handle: AudioHandle, status: PlaybackStatus) -> None:
        if handle is not self._handle or not status.is_loaded:
            return
        self.state.position = status.position_ms
        self.state.duration = status.duration_ms or 0
        self.state.is_playing = status.is_playing

        finished = status.did_just_finish and not status.is_looping
        limit = self._preview_limit_ms
        if not finished and limit is not None and status.position_ms >= limit:
            log.info("Preview limit reached at %s ms", status.position_ms)
            self._preview_limit_ms = None
            self._spawn(self._end_preview(handle))
            return
        if finished:
            self._spawn(self.skip_next())

    async def _end_preview(self, handle: AudioHandle) -> None:
        if handle is not self._handle:
            return
        await self._drive("pause at preview limit", handle.pause())
        self.state.is_playing = False
        await self.skip_next()

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def cleanup(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            await self._release(handle)
        self.state.current_track = None
        self.state.is_playing = False
        self.state.is_loading = False
        self.state.position = 0
        self.state.duration = 0
        log.info("Cleanup complete")
