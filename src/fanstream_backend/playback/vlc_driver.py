"""libVLC-backed audio driver. Status is polled on the event loop."""

import asyncio
import logging
import shlex
import sys
from typing import List, Optional

from fanstream_backend.playback.audio import PlaybackStatus, StatusCallback

log = logging.getLogger(__name__)


def default_vlc_args(platform_name: Optional[str] = None) -> List[str]:
    platform_value = platform_name if platform_name is not None else sys.platform
    args = ["--no-video", "--quiet"]
    if str(platform_value).startswith("linux"):
        args.append("--no-xlib")
    return args


class VlcAudioHandle:
    """One libVLC media player; reports status every ``interval`` seconds."""

    def __init__(self, vlc_module, instance, uri: str, on_status: StatusCallback, interval: float):
        self._vlc = vlc_module
        self.instance = instance
        self.player = instance.media_player_new()
        self.media = instance.media_new(uri)
        self.player.set_media(self.media)
        self._on_status = on_status
        self._interval = interval
        self._poller: Optional[asyncio.Task] = None
        self._finished_reported = False

    def start_polling(self) -> None:
        if self._poller is None:
            self._poller = asyncio.get_running_loop().create_task(self._poll())

    async def _poll(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                status = self._status()
                self._on_status(self, status)
                if status.did_just_finish:
                    return
        except asyncio.CancelledError:
            pass
        except Exception:
            log.exception("VLC status polling failed")

    def _status(self) -> PlaybackStatus:
        state = self.player.get_state()
        ended = state == self._vlc.State.Ended
        just_finished = ended and not self._finished_reported
        if ended:
            self._finished_reported = True
        length = int(self.player.get_length() or 0)
        position = int(self.player.get_time() or 0)
        if ended and length:
            position = length
        return PlaybackStatus(
            is_loaded=state not in (self._vlc.State.Error, self._vlc.State.Stopped),
            position_ms=max(0, position),
            duration_ms=max(0, length),
            is_playing=bool(self.player.is_playing()),
            did_just_finish=just_finished,
            is_looping=False,
        )

    async def play(self) -> None:
        rc = int(self.player.play())
        if rc == -1:
            raise RuntimeError("VLC failed to start playback")
        self._finished_reported = False
        # polling stops at end of media; replaying needs it back
        if self._poller is not None and self._poller.done():
            self._poller = None
            self.start_polling()

    async def pause(self) -> None:
        self.player.set_pause(1)

    async def stop(self) -> None:
        self.player.stop()

    async def set_position(self, position_ms: int) -> None:
        self.player.set_time(int(position_ms))

    async def unload(self) -> None:
        if self._poller is not None:
            self._poller.cancel()
            self._poller = None
        try:
            self.player.stop()
        except Exception:
            log.debug("VLC stop during unload failed", exc_info=True)
        if self.media is not None:
            self.media.release()
            self.media = None
        self.player.release()


class VlcAudioDriver:
    def __init__(self, args: Optional[str] = None, status_interval_ms: int = 500, *, vlc_module=None):
        if vlc_module is None:
            import vlc as vlc_module
        self._vlc = vlc_module
        vlc_args = shlex.split(args) if args else default_vlc_args()
        self.instance = self._vlc.Instance(vlc_args)
        if self.instance is None:
            raise RuntimeError("libVLC could not be initialised")
        self.interval = status_interval_ms / 1000.0
        log.info("VLC audio driver ready (libvlc %s)", self._vlc.libvlc_get_version().decode())

    async def load(self, uri: str, *, autoplay: bool, on_status: StatusCallback) -> VlcAudioHandle:
        if not uri:
            raise ValueError("Track has no audio URL")
        handle = VlcAudioHandle(self._vlc, self.instance, uri, on_status, self.interval)
        try:
            if autoplay:
                await handle.play()
        except Exception:
            await handle.unload()
            raise
        handle.start_polling()
        return handle

    def release(self) -> None:
        self.instance.release()
