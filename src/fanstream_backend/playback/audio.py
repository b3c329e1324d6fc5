"""Audio resource contracts used by the playback session."""

from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol


@dataclass(frozen=True)
class PlaybackStatus:
    is_loaded: bool
    position_ms: int = 0
    duration_ms: int = 0
    is_playing: bool = False
    did_just_finish: bool = False
    is_looping: bool = False


StatusCallback = Callable[["AudioHandle", PlaybackStatus], None]


class AudioHandle(Protocol):
    """One loaded audio resource. Released by ``stop`` followed by ``unload``."""

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def unload(self) -> None: ...

    async def set_position(self, position_ms: int) -> None: ...


class AudioDriver(Protocol):
    def load(
        self,
        uri: str,
        *,
        autoplay: bool,
        on_status: StatusCallback,
    ) -> Awaitable[AudioHandle]: ...
