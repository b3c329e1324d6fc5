# fanstream_backend/models/playback.py
from typing import List, Optional

from pydantic import BaseModel, Field

from fanstream_backend.models.music import Track


class PlaybackSnapshot(BaseModel):
    current_track: Optional[Track] = None
    is_playing: bool = False
    is_loading: bool = False
    position: int = 0
    duration: int = 0
    queue: List[Track] = Field(default_factory=list)
    current_index: int = -1


class PlayRequest(BaseModel):
    track: Track


class SeekRequest(BaseModel):
    position_ms: int


class QueueRequest(BaseModel):
    tracks: List[Track]
    start_index: int = 0
    autoplay: bool = False
