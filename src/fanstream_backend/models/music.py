# fanstream_backend/models/music.py
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

DEFAULT_SNIPPET_SECONDS = 30
SOCIAL_NETWORKS = ("instagram", "twitter", "tiktok", "twitch", "youtube", "kick", "spotify")


def _price(value: Any) -> Optional[float]:
    if value in (None, "", 0, "0"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class Track(BaseModel):
    id: str
    artist_id: str
    title: str
    album_id: Optional[str] = None
    cover_art: str = ""
    audio_url: str
    duration: int = 0
    price: Optional[float] = None
    is_snippet_only: bool = False
    snippet_duration: Optional[int] = None
    play_count: int = 0
    hot_votes: int = 0
    not_votes: int = 0
    purchase_count: int = 0
    is_hot: Optional[bool] = None
    created_at: Optional[str] = None

    @property
    def preview_seconds(self) -> int:
        return self.snippet_duration or DEFAULT_SNIPPET_SECONDS

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Track":
        return cls(**cls._row_fields(row))

    @staticmethod
    def _row_fields(row: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "artist_id": row.get("artist_id") or "",
            "title": row.get("title") or "",
            "album_id": row.get("album_id") or None,
            "cover_art": row.get("cover_art") or "",
            "audio_url": row.get("audio_url") or "",
            "duration": row.get("duration_seconds") or 0,
            "price": _price(row.get("price")),
            "is_snippet_only": bool(row.get("is_snippet_only")),
            "snippet_duration": row.get("snippet_duration_seconds"),
            "play_count": row.get("play_count") or 0,
            "hot_votes": row.get("hot_votes") or 0,
            "not_votes": row.get("not_votes") or 0,
            "purchase_count": row.get("purchase_count") or 0,
            "is_hot": row.get("is_hot"),
            "created_at": row.get("created_at"),
        }


class TrackWithArtist(Track):
    artist_name: str = "Unknown Artist"
    artist_avatar: str = ""

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TrackWithArtist":
        artist = row.get("artists") or {}
        name = artist.get("stage_name") or artist.get("name") or "Unknown Artist"
        return cls(
            **cls._row_fields(row),
            artist_name=name,
            artist_avatar=artist.get("avatar") or "",
        )


class Album(BaseModel):
    id: str
    artist_id: str
    title: str
    cover_art: str = ""
    track_ids: List[str] = Field(default_factory=list)
    price: Optional[float] = None
    release_date: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Album":
        return cls(
            id=row["id"],
            artist_id=row.get("artist_id") or "",
            title=row.get("title") or "",
            cover_art=row.get("cover_art") or "",
            price=_price(row.get("price")),
            release_date=row.get("release_date"),
            description=row.get("description"),
        )


class Artist(BaseModel):
    id: str
    name: str
    stage_name: Optional[str] = None
    email: Optional[str] = None
    avatar: str = ""
    header_images: List[str] = Field(default_factory=list)
    bio: str = ""
    genre: Optional[str] = None
    social_links: Dict[str, str] = Field(default_factory=dict)
    follower_count: int = 0
    referral_code: str = ""
    is_verified: Optional[bool] = None
    tracks: List[Track] = Field(default_factory=list)
    albums: List[Album] = Field(default_factory=list)
    total_plays: int = 0
    total_sales: int = 0
    hot_status: Optional[bool] = None
    hot_status_date: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Artist":
        headers = sorted(
            row.get("artist_header_images") or [],
            key=lambda h: h.get("sort_order") or 0,
        )
        links_rows = row.get("artist_social_links") or []
        links = links_rows[0] if links_rows else {}
        return cls(
            id=row["id"],
            name=row.get("name") or "",
            stage_name=row.get("stage_name"),
            email=row.get("email"),
            avatar=row.get("avatar") or "",
            header_images=[h.get("image_url") for h in headers if h.get("image_url")],
            bio=row.get("bio") or "",
            genre=row.get("genre"),
            social_links={net: links.get(net) or "" for net in SOCIAL_NETWORKS},
            follower_count=row.get("follower_count") or 0,
            referral_code=row.get("referral_code") or "",
            is_verified=row.get("is_verified"),
            tracks=[Track.from_row(t) for t in row.get("tracks") or []],
            albums=[Album.from_row(a) for a in row.get("albums") or []],
            total_plays=row.get("total_plays") or 0,
            total_sales=row.get("total_sales") or 0,
            hot_status=row.get("hot_status"),
            hot_status_date=row.get("hot_status_date"),
        )


class VoteRequest(BaseModel):
    vote_type: str


class VoteResponse(BaseModel):
    track_id: str
    active: bool


class PurchaseRequest(BaseModel):
    price_paid: float


class FlagResponse(BaseModel):
    value: bool
