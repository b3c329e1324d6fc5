# fanstream_backend/api/v1/music.py
from typing import List

from fastapi import APIRouter, Depends, Response
from fastapi_cache.decorator import cache

from fanstream_backend.api.deps import current_user, get_music_service, unwrap, unwrap_fresh
from fanstream_backend.core.config import settings
from fanstream_backend.models.music import (
    Artist,
    FlagResponse,
    PurchaseRequest,
    Track,
    TrackWithArtist,
    VoteRequest,
    VoteResponse,
)
from fanstream_backend.services.music_service import MusicService

router = APIRouter(prefix="")


@router.get("/artists", response_model=List[Artist], summary="Artists by follower count")
@cache(expire=settings.cache_ttl)
async def list_artists(music: MusicService = Depends(get_music_service)):
    return unwrap_fresh(await music.fetch_artists())


@router.get("/artists/{artist_id}", response_model=Artist)
async def get_artist(artist_id: str, response: Response, music: MusicService = Depends(get_music_service)):
    return unwrap(await music.fetch_artist(artist_id), response)


@router.get("/tracks", response_model=List[TrackWithArtist], summary="Newest tracks")
async def list_tracks(response: Response, music: MusicService = Depends(get_music_service)):
    return unwrap(await music.fetch_all_tracks(), response)


@router.get("/tracks/hot", response_model=List[Track])
async def hot_tracks(response: Response, music: MusicService = Depends(get_music_service)):
    return unwrap(await music.fetch_hot_tracks(), response)


@router.get("/store", response_model=List[TrackWithArtist], summary="Tracks for sale")
async def tracks_for_sale(response: Response, music: MusicService = Depends(get_music_service)):
    return unwrap(await music.fetch_tracks_for_sale(), response)


@router.post("/tracks/{track_id}/vote", response_model=VoteResponse)
async def vote(
    track_id: str,
    body: VoteRequest,
    user_id: str = Depends(current_user),
    music: MusicService = Depends(get_music_service),
):
    active = unwrap(await music.vote_on_track(track_id, user_id, body.vote_type))
    return VoteResponse(track_id=track_id, active=active)


@router.put("/artists/{artist_id}/follow", response_model=FlagResponse)
async def follow(artist_id: str, user_id: str = Depends(current_user),
                 music: MusicService = Depends(get_music_service)):
    return FlagResponse(value=unwrap(await music.follow_artist(user_id, artist_id)))


@router.delete("/artists/{artist_id}/follow", response_model=FlagResponse)
async def unfollow(artist_id: str, user_id: str = Depends(current_user),
                   music: MusicService = Depends(get_music_service)):
    return FlagResponse(value=unwrap(await music.unfollow_artist(user_id, artist_id)))


@router.get("/artists/{artist_id}/follow", response_model=FlagResponse)
async def is_following(artist_id: str, user_id: str = Depends(current_user),
                       music: MusicService = Depends(get_music_service)):
    return FlagResponse(value=unwrap(await music.is_following_artist(user_id, artist_id)))


@router.get("/purchases", response_model=List[Track], summary="Tracks bought by the caller")
async def purchased_tracks(user_id: str = Depends(current_user),
                           music: MusicService = Depends(get_music_service)):
    return unwrap(await music.fetch_user_purchased_tracks(user_id))


@router.get("/purchases/{track_id}", response_model=FlagResponse)
async def has_purchased(track_id: str, user_id: str = Depends(current_user),
                        music: MusicService = Depends(get_music_service)):
    return FlagResponse(value=unwrap(await music.has_user_purchased_track(user_id, track_id)))


@router.post("/purchases/{track_id}", response_model=FlagResponse)
async def record_purchase(
    track_id: str,
    body: PurchaseRequest,
    user_id: str = Depends(current_user),
    music: MusicService = Depends(get_music_service),
):
    return FlagResponse(value=unwrap(await music.record_track_purchase(user_id, track_id, body.price_paid)))
