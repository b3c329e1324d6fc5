# fanstream_backend/api/v1/posts.py
from typing import List

from fastapi import APIRouter, Depends, Response, status

from fanstream_backend.api.deps import current_user, get_comments_service, get_posts_service, unwrap
from fanstream_backend.models.post import (
    Comment,
    CommentRequest,
    CreatePostRequest,
    Post,
    UpdatePostRequest,
)
from fanstream_backend.services.comments_service import CommentsService
from fanstream_backend.services.posts_service import PostsService

router = APIRouter(prefix="")


@router.get("/feed", response_model=List[Post], summary="Feed for the calling user")
async def feed(response: Response, user_id: str = Depends(current_user),
               posts: PostsService = Depends(get_posts_service)):
    return unwrap(await posts.get_feed(user_id), response)


@router.post("/", response_model=Post, status_code=status.HTTP_201_CREATED)
async def create_post(body: CreatePostRequest, user_id: str = Depends(current_user),
                      posts: PostsService = Depends(get_posts_service)):
    return unwrap(await posts.create_post(user_id, body.image_url, body.caption))


@router.patch("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_post(post_id: str, body: UpdatePostRequest, user_id: str = Depends(current_user),
                      posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.update_post(post_id, user_id, caption=body.caption, image_url=body.image_url))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(post_id: str, user_id: str = Depends(current_user),
                      posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.delete_post(post_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like(post_id: str, user_id: str = Depends(current_user),
               posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.like_post(post_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def unlike(post_id: str, user_id: str = Depends(current_user),
                 posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.unlike_post(post_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{post_id}/save", status_code=status.HTTP_204_NO_CONTENT)
async def save(post_id: str, user_id: str = Depends(current_user),
               posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.save_post(post_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{post_id}/save", status_code=status.HTTP_204_NO_CONTENT)
async def unsave(post_id: str, user_id: str = Depends(current_user),
                 posts: PostsService = Depends(get_posts_service)):
    unwrap(await posts.unsave_post(post_id, user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ========================= Comments =========================

@router.get("/{post_id}/comments", response_model=List[Comment])
async def list_comments(post_id: str, response: Response,
                        comments: CommentsService = Depends(get_comments_service)):
    return unwrap(await comments.get_comments(post_id), response)


@router.post("/{post_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def add_comment(post_id: str, body: CommentRequest, user_id: str = Depends(current_user),
                      comments: CommentsService = Depends(get_comments_service)):
    return unwrap(await comments.add_comment(post_id, user_id, body.text))


@router.patch("/{post_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_comment(post_id: str, comment_id: str, body: CommentRequest,
                         user_id: str = Depends(current_user),
                         comments: CommentsService = Depends(get_comments_service)):
    unwrap(await comments.update_comment(comment_id, user_id, body.text))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{post_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(post_id: str, comment_id: str, user_id: str = Depends(current_user),
                         comments: CommentsService = Depends(get_comments_service)):
    unwrap(await comments.delete_comment(comment_id, user_id, post_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
