# services/social_api/app/routers/posts.py
from fastapi import APIRouter, Body, Depends, Query, status
from typing import Optional

from core.document_store import DocumentStore
from core.models import ApiResponse, LikeRequest, NewPost, ResolutionReport, UpdatePost, UserActionRequest
from core.storage import FileStorage
from core.config import logger as core_logger
from .. import crud
from ..dependencies import get_storage, get_store, success, to_http_exception

logger = core_logger.getChild("SocialAPI").getChild("PostsRouter")

router = APIRouter()


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def route_create_post(
    store: DocumentStore = Depends(get_store),
    storage: FileStorage = Depends(get_storage),
    payload: NewPost = Body(...)
):
    logger.info(f"Create post request from user '{payload.user_id}' with {len(payload.image_ids)} image(s)")
    try:
        post = await crud.create_post(store, storage, payload)
    except Exception as e:
        raise to_http_exception(e, "post creation")
    return success(post, message="Post created")


@router.get("", response_model=ApiResponse)
async def route_get_feed_page(
    cursor: Optional[str] = Query(None, description="ID of the last post on the previous page"),
    store: DocumentStore = Depends(get_store)
):
    diagnostics = ResolutionReport()
    try:
        page = await crud.get_infinite_posts(store, cursor, diagnostics)
    except Exception as e:
        raise to_http_exception(e, "feed page")
    return success(page, diagnostics)


@router.get("/recent", response_model=ApiResponse)
async def route_get_recent_posts(store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        posts = await crud.get_recent_posts(store, diagnostics)
    except Exception as e:
        raise to_http_exception(e, "recent posts")
    return success(posts, diagnostics)


@router.get("/search", response_model=ApiResponse)
async def route_search_posts(
    q: str = Query(..., description="Free-text caption search"),
    store: DocumentStore = Depends(get_store)
):
    logger.info(f"Search request: q='{q}'")
    diagnostics = ResolutionReport()
    try:
        posts = await crud.search_posts(store, q, diagnostics)
    except Exception as e:
        raise to_http_exception(e, "post search")
    return success(posts, diagnostics)


@router.delete("/saves/{save_id}", response_model=ApiResponse)
async def route_delete_saved_post(save_id: str, store: DocumentStore = Depends(get_store)):
    try:
        await crud.delete_saved_post(store, save_id)
    except Exception as e:
        raise to_http_exception(e, f"delete save {save_id}")
    return success(message="Save removed")


@router.get("/{post_id}", response_model=ApiResponse)
async def route_get_post(post_id: str, store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        post = await crud.get_post_by_id(store, post_id, diagnostics)
    except Exception as e:
        raise to_http_exception(e, f"get post {post_id}")
    return success(post, diagnostics)


@router.patch("/{post_id}", response_model=ApiResponse)
async def route_update_post(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    storage: FileStorage = Depends(get_storage),
    payload: UpdatePost = Body(...)
):
    try:
        post = await crud.update_post(store, storage, post_id, payload)
    except Exception as e:
        raise to_http_exception(e, f"update post {post_id}")
    return success(post, message="Post updated")


@router.delete("/{post_id}", response_model=ApiResponse)
async def route_delete_post(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    storage: FileStorage = Depends(get_storage)
):
    try:
        await crud.delete_post(store, storage, post_id)
    except Exception as e:
        raise to_http_exception(e, f"delete post {post_id}")
    return success(message="Post deleted")


@router.put("/{post_id}/likes", response_model=ApiResponse)
async def route_set_likes(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    payload: LikeRequest = Body(...)
):
    try:
        post = await crud.like_post(store, post_id, payload.likes)
    except Exception as e:
        raise to_http_exception(e, f"like post {post_id}")
    return success(post)


@router.post("/{post_id}/likes/toggle", response_model=ApiResponse)
async def route_toggle_like(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    payload: UserActionRequest = Body(...)
):
    try:
        post = await crud.toggle_like(store, post_id, payload.user_id)
    except Exception as e:
        raise to_http_exception(e, f"toggle like on post {post_id}")
    return success(post)


@router.post("/{post_id}/saves", response_model=ApiResponse)
async def route_save_post(
    post_id: str,
    store: DocumentStore = Depends(get_store),
    payload: UserActionRequest = Body(...)
):
    try:
        save = await crud.save_post(store, payload.user_id, post_id)
    except Exception as e:
        raise to_http_exception(e, f"save post {post_id}")
    return success(save, message="Post saved")


@router.get("/{post_id}/comments", response_model=ApiResponse)
async def route_get_post_comments(post_id: str, store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        comments = await crud.get_post_comments(store, post_id, diagnostics)
    except Exception as e:
        raise to_http_exception(e, f"comments for post {post_id}")
    return success(comments, diagnostics)
