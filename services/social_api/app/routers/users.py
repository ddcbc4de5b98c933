# services/social_api/app/routers/users.py
from fastapi import APIRouter, Body, Depends, Query
from typing import Optional

from core.config import logger as core_logger
from core.document_store import DocumentStore
from core.models import ApiResponse, FollowRequest, ResolutionReport, UpdateUser
from core.storage import FileStorage
from .. import crud
from ..dependencies import get_storage, get_store, success, to_http_exception

logger = core_logger.getChild("SocialAPI").getChild("UsersRouter")

router = APIRouter()


@router.get("", response_model=ApiResponse)
async def route_get_users(
    limit: Optional[int] = Query(None, gt=0, le=100),
    store: DocumentStore = Depends(get_store)
):
    try:
        users = await crud.get_users(store, limit)
    except Exception as e:
        raise to_http_exception(e, "list users")
    return success(users)


@router.get("/{user_id}", response_model=ApiResponse)
async def route_get_user(user_id: str, store: DocumentStore = Depends(get_store)):
    try:
        user = await crud.get_user_by_id(store, user_id)
    except Exception as e:
        raise to_http_exception(e, f"get user {user_id}")
    return success(user)


@router.patch("/{user_id}", response_model=ApiResponse)
async def route_update_user(
    user_id: str,
    store: DocumentStore = Depends(get_store),
    storage: FileStorage = Depends(get_storage),
    payload: UpdateUser = Body(...)
):
    try:
        user = await crud.update_user(store, storage, user_id, payload)
    except Exception as e:
        raise to_http_exception(e, f"update user {user_id}")
    return success(user, message="Profile updated")


@router.get("/{user_id}/posts", response_model=ApiResponse)
async def route_get_user_posts(user_id: str, store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        posts = await crud.get_user_posts(store, user_id, diagnostics)
    except Exception as e:
        raise to_http_exception(e, f"posts of user {user_id}")
    return success(posts, diagnostics)


@router.get("/{user_id}/liked", response_model=ApiResponse)
async def route_get_liked_posts(user_id: str, store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        posts = await crud.get_user_liked_posts(store, user_id, diagnostics)
    except Exception as e:
        raise to_http_exception(e, f"liked posts of user {user_id}")
    return success(posts, diagnostics)


@router.get("/{user_id}/saved", response_model=ApiResponse)
async def route_get_saved_posts(user_id: str, store: DocumentStore = Depends(get_store)):
    diagnostics = ResolutionReport()
    try:
        posts = await crud.get_saved_posts(store, user_id, diagnostics)
    except Exception as e:
        raise to_http_exception(e, f"saved posts of user {user_id}")
    return success(posts, diagnostics)


@router.post("/{user_id}/follow", response_model=ApiResponse)
async def route_follow_user(
    user_id: str,
    store: DocumentStore = Depends(get_store),
    payload: FollowRequest = Body(...)
):
    logger.info(f"Follow request: '{payload.current_user_id}' -> '{user_id}'")
    try:
        user = await crud.follow_user(store, payload.current_user_id, user_id)
    except Exception as e:
        raise to_http_exception(e, f"follow user {user_id}")
    return success(user)


@router.post("/{user_id}/unfollow", response_model=ApiResponse)
async def route_unfollow_user(
    user_id: str,
    store: DocumentStore = Depends(get_store),
    payload: FollowRequest = Body(...)
):
    logger.info(f"Unfollow request: '{payload.current_user_id}' -> '{user_id}'")
    try:
        user = await crud.unfollow_user(store, payload.current_user_id, user_id)
    except Exception as e:
        raise to_http_exception(e, f"unfollow user {user_id}")
    return success(user)
