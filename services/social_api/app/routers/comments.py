# services/social_api/app/routers/comments.py
from fastapi import APIRouter, Body, Depends, status

from core.document_store import DocumentStore
from core.models import ApiResponse, NewComment
from .. import crud
from ..dependencies import get_store, success, to_http_exception

router = APIRouter()


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def route_create_comment(
    store: DocumentStore = Depends(get_store),
    payload: NewComment = Body(...)
):
    try:
        comment = await crud.create_comment(store, payload)
    except Exception as e:
        raise to_http_exception(e, f"comment on post {payload.post_id}")
    return success(comment, message="Comment added")


@router.delete("/{comment_id}", response_model=ApiResponse)
async def route_delete_comment(comment_id: str, store: DocumentStore = Depends(get_store)):
    try:
        await crud.delete_comment(store, comment_id)
    except Exception as e:
        raise to_http_exception(e, f"delete comment {comment_id}")
    return success(message="Comment deleted")
