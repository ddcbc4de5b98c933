# services/social_api/app/resolver.py
"""
Relationship resolution for documents read from the backend.

Posts, saves and comments hold references (`creator`, `post`, `user_id`) whose
stored shape varies between an ID string, a one-element list and an embedded
object. These functions replace them with the fetched documents before data
reaches clients. A reference that cannot be resolved is logged, recorded on
the optional ResolutionReport and left unresolved; nothing here raises a
backend error to the caller.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar, Union

from pydantic import ValidationError

from core.config import logger as core_logger
from core.document_store import DocumentStore, Query
from core.errors import BackendError, DocumentNotFoundError, MalformedReferenceError
from core.models import (
    Comment, FailureKind, MalformedReference, Post, ResolutionReport,
    ResolvedReference, SavedPost, User, parse_reference,
)
from core.supabase_client import COMMENTS_TABLE, POSTS_TABLE, SAVES_TABLE, USERS_TABLE

logger = core_logger.getChild("SocialAPI").getChild("Resolver")

PostInput = Union[Post, Dict[str, Any]]
DocumentModel = TypeVar("DocumentModel", Post, Comment)


def _failure_kind(error: Exception) -> FailureKind:
    if isinstance(error, DocumentNotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(error, MalformedReferenceError):
        return FailureKind.MALFORMED_REFERENCE
    if isinstance(error, ValidationError):
        return FailureKind.INVALID_DOCUMENT
    return FailureKind.TRANSIENT

def _report(diagnostics: Optional[ResolutionReport], error: Exception, field: str,
            document_id: Optional[str] = None, reference: Any = None) -> None:
    if diagnostics is not None:
        diagnostics.record(
            _failure_kind(error), field, str(error),
            document_id=document_id, reference=reference,
        )


def _read_document(model: Type[DocumentModel], document: Dict[str, Any],
                   diagnostics: Optional[ResolutionReport]) -> Optional[DocumentModel]:
    """Validates a stored row, recording and skipping rows that do not fit the model."""
    try:
        return model.model_validate(document)
    except ValidationError as e:
        document_id = document.get("id") or document.get("$id")
        document_id = None if document_id is None else str(document_id)
        logger.warning(f"[{document_id}] Skipping unreadable {model.__name__.lower()}: {e.error_count()} validation error(s).")
        if diagnostics is not None:
            diagnostics.record(FailureKind.INVALID_DOCUMENT, "document", str(e), document_id=document_id)
        return None


async def fetch_user(store: DocumentStore, user_id: str) -> User:
    document = await store.get_document(USERS_TABLE, user_id)
    return User.model_validate(document)


async def resolve_creator(post: PostInput, store: DocumentStore,
                          diagnostics: Optional[ResolutionReport] = None) -> Post:
    """
    Returns the post with `creator` resolved to a user.

    Already-resolved posts are returned unchanged without a fetch. If the
    reference is malformed or the fetch fails, the original post is returned
    with its reference untouched. A raw row that does not fit the Post model
    raises ValidationError, since there is no post to return.
    """
    if not isinstance(post, Post):
        post = Post.model_validate(post)
    job_prefix = f"[{post.id}]"
    reference = post.creator

    if isinstance(reference, ResolvedReference):
        return post
    if reference is None or isinstance(reference, MalformedReference):
        error = MalformedReferenceError(reference.raw if reference is not None else None)
        logger.warning(f"{job_prefix} Creator left unresolved: {error}")
        _report(diagnostics, error, "creator", post.id, error.raw)
        return post

    try:
        user = await fetch_user(store, reference.id)
    except (BackendError, ValidationError) as e:
        logger.warning(f"{job_prefix} Could not resolve creator '{reference.id}': {e}")
        _report(diagnostics, e, "creator", post.id, reference.id)
        return post

    logger.debug(f"{job_prefix} Resolved creator '{user.id}'.")
    return post.model_copy(update={"creator": ResolvedReference(user=user)})


async def resolve_creators_batch(posts: Sequence[PostInput], store: DocumentStore,
                                 diagnostics: Optional[ResolutionReport] = None) -> List[Post]:
    """
    Resolves every post's creator concurrently. Output order matches input order.

    Rows that do not fit the Post model are recorded and left out; they never
    fail the rest of the batch.
    """
    readable = [
        post if isinstance(post, Post) else _read_document(Post, post, diagnostics)
        for post in posts
    ]
    readable = [post for post in readable if post is not None]
    if not readable:
        return []
    resolved = await asyncio.gather(*(resolve_creator(post, store, diagnostics) for post in readable))
    unresolved = sum(1 for post in resolved if not post.creator_resolved)
    if unresolved:
        logger.info(f"Resolved creators for {len(resolved) - unresolved}/{len(resolved)} post(s).")
    return list(resolved)


async def _resolve_save(save_document: Dict[str, Any], store: DocumentStore,
                        diagnostics: Optional[ResolutionReport]) -> Optional[SavedPost]:
    save_id = save_document.get("id") or save_document.get("$id")
    job_prefix = f"[{save_id}]"
    raw_post = save_document.get("post")

    try:
        reference = parse_reference(raw_post)
        if isinstance(reference, MalformedReference):
            raise MalformedReferenceError(raw_post)
        post = Post.model_validate(await store.get_document(POSTS_TABLE, reference.id))
    except DocumentNotFoundError as e:
        logger.info(f"{job_prefix} Saved post no longer exists, dropping save: {e}")
        _report(diagnostics, e, "post", save_id, raw_post)
        return None
    except (MalformedReferenceError, BackendError, ValidationError) as e:
        logger.warning(f"{job_prefix} Could not load saved post: {e}")
        _report(diagnostics, e, "post", save_id, raw_post)
        return None

    post = await resolve_creator(post, store, diagnostics)
    return SavedPost(**dict(post), save_id=save_id)


async def resolve_saved_posts(user_id: str, store: DocumentStore,
                              diagnostics: Optional[ResolutionReport] = None) -> List[SavedPost]:
    """
    Lists the posts a user saved, most recent save first.

    Saves whose post cannot be loaded are dropped and recorded. This includes
    transient fetch failures, since there is no post data to return for them. When
    the same post was saved more than once, only the most recent save is kept.
    """
    job_prefix = f"[{user_id}]"
    try:
        saves = await store.list_documents(
            SAVES_TABLE, [Query.equal("user", user_id), Query.order_desc("created_at")]
        )
    except BackendError as e:
        logger.error(f"{job_prefix} Could not list saves: {e}")
        _report(diagnostics, e, "user", reference=user_id)
        return []

    entries = await asyncio.gather(
        *(_resolve_save(document, store, diagnostics) for document in saves.documents)
    )

    unique: Dict[str, SavedPost] = {}
    for entry in entries:
        if entry is not None and entry.id not in unique:
            unique[entry.id] = entry

    duplicates = sum(1 for entry in entries if entry is not None) - len(unique)
    if duplicates:
        logger.warning(f"{job_prefix} Dropped {duplicates} duplicate save(s).")
    logger.info(f"{job_prefix} Resolved {len(unique)} saved post(s) from {len(saves.documents)} save record(s).")
    return list(unique.values())


async def _attach_author(comment_document: Dict[str, Any], store: DocumentStore,
                         diagnostics: Optional[ResolutionReport]) -> Optional[Comment]:
    comment = _read_document(Comment, comment_document, diagnostics)
    if comment is None:
        return None
    raw_author = comment_document.get("user_id")

    reference = parse_reference(raw_author)
    if isinstance(reference, ResolvedReference):
        return comment.model_copy(update={"author": reference.user})

    try:
        if isinstance(reference, MalformedReference):
            raise MalformedReferenceError(raw_author)
        author = await fetch_user(store, reference.id)
    except (MalformedReferenceError, BackendError, ValidationError) as e:
        logger.warning(f"[{comment.id}] Comment author left unresolved: {e}")
        _report(diagnostics, e, "user_id", comment.id, raw_author)
        return comment

    return comment.model_copy(update={"author": author})


async def resolve_comment_authors(post_id: str, store: DocumentStore,
                                  diagnostics: Optional[ResolutionReport] = None) -> List[Comment]:
    """Lists a post's comments, newest first, each with its author attached when possible."""
    job_prefix = f"[{post_id}]"
    try:
        comments = await store.list_documents(
            COMMENTS_TABLE, [Query.equal("post_id", post_id), Query.order_desc("created_at")]
        )
    except BackendError as e:
        logger.error(f"{job_prefix} Could not list comments: {e}")
        _report(diagnostics, e, "post_id", reference=post_id)
        return []

    attached = await asyncio.gather(
        *(_attach_author(document, store, diagnostics) for document in comments.documents)
    )
    return [comment for comment in attached if comment is not None]
