# services/social_api/app/crud.py
import asyncio
import datetime
from typing import List, Optional, Sequence

from core.config import settings, logger as core_logger
from core.document_store import DocumentStore, Query
from core.errors import BackendError
from core.models import (
    Comment, NewComment, NewPost, Post, PostPage, ResolutionReport,
    Save, SavedPost, UpdatePost, UpdateUser, User,
)
from core.storage import FileStorage
from core.supabase_client import COMMENTS_TABLE, POSTS_TABLE, SAVES_TABLE, USERS_TABLE
from core.utils import parse_tags, toggle_id
from . import resolver

# Use a child logger
logger = core_logger.getChild("SocialAPI").getChild("CRUD")


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()

async def _delete_files(storage: FileStorage, file_ids: Sequence[str]) -> None:
    """Deletes files independently; a failed delete is logged and skipped."""
    file_ids = [file_id for file_id in file_ids if file_id]
    if not file_ids:
        return
    results = await asyncio.gather(*(storage.delete_file(f) for f in file_ids), return_exceptions=True)
    for file_id, result in zip(file_ids, results):
        if isinstance(result, BaseException):
            logger.warning(f"[{file_id}] Image left in storage: {result}")

def _file_urls(storage: FileStorage, file_ids: Sequence[str]) -> List[str]:
    return [storage.get_file_url(file_id) for file_id in file_ids]


# --- Posts ---

async def create_post(store: DocumentStore, storage: FileStorage, new_post: NewPost) -> Post:
    """Creates a post from images the client already uploaded to storage."""
    job_prefix = f"[{new_post.user_id}]"
    try:
        image_urls = _file_urls(storage, new_post.image_ids)
    except ValueError:
        await _delete_files(storage, new_post.image_ids)
        raise

    now = _now_iso()
    try:
        document = await store.create_document(POSTS_TABLE, {
            "creator": new_post.user_id,
            "caption": new_post.caption,
            "image_urls": image_urls,
            "image_ids": list(new_post.image_ids),
            "tags": parse_tags(new_post.tags),
            "location": new_post.location,
            "is_active": True,
            "posted_at": now,
            "updated_at": now,
            "likes": [],
        })
    except BackendError:
        logger.error(f"{job_prefix} Post creation failed, removing {len(new_post.image_ids)} uploaded image(s).")
        await _delete_files(storage, new_post.image_ids)
        raise

    logger.info(f"{job_prefix} Created post '{document.get('id')}'.")
    return await resolver.resolve_creator(document, store)

async def update_post(store: DocumentStore, storage: FileStorage, post_id: str, update: UpdatePost) -> Post:
    """Edits a post. Replaced images are deleted only once the update succeeded."""
    job_prefix = f"[{post_id}]"
    current = Post.model_validate(await store.get_document(POSTS_TABLE, post_id))

    data = {}
    if update.caption is not None:
        data["caption"] = update.caption
    if update.tags is not None:
        data["tags"] = parse_tags(update.tags)
    if update.location is not None:
        data["location"] = update.location

    new_image_ids = list(update.image_ids or [])
    if new_image_ids:
        try:
            data["image_urls"] = _file_urls(storage, new_image_ids)
        except ValueError:
            await _delete_files(storage, new_image_ids)
            raise
        data["image_ids"] = new_image_ids

    if not data:
        logger.info(f"{job_prefix} Nothing to update.")
        return await resolver.resolve_creator(current, store)
    # Edits move the post up the most-recently-updated feed
    data["updated_at"] = _now_iso()

    try:
        updated = await store.update_document(POSTS_TABLE, post_id, data)
    except BackendError:
        if new_image_ids:
            await _delete_files(storage, new_image_ids)
        raise

    if new_image_ids:
        await _delete_files(storage, [i for i in current.image_ids if i not in new_image_ids])
    return await resolver.resolve_creator(updated, store)

async def delete_post(store: DocumentStore, storage: FileStorage, post_id: str) -> None:
    """Deletes the post document, then each of its images."""
    post = Post.model_validate(await store.get_document(POSTS_TABLE, post_id))
    await store.delete_document(POSTS_TABLE, post_id)
    await _delete_files(storage, post.image_ids)
    logger.info(f"[{post_id}] Post deleted with {len(post.image_ids)} image(s).")

async def get_post_by_id(store: DocumentStore, post_id: str,
                         diagnostics: Optional[ResolutionReport] = None) -> Post:
    document = await store.get_document(POSTS_TABLE, post_id)
    return await resolver.resolve_creator(document, store, diagnostics)

async def _list_posts(store: DocumentStore, queries: List[Query],
                      diagnostics: Optional[ResolutionReport]) -> List[Post]:
    result = await store.list_documents(POSTS_TABLE, queries)
    return await resolver.resolve_creators_batch(result.documents, store, diagnostics)

async def get_infinite_posts(store: DocumentStore, cursor: Optional[str] = None,
                             diagnostics: Optional[ResolutionReport] = None) -> PostPage:
    """One feed page, most recently updated first. `cursor` is the last post ID of the previous page."""
    page_size = settings.INFINITE_POSTS_PAGE_SIZE
    queries = [Query.order_desc("updated_at"), Query.limit(page_size)]
    if cursor:
        queries.append(Query.cursor_after(cursor))

    result = await store.list_documents(POSTS_TABLE, queries)
    posts = await resolver.resolve_creators_batch(result.documents, store, diagnostics)
    # Rows skipped as unreadable still count toward the page
    next_cursor = result.documents[-1].get("id") if len(result.documents) == page_size else None
    return PostPage(documents=posts, total=result.total, next_cursor=next_cursor)

async def search_posts(store: DocumentStore, term: str,
                       diagnostics: Optional[ResolutionReport] = None) -> List[Post]:
    """Full-text search over captions."""
    if not term or not term.strip():
        return []
    return await _list_posts(store, [Query.search("caption", term.strip())], diagnostics)

async def get_recent_posts(store: DocumentStore,
                           diagnostics: Optional[ResolutionReport] = None) -> List[Post]:
    return await _list_posts(
        store, [Query.order_desc("created_at"), Query.limit(settings.RECENT_POSTS_LIMIT)], diagnostics
    )

async def get_user_posts(store: DocumentStore, user_id: str,
                         diagnostics: Optional[ResolutionReport] = None) -> List[Post]:
    return await _list_posts(
        store, [Query.equal("creator", user_id), Query.order_desc("created_at")], diagnostics
    )

async def get_user_liked_posts(store: DocumentStore, user_id: str,
                               diagnostics: Optional[ResolutionReport] = None) -> List[Post]:
    return await _list_posts(
        store, [Query.contains("likes", [user_id]), Query.order_desc("created_at")], diagnostics
    )


# --- Likes ---

async def like_post(store: DocumentStore, post_id: str, likes: List[str]) -> Post:
    """Stores the given like list as-is."""
    updated = await store.update_document(POSTS_TABLE, post_id, {"likes": likes})
    return Post.model_validate(updated)

async def toggle_like(store: DocumentStore, post_id: str, user_id: str) -> Post:
    """Adds the user's like, or removes it if already present."""
    post = Post.model_validate(await store.get_document(POSTS_TABLE, post_id))
    return await like_post(store, post_id, toggle_id(post.likes, user_id))


# --- Saves ---

async def save_post(store: DocumentStore, user_id: str, post_id: str) -> Save:
    """Bookmarks a post, returning the existing Save if the user already saved it."""
    job_prefix = f"[{user_id}]"
    existing = await store.list_documents(
        SAVES_TABLE, [Query.equal("user", user_id), Query.equal("post", post_id), Query.limit(1)]
    )
    if existing.documents:
        logger.info(f"{job_prefix} Post '{post_id}' already saved.")
        return Save.model_validate(existing.documents[0])

    created = await store.create_document(SAVES_TABLE, {"user": user_id, "post": post_id})
    return Save.model_validate(created)

async def delete_saved_post(store: DocumentStore, save_id: str) -> None:
    await store.delete_document(SAVES_TABLE, save_id)

async def get_saved_posts(store: DocumentStore, user_id: str,
                          diagnostics: Optional[ResolutionReport] = None) -> List[SavedPost]:
    return await resolver.resolve_saved_posts(user_id, store, diagnostics)


# --- Users ---

async def get_users(store: DocumentStore, limit: Optional[int] = None) -> List[User]:
    queries = [Query.order_desc("created_at")]
    if limit:
        queries.append(Query.limit(limit))
    result = await store.list_documents(USERS_TABLE, queries)
    return [User.model_validate(document) for document in result.documents]

async def get_user_by_id(store: DocumentStore, user_id: str) -> User:
    return await resolver.fetch_user(store, user_id)

async def update_user(store: DocumentStore, storage: FileStorage, user_id: str, update: UpdateUser) -> User:
    """Edits a profile. A replaced avatar is deleted only once the update succeeded."""
    current = await resolver.fetch_user(store, user_id)

    data = {}
    if update.name is not None:
        data["name"] = update.name
    if update.bio is not None:
        data["bio"] = update.bio
    if update.image_id:
        try:
            data["image_url"] = storage.get_file_url(update.image_id)
        except ValueError:
            await _delete_files(storage, [update.image_id])
            raise
        data["image_id"] = update.image_id

    if not data:
        return current

    try:
        updated = await store.update_document(USERS_TABLE, user_id, data)
    except BackendError:
        if update.image_id:
            await _delete_files(storage, [update.image_id])
        raise

    if update.image_id and current.image_id and current.image_id != update.image_id:
        await _delete_files(storage, [current.image_id])
    return User.model_validate(updated)

async def follow_user(store: DocumentStore, current_user_id: str, target_user_id: str) -> User:
    """Adds the follow on both users. Returns the updated target user."""
    if current_user_id == target_user_id:
        raise ValueError("Users cannot follow themselves.")
    current, target = await asyncio.gather(
        resolver.fetch_user(store, current_user_id),
        resolver.fetch_user(store, target_user_id),
    )

    if target_user_id not in current.following:
        await store.update_document(USERS_TABLE, current_user_id, {"following": [*current.following, target_user_id]})
    followers = target.followers if current_user_id in target.followers else [*target.followers, current_user_id]
    updated = await store.update_document(USERS_TABLE, target_user_id, {"followers": followers})

    logger.info(f"[{current_user_id}] Now following '{target_user_id}'.")
    return User.model_validate(updated)

async def unfollow_user(store: DocumentStore, current_user_id: str, target_user_id: str) -> User:
    """Removes the follow from both users. Returns the updated target user."""
    current, target = await asyncio.gather(
        resolver.fetch_user(store, current_user_id),
        resolver.fetch_user(store, target_user_id),
    )

    following = [i for i in current.following if i != target_user_id]
    await store.update_document(USERS_TABLE, current_user_id, {"following": following})
    followers = [i for i in target.followers if i != current_user_id]
    updated = await store.update_document(USERS_TABLE, target_user_id, {"followers": followers})

    logger.info(f"[{current_user_id}] Unfollowed '{target_user_id}'.")
    return User.model_validate(updated)


# --- Comments ---

async def create_comment(store: DocumentStore, new_comment: NewComment) -> Comment:
    created = await store.create_document(COMMENTS_TABLE, {
        "comment_text": new_comment.comment_text,
        "user_id": new_comment.user_id,
        "post_id": new_comment.post_id,
    })
    return Comment.model_validate(created)

async def get_post_comments(store: DocumentStore, post_id: str,
                            diagnostics: Optional[ResolutionReport] = None) -> List[Comment]:
    return await resolver.resolve_comment_authors(post_id, store, diagnostics)

async def delete_comment(store: DocumentStore, comment_id: str) -> None:
    await store.delete_document(COMMENTS_TABLE, comment_id)
