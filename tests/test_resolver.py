import pytest
import pytest_asyncio
from unittest.mock import AsyncMock

from core.document_store import DocumentList, DocumentStore, Query
from core.errors import DocumentNotFoundError, TransientBackendError
from core.models import (
    FailureKind, MalformedReference, Post, ResolutionReport,
    ResolvedReference, UnresolvedReference,
)
from core.supabase_client import COMMENTS_TABLE, POSTS_TABLE, SAVES_TABLE, USERS_TABLE
from services.social_api.app import resolver

USERS = {
    f"u{i}": {"id": f"u{i}", "name": f"User {i}", "username": f"user{i}", "followers": "[]"}
    for i in range(1, 6)
}


def make_store(users=None, posts=None, failing_users=()):
    """AsyncMock store whose get_document reads from in-memory tables."""
    tables = {USERS_TABLE: dict(users or {}), POSTS_TABLE: dict(posts or {})}
    store = AsyncMock(spec=DocumentStore)

    async def get_document(collection, document_id):
        if collection == USERS_TABLE and document_id in failing_users:
            raise TransientBackendError(f"Simulated network error for {document_id}")
        try:
            return tables[collection][document_id]
        except KeyError:
            raise DocumentNotFoundError(collection, document_id)

    store.get_document.side_effect = get_document
    return store


@pytest_asyncio.fixture
async def store():
    return make_store(users=USERS)


# --- resolve_creator ---

@pytest.mark.asyncio
@pytest.mark.parametrize("creator", ["u1", ["u1"], {"$id": "u1"}, {"id": "u1", "username": "user1"}])
async def test_resolve_creator_every_reference_shape_yields_same_user(creator, store):
    direct = await resolver.fetch_user(store, "u1")

    post = await resolver.resolve_creator({"id": "p1", "creator": creator}, store)

    assert isinstance(post.creator, ResolvedReference)
    assert post.creator.user == direct
    assert post.id == "p1"

@pytest.mark.asyncio
async def test_resolve_creator_already_resolved_is_noop(store):
    post = Post.model_validate({"id": "p1", "creator": {"$id": "u1", "name": "Embedded Name"}})

    result = await resolver.resolve_creator(post, store)
    again = await resolver.resolve_creator(result, store)

    assert result is post
    assert again is post
    assert post.creator.user.name == "Embedded Name"
    store.get_document.assert_not_awaited()

@pytest.mark.asyncio
async def test_resolve_creator_missing_user_leaves_reference_unresolved(store):
    report = ResolutionReport()

    post = await resolver.resolve_creator({"id": "p1", "creator": ["deleted"]}, store, report)

    assert post.creator == UnresolvedReference(id="deleted")
    assert len(report.failures) == 1
    failure = report.failures[0]
    assert failure.kind == FailureKind.NOT_FOUND
    assert failure.document_id == "p1"
    assert failure.field == "creator"
    assert failure.reference == "deleted"

@pytest.mark.asyncio
async def test_resolve_creator_malformed_reference_untouched(store):
    report = ResolutionReport()

    post = await resolver.resolve_creator({"id": "p1", "creator": []}, store, report)

    assert post.creator == MalformedReference(raw=[])
    assert report.failures[0].kind == FailureKind.MALFORMED_REFERENCE
    store.get_document.assert_not_awaited()

@pytest.mark.asyncio
async def test_resolve_creator_transient_failure_is_swallowed():
    store = make_store(users=USERS, failing_users={"u1"})
    report = ResolutionReport()

    post = await resolver.resolve_creator({"id": "p1", "creator": "u1"}, store, report)

    assert not post.creator_resolved
    assert report.failures[0].kind == FailureKind.TRANSIENT

@pytest.mark.asyncio
async def test_resolve_creator_without_report_only_logs(store):
    post = await resolver.resolve_creator({"id": "p1", "creator": "nobody"}, store)
    assert post.creator == UnresolvedReference(id="nobody")


# --- resolve_creators_batch ---

@pytest.mark.asyncio
async def test_batch_keeps_order_and_isolates_failure():
    store = make_store(users=USERS, failing_users={"u3"})
    posts = [{"id": f"p{i}", "creator": f"u{i}"} for i in range(1, 6)]
    report = ResolutionReport()

    resolved = await resolver.resolve_creators_batch(posts, store, report)

    assert [p.id for p in resolved] == ["p1", "p2", "p3", "p4", "p5"]
    assert [p.creator_resolved for p in resolved] == [True, True, False, True, True]
    assert resolved[2].creator == UnresolvedReference(id="u3")
    assert [p.creator.user.id for i, p in enumerate(resolved) if i != 2] == ["u1", "u2", "u4", "u5"]
    assert len(report.failures) == 1

@pytest.mark.asyncio
async def test_batch_empty_input(store):
    assert await resolver.resolve_creators_batch([], store) == []


# --- resolve_saved_posts ---

@pytest.mark.asyncio
async def test_saved_posts_most_recent_save_wins():
    store = make_store(users=USERS, posts={
        "p1": {"id": "p1", "caption": "beach", "creator": ["u2"]},
        "p2": {"id": "p2", "caption": "hills", "creator": "u3"},
    })
    store.list_documents.return_value = DocumentList(total=3, documents=[
        {"id": "s3", "user": "u1", "post": "p1", "created_at": "2024-03-03T10:00:00+00:00"},
        {"id": "s2", "user": "u1", "post": {"$id": "p2"}, "created_at": "2024-03-02T10:00:00+00:00"},
        {"id": "s1", "user": "u1", "post": ["p1"], "created_at": "2024-03-01T10:00:00+00:00"},
    ])

    saved = await resolver.resolve_saved_posts("u1", store)

    store.list_documents.assert_awaited_once_with(
        SAVES_TABLE, [Query.equal("user", "u1"), Query.order_desc("created_at")]
    )
    assert [(s.id, s.save_id) for s in saved] == [("p1", "s3"), ("p2", "s2")]
    assert all(s.creator_resolved for s in saved)
    assert saved[0].creator.user.id == "u2"

@pytest.mark.asyncio
async def test_saved_posts_drops_deleted_and_malformed_targets():
    store = make_store(users=USERS, posts={"p1": {"id": "p1", "creator": "u1"}})
    store.list_documents.return_value = DocumentList(total=3, documents=[
        {"id": "s3", "user": "u1", "post": "gone"},
        {"id": "s2", "user": "u1", "post": []},
        {"id": "s1", "user": "u1", "post": "p1"},
    ])
    report = ResolutionReport()

    saved = await resolver.resolve_saved_posts("u1", store, report)

    assert [s.save_id for s in saved] == ["s1"]
    kinds = sorted(f.kind.value for f in report.failures)
    assert kinds == ["malformed_reference", "not_found"]

@pytest.mark.asyncio
async def test_saved_posts_with_unresolvable_creator_is_kept():
    store = make_store(users=USERS, posts={"p1": {"id": "p1", "creator": "ghost"}})
    store.list_documents.return_value = DocumentList(documents=[{"id": "s1", "user": "u1", "post": "p1"}])

    saved = await resolver.resolve_saved_posts("u1", store)

    assert len(saved) == 1
    assert saved[0].creator == UnresolvedReference(id="ghost")

@pytest.mark.asyncio
async def test_saved_posts_zero_saves_returns_empty_list(store):
    store.list_documents.return_value = DocumentList(total=0, documents=[])
    assert await resolver.resolve_saved_posts("u1", store) == []

@pytest.mark.asyncio
async def test_saved_posts_listing_failure_degrades_to_empty(store):
    store.list_documents.side_effect = TransientBackendError("Simulated outage")
    report = ResolutionReport()

    assert await resolver.resolve_saved_posts("u1", store, report) == []
    assert report.failures[0].kind == FailureKind.TRANSIENT


# --- resolve_comment_authors ---

@pytest.mark.asyncio
async def test_comment_authors_attached_and_unresolved_kept(store):
    store.list_documents.return_value = DocumentList(total=3, documents=[
        {"id": "c3", "post_id": "p1", "user_id": "u2", "comment_text": "newest"},
        {"id": "c2", "post_id": "p1", "user_id": "ghost", "comment_text": "orphan"},
        {"id": "c1", "post_id": "p1", "user_id": ["u1"], "comment_text": "oldest"},
    ])
    report = ResolutionReport()

    comments = await resolver.resolve_comment_authors("p1", store, report)

    store.list_documents.assert_awaited_once_with(
        COMMENTS_TABLE, [Query.equal("post_id", "p1"), Query.order_desc("created_at")]
    )
    assert [c.id for c in comments] == ["c3", "c2", "c1"]
    assert comments[0].author.name == "User 2"
    assert comments[1].author is None
    assert comments[2].author.id == "u1"
    assert [f.document_id for f in report.failures] == ["c2"]

@pytest.mark.asyncio
async def test_comment_with_embedded_author_skips_fetch(store):
    store.list_documents.return_value = DocumentList(documents=[
        {"id": "c1", "post_id": "p1", "user_id": {"$id": "u9", "name": "Inline"}, "comment_text": "hi"},
    ])

    comments = await resolver.resolve_comment_authors("p1", store)

    assert comments[0].author.name == "Inline"
    store.get_document.assert_not_awaited()

@pytest.mark.asyncio
async def test_saved_posts_transient_post_fetch_drops_save_and_records_it():
    store = make_store(users=USERS, posts={"p1": {"id": "p1", "creator": "u1"}})
    store.get_document.side_effect = TransientBackendError("Simulated network error")
    store.list_documents.return_value = DocumentList(documents=[{"id": "s1", "user": "u1", "post": "p1"}])
    report = ResolutionReport()

    assert await resolver.resolve_saved_posts("u1", store, report) == []
    assert report.failures[0].kind == FailureKind.TRANSIENT
    assert report.failures[0].document_id == "s1"


# --- unreadable rows ---

@pytest.mark.asyncio
async def test_batch_skips_unreadable_post_without_failing_others(store):
    posts = [{"id": f"p{i}", "creator": f"u{i}"} for i in range(1, 6)]
    posts[2]["posted_at"] = "not a timestamp"
    report = ResolutionReport()

    resolved = await resolver.resolve_creators_batch(posts, store, report)

    assert [p.id for p in resolved] == ["p1", "p2", "p4", "p5"]
    assert all(p.creator_resolved for p in resolved)
    assert [(f.kind, f.document_id) for f in report.failures] == [(FailureKind.INVALID_DOCUMENT, "p3")]

@pytest.mark.asyncio
async def test_batch_accepts_null_is_active(store):
    posts = [{"id": f"p{i}", "creator": f"u{i}", "is_active": None if i == 3 else True} for i in range(1, 6)]

    resolved = await resolver.resolve_creators_batch(posts, store)

    assert len(resolved) == 5
    assert resolved[2].is_active is True

@pytest.mark.asyncio
async def test_comments_skip_unreadable_row_and_accept_null_text(store):
    store.list_documents.return_value = DocumentList(documents=[
        {"id": "c3", "post_id": "p1", "user_id": "u1", "comment_text": None},
        {"id": "c2", "post_id": "p1", "user_id": "u2", "comment_text": "ok", "created_at": "yesterday-ish"},
        {"id": "c1", "post_id": "p1", "user_id": "u3", "comment_text": "first"},
    ])
    report = ResolutionReport()

    comments = await resolver.resolve_comment_authors("p1", store, report)

    assert [c.id for c in comments] == ["c3", "c1"]
    assert comments[0].comment_text == ""
    assert comments[0].author.id == "u1"
    assert [(f.kind, f.document_id) for f in report.failures] == [(FailureKind.INVALID_DOCUMENT, "c2")]
