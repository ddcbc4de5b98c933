import pytest

from core.errors import MalformedReferenceError
from core.models import (
    Comment, MalformedReference, Post, ResolvedReference, Save, SavedPost,
    UnresolvedReference, User, parse_reference, reference_id,
)

ADA = {"$id": "u1", "name": "Ada", "username": "ada"}


@pytest.mark.parametrize("raw", ["u1", ["u1"], ("u1",), {"$id": "u1"}, {"id": "u1"}])
def test_parse_reference_unresolved_shapes(raw):
    reference = parse_reference(raw)
    assert isinstance(reference, UnresolvedReference)
    assert reference.id == "u1"

def test_parse_reference_embedded_user_is_resolved():
    reference = parse_reference(ADA)
    assert isinstance(reference, ResolvedReference)
    assert reference.id == "u1"
    assert reference.user.name == "Ada"

def test_parse_reference_list_holding_embedded_user():
    reference = parse_reference([ADA])
    assert isinstance(reference, ResolvedReference)

@pytest.mark.parametrize("raw", [[], "", "   ", 42, {"name": "No Id"}, [[]], [None]])
def test_parse_reference_malformed_keeps_raw_value(raw):
    reference = parse_reference(raw)
    assert isinstance(reference, MalformedReference)
    assert reference.raw == raw

def test_parse_reference_accepts_serialized_variants():
    dumped = ResolvedReference(user=User.model_validate(ADA)).model_dump()
    reference = parse_reference(dumped)
    assert isinstance(reference, ResolvedReference)
    assert reference.user.id == "u1"

def test_reference_id_raises_for_malformed():
    assert reference_id(["p1"]) == "p1"
    with pytest.raises(MalformedReferenceError):
        reference_id({"caption": "no id"})


def test_user_decodes_follow_lists_from_json_text():
    user = User.model_validate({"id": "u1", "followers": '["u2", "u3", "u2"]', "following": ["u4"]})
    assert user.followers == ["u2", "u3"]
    assert user.following == ["u4"]

def test_user_missing_follow_lists_default_to_empty():
    user = User.model_validate({"id": "u1", "followers": None})
    assert user.followers == []
    assert user.following == []


def test_post_parses_creator_and_null_lists():
    post = Post.model_validate({"$id": "p1", "creator": ["u1"], "tags": None, "likes": None})
    assert post.creator == UnresolvedReference(id="u1")
    assert post.tags == []
    assert post.likes == []
    assert not post.creator_resolved

def test_post_without_creator():
    post = Post.model_validate({"id": "p1"})
    assert post.creator is None

def test_saved_post_keeps_resolved_creator():
    post = Post.model_validate({"id": "p1", "creator": ADA})
    saved = SavedPost(**dict(post), save_id="s1")
    assert saved.creator_resolved
    assert saved.save_id == "s1"


def test_save_extracts_reference_ids():
    save = Save.model_validate({"id": "s1", "user": ["u1"], "post": {"$id": "p1", "caption": "hi"}})
    assert save.user == "u1"
    assert save.post == "p1"

def test_comment_with_malformed_author_reference():
    comment = Comment.model_validate({"id": "c1", "post_id": "p1", "user_id": [], "comment_text": "nice"})
    assert comment.user_id is None
    assert comment.author is None

def test_post_null_is_active_defaults_to_true():
    assert Post.model_validate({"id": "p1", "is_active": None}).is_active is True
    assert Post.model_validate({"id": "p1", "is_active": False}).is_active is False

def test_comment_null_text_becomes_empty():
    comment = Comment.model_validate({"id": "c1", "comment_text": None})
    assert comment.comment_text == ""
