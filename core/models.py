# core/models.py
from pydantic import BaseModel, AliasChoices, ConfigDict, Field, field_validator
from typing import Annotated, Any, List, Literal, Optional, Union
from enum import Enum
import datetime

from core.config import logger as core_logger
from core.errors import MalformedReferenceError
from core.utils import parse_id_list

logger = core_logger.getChild("Models")

# --- Utility Functions ---

def _document_id(document: dict) -> Optional[str]:
    """Reads a document identifier stored under either 'id' or '$id'."""
    value = document.get("id") or document.get("$id")
    return value if isinstance(value, str) and value else None

def _none_to_list(value: Any) -> Any:
    return [] if value is None else value

# --- Core Data Models ---

class User(BaseModel):
    """A user profile document."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "$id"))
    account_id: Optional[str] = None
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    image_url: Optional[str] = None
    image_id: Optional[str] = None
    bio: Optional[str] = None
    # Stored either as a native array or as JSON text; decoded once here
    followers: List[str] = Field(default_factory=list)
    following: List[str] = Field(default_factory=list)
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @field_validator("followers", "following", mode="before")
    @classmethod
    def decode_id_list(cls, value: Any) -> List[str]:
        return parse_id_list(value)


# --- References ---

class UnresolvedReference(BaseModel):
    """A reference that only carries the target's identifier."""
    kind: Literal["unresolved"] = "unresolved"
    id: str

class ResolvedReference(BaseModel):
    """A reference replaced by the fetched user."""
    kind: Literal["resolved"] = "resolved"
    user: User

    @property
    def id(self) -> str:
        return self.user.id

class MalformedReference(BaseModel):
    """A reference with no usable identifier. The raw value is kept as-is."""
    kind: Literal["malformed"] = "malformed"
    raw: Any = None

Reference = Annotated[
    Union[UnresolvedReference, ResolvedReference, MalformedReference],
    Field(discriminator="kind"),
]

_REFERENCE_TYPES = (UnresolvedReference, ResolvedReference, MalformedReference)


def parse_reference(value: Any) -> Union[UnresolvedReference, ResolvedReference, MalformedReference]:
    """
    Collapses the raw shapes a reference field is stored in into one variant.

    - "abc" or ["abc"] -> UnresolvedReference
    - {"id"/"$id": ..., "name": ...} -> ResolvedReference
    - {"id"/"$id": ...} without a name -> UnresolvedReference
    - anything else -> MalformedReference
    """
    if isinstance(value, _REFERENCE_TYPES):
        return value
    if isinstance(value, User):
        return ResolvedReference(user=value) if value.name else UnresolvedReference(id=value.id)

    candidate = value
    if isinstance(candidate, (list, tuple)):
        candidate = candidate[0] if candidate else None

    if isinstance(candidate, str) and candidate.strip():
        return UnresolvedReference(id=candidate)
    if isinstance(candidate, dict):
        if candidate.get("kind") in ("unresolved", "resolved", "malformed"):
            return _parse_serialized_reference(candidate)
        doc_id = _document_id(candidate)
        if doc_id:
            if candidate.get("name"):
                return ResolvedReference(user=User.model_validate(candidate))
            return UnresolvedReference(id=doc_id)

    return MalformedReference(raw=value)

def _parse_serialized_reference(data: dict):
    kind = data["kind"]
    if kind == "resolved":
        return ResolvedReference.model_validate(data)
    if kind == "unresolved":
        return UnresolvedReference.model_validate(data)
    return MalformedReference.model_validate(data)

def reference_id(value: Any) -> str:
    """Returns the identifier a reference points to, or raises MalformedReferenceError."""
    reference = parse_reference(value)
    if isinstance(reference, MalformedReference):
        raise MalformedReferenceError(value)
    return reference.id

def _reference_id_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    try:
        return reference_id(value)
    except MalformedReferenceError as e:
        logger.warning(f"{e}; keeping field empty.")
        return None


class Post(BaseModel):
    """A post document. `creator` is parsed into a Reference on validation."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "$id"))
    caption: Optional[str] = None
    image_urls: List[str] = Field(default_factory=list)
    image_ids: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    location: Optional[str] = None
    creator: Optional[Reference] = None
    likes: List[str] = Field(default_factory=list) # no dedup guarantee
    is_active: bool = True
    posted_at: Optional[datetime.datetime] = None
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    @field_validator("creator", mode="before")
    @classmethod
    def parse_creator(cls, value: Any):
        if value is None:
            return None
        return parse_reference(value)

    @field_validator("image_urls", "image_ids", "tags", "likes", mode="before")
    @classmethod
    def default_lists(cls, value: Any):
        return _none_to_list(value)

    @field_validator("is_active", mode="before")
    @classmethod
    def default_active(cls, value: Any):
        return True if value is None else value

    @property
    def creator_resolved(self) -> bool:
        return isinstance(self.creator, ResolvedReference)


class SavedPost(Post):
    """A post listed through one of the user's Save records."""
    save_id: Optional[str] = None


class Save(BaseModel):
    """Join record linking a user to a post they bookmarked."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "$id"))
    user: Optional[str] = None
    post: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    @field_validator("user", "post", mode="before")
    @classmethod
    def extract_reference_id(cls, value: Any) -> Optional[str]:
        return _reference_id_or_none(value)


class Comment(BaseModel):
    """A comment on a post, with its author attached when it could be resolved."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., validation_alias=AliasChoices("id", "$id"))
    post_id: Optional[str] = None
    user_id: Optional[str] = None
    comment_text: str = ""
    created_at: Optional[datetime.datetime] = None
    author: Optional[User] = None

    @field_validator("post_id", "user_id", mode="before")
    @classmethod
    def extract_reference_id(cls, value: Any) -> Optional[str]:
        return _reference_id_or_none(value)

    @field_validator("comment_text", mode="before")
    @classmethod
    def default_text(cls, value: Any):
        return "" if value is None else value


class PostPage(BaseModel):
    """One page of posts plus the cursor for the next page."""
    documents: List[Post]
    total: int = 0
    next_cursor: Optional[str] = None


# --- Resolution Diagnostics ---

class FailureKind(str, Enum):
    NOT_FOUND = "not_found"
    MALFORMED_REFERENCE = "malformed_reference"
    TRANSIENT = "transient"
    INVALID_DOCUMENT = "invalid_document"

class ResolutionFailure(BaseModel):
    """One reference that could not be resolved."""
    kind: FailureKind
    document_id: Optional[str] = Field(None, description="Document holding the reference")
    field: str = Field(description="Name of the reference field")
    reference: Any = Field(None, description="Raw reference value or target ID")
    message: str

class ResolutionReport(BaseModel):
    """Optional collector for failures the resolver would otherwise only log."""
    failures: List[ResolutionFailure] = Field(default_factory=list)

    def record(self, kind: FailureKind, field: str, message: str,
               document_id: Optional[str] = None, reference: Any = None) -> None:
        self.failures.append(ResolutionFailure(
            kind=kind, document_id=document_id, field=field,
            reference=reference, message=message,
        ))

    @property
    def ok(self) -> bool:
        return not self.failures


# --- Service Request/Response Models ---

class NewPost(BaseModel):
    """Request to create a post from images already uploaded to storage."""
    user_id: str
    caption: str = ""
    image_ids: List[str] = Field(..., min_length=1)
    tags: Optional[str] = Field(None, description="Comma-separated tags, e.g. 'travel, food'")
    location: Optional[str] = None

class UpdatePost(BaseModel):
    """Request to edit a post. New image IDs replace the current images."""
    caption: Optional[str] = None
    tags: Optional[str] = None
    location: Optional[str] = None
    image_ids: Optional[List[str]] = None

class UpdateUser(BaseModel):
    """Request to edit a user profile."""
    name: Optional[str] = None
    bio: Optional[str] = None
    image_id: Optional[str] = Field(None, description="Uploaded avatar file replacing the current one")

class LikeRequest(BaseModel):
    likes: List[str]

class UserActionRequest(BaseModel):
    """Identifies the user saving or toggling a like on a post."""
    user_id: str

class FollowRequest(BaseModel):
    current_user_id: str

class NewComment(BaseModel):
    user_id: str
    post_id: str
    comment_text: str = Field(..., min_length=1)

class ApiResponse(BaseModel):
    """Standard response wrapper for the social API."""
    status: str = Field(description="'success' or 'error'")
    data: Any | None = Field(default=None, description="The primary data payload (depends on the endpoint)")
    message: Optional[str] = Field(default=None, description="Optional status message or error details")
    diagnostics: List[ResolutionFailure] = Field(default_factory=list, description="References that could not be resolved")
