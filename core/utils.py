# core/utils.py
"""
Core Utility Functions.

Small parsing helpers shared by the data models and the social API:
tag strings typed by users, and ID lists that the backend sometimes stores
as JSON-encoded text instead of a native array.
"""
import json
import logging
from typing import Any, List, Optional

logger = logging.getLogger("SNF_Core").getChild("Utils")


def parse_tags(text: Optional[str]) -> List[str]:
    """Splits a comma-separated tag string after removing every space.

    There is no escaping, so a tag cannot contain a comma.
    """
    if not text:
        return []
    return [tag for tag in text.replace(" ", "").split(",") if tag]


def parse_id_list(value: Any) -> List[str]:
    """Normalizes a stored ID list into an ordered, duplicate-free list.

    Accepts a native list or its JSON-encoded text; anything unreadable
    becomes an empty list.
    """
    if value is None:
        return []
    if isinstance(value, str):
        if not value.strip():
            return []
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning(f"Could not decode ID list from text: {value[:80]!r}")
            return []
    if not isinstance(value, (list, tuple)):
        logger.warning(f"Ignoring ID list of unexpected type {type(value).__name__}")
        return []

    ids: List[str] = []
    for item in value:
        if isinstance(item, str) and item and item not in ids:
            ids.append(item)
    return ids


def toggle_id(ids: List[str], member_id: str) -> List[str]:
    """Returns a new list with member_id removed if present, appended otherwise."""
    if member_id in ids:
        return [i for i in ids if i != member_id]
    return [*ids, member_id]
