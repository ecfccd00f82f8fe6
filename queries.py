"""
Translation of the file listing query string into a MongoDB filter.

Every parameter is optional and the resulting predicates are conjunctive.
Callers get back a ``(query, sort)`` pair ready for ``collection.find``.
"""
import re
from datetime import datetime, timezone
from typing import Optional, List, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException

import config

SORT_FIELDS = {"name", "size", "created_at", "updated_at"}
SORT_ALIASES = {"upload_date": "created_at"}
DEFAULT_SORT = "created_at"

SEARCH_FIELDS = ("name", "description", "content_preview")


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken as UTC, matching how documents are stored
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_object_id(value: str, message: str = "Invalid id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(400, message)


def resolve_sort(sort: Optional[str], order: Optional[str]) -> List[Tuple[str, int]]:
    field = SORT_ALIASES.get(sort, sort)
    if field not in SORT_FIELDS:
        field = DEFAULT_SORT
    direction = 1 if order == "asc" else -1
    return [(field, direction)]


def build_file_query(
    user: dict,
    scope: Optional[str] = None,
    search: Optional[str] = None,
    type: Optional[str] = None,
    owner: Optional[str] = None,
    owner_email: Optional[str] = None,
    location: Optional[str] = None,
    kind: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    uploaded_after: Optional[datetime] = None,
    uploaded_before: Optional[datetime] = None,
    sort: Optional[str] = None,
    order: Optional[str] = None,
):
    """Build the filter and sort for ``GET /files`` on behalf of ``user``.

    ``scope`` picks the base set: ``shared`` (shared with the caller),
    ``starred`` (caller's starred items) or the caller's own items.
    Without an explicit ``location`` trashed items are left out.
    """
    user_id = user["_id"]
    query = {}

    if scope == "shared":
        query["shared_with"] = user["email"]
    elif scope == "starred":
        query["is_starred"] = True
        query["owner"] = user_id
    else:
        query["owner"] = user_id

    if location:
        query["location"] = location.strip()
    else:
        query["location"] = {"$ne": config.TRASH_LOCATION}

    if kind == "folder":
        query["is_folder"] = True
    elif kind == "file":
        query["is_folder"] = False

    if type and type.strip():
        query["type"] = type.strip()

    if owner:
        owner_id = parse_object_id(owner, "Invalid owner id")
        if scope == "shared":
            query["owner"] = owner_id
        elif owner_id != user_id:
            # Own scopes never reach other users' files
            query["owner"] = {"$in": []}

    if owner_email:
        query["owner_email"] = owner_email.lower().strip()

    if min_size is not None or max_size is not None:
        query["size"] = {}
        if min_size is not None:
            query["size"]["$gte"] = min_size
        if max_size is not None:
            query["size"]["$lte"] = max_size

    if uploaded_after is not None or uploaded_before is not None:
        query["created_at"] = {}
        if uploaded_after is not None:
            query["created_at"]["$gte"] = _as_utc(uploaded_after)
        if uploaded_before is not None:
            query["created_at"]["$lte"] = _as_utc(uploaded_before)

    if search and search.strip():
        pattern = re.escape(search.strip())
        query["$or"] = [
            {field: {"$regex": pattern, "$options": "i"}} for field in SEARCH_FIELDS
        ]

    return query, resolve_sort(sort, order)
