import re
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, HTTPException, Response
from pymongo import ReturnDocument

import config
from auth import get_current_user
from database import get_db
from logging_config import logger
from queries import build_file_query
from schemas import (
    File as FileModel, FileCreate, FileUpdate, ShareRequest, BulkRequest,
    FILE_TYPES, FOLDER_TYPE, BULK_OPERATIONS,
)

router = APIRouter()

# Helpers

def serialize_file(doc: dict) -> dict:
    doc["_id"] = str(doc["_id"])
    doc["owner"] = str(doc["owner"])
    return doc


def file_object_id(file_id: str) -> ObjectId:
    try:
        return ObjectId(file_id)
    except (InvalidId, TypeError):
        raise HTTPException(404, "Invalid file ID")


def load_file(db, file_id: str) -> dict:
    doc = db["file"].find_one({"_id": file_object_id(file_id)})
    if not doc:
        raise HTTPException(404, "File not found")
    return doc


def can_view(doc: dict, user: dict) -> bool:
    return doc["owner"] == user["_id"] or user["email"] in (doc.get("shared_with") or [])


def is_owner(doc: dict, user: dict) -> bool:
    return doc["owner"] == user["_id"]


def clean_emails(emails) -> list:
    cleaned = []
    for email in emails:
        email = str(email or "").lower().strip()
        if email and email not in cleaned:
            cleaned.append(email)
    return cleaned


def merge_shared(existing, emails) -> list:
    merged = list(existing or [])
    for email in clean_emails(emails):
        if email not in merged:
            merged.append(email)
    return merged


def save_changes(db, doc: dict, updates: dict) -> dict:
    updates["updated_at"] = datetime.now(timezone.utc)
    return db["file"].find_one_and_update(
        {"_id": doc["_id"]},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )


def download_filename(name: Optional[str]) -> str:
    base = re.sub(r"[^A-Za-z0-9_.-]", "_", name or "file")
    return f"{base or 'file'}.txt"


def render_placeholder(doc: dict) -> str:
    shared = ", ".join(doc.get("shared_with") or []) or "(none)"
    lines = [
        "Fake download for metadata-only file",
        "=====================================",
        "",
        f"Name:       {doc.get('name')}",
        f"Type:       {doc.get('type')}",
        f"Owner:      {doc.get('owner_email')}",
        f"Location:   {doc.get('location')}",
        f"Size:       {doc.get('size', 0)} bytes (metadata only, not real)",
        f"Starred:    {'yes' if doc.get('is_starred') else 'no'}",
        f"SharedWith: {shared}",
        "",
        f"Created at: {doc.get('created_at')}",
        f"Updated at: {doc.get('updated_at')}",
        "",
        "This file is generated by the backend as a placeholder",
        "because actual binary upload is not implemented.",
    ]
    return "\n".join(lines)


# File routes
@router.post("/files", status_code=201, response_model=dict)
def create_file(payload: FileCreate, user=Depends(get_current_user), db=Depends(get_db)):
    name = (payload.name or "").strip()
    if not name:
        raise HTTPException(400, "name is required")

    if payload.is_folder:
        file_type = FOLDER_TYPE
    else:
        if not payload.type:
            raise HTTPException(400, "type is required for non-folder items")
        if payload.type not in FILE_TYPES:
            raise HTTPException(400, f"type must be one of: {', '.join(FILE_TYPES)}")
        file_type = payload.type

    now = datetime.now(timezone.utc)
    doc = FileModel(
        name=name,
        type=file_type,
        is_folder=payload.is_folder,
        location=(payload.location or "").strip() or config.DEFAULT_LOCATION,
        size=payload.size,
        owner=user["_id"],
        owner_name=(user.get("name") or "").strip() or "Unknown",
        owner_email=user["email"].lower().strip(),
        description=payload.description or "",
        content_preview=payload.content_preview or "",
        created_at=now,
        updated_at=now,
    ).model_dump()

    res = db["file"].insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Created %s '%s' in '%s' for %s", file_type, name, doc["location"], user["email"])
    return serialize_file(doc)


@router.get("/files", response_model=list)
def list_files(
    scope: Optional[str] = None,
    search: Optional[str] = None,
    type: Optional[str] = None,
    file_type: Optional[str] = None,
    owner: Optional[str] = None,
    owner_email: Optional[str] = None,
    location: Optional[str] = None,
    kind: Optional[str] = None,
    min_size: Optional[int] = None,
    max_size: Optional[int] = None,
    uploaded_after: Optional[datetime] = None,
    uploaded_before: Optional[datetime] = None,
    sort: str = "created_at",
    order: str = "desc",
    user=Depends(get_current_user),
    db=Depends(get_db),
):
    query, sort_spec = build_file_query(
        user,
        scope=scope,
        search=search,
        type=type or file_type,
        owner=owner,
        owner_email=owner_email,
        location=location,
        kind=kind,
        min_size=min_size,
        max_size=max_size,
        uploaded_after=uploaded_after,
        uploaded_before=uploaded_before,
        sort=sort,
        order=order,
    )
    return [serialize_file(doc) for doc in db["file"].find(query).sort(sort_spec)]


@router.get("/files/recent", response_model=list)
def recent_files(limit: Optional[str] = None, user=Depends(get_current_user), db=Depends(get_db)):
    try:
        n = int(limit) if limit is not None else config.RECENT_LIMIT
    except ValueError:
        n = config.RECENT_LIMIT
    if n <= 0:
        n = config.RECENT_LIMIT
    query = {"owner": user["_id"], "location": {"$ne": config.TRASH_LOCATION}}
    items = db["file"].find(query).sort([("updated_at", -1)]).limit(n)
    return [serialize_file(doc) for doc in items]


@router.post("/files/bulk", response_model=dict)
def bulk_update(payload: BulkRequest, user=Depends(get_current_user), db=Depends(get_db)):
    if not payload.operation or not payload.file_ids:
        raise HTTPException(400, "operation and file_ids are required")
    if payload.operation not in BULK_OPERATIONS:
        raise HTTPException(400, "Unsupported operation")

    operation = payload.operation
    data = payload.data or {}
    results = []

    for file_id in payload.file_ids:
        if not isinstance(file_id, str):
            results.append({"id": file_id, "status": "invalid-id"})
            continue
        try:
            oid = ObjectId(file_id)
        except InvalidId:
            results.append({"id": file_id, "status": "invalid-id"})
            continue

        doc = db["file"].find_one({"_id": oid})
        if not doc:
            results.append({"id": file_id, "status": "not-found"})
            continue

        if not is_owner(doc, user):
            results.append({"id": file_id, "status": "forbidden"})
            continue

        if operation == "trash":
            updates = {"location": config.TRASH_LOCATION}
        elif operation == "star":
            updates = {"is_starred": True}
        elif operation == "unstar":
            updates = {"is_starred": False}
        elif operation == "move":
            new_location = data.get("location")
            if not isinstance(new_location, str) or not new_location.strip():
                results.append({"id": file_id, "status": "bad-data"})
                continue
            updates = {"location": new_location.strip()}
        else:
            emails = data.get("emails")
            if not isinstance(emails, list) or not emails:
                results.append({"id": file_id, "status": "bad-data"})
                continue
            updates = {"shared_with": merge_shared(doc.get("shared_with"), emails)}

        save_changes(db, doc, updates)
        results.append({"id": file_id, "status": "ok"})

    ok = sum(1 for r in results if r["status"] == "ok")
    logger.info("Bulk %s by %s: %d/%d ok", operation, user["email"], ok, len(results))
    return {"operation": operation, "results": results}


@router.get("/files/{file_id}", response_model=dict)
def get_file(file_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    doc = load_file(db, file_id)
    # Inaccessible files look missing so their existence does not leak
    if not can_view(doc, user):
        raise HTTPException(404, "File not accessible")
    return serialize_file(doc)


@router.patch("/files/{file_id}", response_model=dict)
def update_file(file_id: str, payload: FileUpdate, user=Depends(get_current_user), db=Depends(get_db)):
    doc = load_file(db, file_id)
    if not is_owner(doc, user):
        logger.warning("%s tried to edit file %s", user["email"], file_id)
        raise HTTPException(403, "Not allowed to edit this file")

    updates = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not updates:
        raise HTTPException(400, "No valid fields to update")
    if "name" in updates:
        updates["name"] = updates["name"].strip()
        if not updates["name"]:
            raise HTTPException(400, "name cannot be empty")
    if "location" in updates:
        updates["location"] = updates["location"].strip() or config.DEFAULT_LOCATION

    return serialize_file(save_changes(db, doc, updates))


@router.patch("/files/{file_id}/trash", response_model=dict)
def trash_file(file_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    doc = load_file(db, file_id)
    if not is_owner(doc, user):
        logger.warning("%s tried to trash file %s", user["email"], file_id)
        raise HTTPException(403, "Not allowed to trash this file")

    updated = save_changes(db, doc, {"location": config.TRASH_LOCATION})
    logger.info("Moved file %s to %s", file_id, config.TRASH_LOCATION)
    return serialize_file(updated)


@router.post("/files/{file_id}/share", response_model=dict)
def share_file(file_id: str, payload: ShareRequest, user=Depends(get_current_user), db=Depends(get_db)):
    file_object_id(file_id)
    if not payload.emails:
        raise HTTPException(400, "emails must be a non-empty array")
    doc = load_file(db, file_id)
    if not is_owner(doc, user):
        logger.warning("%s tried to share file %s", user["email"], file_id)
        raise HTTPException(403, "Only the owner can share this file")

    shared_with = merge_shared(doc.get("shared_with"), payload.emails)
    updated = save_changes(db, doc, {"shared_with": shared_with})
    logger.info("Shared file %s with %s", file_id, ", ".join(shared_with))
    return serialize_file(updated)


@router.get("/files/{file_id}/children", response_model=list)
def list_children(file_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    folder = load_file(db, file_id)
    if not can_view(folder, user):
        raise HTTPException(404, "Folder not accessible")
    if not folder.get("is_folder"):
        raise HTTPException(400, "This file is not a folder")

    child_location = f"{folder['location']}/{folder['name']}"
    query = {
        "location": child_location,
        "$or": [{"owner": user["_id"]}, {"shared_with": user["email"]}],
    }
    items = db["file"].find(query).sort([("is_folder", -1), ("name", 1)])
    return [serialize_file(doc) for doc in items]


@router.get("/files/{file_id}/download")
def download_file(file_id: str, user=Depends(get_current_user), db=Depends(get_db)):
    doc = load_file(db, file_id)
    if not can_view(doc, user):
        raise HTTPException(404, "File not accessible")

    filename = download_filename(doc.get("name"))
    return Response(
        content=render_placeholder(doc),
        media_type="text/plain; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
