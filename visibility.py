"""
Visibility and ownership rules shared by notes, files and whiteboards.

The three content collections are structurally parallel; they differ only in
the name of the owner field (``authorId`` for notes and whiteboards,
``uploadedBy`` for files), which every helper here takes as ``owner_field``.

Read access:

* staff see only what they own, whatever its sharing flag;
* students see what they own plus every shared item whose ``teacherCode`` is
  one of the codes they are connected to (``teacherCodes`` and the legacy
  single ``teacherCode``).

Write access (update/delete) is owner-only for everyone.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from pymongo.database import Database

from database import NEWEST_FIRST, get_documents, now, oid
from errors import ForbiddenError, NotFoundError, NotSharedError

logger = logging.getLogger("study_share.visibility")


def teacher_codes_for(user: dict) -> List[str]:
    codes = []
    for code in list(user.get("teacherCodes") or []) + [user.get("teacherCode")]:
        if code and code not in codes:
            codes.append(code)
    return codes


def visible_filter(user: dict, owner_field: str) -> Dict[str, Any]:
    own = {owner_field: user["_id"]}
    if user.get("role") == "staff":
        return own
    return {
        "$or": [
            own,
            {"isShared": True, "teacherCode": {"$in": teacher_codes_for(user)}},
        ]
    }


def shared_by_filter(staff: dict, owner_field: str) -> Dict[str, Any]:
    return {owner_field: staff["_id"], "isShared": True}


def list_visible(db: Database, collection: str, user: dict, owner_field: str, extra: Optional[Dict[str, Any]] = None) -> List[dict]:
    query = visible_filter(user, owner_field)
    if extra:
        query = {"$and": [query, extra]}
    return get_documents(db, collection, query, sort=NEWEST_FIRST)


def list_shared_by(db: Database, collection: str, staff: dict, owner_field: str) -> List[dict]:
    return get_documents(db, collection, shared_by_filter(staff, owner_field), sort=NEWEST_FIRST)


def sharing_fields(user: dict, is_shared: Optional[bool]) -> Dict[str, Any]:
    """isShared/teacherCode for a new item; only staff with a code can share."""
    if user.get("role") == "staff" and is_shared and user.get("teacherCode"):
        return {"isShared": True, "teacherCode": user["teacherCode"]}
    return {"isShared": False}


def sharing_changes(user: dict, is_shared: Optional[bool]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """($set, $unset) for a sharing flag change; non-staff and omitted flags change nothing."""
    if user.get("role") != "staff" or is_shared is None:
        return {}, {}
    fields = sharing_fields(user, is_shared)
    if fields["isShared"]:
        return fields, {}
    return fields, {"teacherCode": ""}


def get_item(db: Database, collection: str, item_id: str, label: str) -> dict:
    item = db[collection].find_one({"_id": oid(item_id)})
    if not item:
        raise NotFoundError(f"{label} not found", code=f"{label.upper()}_NOT_FOUND")
    return item


def get_owned(db: Database, collection: str, item_id: str, user: dict, owner_field: str, label: str, action: str = "update") -> dict:
    item = get_item(db, collection, item_id, label)
    if item.get(owner_field) != user["_id"]:
        logger.warning(
            "Unauthorized %s attempt on %s %s by %s", action, label.lower(), item_id, user["_id"]
        )
        raise ForbiddenError(
            f"Not authorized to {action} this {label.lower()}",
            code=f"{label.upper()}_{action.upper()}_UNAUTHORIZED",
        )
    return item


def get_shared(db: Database, collection: str, item_id: str, label: str) -> dict:
    item = db[collection].find_one({"_id": oid(item_id)})
    if not item or not item.get("isShared"):
        raise NotSharedError(f"{label} not found or not shared")
    return item


def update_item(db: Database, collection: str, item: dict, set_fields: Dict[str, Any], unset_fields: Optional[Dict[str, Any]] = None) -> dict:
    set_fields = dict(set_fields, updatedAt=now())
    update: Dict[str, Any] = {"$set": set_fields}
    if unset_fields:
        update["$unset"] = unset_fields
    db[collection].update_one({"_id": item["_id"]}, update)
    return db[collection].find_one({"_id": item["_id"]})


def delete_item(db: Database, collection: str, item: dict) -> None:
    db[collection].delete_one({"_id": item["_id"]})
