"""
Document builders and response shaping for notes, files and whiteboards.

Owner profile details (``authorName``, ``uploaderInfo``) are copied into each
item when it is written and are not refreshed if the user record changes
later.
"""
import base64
import binascii
import re
from typing import List, Optional

from database import plain, serialize_doc
from errors import ValidationError
from schemas import File, Note, UploaderInfo, Whiteboard
from visibility import sharing_fields

NOTE_OWNER = "authorId"
FILE_OWNER = "uploadedBy"
WHITEBOARD_OWNER = "authorId"

SAVED_TAG = "saved-from-staff"

_DATA_URL = re.compile(r"^data:(.*?);base64,(.*)$", re.DOTALL)


# ----------------------
# Notes
# ----------------------

def new_note(user: dict, title: str, content: str, tags: Optional[List[str]], is_shared: Optional[bool]) -> dict:
    note = Note(
        title=title,
        content=content,
        tags=tags or [],
        authorId=user["_id"],
        authorName=user.get("registrationNumber") or "Unknown",
        **sharing_fields(user, is_shared),
    )
    return note.model_dump(exclude_none=True)


def clone_note(source: dict, student: dict) -> dict:
    tags = list(source.get("tags") or [])
    if SAVED_TAG not in tags:
        tags.append(SAVED_TAG)
    note = Note(
        title=f"{source['title']} (from {source.get('authorName')})",
        content=source["content"],
        tags=tags,
        authorId=student["_id"],
        authorName=student.get("registrationNumber") or "Unknown",
        isShared=False,
    )
    return note.model_dump(exclude_none=True)


def to_client_note(note: dict) -> dict:
    d = serialize_doc(note)
    d.setdefault("teacherCode", None)
    return d


# ----------------------
# Files
# ----------------------

def parse_data_url(data_url: str):
    """Split a base64 data URL into (mime type, base64 payload, decoded size)."""
    match = _DATA_URL.match(data_url or "")
    if not match:
        raise ValidationError("Failed to parse data URL", field="fileData")
    mime_type, payload = match.group(1), match.group(2)
    try:
        size = len(base64.b64decode(payload, validate=False))
    except (binascii.Error, ValueError):
        raise ValidationError("File data is not valid base64", field="fileData")
    return mime_type, payload, size


def determine_file_type(mime_type: str, file_name: str) -> str:
    if "pdf" in mime_type:
        return "pdf"
    if "image" in mime_type:
        return "image"
    if re.search(r"\.(ppt|pptx)$", file_name, re.IGNORECASE):
        return "presentation"
    return "document"


def uploader_info(user: dict) -> UploaderInfo:
    return UploaderInfo(
        registrationNumber=user.get("registrationNumber") or "Unknown",
        role=user["role"],
        subject=user.get("subject"),
        year=user.get("year"),
        semester=user.get("semester"),
        course=user.get("course"),
    )


def new_file(user: dict, filename: str, file_data: str, is_shared: Optional[bool]) -> dict:
    mime_type, payload, size = parse_data_url(file_data)
    doc = File(
        fileName=re.sub(r"\.[^/.]+$", "", filename),
        originalName=filename,
        fileType=determine_file_type(mime_type, filename),
        fileSize=size,
        fileData=f"data:{mime_type};base64,{payload}",
        mimeType=mime_type,
        uploadedBy=user["_id"],
        uploaderInfo=uploader_info(user),
        **sharing_fields(user, is_shared),
    )
    return doc.model_dump(exclude_none=True)


def clone_file(source: dict, student: dict) -> dict:
    doc = File(
        fileName=f"{source['fileName']} (copy)",
        originalName=source["originalName"],
        fileType=source["fileType"],
        fileSize=source["fileSize"],
        fileData=source["fileData"],
        mimeType=source["mimeType"],
        uploadedBy=student["_id"],
        uploaderInfo=uploader_info(student),
        annotations=list(source.get("annotations") or []),
        tags=list(source.get("tags") or []),
        isShared=False,
    )
    return doc.model_dump(exclude_none=True)


def to_client_file(doc: dict, owner_subject: Optional[str] = None) -> dict:
    info = doc.get("uploaderInfo") or {}
    return {
        "id": str(doc["_id"]),
        "title": doc.get("fileName"),
        "filename": doc.get("originalName"),
        "fileUrl": doc.get("fileData") or "",
        "fileData": doc.get("fileData"),
        "annotations": plain(doc.get("annotations") or []),
        "tags": list(doc.get("tags") or []),
        "createdAt": plain(doc.get("createdAt")),
        "updatedAt": plain(doc.get("updatedAt")),
        "authorId": str(doc.get(FILE_OWNER)),
        "authorName": info.get("registrationNumber"),
        "ownerName": info.get("registrationNumber"),
        "ownerSubject": owner_subject or info.get("subject"),
        "isShared": bool(doc.get("isShared")),
        "teacherCode": doc.get("teacherCode"),
        "fileType": doc.get("fileType"),
        "fileSize": doc.get("fileSize"),
        "mimeType": doc.get("mimeType"),
    }


# ----------------------
# Whiteboards
# ----------------------

def new_whiteboard(user: dict, title: str, image_data: str, is_shared: Optional[bool]) -> dict:
    board = Whiteboard(
        title=title,
        imageData=image_data,
        authorId=user["_id"],
        authorName=user.get("registrationNumber") or "Unknown",
        **sharing_fields(user, is_shared),
    )
    return board.model_dump(exclude_none=True)


def clone_whiteboard(source: dict, student: dict) -> dict:
    board = Whiteboard(
        title=f"{source['title']} (copy)"[:150],
        imageData=source["imageData"],
        authorId=student["_id"],
        authorName=student.get("registrationNumber") or "Unknown",
        isShared=False,
    )
    return board.model_dump(exclude_none=True)


def to_client_whiteboard(doc: dict, owner_subject: Optional[str] = None) -> dict:
    return {
        "id": str(doc["_id"]),
        "title": doc.get("title"),
        "imageData": doc.get("imageData"),
        "authorId": str(doc.get(WHITEBOARD_OWNER)),
        "authorName": doc.get("authorName"),
        "ownerName": doc.get("authorName"),
        "ownerSubject": owner_subject,
        "isShared": bool(doc.get("isShared")),
        "teacherCode": doc.get("teacherCode"),
        "createdAt": plain(doc.get("createdAt")),
        "updatedAt": plain(doc.get("updatedAt")),
    }


def teacher_info(staff: dict, **totals) -> dict:
    info = {
        "name": staff.get("registrationNumber"),
        "subject": staff.get("subject") or "Not specified",
        "teacherCode": staff.get("teacherCode"),
    }
    info.update(totals)
    return info
