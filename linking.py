import logging
from typing import Optional

from pymongo.database import Database

from database import USERS, now
from errors import MissingIdentifierError, NoSharingCodeError, NotFoundError, TeacherNotFoundError
from registry import find_staff, find_teacher

logger = logging.getLogger("study_share.linking")


def resolve_teacher(db: Database, teacher_code: Optional[str] = None, staff_id: Optional[str] = None) -> dict:
    if not teacher_code and not staff_id:
        raise MissingIdentifierError("Teacher code or staff ID is required")
    teacher = find_teacher(db, teacher_code) if teacher_code else None
    if not teacher and staff_id:
        teacher = find_staff(db, staff_id)
    if not teacher:
        raise TeacherNotFoundError("Teacher not found. Please check and try again.")
    if not teacher.get("teacherCode"):
        raise NoSharingCodeError("Selected teacher does not have a sharing code yet.")
    return teacher


def connect_student(db: Database, student: dict, teacher_code: Optional[str] = None, staff_id: Optional[str] = None) -> dict:
    """
    Connect ``student`` to a teacher found by code or registration number.

    Adds the teacher's code to ``teacherCodes`` (set semantics, so repeating the
    call changes nothing) and fills the legacy ``teacherCode`` field only when it
    is still empty. Returns the confirmation body for the client.
    """
    teacher = resolve_teacher(db, teacher_code, staff_id)
    code = teacher["teacherCode"]
    users = db[USERS]

    res = users.update_one(
        {"_id": student["_id"]},
        {"$addToSet": {"teacherCodes": code}, "$set": {"updatedAt": now()}},
    )
    if res.matched_count == 0:
        raise NotFoundError("Student not found", code="USER_NOT_FOUND")
    users.update_one(
        {"_id": student["_id"], "$or": [{"teacherCode": None}, {"teacherCode": ""}]},
        {"$set": {"teacherCode": code}},
    )
    updated = users.find_one({"_id": student["_id"]})
    logger.info("User %s connected to teacher %s", student["_id"], code)

    return {
        "message": "Successfully connected to teacher",
        "teacherName": teacher.get("registrationNumber"),
        "teacherSubject": teacher.get("subject"),
        "teacherCode": code,
        "connectedCodes": list(updated.get("teacherCodes") or []),
        "staffName": teacher.get("registrationNumber"),
        "staffSubject": teacher.get("subject"),
    }
