import logging
from typing import Optional

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import USERS, create_document
from errors import AuthError, DuplicateCodeError, DuplicateError, ValidationError
from registry import claim_code, find_teacher
from schemas import User
from security import hash_password, verify_password

logger = logging.getLogger("study_share.accounts")


def _duplicate(db: Database, exc: DuplicateKeyError, doc: dict) -> DuplicateError:
    details = getattr(exc, "details", None) or {}
    key = details.get("keyValue") or details.get("keyPattern") or {}
    if "registrationNumber" in key:
        taken = "registrationNumber"
    elif "teacherCode" in key:
        taken = "teacherCode"
    elif db[USERS].find_one({"registrationNumber": doc["registrationNumber"]}, {"_id": 1}):
        taken = "registrationNumber"
    else:
        taken = "teacherCode"
    if taken == "teacherCode":
        return DuplicateCodeError(
            "Teacher code already exists. Please choose a different code.", field="teacherCode"
        )
    return DuplicateError(
        "User already exists with this registration number",
        code="REGISTRATION_TAKEN",
        field="registrationNumber",
    )


def register_user(
    db: Database,
    registration_number: str,
    password: str,
    role: str,
    year: Optional[str] = None,
    semester: Optional[str] = None,
    course: Optional[str] = None,
    subject: Optional[str] = None,
    teacher_code: Optional[str] = None,
) -> dict:
    """
    Create a student or staff account.

    Staff always leave with a teacher code: the one they asked for, or a
    generated one. A student may name a teacher code to connect to right away;
    it must belong to an existing staff account. Duplicate registration numbers
    and teacher codes are rejected by the unique indexes at insert time.
    """
    fields = {
        "registrationNumber": registration_number,
        "password_hash": hash_password(password),
        "role": role,
        "year": year,
        "semester": semester,
    }
    if role == "staff":
        if not subject:
            raise ValidationError("Subject is required for staff registration", field="subject")
        fields["subject"] = subject
        fields["teacherCode"] = claim_code(db, teacher_code)
    else:
        fields["course"] = course
        if teacher_code:
            if not find_teacher(db, teacher_code):
                raise ValidationError("Invalid teacher code", field="teacherCode")
            fields["teacherCode"] = teacher_code
            fields["teacherCodes"] = [teacher_code]

    doc = User(**fields).model_dump(exclude_none=True)
    try:
        user = create_document(db, USERS, doc)
    except DuplicateKeyError as e:
        raise _duplicate(db, e, doc)
    logger.info("Registered %s %s", role, registration_number)
    return user


def authenticate(db: Database, registration_number: str, password: str) -> dict:
    user = db[USERS].find_one({"registrationNumber": registration_number})
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise AuthError("Invalid credentials", code="AUTH_INVALID_CREDENTIALS")
    return user
