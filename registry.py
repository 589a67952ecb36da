"""
Teacher-code registry.

A teacher code is the sharing key of a staff account: shared content is tagged
with it and students see that content once the code is in their
``teacherCodes``. Codes are unique among staff (enforced by the
``staff_teacher_code_unique`` index) and never reassigned.
"""
import logging
import random
import secrets
import string
import time
from typing import Callable, Optional

from pymongo.database import Database

from database import USERS
from errors import DuplicateCodeError, TeacherNotFoundError

logger = logging.getLogger("study_share.registry")

CODE_PREFIX = "TC"
CODE_LENGTH = 6
MAX_ATTEMPTS = 10
_ALPHABET = string.ascii_uppercase + string.digits


def random_code() -> str:
    return CODE_PREFIX + "".join(secrets.choice(_ALPHABET) for _ in range(CODE_LENGTH))


def fallback_code() -> str:
    return f"{CODE_PREFIX}{int(time.time() * 1000)}{random.randint(0, 999)}"


def code_in_use(db: Database, code: str) -> bool:
    return db[USERS].find_one({"teacherCode": code, "role": "staff"}, {"_id": 1}) is not None


def generate_code(db: Database, candidate: Callable[[], str] = random_code) -> str:
    """Draw random codes until one is unused; fall back to a timestamp code after MAX_ATTEMPTS."""
    for _ in range(MAX_ATTEMPTS):
        code = candidate()
        if not code_in_use(db, code):
            return code
    code = fallback_code()
    logger.warning("No free teacher code after %d attempts, using fallback %s", MAX_ATTEMPTS, code)
    return code


def claim_code(db: Database, requested: Optional[str]) -> str:
    """
    Code for a new staff account: the requested one, else a generated one.

    A requested code that is already taken is rejected here; a code claimed by
    a concurrent registration in between is still caught by the unique index
    when the account is inserted.
    """
    if requested:
        if code_in_use(db, requested):
            raise DuplicateCodeError(
                "Teacher code already exists. Please choose a different code.", field="teacherCode"
            )
        return requested
    code = generate_code(db)
    logger.info("Auto-generated teacher code for staff: %s", code)
    return code


def find_teacher(db: Database, code: str) -> Optional[dict]:
    if not code:
        return None
    return db[USERS].find_one({"teacherCode": code, "role": "staff"})


def resolve_code(db: Database, code: str) -> dict:
    teacher = find_teacher(db, code)
    if not teacher:
        raise TeacherNotFoundError("Teacher not found for provided code")
    return teacher


def find_staff(db: Database, staff_id: str) -> Optional[dict]:
    if not staff_id:
        return None
    return db[USERS].find_one({"registrationNumber": staff_id, "role": "staff"})
