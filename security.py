import logging
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from fastapi import Depends, Header
from passlib.hash import bcrypt
from pymongo.database import Database

import config
from database import USERS, get_db, oid, plain
from errors import AuthError, ForbiddenError, NotFoundError

logger = logging.getLogger("study_share.security")

PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[!@#$%^&*])")
PASSWORD_MIN_LENGTH = 8


def password_problem(password: str) -> Optional[str]:
    if len(password) < PASSWORD_MIN_LENGTH:
        return "Password must be at least 8 characters"
    if not PASSWORD_RULE.match(password):
        return "Password must contain at least one uppercase, lowercase, number and special character"
    return None


def hash_password(password: str) -> str:
    return bcrypt.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return bcrypt.verify(password, password_hash)


def create_token(user: dict) -> str:
    payload = {
        "userId": str(user["_id"]),
        "role": user.get("role", "student"),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=config.JWT_EXP_MIN),
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired. Please log in again.", code="AUTH_TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid token. Please log in again.", code="AUTH_INVALID_TOKEN")
    if not payload.get("userId"):
        raise AuthError("Invalid token payload", code="AUTH_INVALID_TOKEN")
    return payload


def get_current_user(authorization: Optional[str] = Header(None), db: Database = Depends(get_db)) -> dict:
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("No token, authorization denied", code="AUTH_NO_TOKEN")
    token = authorization[len("Bearer "):].strip()
    payload = decode_token(token)
    try:
        user_id = oid(payload["userId"])
    except Exception:
        raise AuthError("Invalid token payload", code="AUTH_INVALID_TOKEN")
    user = db[USERS].find_one({"_id": user_id})
    if not user:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    return user


def require_role(user: dict, roles: List[str], message: str = "Forbidden: insufficient role"):
    if user.get("role") not in roles:
        logger.info("Role check failed for user %s (role=%s, needed %s)", user.get("_id"), user.get("role"), roles)
        raise ForbiddenError(message, code="INSUFFICIENT_ROLE")


def public_user(user: dict) -> dict:
    return {
        "id": str(user["_id"]),
        "registrationNumber": user.get("registrationNumber"),
        "role": user.get("role"),
        "year": user.get("year"),
        "semester": user.get("semester"),
        "course": user.get("course"),
        "subject": user.get("subject"),
        "teacherCode": user.get("teacherCode"),
        "teacherCodes": list(user.get("teacherCodes") or []),
        "createdAt": plain(user.get("createdAt")),
    }
