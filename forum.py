"""
Forum questions and answers.

A question is ``open`` until its author or any staff member marks it
``resolved``; there is no way back to ``open``. Answers can be appended by
anyone signed in, whatever the status.
"""
import logging
from typing import Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.database import Database

from database import QUESTIONS, USERS, now, oid, plain
from errors import ForbiddenError, InvalidStatusError, NotFoundError
from registry import resolve_code
from schemas import Answer, Question

logger = logging.getLogger("study_share.forum")

RESOLVED = "resolved"

_AUTHOR_FIELDS = ("registrationNumber", "role", "teacherCode")
_TEACHER_FIELDS = ("registrationNumber", "teacherCode", "subject", "role")


def _user_map(db: Database, ids: Iterable) -> Dict[ObjectId, dict]:
    wanted = list({i for i in ids if i is not None})
    if not wanted:
        return {}
    return {u["_id"]: u for u in db[USERS].find({"_id": {"$in": wanted}})}


def _ref(users: Dict[ObjectId, dict], user_id, fields) -> Optional[dict]:
    if user_id is None:
        return None
    user = users.get(user_id)
    if not user:
        return {"id": str(user_id)}
    ref = {"id": str(user_id)}
    ref.update({f: user.get(f) for f in fields})
    return ref


def _shape_answer(answer: dict, users: Dict[ObjectId, dict]) -> dict:
    return {
        "id": str(answer.get("_id")),
        "content": answer.get("content"),
        "author": _ref(users, answer.get("author"), _AUTHOR_FIELDS),
        "createdAt": plain(answer.get("createdAt")),
    }


def populate(db: Database, questions: List[dict]) -> List[dict]:
    ids = []
    for q in questions:
        ids.append(q.get("author"))
        ids.append(q.get("assignedTeacher"))
        ids.extend(a.get("author") for a in q.get("answers") or [])
    users = _user_map(db, ids)
    shaped = []
    for q in questions:
        shaped.append({
            "id": str(q["_id"]),
            "title": q.get("title"),
            "content": q.get("content"),
            "tags": list(q.get("tags") or []),
            "status": q.get("status", "open"),
            "author": _ref(users, q.get("author"), _AUTHOR_FIELDS),
            "assignedTeacher": _ref(users, q.get("assignedTeacher"), _TEACHER_FIELDS),
            "assignedTeacherCode": q.get("assignedTeacherCode"),
            "answers": [_shape_answer(a, users) for a in q.get("answers") or []],
            "createdAt": plain(q.get("createdAt")),
        })
    return shaped


def list_questions(db: Database) -> List[dict]:
    questions = list(db[QUESTIONS].find({}).sort([("createdAt", DESCENDING), ("_id", DESCENDING)]))
    return populate(db, questions)


def get_question(db: Database, question_id: str) -> dict:
    question = db[QUESTIONS].find_one({"_id": oid(question_id)})
    if not question:
        raise NotFoundError("Question not found", code="QUESTION_NOT_FOUND")
    return question


def create_question(db: Database, user: dict, title: str, content: str, tags: Optional[List[str]] = None, teacher_code: Optional[str] = None) -> dict:
    question = Question(title=title, content=content, tags=tags or [], author=user["_id"])
    if teacher_code and user.get("role") == "student":
        teacher = resolve_code(db, teacher_code)
        question.assignedTeacher = teacher["_id"]
        question.assignedTeacherCode = teacher["teacherCode"]
    doc = question.model_dump()
    doc["createdAt"] = now()
    res = db[QUESTIONS].insert_one(doc)
    doc["_id"] = res.inserted_id
    logger.info("Question %s created by %s", doc["_id"], user["_id"])
    return doc


def add_answer(db: Database, question_id: str, user: dict, content: str) -> dict:
    answer = Answer(content=content, author=user["_id"]).model_dump()
    answer["_id"] = ObjectId()
    answer["createdAt"] = now()
    res = db[QUESTIONS].update_one({"_id": oid(question_id)}, {"$push": {"answers": answer}})
    if res.matched_count == 0:
        raise NotFoundError("Question not found", code="QUESTION_NOT_FOUND")
    return _shape_answer(answer, _user_map(db, [user["_id"]]))


def set_status(db: Database, question_id: str, user: dict, status: Optional[str]) -> dict:
    question = get_question(db, question_id)
    is_author = question.get("author") == user["_id"]
    is_staff = user.get("role") == "staff"
    if not is_author and not is_staff:
        raise ForbiddenError("User not authorized to update this question")
    if status != RESOLVED:
        raise InvalidStatusError("Invalid status")
    if question.get("status") != RESOLVED:
        db[QUESTIONS].update_one({"_id": question["_id"]}, {"$set": {"status": RESOLVED}})
        question["status"] = RESOLVED
        logger.info("Question %s resolved by %s", question["_id"], user["_id"])
    return question
