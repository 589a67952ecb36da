import pytest

import registry
from accounts import register_user
from conftest import PASSWORD
from errors import DuplicateCodeError, TeacherNotFoundError


def make_staff(db, reg, code=None):
    return register_user(db, reg, PASSWORD, "staff", subject="Maths", teacher_code=code)


def test_random_code_shape():
    code = registry.random_code()
    assert code.startswith("TC")
    assert len(code) == 8
    assert code[2:].isalnum() and code[2:].upper() == code[2:]


def test_generate_code_skips_taken_candidates(db):
    make_staff(db, "STAFF1", "TCAAAAAA")
    candidates = iter(["TCAAAAAA", "TCBBBBBB"])
    assert registry.generate_code(db, candidate=lambda: next(candidates)) == "TCBBBBBB"


def test_generate_code_falls_back_after_ten_collisions(db):
    make_staff(db, "STAFF1", "TCAAAAAA")
    calls = []

    def always_taken():
        calls.append(1)
        return "TCAAAAAA"

    code = registry.generate_code(db, candidate=always_taken)
    assert len(calls) == registry.MAX_ATTEMPTS
    assert code.startswith("TC") and code[2:].isdigit()
    assert not registry.code_in_use(db, code)


def test_claim_code_rejects_taken_code(db):
    make_staff(db, "STAFF1", "MATHS01")
    with pytest.raises(DuplicateCodeError):
        registry.claim_code(db, "MATHS01")


def test_student_mirror_does_not_block_staff_code(db):
    teacher = make_staff(db, "STAFF1")
    register_user(db, "STU001", PASSWORD, "student", teacher_code=teacher["teacherCode"])
    assert registry.code_in_use(db, teacher["teacherCode"])
    assert registry.find_teacher(db, teacher["teacherCode"])["registrationNumber"] == "STAFF1"


def test_resolve_code(db):
    teacher = make_staff(db, "STAFF1", "MATHS01")
    assert registry.resolve_code(db, "MATHS01")["_id"] == teacher["_id"]
    with pytest.raises(TeacherNotFoundError):
        registry.resolve_code(db, "maths01")


def test_find_staff_ignores_students(db):
    register_user(db, "STU001", PASSWORD, "student")
    assert registry.find_staff(db, "STU001") is None
    make_staff(db, "STAFF1")
    assert registry.find_staff(db, "STAFF1")["role"] == "staff"
