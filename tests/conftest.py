import os

import mongomock
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SECRET_KEY", "test")

PASSWORD = "Secret123!"


@pytest.fixture()
def db():
    from database import ensure_indexes
    d = mongomock.MongoClient()["study_share_test"]
    ensure_indexes(d)
    return d


@pytest.fixture()
def recovery_dir(tmp_path):
    return str(tmp_path / "recovery")


@pytest.fixture()
def app(db, recovery_dir):
    from main import create_app
    return create_app(database=db, recovery_dir=recovery_dir, recovery_enabled=True)


@pytest.fixture()
def client(app):
    return TestClient(app)


def auth(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def register(client):
    def _register(registration_number, role="student", **extra):
        body = {"registrationNumber": registration_number, "password": PASSWORD, "role": role}
        if role == "staff":
            body.setdefault("subject", "Mathematics")
        body.update(extra)
        r = client.post("/auth/register", json=body)
        assert r.status_code == 201, r.text
        data = r.json()
        return {"token": data["token"], "user": data["user"], "headers": auth(data["token"])}
    return _register


@pytest.fixture()
def staff(register):
    return register("STAFF123", role="staff")


@pytest.fixture()
def other_staff(register):
    return register("STAFF999", role="staff", subject="Physics")


@pytest.fixture()
def student(register):
    return register("STU001", course="BSc", year="2", semester="3")


@pytest.fixture()
def connected_student(client, student, staff):
    r = client.post(
        "/auth/connect-teacher", json={"teacherCode": staff["user"]["teacherCode"]}, headers=student["headers"]
    )
    assert r.status_code == 200, r.text
    return student
