import base64

import pytest

from content import determine_file_type, parse_data_url
from errors import ValidationError

PDF = "data:application/pdf;base64," + base64.b64encode(b"%PDF-1.4 lecture").decode()


def upload(client, owner, filename="lecture1.pdf", data=PDF, **extra):
    body = {"filename": filename, "fileData": data}
    body.update(extra)
    r = client.post("/files/upload", json=body, headers=owner["headers"])
    assert r.status_code == 201, r.text
    return r.json()


def test_parse_data_url():
    mime, payload, size = parse_data_url(PDF)
    assert mime == "application/pdf"
    assert size == len(b"%PDF-1.4 lecture")
    with pytest.raises(ValidationError):
        parse_data_url("not a data url")


def test_determine_file_type():
    assert determine_file_type("application/pdf", "a.pdf") == "pdf"
    assert determine_file_type("image/png", "a.png") == "image"
    assert determine_file_type("application/vnd.ms-powerpoint", "deck.PPTX") == "presentation"
    assert determine_file_type("application/msword", "a.doc") == "document"


def test_upload_shared_file(client, staff):
    f = upload(client, staff, isShared=True)
    assert f["title"] == "lecture1"
    assert f["filename"] == "lecture1.pdf"
    assert f["fileType"] == "pdf"
    assert f["isShared"] is True
    assert f["teacherCode"] == staff["user"]["teacherCode"]
    assert f["ownerSubject"] == "Mathematics"


def test_unshared_upload_has_no_teacher_code(client, staff, db):
    upload(client, staff)
    stored = db["file"].find_one({})
    assert stored["isShared"] is False
    assert "teacherCode" not in stored
    assert stored["uploaderInfo"]["registrationNumber"] == "STAFF123"


def test_invalid_upload(client, staff):
    r = client.post("/files/upload", json={"filename": "a.pdf", "fileData": "garbage"}, headers=staff["headers"])
    assert r.status_code == 400
    r = client.post("/files/upload", json={"filename": "a.pdf"}, headers=staff["headers"])
    assert r.status_code == 400


def test_visibility(client, staff, other_staff, register):
    upload(client, staff, filename="shared.pdf", isShared=True)
    upload(client, staff, filename="private.pdf")
    upload(client, other_staff, filename="physics.pdf", isShared=True)
    # connected through the code given at registration
    student = register("STU001", teacherCode=staff["user"]["teacherCode"])
    r = client.get("/files", headers=student["headers"])
    assert [f["filename"] for f in r.json()] == ["shared.pdf"]
    r = client.get("/files", headers=staff["headers"])
    assert sorted(f["filename"] for f in r.json()) == ["private.pdf", "shared.pdf"]


def test_owner_updates(client, staff, other_staff):
    f = upload(client, staff, isShared=True)
    notes = [{"page": 1, "type": "highlight", "content": "important"}]
    r = client.put(f"/files/{f['id']}", json={"annotations": notes, "isShared": False}, headers=staff["headers"])
    assert r.status_code == 200
    assert r.json()["annotations"] == notes
    assert r.json()["isShared"] is False
    assert r.json()["teacherCode"] is None
    r = client.put(f"/files/{f['id']}", json={"isShared": True}, headers=other_staff["headers"])
    assert r.status_code == 403


def test_student_cannot_share_file_on_update(client, student):
    f = upload(client, student)
    r = client.put(f"/files/{f['id']}", json={"isShared": True, "title": "renamed"}, headers=student["headers"])
    assert r.json()["isShared"] is False
    assert r.json()["title"] == "renamed"


def test_delete(client, staff, other_staff):
    f = upload(client, staff)
    assert client.delete(f"/files/{f['id']}", headers=other_staff["headers"]).status_code == 403
    assert client.delete(f"/files/{f['id']}", headers=staff["headers"]).status_code == 200
    assert client.delete(f"/files/{f['id']}", headers=staff["headers"]).status_code == 404


def test_save_shared_file(client, staff, connected_student, db):
    f = upload(client, staff, isShared=True)
    r = client.post(f"/files/save/{f['id']}", headers=connected_student["headers"])
    assert r.status_code == 201
    copy = r.json()
    assert copy["id"] != f["id"]
    assert copy["isShared"] is False
    assert copy["teacherCode"] is None
    assert copy["fileData"] == f["fileData"]
    assert copy["title"] == "lecture1 (copy)"
    assert copy["authorId"] == connected_student["user"]["id"]
    assert db["file"].count_documents({}) == 2


def test_save_rules(client, staff, connected_student):
    private = upload(client, staff)
    assert client.post(f"/files/save/{private['id']}", headers=connected_student["headers"]).status_code == 404
    shared = upload(client, staff, isShared=True)
    assert client.post(f"/files/save/{shared['id']}", headers=staff["headers"]).status_code == 403


def test_search_by_staff(client, staff, student):
    upload(client, staff, filename="shared.pdf", isShared=True)
    upload(client, staff, filename="private.pdf")
    r = client.get("/files/search/STAFF123", headers=student["headers"])
    assert r.status_code == 200
    body = r.json()
    assert body["teacherInfo"]["totalFiles"] == 1
    assert [f["filename"] for f in body["files"]] == ["shared.pdf"]
    assert client.get("/files/search/NOBODY", headers=student["headers"]).status_code == 404
