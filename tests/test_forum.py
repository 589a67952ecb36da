def ask(client, user, **extra):
    body = {"title": "Eigenvalues?", "content": "How do I compute them?"}
    body.update(extra)
    return client.post("/forum/questions", json=body, headers=user["headers"])


def test_create_question_assigned_to_teacher(client, student, staff):
    r = ask(client, student, teacherCode=staff["user"]["teacherCode"], tags=["linear-algebra"])
    assert r.status_code == 201
    q = r.json()
    assert q["status"] == "open"
    assert q["author"]["registrationNumber"] == "STU001"
    assert q["assignedTeacher"]["registrationNumber"] == "STAFF123"
    assert q["assignedTeacher"]["subject"] == "Mathematics"
    assert q["assignedTeacherCode"] == staff["user"]["teacherCode"]


def test_unknown_teacher_code_persists_nothing(client, student, db):
    r = ask(client, student, teacherCode="TCNOPE00")
    assert r.status_code == 404
    assert db["question"].count_documents({}) == 0


def test_staff_questions_are_not_assigned(client, staff, other_staff):
    r = ask(client, staff, teacherCode=other_staff["user"]["teacherCode"])
    assert r.status_code == 201
    assert r.json()["assignedTeacher"] is None


def test_question_requires_title_and_content(client, student):
    r = client.post("/forum/questions", json={"title": ""}, headers=student["headers"])
    assert r.status_code == 400
    assert client.post("/forum/questions", json={"title": "a", "content": "b"}).status_code == 401


def test_listing_and_detail_are_public(client, student):
    first = ask(client, student, title="First").json()
    ask(client, student, title="Second")
    r = client.get("/forum/questions")
    assert [q["title"] for q in r.json()] == ["Second", "First"]
    r = client.get(f"/forum/questions/{first['id']}")
    assert r.status_code == 200
    assert r.json()["title"] == "First"
    assert client.get("/forum/questions/0123456789abcdef01234567").status_code == 404


def test_answers(client, student, staff):
    q = ask(client, student).json()
    r = client.post(f"/forum/questions/{q['id']}/answers", json={"content": "Use the characteristic polynomial"},
                    headers=staff["headers"])
    assert r.status_code == 201
    answer = r.json()
    assert answer["author"]["registrationNumber"] == "STAFF123"
    assert answer["author"]["role"] == "staff"
    detail = client.get(f"/forum/questions/{q['id']}").json()
    assert [a["content"] for a in detail["answers"]] == ["Use the characteristic polynomial"]
    r = client.post("/forum/questions/0123456789abcdef01234567/answers", json={"content": "x"},
                    headers=staff["headers"])
    assert r.status_code == 404


def test_author_resolves(client, student):
    q = ask(client, student).json()
    r = client.patch(f"/forum/questions/{q['id']}/status", json={"status": "resolved"}, headers=student["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "resolved"


def test_any_staff_may_resolve(client, register, student):
    assigned = register("STAFFC", role="staff")
    bystander = register("STAFFB", role="staff")
    q = ask(client, student, teacherCode=assigned["user"]["teacherCode"]).json()
    r = client.patch(f"/forum/questions/{q['id']}/status", json={"status": "resolved"}, headers=bystander["headers"])
    assert r.status_code == 200
    assert r.json()["status"] == "resolved"


def test_other_student_cannot_resolve(client, register, student):
    other = register("STU002")
    q = ask(client, student).json()
    r = client.patch(f"/forum/questions/{q['id']}/status", json={"status": "resolved"}, headers=other["headers"])
    assert r.status_code == 403


def test_no_reopen_and_invalid_status(client, student, db):
    q = ask(client, student).json()
    for status in ("closed", None):
        r = client.patch(f"/forum/questions/{q['id']}/status", json={"status": status}, headers=student["headers"])
        assert r.status_code == 400
        assert r.json()["code"] == "INVALID_STATUS"
    client.patch(f"/forum/questions/{q['id']}/status", json={"status": "resolved"}, headers=student["headers"])
    r = client.patch(f"/forum/questions/{q['id']}/status", json={"status": "open"}, headers=student["headers"])
    assert r.status_code == 400
    assert db["question"].find_one({})["status"] == "resolved"


def test_answering_resolved_question(client, student, staff):
    q = ask(client, student).json()
    client.patch(f"/forum/questions/{q['id']}/status", json={"status": "resolved"}, headers=student["headers"])
    r = client.post(f"/forum/questions/{q['id']}/answers", json={"content": "Late answer"}, headers=student["headers"])
    assert r.status_code == 201
