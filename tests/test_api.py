from fastapi.testclient import TestClient

import main
from config import BASE_DIR
from main import app
from seed import SyntheticSeedSource
from tests.conftest import login

DATA_DIR = BASE_DIR / "data"

STUDENT = {
    "name": "Budi Santoso",
    "email": "budi@kampus.ac.id",
    "major": "Teknologi Informasi",
    "batch": 2023,
}


def test_api_requires_login(client):
    assert client.get("/api/students").status_code == 401
    assert client.get("/api/user").status_code == 401


def test_classes_are_admin_only(user_client):
    assert user_client.get("/api/students").status_code == 200
    assert user_client.get("/api/classes").status_code == 403


def test_failed_login_redirects_back_to_form(client):
    resp = client.post("/login", data={"username": "admin", "password": "wrong"}, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login-form.html?error=true"
    assert client.get("/api/students").status_code == 401


def test_logout_clears_session(admin_client):
    admin_client.post("/logout", follow_redirects=False)
    assert admin_client.get("/api/students").status_code == 401


def test_current_user_info(admin_client, user_client):
    admin = admin_client.get("/api/user").json()
    assert admin["name"] == "admin"
    assert admin["roles"] == "ROLE_ADMIN"
    assert admin["is_admin"] is True

    user = user_client.get("/api/user").json()
    assert user["email"] == "user@example.com"
    assert user["roles"] == "ROLE_USER"
    assert user["is_admin"] is False


def test_pages(client):
    assert client.get("/").status_code == 200
    login_page = client.get("/login.html")
    assert login_page.status_code == 200
    assert "OAuth2" in login_page.text
    assert client.get("/login-form.html").status_code == 200
    resp = client.get("/index", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/login-form.html"


def test_index_after_login(admin_client):
    resp = admin_client.get("/index")
    assert resp.status_code == 200
    assert "Dashboard" in resp.text


def test_student_crud(admin_client):
    resp = admin_client.post("/api/students", json=STUDENT)
    assert resp.status_code == 201
    created = resp.json()
    assert created["nim"] == "1120230001"
    assert created["status"] == "ACTIVE"

    second = admin_client.post("/api/students", json=STUDENT).json()
    assert second["nim"] == "1120230002"

    student_id = created["id"]
    assert admin_client.get(f"/api/students/{student_id}").json()["name"] == "Budi Santoso"
    assert len(admin_client.get("/api/students").json()) == 2

    resp = admin_client.put(f"/api/students/{student_id}", json={**STUDENT, "name": "Budi Raharjo"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Budi Raharjo"
    assert resp.json()["nim"] == "1120230001"

    assert admin_client.delete(f"/api/students/{student_id}").status_code == 204
    resp = admin_client.get(f"/api/students/{student_id}")
    assert resp.status_code == 404
    assert "message" in resp.json()
    assert admin_client.delete(f"/api/students/{student_id}").status_code == 404


def test_student_validation_errors_are_itemized(admin_client):
    resp = admin_client.post(
        "/api/students",
        json={"name": "Budi123", "email": "not-an-email", "major": "Teknologi Informasi", "batch": 2031},
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Validation failed"
    assert set(body["errors"]) == {"name", "email", "batch"}


def test_student_unknown_major_is_bad_request(admin_client):
    resp = admin_client.post("/api/students", json={**STUDENT, "major": "Teknik Sipil"})
    assert resp.status_code == 400
    assert "major" in resp.json()["errors"]


def test_update_missing_student_is_not_found(admin_client):
    resp = admin_client.put("/api/students/65a000000000000000000000", json=STUDENT)
    assert resp.status_code == 404


def test_major_options_and_statistics(user_client):
    assert user_client.get("/api/students/major-options").json() == {
        "options": ["Sistem Informasi", "Teknologi Informasi"]
    }
    user_client.post("/api/students", json=STUDENT)
    stats = user_client.get("/api/students/statistics").json()
    assert stats["ti_total"] == 1
    assert stats["ti_active"] == 1
    assert stats["total_students"] == 1


def test_subject_crud_and_code_policy(user_client):
    resp = user_client.post("/api/subjects", json={"name": "Basis Data", "major": "Sistem Informasi", "sks": 3})
    assert resp.status_code == 201
    subject = resp.json()
    assert subject["code"] == "SI001"

    resp = user_client.put(
        f"/api/subjects/{subject['id']}",
        json={"name": "Basis Data", "major": "Teknologi Informasi", "sks": 3},
    )
    assert resp.status_code == 200
    assert resp.json()["code"] == "TI001"

    resp = user_client.post("/api/subjects", json={"name": "Basis Data", "major": "Sistem Informasi", "sks": 8})
    assert resp.status_code == 400
    assert "sks" in resp.json()["errors"]

    assert user_client.delete(f"/api/subjects/{subject['id']}").status_code == 204
    assert user_client.get(f"/api/subjects/{subject['id']}").status_code == 404


def test_recycled_synthetic_subject_name_survives_update(user_client):
    for subject in SyntheticSeedSource(DATA_DIR, subject_count=30).subjects():
        assert user_client.post("/api/subjects", json=subject).status_code == 201
    recycled = next(s for s in user_client.get("/api/subjects").json() if s["name"] == "Basis Data II")

    body = {key: recycled[key] for key in ("code", "name", "major", "sks")}
    resp = user_client.put(f"/api/subjects/{recycled['id']}", json=body)
    assert resp.status_code == 200
    assert resp.json()["name"] == "Basis Data II"
    assert resp.json()["code"] == recycled["code"]


def test_class_crud_and_enrollment(admin_client):
    student = admin_client.post("/api/students", json=STUDENT).json()
    resp = admin_client.post("/api/classes", json={"name": "Basis Data - Kelas A", "subject_name": "Basis Data"})
    assert resp.status_code == 201
    classroom = resp.json()
    assert classroom["code"] == "KLS001"

    path = f"/api/classes/{classroom['id']}/students/{student['id']}"
    assert admin_client.post(path).json()["student_ids"] == [student["id"]]
    assert admin_client.post(path).json()["student_ids"] == [student["id"]]

    admin_client.delete(f"/api/students/{student['id']}")
    assert admin_client.get(f"/api/classes/{classroom['id']}").json()["student_ids"] == [student["id"]]
    assert admin_client.delete(path).json()["student_ids"] == []
    assert admin_client.delete(path).status_code == 200

    resp = admin_client.post("/api/classes/65a000000000000000000000/students/x")
    assert resp.status_code == 404

    resp = admin_client.post("/api/classes", json={"name": "Kelas", "subject_name": ""})
    assert resp.status_code == 400
    assert "subject_name" in resp.json()["errors"]

    assert admin_client.delete(f"/api/classes/{classroom['id']}").status_code == 204


def test_request_id_is_echoed(client):
    resp = client.get("/", headers={"X-Request-ID": "req-123"})
    assert resp.headers["X-Request-ID"] == "req-123"
    assert client.get("/").headers["X-Request-ID"]


def test_startup_seeds_before_serving(db, monkeypatch):
    monkeypatch.setattr(main, "connect", lambda: db)
    with TestClient(app) as client:
        login(client, "admin", "admin")
        assert len(client.get("/api/students").json()) == 10
        assert len(client.get("/api/subjects").json()) == 8
        assert len(client.get("/api/classes").json()) == 4
