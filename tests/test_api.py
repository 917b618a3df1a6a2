"""
HTTP-level tests. Services run on mongomock through dependency_overrides;
tokens are real, signed with the configured identity secret.
"""
import csv
import inspect
import io
import logging

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient

from internship_portal.api.dependencies import (
    get_profile_service, get_assignment_service, get_leaderboard,
    get_submission_recorder, get_file_host, get_current_student
)
from internship_portal.core.auth import create_access_token
from internship_portal.main import app

TRACK = "Data Analysis"
TRACK_PATH = "Data%20Analysis"


class FakeFileHost:
    def __init__(self):
        self.uploads = []

    def upload(self, filename, content, mime_type="application/octet-stream"):
        self.uploads.append((filename, content, mime_type))
        return f"https://drive.google.com/file/d/F{len(self.uploads)}/view"


def _auth(uid, role=None, email=None):
    claims = {"sub": uid, "email": email or f"{uid}@example.com", "name": uid.title()}
    if role:
        claims["role"] = role
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


STAFF = _auth("mentor", role="staff")
ASHA = _auth("asha")


@pytest.fixture
def file_host():
    return FakeFileHost()


@pytest.fixture
def client(profiles, assignments, leaderboard, recorder, file_host):
    app.dependency_overrides[get_profile_service] = lambda: profiles
    app.dependency_overrides[get_assignment_service] = lambda: assignments
    app.dependency_overrides[get_leaderboard] = lambda: leaderboard
    app.dependency_overrides[get_submission_recorder] = lambda: recorder
    app.dependency_overrides[get_file_host] = lambda: file_host
    yield TestClient(app)
    app.dependency_overrides.clear()


def _onboard(client, headers=ASHA, name="Asha"):
    return client.post(
        "/api/students/profile",
        json={"name": name, "institution": "Pune University", "track": TRACK},
        headers=headers,
    )


def _create_assignment(client, title="Pandas basics", kind="homework"):
    response = client.post(
        "/api/admin/assignments",
        json={"title": title, "kind": kind, "track": TRACK},
        headers=STAFF,
    )
    assert response.status_code == 201
    return response.json()


def _submit(client, assignment_id, headers=ASHA, filename="solution.py"):
    return client.post(
        "/api/students/submissions",
        data={"assignment_id": assignment_id, "description": "done"},
        files={"file": (filename, b"print('hi')", "text/x-python")},
        headers=headers,
    )


def test_missing_token_is_401(client):
    response = client.get("/api/students/profile")
    assert response.status_code == 401
    assert response.json()["error_code"] == "AUTHENTICATION_FAILED"


def test_bad_token_is_401(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_student_cannot_reach_admin_routes(client):
    response = client.get("/api/admin/assignments", headers=ASHA)
    assert response.status_code == 403
    assert response.json()["error_code"] == "AUTHORIZATION_FAILED"


def test_me_reports_onboarding_state(client):
    assert client.get("/api/auth/me", headers=ASHA).json()["needs_onboarding"] is True
    _onboard(client)
    me = client.get("/api/auth/me", headers=ASHA).json()
    assert me["needs_onboarding"] is False
    assert me["is_staff"] is False

    staff = client.get("/api/auth/me", headers=STAFF).json()
    assert staff["is_staff"] is True
    assert staff["needs_onboarding"] is False


def test_profile_not_found_then_onboarding(client):
    response = client.get("/api/students/profile", headers=ASHA)
    assert response.status_code == 404
    assert response.json()["error_code"] == "PROFILE_NOT_FOUND"

    assert _onboard(client).status_code == 201
    profile = client.get("/api/students/profile", headers=ASHA).json()
    assert profile["track"] == TRACK
    assert profile["email"] == "asha@example.com"

    again = _onboard(client)
    assert again.status_code == 409
    assert again.json()["error_code"] == "PROFILE_EXISTS"


def test_onboarding_unknown_track(client):
    response = client.post(
        "/api/students/profile",
        json={"name": "Asha", "institution": "PU", "track": "Cooking"},
        headers=ASHA,
    )
    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_ERROR"


def test_submit_flow(client, clock, file_host):
    _onboard(client)
    assignment = _create_assignment(client)

    listed = client.get("/api/students/assignments", headers=ASHA).json()
    assert [(a["assignment_id"], a["submitted"]) for a in listed] == [(assignment["assignment_id"], False)]

    clock.advance(seconds=90)
    response = _submit(client, assignment["assignment_id"])

    assert response.status_code == 201
    body = response.json()
    assert body["latency_seconds"] == 90
    assert body["leaderboard_updated"] is True
    assert body["submission"]["file_url"] == "https://drive.google.com/file/d/F1/view"
    assert file_host.uploads[0][0] == "solution.py"

    listed = client.get("/api/students/assignments", headers=ASHA).json()
    assert listed[0]["submitted"] is True

    history = client.get("/api/students/submissions", headers=ASHA).json()
    assert [s["title"] for s in history] == ["Pandas basics"]

    board = client.get("/api/students/leaderboard", headers=ASHA).json()
    assert board["me"]["rank"] == 1
    assert board["top"][0]["student_id"] == "asha"
    assert board["stats"]["total_submissions"] == 1


def test_duplicate_submission_is_409_before_upload(client, file_host):
    _onboard(client)
    assignment = _create_assignment(client)
    assert _submit(client, assignment["assignment_id"]).status_code == 201

    response = _submit(client, assignment["assignment_id"])

    assert response.status_code == 409
    assert response.json()["error_code"] == "ALREADY_SUBMITTED"
    assert len(file_host.uploads) == 1


def test_submission_for_unknown_assignment(client, file_host):
    _onboard(client)
    response = _submit(client, "ASG_NOPE")
    assert response.status_code == 404
    assert response.json()["error_code"] == "ASSIGNMENT_NOT_FOUND"
    assert file_host.uploads == []


def test_submission_rejects_unsupported_file(client, file_host):
    _onboard(client)
    assignment = _create_assignment(client)
    response = _submit(client, assignment["assignment_id"], filename="virus.exe")
    assert response.status_code == 422
    assert file_host.uploads == []


def test_submit_requires_profile(client):
    response = _submit(client, "ASG_ANY")
    assert response.status_code == 404
    assert response.json()["error_code"] == "PROFILE_NOT_FOUND"


def test_admin_overview_export_and_leaderboard(client, clock):
    _onboard(client)
    ravi = _auth("ravi")
    _onboard(client, headers=ravi, name="Ravi")
    assignment = _create_assignment(client)

    clock.advance(seconds=30)
    _submit(client, assignment["assignment_id"], headers=ravi)
    clock.advance(seconds=30)
    _submit(client, assignment["assignment_id"])

    overview = client.get("/api/admin/submissions", params={"track": TRACK}, headers=STAFF).json()
    assert overview["stats"]["total_students"] == 2
    assert [g["student_name"] for g in overview["groups"]] == ["Asha", "Ravi"]

    export = client.get("/api/admin/submissions/export", headers=STAFF)
    assert export.status_code == 200
    assert export.headers["content-type"].startswith("text/csv")
    assert "attachment" in export.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(export.text)))
    assert len(rows) == 3

    board = client.get(f"/api/admin/leaderboard/{TRACK_PATH}", headers=STAFF).json()
    assert [(e["student_id"], e["rank"]) for e in board] == [("ravi", 1), ("asha", 2)]

    stats = client.get(f"/api/admin/leaderboard/{TRACK_PATH}/stats", headers=STAFF).json()
    assert stats["total_students"] == 2
    assert stats["average_response_seconds"] == 45

    rebuilt = client.post(f"/api/admin/leaderboard/{TRACK_PATH}/rebuild", headers=STAFF).json()
    assert {e["student_id"]: e["average_seconds"] for e in rebuilt} == {"ravi": 30, "asha": 60}

    summary = client.post(f"/api/admin/tracks/{TRACK_PATH}/reconcile", headers=STAFF).json()
    assert summary == {"track": TRACK, "submissions": 2, "index_documents": 2, "leaderboard_entries": 2}


def test_admin_unknown_track(client):
    response = client.get("/api/admin/leaderboard/Cooking", headers=STAFF)
    assert response.status_code == 422


def test_leaderboard_skip_is_bounded(client):
    response = client.get(f"/api/admin/leaderboard/{TRACK_PATH}", params={"skip": 5000}, headers=STAFF)
    assert response.status_code == 422


def test_blocking_handlers_are_plain_functions():
    # Plain def handlers run in the threadpool; pymongo and Drive calls block
    api_routes = [r for r in app.routes if isinstance(r, APIRoute) and r.path.startswith("/api")]
    assert api_routes
    for route in api_routes:
        assert not inspect.iscoroutinefunction(route.endpoint), route.path
    assert not inspect.iscoroutinefunction(get_current_student)


def test_race_past_precheck_logs_orphaned_upload(client, recorder, file_host, monkeypatch, caplog):
    _onboard(client)
    assignment = _create_assignment(client)
    assert _submit(client, assignment["assignment_id"]).status_code == 201

    monkeypatch.setattr(recorder, "has_submitted", lambda student_id, a: False)
    with caplog.at_level(logging.WARNING, logger="internship_portal.api.routes.student_routes"):
        response = _submit(client, assignment["assignment_id"])

    assert response.status_code == 409
    assert response.json()["error_code"] == "ALREADY_SUBMITTED"
    assert len(file_host.uploads) == 2
    assert "https://drive.google.com/file/d/F2/view" in caplog.text
