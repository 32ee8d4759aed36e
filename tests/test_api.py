from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from league_dashboard.api import app, get_repository, get_settings


@pytest.fixture
def client(repository, settings, league):
    expires = datetime.utcnow() + timedelta(days=1)
    for user_id in ("admin", "comm", "cap", "p1", "outsider"):
        repository.add_session(f"{user_id}-token", user_id, expires_at=expires)
    repository.add_session("stale-token", "admin", expires_at=datetime.utcnow() - timedelta(minutes=1))

    app.dependency_overrides[get_repository] = lambda: repository
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user_id):
    return {"Authorization": f"Bearer {user_id}-token"}


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_anonymous_and_expired_sessions_are_forbidden(client):
    response = client.get("/dashboard/edit-week-1")
    assert response.status_code == 403
    assert response.json() == {"error": "Access denied"}
    assert client.get("/dashboard/edit-week-1", headers=_auth("stale")).status_code == 403
    assert client.get("/dashboard/edit-week-1", headers={"Authorization": "Basic admin-token"}).status_code == 403


def test_week1_edit_round_trip(client, repository, league):
    slot = repository.add_week1_slot(league.season.id, "p1", session_number=1, court_number=1)
    other = repository.add_week1_slot(league.season.id, "p2", session_number=1, court_number=2)

    data = client.get("/dashboard/edit-week-1", headers=_auth("admin")).json()
    assert data["season_label"] == "Spring 2025"
    assert [s["id"] for s in data["week1_slots"]] == [slot, other]

    duplicate = client.post(
        "/dashboard/edit-week-1",
        json={"updates": [{"slot_id": slot, "user_id": "p3"}, {"slot_id": other, "user_id": "p3"}]},
        headers=_auth("admin"),
    )
    assert duplicate.status_code == 400
    assert duplicate.json() == {"error": "A player cannot be assigned to multiple week 1 slots."}

    ok = client.post(
        "/dashboard/edit-week-1",
        json={"updates": [{"slot_id": slot, "user_id": "p3"}]},
        headers=_auth("admin"),
    )
    assert ok.status_code == 200
    assert ok.json() == {"status": True, "message": "Week 1 rosters updated successfully."}


def test_malformed_body_is_a_bad_request(client):
    response = client.post("/dashboard/edit-week-1", json={"updates": "nope"}, headers=_auth("admin"))
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body."}


def test_tryout_sheet_download(client, repository, league):
    not_found = client.get("/dashboard/edit-week-1/tryout-sheets", headers=_auth("admin"))
    assert not_found.status_code == 404
    assert not_found.json()["error"].startswith("No week 1 tryout roster rows")

    repository.add_week1_slot(league.season.id, "p1", session_number=1, court_number=1)
    response = client.get("/dashboard/edit-week-1/tryout-sheets", headers=_auth("admin"))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="bsd-week1-spring-2025.pdf"'
    assert response.headers["cache-control"] == "no-store"
    assert response.content.startswith(b"%PDF")


def test_signup_views(client, league):
    groups = client.get("/dashboard/view-signups", headers=_auth("cap")).json()
    assert groups[0]["label"] == "New Players"
    assert client.get("/dashboard/admin-view-signups", headers=_auth("cap")).status_code == 403

    deleted = client.delete(f"/dashboard/admin-view-signups/{league.signups['p4']}", headers=_auth("admin"))
    assert deleted.json()["message"] == "Signup entry deleted."
    entries = client.get("/dashboard/admin-view-signups", headers=_auth("admin")).json()["entries"]
    assert "p4" not in [entry["user_id"] for entry in entries]


def test_waitlist_flow(client):
    response = client.post("/dashboard/waitlist", headers=_auth("outsider"))
    assert response.json()["status"] is True
    assert client.post("/dashboard/waitlist", headers=_auth("outsider")).status_code == 400

    waitlist = client.get("/dashboard/view-waitlist", headers=_auth("admin")).json()
    entry_id = waitlist["entries"][0]["waitlist_id"]
    approved = client.post(f"/dashboard/view-waitlist/{entry_id}", json={"approved": True}, headers=_auth("admin"))
    assert approved.json()["message"] == "Player approved from waitlist."


def test_commissioner_endpoints(client, league):
    teams = [{"captain_id": user_id, "name": f"Team {user_id}"} for user_id in ("cap", "p1", "p2", "p3")]
    response = client.post(
        "/dashboard/select-captains",
        json={"division_id": league.divisions["BB"].id, "teams": teams},
        headers=_auth("comm"),
    )
    assert response.json() == {"status": True, "message": "Successfully created 4 teams!"}

    pictures = client.get("/dashboard/add-pictures", headers=_auth("comm")).json()
    assert "p2" in [player["user_id"] for player in pictures]
    upload = client.post("/dashboard/add-pictures/p2", json={"filename": "102_PT.jpg"}, headers=_auth("comm"))
    assert upload.json()["message"] == "Player picture uploaded."


def test_membership_endpoints(client):
    page = client.get("/dashboard/google-membership", params={"q": "pia"}, headers=_auth("admin")).json()
    assert [user["id"] for user in page["users"]] == ["p4"]

    response = client.patch(
        "/dashboard/google-membership/p4",
        json={"seasons_list": "Y", "notification_list": "N"},
        headers=_auth("admin"),
    )
    assert response.json()["message"] == "Membership fields updated."


def test_edit_player_endpoint(client, repository):
    response = client.patch("/dashboard/edit-player/p1", json={"height": 75, "male": True}, headers=_auth("admin"))
    assert response.status_code == 200
    assert repository.get_user("p1").height == 75
    rejected = client.patch("/dashboard/edit-player/p1", json={"height": 20}, headers=_auth("admin"))
    assert rejected.status_code == 400
