from eventhub.infrastructure.repositories.user_repository import UserRepository


def _login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


# ---------------------
# PROFILE
# ---------------------

def test_update_profile(client, attendee):
    response = client.put(
        "/api/users/me",
        json={"name": "Renamed", "email": "renamed@example.com"},
        headers=attendee["headers"],
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"
    assert response.json()["email"] == "renamed@example.com"


def test_profile_email_must_be_unique(client, attendee, organizer):
    response = client.put(
        "/api/users/me",
        json={"email": organizer["email"]},
        headers=attendee["headers"],
    )

    assert response.status_code == 400


def test_change_password(client, attendee):
    wrong = client.put(
        "/api/users/me/password",
        json={"current_password": "not-it", "new_password": "brand-new-pass"},
        headers=attendee["headers"],
    )
    assert wrong.status_code == 400

    ok = client.put(
        "/api/users/me/password",
        json={"current_password": "password123", "new_password": "brand-new-pass"},
        headers=attendee["headers"],
    )
    assert ok.status_code == 200
    assert _login(client, attendee["email"], "brand-new-pass").status_code == 200


def test_delete_own_account(client, attendee):
    response = client.delete("/api/users/me", headers=attendee["headers"])

    assert response.status_code == 200
    assert client.get("/api/users/me", headers=attendee["headers"]).status_code == 401


def test_cannot_delete_account_with_active_booking(client, attendee, make_event):
    event_id = make_event()
    client.post(f"/api/bookings/events/{event_id}", json={"tickets": 1}, headers=attendee["headers"])

    response = client.delete("/api/users/me", headers=attendee["headers"])

    assert response.status_code == 409


# ---------------------
# ADMIN
# ---------------------

def test_admin_user_management(client, admin, attendee):
    listing = client.get("/api/users", headers=admin["headers"])
    assert listing.status_code == 200
    assert {user["email"] for user in listing.json()} >= {admin["email"], attendee["email"]}

    promoted = client.patch(
        f"/api/users/{attendee['id']}/role",
        json={"role": "Organizer"},
        headers=admin["headers"],
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "Organizer"

    renamed = client.put(
        f"/api/users/{attendee['id']}",
        json={"name": "Promoted Attendee"},
        headers=admin["headers"],
    )
    assert renamed.json()["name"] == "Promoted Attendee"

    deleted = client.delete(f"/api/users/{attendee['id']}", headers=admin["headers"])
    assert deleted.status_code == 200
    assert client.get(f"/api/users/{attendee['id']}", headers=admin["headers"]).status_code == 404


def test_invalid_role_is_rejected(client, admin, attendee):
    response = client.patch(
        f"/api/users/{attendee['id']}/role",
        json={"role": "Superuser"},
        headers=admin["headers"],
    )

    assert response.status_code == 422


def test_non_admin_cannot_manage_users(client, attendee, organizer):
    assert client.get("/api/users", headers=attendee["headers"]).status_code == 403
    assert client.delete(f"/api/users/{attendee['id']}", headers=organizer["headers"]).status_code == 403


def test_profile_email_race_is_a_conflict(client, attendee, organizer, monkeypatch):
    monkeypatch.setattr(UserRepository, "get_by_email", lambda self, email: None)

    response = client.put(
        "/api/users/me",
        json={"email": organizer["email"]},
        headers=attendee["headers"],
    )

    assert response.status_code == 409
