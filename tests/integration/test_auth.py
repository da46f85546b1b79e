from eventhub.infrastructure.repositories.user_repository import UserRepository


def _register(client, email="new@example.com", password="password123", name="New User"):
    return client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": password},
    )


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


def _reset_url(client, admin):
    events = client.get("/api/admin/outbox/events", headers=admin["headers"]).json()
    resets = [item for item in events if item["event_type"] == "PASSWORD_RESET_REQUESTED"]
    return resets[-1]["payload"]["reset_url"]


# ---------------------
# REGISTER / LOGIN
# ---------------------

def test_register_returns_token_and_standard_role(client):
    response = _register(client, email="New@Example.com")

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "Standard User"

    me = client.get("/api/users/me", headers=_bearer(body["token"]))
    assert me.status_code == 200
    assert me.json()["name"] == "New User"


def test_duplicate_email_is_rejected_without_detail(client):
    _register(client)

    response = _register(client)

    assert response.status_code == 400
    assert "already" not in response.json()["detail"]


def test_short_password_is_rejected(client):
    assert _register(client, password="short").status_code == 422


def test_login(client):
    _register(client)

    ok = client.post("/api/auth/login", json={"email": "new@example.com", "password": "password123"})
    wrong = client.post("/api/auth/login", json={"email": "new@example.com", "password": "nope-nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "password123"})

    assert ok.status_code == 200
    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["detail"] == unknown.json()["detail"] == "Invalid credentials"


def test_garbage_token_is_unauthorized(client):
    response = client.get("/api/users/me", headers=_bearer("not-a-jwt"))

    assert response.status_code == 401


def test_logout_revokes_token(client):
    token = _register(client).json()["token"]

    response = client.post("/api/auth/logout", headers=_bearer(token))

    assert response.status_code == 200
    assert client.get("/api/users/me", headers=_bearer(token)).status_code == 401


# ---------------------
# PASSWORD RESET
# ---------------------

def test_forgot_password_answers_the_same_for_unknown_email(client, attendee):
    known = client.post("/api/auth/forgot-password", json={"email": attendee["email"]})
    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()


def test_password_reset_flow(client, attendee, admin):
    client.post("/api/auth/forgot-password", json={"email": attendee["email"]})
    token = _reset_url(client, admin).rsplit("/", 1)[-1]

    response = client.put(f"/api/auth/reset-password/{token}", json={"password": "brand-new-pass"})
    assert response.status_code == 200

    login = client.post(
        "/api/auth/login",
        json={"email": attendee["email"], "password": "brand-new-pass"},
    )
    assert login.status_code == 200

    reused = client.put(f"/api/auth/reset-password/{token}", json={"password": "another-pass"})
    assert reused.status_code == 400


def test_reset_with_unknown_token(client):
    response = client.put("/api/auth/reset-password/deadbeef", json={"password": "brand-new-pass"})

    assert response.status_code == 400


def test_reset_rejects_short_password(client, attendee, admin):
    client.post("/api/auth/forgot-password", json={"email": attendee["email"]})
    token = _reset_url(client, admin).rsplit("/", 1)[-1]

    response = client.put(f"/api/auth/reset-password/{token}", json={"password": "short"})

    assert response.status_code == 400


def test_register_race_on_email_is_a_conflict(client, monkeypatch):
    _register(client)
    # Both requests passed the lookup before either inserted.
    monkeypatch.setattr(UserRepository, "get_by_email", lambda self, email: None)

    response = _register(client)

    assert response.status_code == 409
