import pytest
import psycopg2.errors
from argon2.exceptions import VerifyMismatchError
from datetime import datetime


def test_signup_success(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db("auth_service")

    # RETURNING user_id, name, email, role
    mock_cursor.fetchone.return_value = {
        "user_id": 1, "name": "Test User", "email": "test@example.com", "role": "user"
    }

    mock_ph = mocker.patch("backend.auth_service.routes.ph")
    mock_ph.hash.return_value = "hashed_secret"

    payload = {
        "name": "Test User",
        "email": "Test@Example.com",
        "password": "password123",
    }

    response = client.post("/api/auth/signup", json=payload)

    assert response.status_code == 201
    data = response.get_json()
    assert data["user"] == {"id": 1, "name": "Test User", "email": "test@example.com", "role": "user"}
    assert "token" in data

    # Email is lowercased and only the hash is stored
    args, _ = mock_cursor.execute.call_args
    assert args[1][1] == "test@example.com"
    assert args[1][2] == "hashed_secret"
    mock_conn.commit.assert_called_once()


def test_signup_missing_fields(client):
    response = client.post("/api/auth/signup", json={})
    assert response.status_code == 400
    assert "required" in response.get_json()["error"]


@pytest.mark.parametrize("payload, message", [
    ({"name": "A", "email": "not-an-email", "password": "password123"}, "valid email"),
    ({"name": "A", "email": "a@b.com", "password": "123"}, "at least 6"),
    ({"name": "A" * 51, "email": "a@b.com", "password": "password123"}, "exceed 50"),
])
def test_signup_invalid_input(client, payload, message):
    response = client.post("/api/auth/signup", json=payload)
    assert response.status_code == 400
    assert message in response.get_json()["error"]


def test_signup_duplicate_email(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db("auth_service")
    mocker.patch("backend.auth_service.routes.ph").hash.return_value = "hashed_secret"
    mock_cursor.execute.side_effect = psycopg2.errors.UniqueViolation()

    response = client.post("/api/auth/signup", json={
        "name": "Test", "email": "taken@example.com", "password": "password123"
    })

    assert response.status_code == 400
    assert response.get_json()["error"] == "Email already exists"


def test_login_success(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db("auth_service")

    mock_cursor.fetchone.return_value = {
        "user_id": 1,
        "name": "Test User",
        "email": "test@example.com",
        "password_hash": "hashed_secret",
        "role": "organizer",
        "is_active": True,
    }

    mock_ph = mocker.patch("backend.auth_service.routes.ph")
    mock_ph.verify.return_value = True

    response = client.post("/api/auth/login", json={
        "email": "test@example.com",
        "password": "password123"
    })

    assert response.status_code == 200
    data = response.get_json()
    assert data["user"]["id"] == 1
    assert data["user"]["role"] == "organizer"
    assert "password_hash" not in data["user"]
    assert "token" in data


def test_login_missing_credentials(client):
    response = client.post("/api/auth/login", json={"email": "test@example.com"})
    assert response.status_code == 400
    assert response.get_json()["error"] == "Please provide an email and password"


def test_login_invalid_credentials(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db("auth_service")

    mock_cursor.fetchone.return_value = {
        "user_id": 1,
        "name": "Test User",
        "email": "test@example.com",
        "password_hash": "hashed_secret",
        "role": "user",
        "is_active": True,
    }

    mock_ph = mocker.patch("backend.auth_service.routes.ph")
    mock_ph.verify.side_effect = VerifyMismatchError()

    response = client.post("/api/auth/login", json={
        "email": "test@example.com",
        "password": "wrongpassword"
    })

    assert response.status_code == 401
    assert response.get_json()["error"] == "Invalid credentials"


def test_login_unknown_user(client, mock_db):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = None

    response = client.post("/api/auth/login", json={
        "email": "nobody@example.com",
        "password": "password123"
    })

    assert response.status_code == 401


def test_login_deactivated_user(client, mock_db, mocker):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {
        "user_id": 1, "name": "T", "email": "t@example.com",
        "password_hash": "h", "role": "user", "is_active": False,
    }
    mock_ph = mocker.patch("backend.auth_service.routes.ph")

    response = client.post("/api/auth/login", json={"email": "t@example.com", "password": "password123"})

    assert response.status_code == 401
    mock_ph.verify.assert_not_called()


def test_get_me_success(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")

    mock_cursor.fetchone.return_value = {
        "user_id": 1,
        "name": "Test User",
        "email": "test@example.com",
        "role": "user",
        "phone": "",
        "avatar": None,
        "city": "Pune",
        "state": None,
        "country": "India",
        "created_at": datetime(2025, 1, 1, 10, 0, 0),
    }

    response = client.get("/api/auth/me", headers=auth_headers(1))

    assert response.status_code == 200
    data = response.get_json()
    assert data["email"] == "test@example.com"
    assert data["created_at"] == "2025-01-01T10:00:00"


def test_get_me_unauthorized(client):
    response = client.get("/api/auth/me")
    assert response.status_code == 401


def test_get_me_user_deleted(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/auth/me", headers=auth_headers(99))
    assert response.status_code == 404


def test_update_me_ignores_unknown_fields(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {
        "user_id": 1, "name": "New Name", "email": "test@example.com", "role": "user",
        "phone": "", "avatar": None, "city": "Delhi", "state": None, "country": "India",
        "created_at": datetime(2025, 1, 1),
    }

    response = client.put("/api/auth/me", headers=auth_headers(1), json={
        "name": "New Name", "city": "Delhi", "role": "admin"
    })

    assert response.status_code == 200
    sql, values = mock_cursor.execute.call_args[0]
    assert "role" not in sql.split("WHERE")[0]
    assert values == ["New Name", "Delhi", 1]


def test_update_me_no_valid_fields(client, auth_headers):
    response = client.put("/api/auth/me", headers=auth_headers(1), json={"role": "admin"})
    assert response.status_code == 400


def test_change_password_wrong_current(client, mock_db, mocker, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {"password_hash": "hashed_secret"}
    mock_ph = mocker.patch("backend.auth_service.routes.ph")
    mock_ph.verify.side_effect = VerifyMismatchError()

    response = client.put("/api/auth/me/password", headers=auth_headers(1), json={
        "currentPassword": "wrong", "newPassword": "newpassword"
    })

    assert response.status_code == 401
    assert response.get_json()["error"] == "Password is incorrect"
    mock_conn.commit.assert_not_called()


def test_change_password_success(client, mock_db, mocker, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {"password_hash": "hashed_secret"}
    mock_ph = mocker.patch("backend.auth_service.routes.ph")
    mock_ph.verify.return_value = True
    mock_ph.hash.return_value = "new_hash"

    response = client.put("/api/auth/me/password", headers=auth_headers(1), json={
        "currentPassword": "password123", "newPassword": "newpassword"
    })

    assert response.status_code == 200
    assert response.get_json() == {"status": "updated"}
    args, _ = mock_cursor.execute.call_args
    assert args[1] == ("new_hash", 1)


def test_signup_rejects_array_body(client):
    response = client.post("/api/auth/signup", json=["a@b.com", "password123"])
    assert response.status_code == 400
    assert response.get_json()["error"] == "Request body must be a JSON object"


def test_signup_rejects_non_string_fields(client):
    response = client.post("/api/auth/signup", json={
        "name": "Asha", "email": {"addr": "a@b.com"}, "password": "password123",
    })
    assert response.status_code == 400
    assert response.get_json()["error"] == "email must be a string"


def test_login_rejects_non_string_password(client):
    response = client.post("/api/auth/login", json={"email": "a@b.com", "password": 123456})
    assert response.status_code == 400
    assert response.get_json()["error"] == "password must be a string"


def test_update_me_rejects_non_string_name(client, auth_headers):
    response = client.put("/api/auth/me", json={"name": ["Asha"]}, headers=auth_headers())
    assert response.status_code == 400
    assert response.get_json()["error"] == "name must be a string"


def test_get_settings_fills_defaults(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {
        "notification_settings": {"weeklyDigest": False},
        "privacy_settings": {},
    }

    response = client.get("/api/auth/me/settings", headers=auth_headers(user_id=3))

    assert response.status_code == 200
    settings = response.get_json()["data"]
    assert settings["emailNotifications"]["weeklyDigest"] is False
    assert settings["emailNotifications"]["eventUpdates"] is True
    assert settings["privacy"]["profileVisibility"] == "public"
    assert mock_cursor.execute.call_args[0][1] == (3,)


def test_get_settings_user_deleted(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = None

    response = client.get("/api/auth/me/settings", headers=auth_headers())

    assert response.status_code == 404


def test_update_notification_settings_resets_omitted_flags(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {
        "notification_settings": {"eventUpdates": True, "newEvents": True, "registrationReminders": True,
                                  "weeklyDigest": True, "promotionalOffers": True},
        "privacy_settings": {},
    }

    response = client.put("/api/auth/me/settings/notifications",
                          json={"promotionalOffers": True}, headers=auth_headers(user_id=3))

    assert response.status_code == 200
    assert response.get_json()["message"] == "Email notification settings updated successfully"
    sql, params = mock_cursor.execute.call_args[0]
    assert "notification_settings = %s" in sql
    saved, user_id = params
    assert saved.adapted == {
        "eventUpdates": True,
        "newEvents": True,
        "registrationReminders": True,
        "weeklyDigest": True,
        "promotionalOffers": True,
    }
    assert user_id == 3


@pytest.mark.parametrize("path, payload, message", [
    ("/api/auth/me/settings/notifications", {"weeklyDigest": "no"}, "weeklyDigest must be true or false"),
    ("/api/auth/me/settings/privacy", {"profileVisibility": "everyone"}, "profileVisibility must be one of"),
    ("/api/auth/me/settings/privacy", {"showEmail": 1}, "showEmail must be true or false"),
])
def test_update_settings_invalid(client, auth_headers, path, payload, message):
    response = client.put(path, json=payload, headers=auth_headers())
    assert response.status_code == 400
    assert message in response.get_json()["error"]


def test_update_privacy_settings(client, mock_db, auth_headers):
    mock_conn, mock_cursor = mock_db("auth_service")
    mock_cursor.fetchone.return_value = {
        "notification_settings": {},
        "privacy_settings": {"profileVisibility": "private"},
    }

    response = client.put("/api/auth/me/settings/privacy",
                          json={"profileVisibility": "private"}, headers=auth_headers())

    assert response.status_code == 200
    assert response.get_json()["data"]["privacy"]["profileVisibility"] == "private"
    assert "privacy_settings = %s" in mock_cursor.execute.call_args[0][0]
