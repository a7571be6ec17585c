"""
Authentication service route handlers.

Provides routes for:
- User signup
- User login
- Profile retrieval (/me)
- Profile update (/me PUT)
- Password change (/me/password PUT)
- Notification and privacy settings (/me/settings)

All JWT logic is delegated to `auth_service.utils`.
"""

import logging
import re
from typing import Tuple, Dict, Any

import psycopg2.errors
from psycopg2.extras import Json
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError
from flask import Blueprint, request, jsonify, Response
from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    create_token,
    get_json_body,
    non_string_fields,
    string_type_error,
    verify_token_from_request,
)

auth_bp = Blueprint("auth", __name__)
ph = PasswordHasher()

EMAIL_RE = re.compile(r"^\w+([.-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,3})+$")
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6

PROFILE_FIELDS = ["name", "phone", "avatar", "city", "state", "country"]


def public_user(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    The user shape returned alongside a token.
    """
    return {
        "id": row["user_id"],
        "name": row["name"],
        "email": row["email"],
        "role": row["role"],
    }


def validate_credentials(name: str, email: str, password: str) -> str:
    """
    Shared signup checks. Returns an error message, or "" when valid.
    """
    if not name or not email or not password:
        return "Name, email, and password are required"
    if len(name) > NAME_MAX_LENGTH:
        return f"Name cannot exceed {NAME_MAX_LENGTH} characters"
    if not EMAIL_RE.match(email):
        return "Please enter a valid email"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    return ""


# --- REQUEST LOGGING ---
@auth_bp.before_request
def before_request() -> None:
    """
    Log every incoming request method and path to the authentication service.
    """
    logging.info(f"[Auth] Incoming {request.method} {request.path}")


@auth_bp.after_request
def after_request(response: Response) -> Response:
    """
    Log the response status code for every request.
    """
    logging.info(f"[Auth] Response {response.status}")
    return response


# --- SIGNUP ---
@auth_bp.route("/signup", methods=["POST"])
def signup() -> Tuple[Response, int]:
    """
    Create a new account with the default 'user' role.

    Expects a JSON body with:
    - name (str)
    - email (str): Unique email address.
    - password (str): Minimum 6 characters.
    - phone (str, optional)

    Returns:
        201: JSON with token and user.
        400: Missing fields, invalid input, or email already exists.
        500: Server-side error (hashing or database).
    """
    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, "name", "email", "password", "phone")
    if bad:
        return string_type_error(bad)

    name: str = (data.get("name") or "").strip()
    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password") or ""
    phone: str = (data.get("phone") or "").strip()

    problem = validate_credentials(name, email, password)
    if problem:
        return jsonify({"error": problem}), 400

    try:
        pw_hash = ph.hash(password)
    except Exception:
        logging.exception("[Auth] Password hashing failed")
        return jsonify({"error": "Password hashing failed"}), 500

    sql = """
        INSERT INTO users (name, email, password_hash, phone)
        VALUES (%s, %s, %s, %s)
        RETURNING user_id, name, email, role;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (name, email, pw_hash, phone))
                user = cur.fetchone()
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "Email already exists"}), 400
    except Exception:
        logging.exception("[Auth] Signup failed")
        return jsonify({"error": "Registration failed"}), 500

    token = create_token(user["user_id"], user["role"])

    return jsonify({"token": token, "user": public_user(user)}), 201


# --- LOGIN ---
@auth_bp.route("/login", methods=["POST"])
def login() -> Tuple[Response, int]:
    """
    Authenticate a user and return a JWT.

    Expects a JSON body with:
    - email (str)
    - password (str)

    Returns:
        200: JSON with token and user.
        400: Missing credentials.
        401: Invalid credentials, or the account is deactivated.
        500: Database error.
    """
    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, "email", "password")
    if bad:
        return string_type_error(bad)

    email: str = (data.get("email") or "").strip().lower()
    password: str = data.get("password", "")

    if not email or not password:
        return jsonify({"error": "Please provide an email and password"}), 400

    sql = """
        SELECT user_id, name, email, password_hash, role, is_active
        FROM users WHERE email = %s;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (email,))
                user = cur.fetchone()
    except Exception:
        logging.exception("[Auth] Login lookup failed")
        return jsonify({"error": "Login failed"}), 500

    if not user or not user.get("is_active", True):
        return jsonify({"error": "Invalid credentials"}), 401

    try:
        ph.verify(user["password_hash"], password)
    except (VerificationError, InvalidHashError):
        return jsonify({"error": "Invalid credentials"}), 401

    token = create_token(user["user_id"], user["role"])

    return jsonify({"token": token, "user": public_user(user)}), 200


# --- GET CURRENT USER ---
@auth_bp.route("/me", methods=["GET"])
def get_current_user() -> Tuple[Response, int]:
    """
    Retrieve the current user's profile.

    Requires Authorization header: Bearer <token>

    Returns:
        200: User profile object (never includes the password hash).
        401: Authentication failure.
        404: User not found in DB (deleted after token issue).
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = """
        SELECT user_id, name, email, role, phone, avatar,
               city, state, country, created_at
        FROM users
        WHERE user_id = %s;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                user = cur.fetchone()
    except Exception:
        logging.exception("[Auth] Could not retrieve user")
        return jsonify({"error": "Could not retrieve user"}), 500

    if not user:
        return jsonify({"error": "User not found"}), 404

    return jsonify(serialize_row(user)), 200


# --- UPDATE CURRENT USER ---
@auth_bp.route("/me", methods=["PUT"])
def update_current_user() -> Tuple[Response, int]:
    """
    Update specific fields of the current user's profile.

    Allowed fields: name, phone, avatar, city, state, country.

    Returns:
        200: Updated user object.
        400: No valid fields provided, or invalid name.
        401: Authentication failure.
        500: Update failed.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    fields = {k: v for k, v in data.items() if k in PROFILE_FIELDS}
    bad = non_string_fields(fields, *PROFILE_FIELDS)
    if bad:
        return string_type_error(bad)

    if not fields:
        return jsonify({"error": "No valid fields provided"}), 400

    if "name" in fields and (not fields["name"] or len(fields["name"]) > NAME_MAX_LENGTH):
        return jsonify({"error": f"Name must be 1-{NAME_MAX_LENGTH} characters"}), 400

    set_clause = ", ".join(f"{k} = %s" for k in fields)
    set_clause += ", updated_at = CURRENT_TIMESTAMP"

    values = list(fields.values()) + [user_id]

    sql = f"""
        UPDATE users SET {set_clause} WHERE user_id = %s
        RETURNING user_id, name, email, role, phone, avatar, city, state, country, created_at;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, values)
                updated_user = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Auth] Profile update failed")
        return jsonify({"error": "Update failed"}), 500

    if not updated_user:
        return jsonify({"error": "User not found"}), 404

    return jsonify(serialize_row(updated_user)), 200


# --- CHANGE PASSWORD ---
@auth_bp.route("/me/password", methods=["PUT"])
def change_password() -> Tuple[Response, int]:
    """
    Change the current user's password.

    Expects JSON: { "currentPassword": str, "newPassword": str }

    Returns:
        200: Status updated.
        400: Missing or too-short new password.
        401: Current password is incorrect.
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, "currentPassword", "newPassword")
    if bad:
        return string_type_error(bad)

    current = data.get("currentPassword") or ""
    new = data.get("newPassword") or ""

    if not current or len(new) < PASSWORD_MIN_LENGTH:
        return jsonify({"error": f"Current password and a new password of at least {PASSWORD_MIN_LENGTH} characters are required"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT password_hash FROM users WHERE user_id = %s;", (user_id,))
                row = cur.fetchone()
                if not row:
                    return jsonify({"error": "User not found"}), 404

                try:
                    ph.verify(row["password_hash"], current)
                except (VerificationError, InvalidHashError):
                    return jsonify({"error": "Password is incorrect"}), 401

                cur.execute(
                    "UPDATE users SET password_hash = %s, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s;",
                    (ph.hash(new), user_id),
                )
                conn.commit()
    except Exception:
        logging.exception("[Auth] Password change failed")
        return jsonify({"error": "Password update failed"}), 500

    return jsonify({"status": "updated"}), 200


# --- SETTINGS ---
DEFAULT_NOTIFICATION_SETTINGS = {
    "eventUpdates": True,
    "newEvents": True,
    "registrationReminders": True,
    "weeklyDigest": True,
    "promotionalOffers": False,
}
DEFAULT_PRIVACY_SETTINGS = {
    "profileVisibility": "public",
    "showEmail": False,
    "showPhone": False,
    "allowMessages": True,
    "showAttendedEvents": True,
}
PROFILE_VISIBILITY = ["public", "friends", "private"]


def settings_payload(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Stored settings layered over the defaults, keyed the way clients expect.
    """
    return {
        "emailNotifications": {**DEFAULT_NOTIFICATION_SETTINGS, **(row["notification_settings"] or {})},
        "privacy": {**DEFAULT_PRIVACY_SETTINGS, **(row["privacy_settings"] or {})},
    }


def build_settings(data: Dict[str, Any], defaults: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """
    Replace a settings group: keys sent in the body win, the rest fall back
    to their defaults. Flags must be booleans.

    Returns:
        (settings, error_message). error_message is "" when valid.
    """
    settings = dict(defaults)
    for key, default in defaults.items():
        if data.get(key) is None:
            continue
        value = data[key]
        if isinstance(default, bool) and not isinstance(value, bool):
            return {}, f"{key} must be true or false"
        settings[key] = value

    if "profileVisibility" in settings and settings["profileVisibility"] not in PROFILE_VISIBILITY:
        return {}, f"profileVisibility must be one of: {', '.join(PROFILE_VISIBILITY)}"
    return settings, ""


@auth_bp.route("/me/settings", methods=["GET"])
def get_settings() -> Tuple[Response, int]:
    """
    The caller's email-notification and privacy settings.

    Returns:
        200: { data: { emailNotifications, privacy } }
        404: User not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT notification_settings, privacy_settings FROM users WHERE user_id = %s;",
                    (user_id,),
                )
                row = cur.fetchone()
    except Exception:
        logging.exception("[Auth] Could not load settings")
        return jsonify({"error": "Server error while fetching settings"}), 500

    if not row:
        return jsonify({"error": "User not found"}), 404

    return jsonify({"data": settings_payload(row)}), 200


def _save_settings(column: str, defaults: Dict[str, Any], message: str) -> Tuple[Response, int]:
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code

    settings, problem = build_settings(data, defaults)
    if problem:
        return jsonify({"error": problem}), 400

    sql = f"""
        UPDATE users SET {column} = %s, updated_at = CURRENT_TIMESTAMP
        WHERE user_id = %s
        RETURNING notification_settings, privacy_settings;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (Json(settings), user_id))
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception(f"[Auth] Could not update {column}")
        return jsonify({"error": "Server error while updating settings"}), 500

    if not row:
        return jsonify({"error": "User not found"}), 404

    return jsonify({"message": message, "data": settings_payload(row)}), 200


@auth_bp.route("/me/settings/notifications", methods=["PUT"])
def update_notification_settings() -> Tuple[Response, int]:
    """
    Replace the email-notification flags. Omitted flags reset to their defaults.
    """
    return _save_settings(
        "notification_settings", DEFAULT_NOTIFICATION_SETTINGS,
        "Email notification settings updated successfully",
    )


@auth_bp.route("/me/settings/privacy", methods=["PUT"])
def update_privacy_settings() -> Tuple[Response, int]:
    """
    Replace the privacy settings. Omitted keys reset to their defaults.
    """
    return _save_settings(
        "privacy_settings", DEFAULT_PRIVACY_SETTINGS,
        "Privacy settings updated successfully",
    )
