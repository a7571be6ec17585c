"""
Admin service routes: user management and dashboard statistics.

Every route requires an admin token.
"""

import logging
from typing import Tuple

import psycopg2.errors
from argon2 import PasswordHasher
from flask import Blueprint, request, jsonify, Response

from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    VALID_ROLES,
    get_json_body,
    non_string_fields,
    string_type_error,
    verify_token_from_request,
)
from backend.auth_service.routes import public_user, validate_credentials

admin_bp = Blueprint("admin", __name__)
ph = PasswordHasher()

# Roles that can be granted directly through POST /users
CREATABLE_ROLES = ["admin", "organizer"]

USER_COLUMNS = "user_id, name, email, role, phone, avatar, city, state, country, is_active, created_at"


@admin_bp.before_request
def before_request() -> None:
    logging.info(f"[Admin] Incoming {request.method} {request.path}")


@admin_bp.after_request
def after_request(response: Response) -> Response:
    logging.info(f"[Admin] Response {response.status}")
    return response


# --- USERS ---
@admin_bp.route("/users", methods=["GET"])
def list_users() -> Tuple[Response, int]:
    """
    List every account (password hashes excluded), newest first.

    Returns:
        200: { data: [user], total }
        401/403: Not an admin.
        500: Database error.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {USER_COLUMNS} FROM users ORDER BY created_at DESC;")
                users = [serialize_row(u) for u in cur.fetchall()]
    except Exception:
        logging.exception("[Admin] Get users failed")
        return jsonify({"error": "Server error"}), 500

    return jsonify({"data": users, "total": len(users)}), 200


@admin_bp.route("/users", methods=["POST"])
def create_user() -> Tuple[Response, int]:
    """
    Create an admin or organizer account.

    Expects JSON: { "name", "email", "password", "role": "admin" | "organizer" }

    Returns:
        201: { user }
        400: Invalid input or email already exists.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, "name", "email", "password")
    if bad:
        return string_type_error(bad)

    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    role = data.get("role")

    if role not in CREATABLE_ROLES:
        return jsonify({"error": f"role must be one of: {', '.join(CREATABLE_ROLES)}"}), 400

    problem = validate_credentials(name, email, password)
    if problem:
        return jsonify({"error": problem}), 400

    sql = """
        INSERT INTO users (name, email, password_hash, role)
        VALUES (%s, %s, %s, %s)
        RETURNING user_id, name, email, role;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (name, email, ph.hash(password), role))
                user = cur.fetchone()
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "User with this email already exists"}), 400
    except Exception:
        logging.exception("[Admin] Create user failed")
        return jsonify({"error": "Server error during user creation"}), 500

    logging.info(f"[Admin] Created {role} account {user['user_id']}")
    return jsonify({"user": public_user(user)}), 201


@admin_bp.route("/users/<int:user_id>/role", methods=["PUT"])
def update_user_role(user_id: int) -> Tuple[Response, int]:
    """
    Change a user's role.

    Tokens already issued to that user keep their old role until they expire.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    role = data.get("role")
    if role not in VALID_ROLES:
        return jsonify({"error": "Invalid role. Must be user, organizer, or admin"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE users SET role = %s, updated_at = CURRENT_TIMESTAMP WHERE user_id = %s RETURNING {USER_COLUMNS};",
                    (role, user_id),
                )
                user = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Admin] Role update failed")
        return jsonify({"error": "Server error"}), 500

    if not user:
        return jsonify({"error": "User not found"}), 404

    return jsonify({"data": serialize_row(user)}), 200


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
def delete_user(user_id: int) -> Tuple[Response, int]:
    """
    Delete an account. Admins cannot delete themselves.
    """
    admin_id, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    if admin_id == user_id:
        return jsonify({"error": "Cannot delete your own account"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM users WHERE user_id = %s RETURNING user_id, name, email, role;",
                    (user_id,),
                )
                user = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Admin] Delete user failed")
        return jsonify({"error": "Server error"}), 500

    if not user:
        return jsonify({"error": "User not found"}), 404

    return jsonify({"status": "deleted", "deletedUser": public_user(user)}), 200


# --- STATS ---
@admin_bp.route("/stats", methods=["GET"])
def stats() -> Tuple[Response, int]:
    """
    Counts for the admin dashboard.

    Returns:
        200: {
          users: { total, admins, organizers },
          events: { total, active },
          registrations: { total, active, cancelled },
          revenue: float
        }
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT
                        COUNT(*) AS total,
                        COUNT(*) FILTER (WHERE role = 'admin') AS admins,
                        COUNT(*) FILTER (WHERE role = 'organizer') AS organizers
                    FROM users;
                """)
                users = cur.fetchone()

                cur.execute("""
                    SELECT COUNT(*) AS total, COUNT(*) FILTER (WHERE is_active) AS active
                    FROM events;
                """)
                events = cur.fetchone()

                cur.execute("""
                    SELECT
                        COUNT(*) AS total,
                        COUNT(*) FILTER (WHERE registration_status = 'active') AS active,
                        COUNT(*) FILTER (WHERE registration_status = 'cancelled') AS cancelled,
                        COALESCE(SUM(total_price) FILTER (WHERE payment_status = 'completed'), 0) AS revenue
                    FROM registrations;
                """)
                regs = cur.fetchone()
    except Exception:
        logging.exception("[Admin] Stats query failed")
        return jsonify({"error": "Server error"}), 500

    regs = serialize_row(regs)
    revenue = regs.pop("revenue", 0)

    return jsonify({
        "users": dict(users),
        "events": dict(events),
        "registrations": regs,
        "revenue": revenue,
    }), 200
