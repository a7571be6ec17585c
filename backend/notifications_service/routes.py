"""
Notification service routes.

Admins send notifications to individual users; users read, mark and
delete their own.
"""

import logging
from typing import Tuple

from flask import Blueprint, request, jsonify, Response

from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    get_json_body,
    non_string_fields,
    string_type_error,
    verify_token_from_request,
)

notifications_bp = Blueprint("notifications", __name__)

SUBJECT_MAX_LENGTH = 200


@notifications_bp.before_request
def before_request() -> None:
    logging.info(f"[Notifications] Incoming {request.method} {request.path}")


# --- SEND ---
@notifications_bp.route("/send", methods=["POST"])
def send_notification() -> Tuple[Response, int]:
    """
    Send a notification to a user (admin only).

    Expects JSON: { "userId": int, "subject": str, "message": str, "type": str (optional) }

    Returns:
        201: { data: notification }
        400: Missing fields.
        404: Target user not found.
    """
    admin_id, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, "subject", "message", "type")
    if bad:
        return string_type_error(bad)

    target_id = data.get("userId")
    subject = (data.get("subject") or "").strip()
    message = (data.get("message") or "").strip()
    ntype = data.get("type") or "general"

    if not target_id or not subject or not message:
        return jsonify({"error": "userId, subject, and message are required"}), 400
    if isinstance(target_id, bool) or not isinstance(target_id, int):
        return jsonify({"error": "userId must be an integer"}), 400
    if len(subject) > SUBJECT_MAX_LENGTH:
        return jsonify({"error": f"Subject cannot exceed {SUBJECT_MAX_LENGTH} characters"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT user_id, name FROM users WHERE user_id = %s;", (target_id,))
                target = cur.fetchone()
                if not target:
                    return jsonify({"error": "User not found"}), 404

                cur.execute("SELECT name FROM users WHERE user_id = %s;", (admin_id,))
                sender = cur.fetchone()

                cur.execute(
                    """
                    INSERT INTO notifications (user_id, subject, message, type, sender, sender_id)
                    VALUES (%s, %s, %s, %s, %s, %s)
                    RETURNING *;
                    """,
                    (target_id, subject, message, ntype, sender["name"] if sender else None, admin_id),
                )
                notification = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Notifications] Send failed")
        return jsonify({"error": "Server error while sending notification"}), 500

    return jsonify({
        "message": f"Notification sent to {target['name']} successfully",
        "data": serialize_row(notification),
    }), 201


# --- LIST ---
@notifications_bp.route("/", methods=["GET"])
def list_notifications() -> Tuple[Response, int]:
    """
    The caller's notifications, newest first, with an unread count.

    Returns:
        200: { data: [notification], total, unread }
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT * FROM notifications WHERE user_id = %s ORDER BY created_at DESC;",
                    (user_id,),
                )
                rows = [serialize_row(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("[Notifications] List failed")
        return jsonify({"error": "Server error while fetching notifications"}), 500

    unread = sum(1 for n in rows if not n.get("is_read"))

    return jsonify({"data": rows, "total": len(rows), "unread": unread}), 200


# --- MARK READ ---
@notifications_bp.route("/<int:notification_id>/read", methods=["PATCH"])
def mark_read(notification_id: int) -> Tuple[Response, int]:
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE notifications SET is_read = TRUE
                    WHERE notification_id = %s AND user_id = %s
                    RETURNING *;
                    """,
                    (notification_id, user_id),
                )
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Notifications] Mark read failed")
        return jsonify({"error": "Server error while updating notification"}), 500

    if not row:
        return jsonify({"error": "Notification not found"}), 404

    return jsonify({"data": serialize_row(row)}), 200


# --- DELETE ---
@notifications_bp.route("/<int:notification_id>", methods=["DELETE"])
def delete_notification(notification_id: int) -> Tuple[Response, int]:
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM notifications WHERE notification_id = %s AND user_id = %s RETURNING notification_id;",
                    (notification_id, user_id),
                )
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Notifications] Delete failed")
        return jsonify({"error": "Server error while deleting notification"}), 500

    if not row:
        return jsonify({"error": "Notification not found"}), 404

    return jsonify({"status": "deleted"}), 200
