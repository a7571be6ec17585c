"""
Newsletter subscription routes.

Subscribing and unsubscribing are public. Listing, stats, edits and the
CSV export are admin only.
"""

import csv
import io
import logging
import re
from typing import Tuple, Dict, Any

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response

from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    get_json_body,
    non_string_fields,
    string_type_error,
    verify_token_from_request,
)

subscriptions_bp = Blueprint("subscriptions", __name__)

EMAIL_RE = re.compile(r"^\S+@\S+\.\S+$")
VALID_SOURCES = ['footer', 'homepage', 'event_page', 'manual']
VALID_FILTERS = ['all', 'active', 'inactive']
PREFERENCE_KEYS = {
    'eventUpdates': 'event_updates',
    'newEvents': 'new_events',
    'promotions': 'promotions',
}
DEFAULT_PAGE_SIZE = 20
CSV_HEADER = ['Email', 'Event Updates', 'New Events', 'Promotions', 'Subscribed Date']


@subscriptions_bp.before_request
def before_request() -> None:
    logging.info(f"[Subscriptions] Incoming {request.method} {request.path}")


def format_subscription(row: Dict[str, Any]) -> Dict[str, Any]:
    sub = serialize_row(row)
    sub['preferences'] = {key: sub.pop(col, True) for key, col in PREFERENCE_KEYS.items()}
    return sub


def _yes_no(value: bool) -> str:
    return 'Yes' if value else 'No'


# --- PUBLIC ---
@subscriptions_bp.route("/subscribe", methods=["POST"])
def subscribe() -> Tuple[Response, int]:
    """
    Subscribe an email address to the newsletter.

    Expects JSON: { "email": str, "source": str (optional), "preferences": {...} (optional) }

    Returns:
        201: New subscription.
        200: A previously unsubscribed address was reactivated.
        400: Missing or invalid email/source.
        409: Already subscribed.
    """
    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, 'email', 'source')
    if bad:
        return string_type_error(bad)

    email = (data.get('email') or '').strip().lower()
    source = data.get('source') or 'footer'
    prefs = data.get('preferences') or {}
    if not isinstance(prefs, dict):
        return jsonify({"error": "preferences must be an object"}), 400

    if not email:
        return jsonify({"error": "Email is required"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Please enter a valid email"}), 400
    if source not in VALID_SOURCES:
        return jsonify({"error": f"source must be one of: {', '.join(VALID_SOURCES)}"}), 400

    # Preferences default to on unless explicitly switched off
    flags = [prefs.get(key) is not False for key in PREFERENCE_KEYS]

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT subscription_id, is_active FROM subscriptions WHERE email = %s;", (email,))
                existing = cur.fetchone()

                if existing and existing["is_active"]:
                    return jsonify({"error": "This email is already subscribed"}), 409

                if existing:
                    cur.execute(
                        """
                        UPDATE subscriptions
                        SET is_active = TRUE, unsubscribed_at = NULL,
                            source = %s, event_updates = %s, new_events = %s, promotions = %s,
                            subscribed_at = CURRENT_TIMESTAMP, updated_at = CURRENT_TIMESTAMP
                        WHERE subscription_id = %s
                        RETURNING *;
                        """,
                        [source] + flags + [existing["subscription_id"]],
                    )
                    row = cur.fetchone()
                    conn.commit()
                    return jsonify({
                        "message": "Welcome back! You have been resubscribed",
                        "data": format_subscription(row),
                    }), 200

                cur.execute(
                    """
                    INSERT INTO subscriptions (email, source, event_updates, new_events, promotions)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING *;
                    """,
                    [email, source] + flags,
                )
                row = cur.fetchone()
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        return jsonify({"error": "This email is already subscribed"}), 409
    except Exception:
        logging.exception("[Subscriptions] Subscribe failed")
        return jsonify({"error": "Error subscribing to newsletter"}), 500

    return jsonify({
        "message": "Successfully subscribed to newsletter!",
        "data": format_subscription(row),
    }), 201


@subscriptions_bp.route("/unsubscribe", methods=["POST"])
def unsubscribe() -> Tuple[Response, int]:
    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, 'email')
    if bad:
        return string_type_error(bad)
    email = (data.get('email') or '').strip().lower()
    if not email:
        return jsonify({"error": "Email is required"}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE subscriptions
                    SET is_active = FALSE, unsubscribed_at = CURRENT_TIMESTAMP,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE email = %s
                    RETURNING subscription_id;
                    """,
                    (email,),
                )
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Subscriptions] Unsubscribe failed")
        return jsonify({"error": "Error unsubscribing"}), 500

    if not row:
        return jsonify({"error": "Subscription not found"}), 404

    return jsonify({"message": "You have been unsubscribed from our newsletter"}), 200


# --- ADMIN ---
@subscriptions_bp.route("/", methods=["GET"])
def list_subscribers() -> Tuple[Response, int]:
    """
    Paginated subscriber list.

    Query params:
        search: substring of the email (case-insensitive)
        filter: all | active | inactive
        page, limit

    Returns:
        200: { data, total, page, pages }
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    search = (request.args.get('search') or '').strip()
    status_filter = request.args.get('filter', 'all')
    try:
        page = int(request.args.get('page', 1))
        limit = int(request.args.get('limit', DEFAULT_PAGE_SIZE))
    except ValueError:
        return jsonify({"error": "page and limit must be integers"}), 400

    if status_filter not in VALID_FILTERS:
        return jsonify({"error": f"filter must be one of: {', '.join(VALID_FILTERS)}"}), 400
    if page < 1 or limit < 1:
        return jsonify({"error": "page and limit must be positive"}), 400

    where, params = [], []
    if status_filter == 'active':
        where.append("is_active = TRUE")
    elif status_filter == 'inactive':
        where.append("is_active = FALSE")
    if search:
        escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        where.append("email ILIKE %s")
        params.append(f"%{escaped}%")

    where_sql = f"WHERE {' AND '.join(where)}" if where else ""

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT COUNT(*) AS total FROM subscriptions {where_sql};", params)
                total = cur.fetchone()["total"]

                cur.execute(
                    f"""
                    SELECT * FROM subscriptions {where_sql}
                    ORDER BY subscribed_at DESC
                    LIMIT %s OFFSET %s;
                    """,
                    params + [limit, (page - 1) * limit],
                )
                rows = [format_subscription(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("[Subscriptions] List failed")
        return jsonify({"error": "Error fetching subscribers"}), 500

    return jsonify({
        "data": rows,
        "total": total,
        "page": page,
        "pages": -(-total // limit),
    }), 200


@subscriptions_bp.route("/stats", methods=["GET"])
def subscriber_stats() -> Tuple[Response, int]:
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT
                        COUNT(*) AS total,
                        COUNT(*) FILTER (WHERE is_active) AS active,
                        COUNT(*) FILTER (WHERE NOT is_active) AS inactive,
                        COUNT(*) FILTER (WHERE event_updates) AS event_updates,
                        COUNT(*) FILTER (WHERE new_events) AS new_events,
                        COUNT(*) FILTER (WHERE promotions) AS promotions
                    FROM subscriptions;
                """)
                counts = cur.fetchone()

                cur.execute("SELECT source, COUNT(*) AS count FROM subscriptions GROUP BY source ORDER BY source;")
                by_source = [{"source": r["source"], "count": r["count"]} for r in cur.fetchall()]
    except Exception:
        logging.exception("[Subscriptions] Stats failed")
        return jsonify({"error": "Error fetching subscriber stats"}), 500

    return jsonify({"data": {
        "total": counts["total"],
        "active": counts["active"],
        "inactive": counts["inactive"],
        "bySource": by_source,
        "preferences": {key: counts[col] for key, col in PREFERENCE_KEYS.items()},
    }}), 200


@subscriptions_bp.route("/<int:subscription_id>", methods=["PUT"])
def update_subscriber(subscription_id: int) -> Tuple[Response, int]:
    """
    Toggle a subscriber's active flag and/or preferences.

    Expects JSON: { "isActive": bool (optional), "preferences": {...} (optional) }
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    fields: Dict[str, Any] = {}

    if isinstance(data.get('isActive'), bool):
        fields['is_active'] = data['isActive']
    prefs = data.get('preferences') or {}
    if not isinstance(prefs, dict):
        return jsonify({"error": "preferences must be an object"}), 400
    for key, col in PREFERENCE_KEYS.items():
        if isinstance(prefs.get(key), bool):
            fields[col] = prefs[key]

    if not fields:
        return jsonify({"error": "No valid fields to update"}), 400

    set_parts = [f"{k} = %s" for k in fields]
    if fields.get('is_active') is False:
        set_parts.append("unsubscribed_at = CURRENT_TIMESTAMP")
    elif fields.get('is_active') is True:
        set_parts.append("unsubscribed_at = NULL")
    set_parts.append("updated_at = CURRENT_TIMESTAMP")

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"UPDATE subscriptions SET {', '.join(set_parts)} WHERE subscription_id = %s RETURNING *;",
                    list(fields.values()) + [subscription_id],
                )
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Subscriptions] Update failed")
        return jsonify({"error": "Error updating subscriber"}), 500

    if not row:
        return jsonify({"error": "Subscription not found"}), 404

    return jsonify({"data": format_subscription(row)}), 200


@subscriptions_bp.route("/<int:subscription_id>", methods=["DELETE"])
def delete_subscriber(subscription_id: int) -> Tuple[Response, int]:
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM subscriptions WHERE subscription_id = %s RETURNING subscription_id;",
                    (subscription_id,),
                )
                row = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("[Subscriptions] Delete failed")
        return jsonify({"error": "Error deleting subscriber"}), 500

    if not row:
        return jsonify({"error": "Subscription not found"}), 404

    return jsonify({"status": "deleted"}), 200


@subscriptions_bp.route("/export/csv", methods=["GET"])
def export_subscribers():
    """
    Download active subscribers as CSV.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("""
                    SELECT email, event_updates, new_events, promotions, subscribed_at
                    FROM subscriptions WHERE is_active = TRUE
                    ORDER BY subscribed_at DESC;
                """)
                rows = cur.fetchall()
    except Exception:
        logging.exception("[Subscriptions] Export failed")
        return jsonify({"error": "Error exporting subscribers"}), 500

    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for r in rows:
        writer.writerow([
            r["email"],
            _yes_no(r["event_updates"]),
            _yes_no(r["new_events"]),
            _yes_no(r["promotions"]),
            r["subscribed_at"].strftime("%d/%m/%Y") if r["subscribed_at"] else "",
        ])

    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": 'attachment; filename="subscribers.csv"'},
    )
