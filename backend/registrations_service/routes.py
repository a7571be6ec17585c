"""
Registrations service routes: ticket registration, duplicate checks,
cancellation, and organizer/admin registration listings.

A user may hold at most one *active* registration per event. The
pre-insert lookup here gives a friendly answer in the common case; the
partial unique index `uq_registrations_active_user_event` is what actually
enforces it when two requests race past the lookup.
"""

import logging
from typing import Tuple, Dict, Any, Optional

import psycopg2.errors
from flask import Blueprint, request, jsonify, Response

from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    get_json_body,
    non_string_fields,
    string_type_error,
    verify_token_from_request,
)

registrations_bp = Blueprint("registrations", __name__)

ALREADY_REGISTERED = "You are already registered for this event"
EVENT_FULL = "Event is at full capacity"
DELETED_EVENT_TITLE = "Event Deleted"

VALID_TICKET_TYPES = ['standard', 'vip', 'premium']
VALID_PAYMENT_METHODS = ['card', 'upi', 'netbanking', 'wallet']
ATTENDEE_FIELDS = [
    'first_name', 'last_name', 'email', 'phone',
    'company', 'dietary_restrictions', 'special_requirements',
]
# camelCase body keys accepted from the SPA -> column names
ATTENDEE_KEYS = {
    'firstName': 'first_name', 'lastName': 'last_name', 'email': 'email',
    'phone': 'phone', 'company': 'company',
    'dietaryRestrictions': 'dietary_restrictions',
    'specialRequirements': 'special_requirements',
}

REGISTRATION_SELECT = """
    SELECT
        r.*,
        e.title AS event_title, e.date AS event_date, e.time AS event_time,
        e.location AS event_location, e.image AS event_image, e.price AS event_price
    FROM registrations r
    LEFT JOIN events e ON r.event_id = e.event_id
"""


@registrations_bp.before_request
def before_request() -> None:
    logging.info(f"[Registrations] Incoming {request.method} {request.path}")


def format_registration(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Serialize a registration row, grouping attendee info and the event summary.

    A missing event (deleted after registration) is tolerated and shown
    with placeholder text.
    """
    reg = serialize_row(row)
    reg['attendee_info'] = {f: reg.pop(f, None) for f in ATTENDEE_FIELDS}

    title = reg.pop('event_title', None)
    summary = {
        "id": reg.get('event_id'),
        "title": title or DELETED_EVENT_TITLE,
        "date": reg.pop('event_date', None),
        "time": reg.pop('event_time', None),
        "location": reg.pop('event_location', None),
        "image": reg.pop('event_image', None),
        "price": reg.pop('event_price', None),
    }
    reg['event'] = summary
    return reg


def attendee_from_body(data: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    """
    Pull attendee columns out of the request body's `attendeeInfo` object.

    Returns:
        (columns, error_message). error_message is "" when valid.
    """
    info = data.get('attendeeInfo') or {}
    if not isinstance(info, dict):
        return {}, "attendeeInfo must be an object"
    out = {}
    for key, column in ATTENDEE_KEYS.items():
        if key in info:
            out[column] = info[key]
        elif column in info:
            out[column] = info[column]
    bad = non_string_fields(out, *out)
    if bad:
        return {}, f"attendeeInfo fields must be strings: {', '.join(bad)}"
    return out, ""


def _fetch_registration(cur, registration_id: int) -> Optional[Dict[str, Any]]:
    cur.execute(REGISTRATION_SELECT + " WHERE r.registration_id = %s;", (registration_id,))
    return cur.fetchone()


# --- REGISTER ---
@registrations_bp.route("/register", methods=["POST"])
def register() -> Tuple[Response, int]:
    """
    Register the caller for an event.

    Expects JSON:
        {
          "eventId": int,
          "numberOfTickets": int (default 1),
          "ticketType": "standard" | "vip" | "premium",
          "paymentMethod": "card" | "upi" | "netbanking" | "wallet",
          "attendeeInfo": { firstName, lastName, email, phone, ... }
        }

    The total price is computed server-side from the event price.

    Returns:
        201: { data: registration }
        400: Invalid input, or the event is full.
        404: Event not found.
        409: Caller already holds an active registration for the event.
        500: Database error.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    event_id = data.get('eventId')
    tickets = data.get('numberOfTickets', 1)
    ticket_type = data.get('ticketType', 'standard')
    payment_method = data.get('paymentMethod', 'card')

    # --- START VALIDATION ---
    if not event_id:
        return jsonify({"error": "Event ID is required"}), 400
    try:
        event_id = int(event_id)
    except (TypeError, ValueError):
        return jsonify({"error": "Event ID is invalid"}), 400
    if isinstance(tickets, bool) or not isinstance(tickets, int) or tickets < 1:
        return jsonify({"error": "numberOfTickets must be at least 1"}), 400
    if ticket_type not in VALID_TICKET_TYPES:
        return jsonify({"error": f"ticketType must be one of: {', '.join(VALID_TICKET_TYPES)}"}), 400
    if payment_method not in VALID_PAYMENT_METHODS:
        return jsonify({"error": f"paymentMethod must be one of: {', '.join(VALID_PAYMENT_METHODS)}"}), 400
    # --- END VALIDATION ---

    attendee, problem = attendee_from_body(data)
    if problem:
        return jsonify({"error": problem}), 400

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                # Lock the event row so capacity checks and attendee
                # counter updates for the same event run one at a time.
                cur.execute(
                    "SELECT event_id, price, capacity FROM events WHERE event_id = %s FOR UPDATE;",
                    (event_id,),
                )
                event = cur.fetchone()
                if not event:
                    return jsonify({"error": "Event not found"}), 404

                cur.execute(
                    """
                    SELECT registration_id FROM registrations
                    WHERE user_id = %s AND event_id = %s AND registration_status = 'active';
                    """,
                    (user_id, event_id),
                )
                if cur.fetchone():
                    return jsonify({"error": ALREADY_REGISTERED}), 409

                cur.execute(
                    """
                    SELECT COUNT(*) AS active FROM registrations
                    WHERE event_id = %s AND registration_status = 'active';
                    """,
                    (event_id,),
                )
                if cur.fetchone()["active"] >= event["capacity"]:
                    return jsonify({"error": EVENT_FULL}), 400

                total_price = (event["price"] or 0) * tickets
                columns = [
                    'user_id', 'event_id', 'ticket_type', 'number_of_tickets',
                    'payment_method', 'payment_status', 'total_price', 'registration_status',
                ] + list(attendee)
                values = [
                    user_id, event_id, ticket_type, tickets,
                    payment_method, 'completed', total_price, 'active',
                ] + list(attendee.values())

                cur.execute(
                    f"""
                    INSERT INTO registrations ({', '.join(columns)})
                    VALUES ({', '.join(['%s'] * len(columns))})
                    RETURNING registration_id;
                    """,
                    values,
                )
                registration_id = cur.fetchone()["registration_id"]

                cur.execute(
                    "UPDATE events SET attendees = attendees + %s, updated_at = CURRENT_TIMESTAMP WHERE event_id = %s;",
                    (tickets, event_id),
                )

                registration = _fetch_registration(cur, registration_id)
                conn.commit()
    except psycopg2.errors.UniqueViolation:
        # A concurrent request inserted first; the unique index rejected ours.
        logging.info(f"[Registrations] Duplicate registration blocked for user {user_id}, event {event_id}")
        return jsonify({"error": ALREADY_REGISTERED}), 409
    except Exception:
        logging.exception("Registration error")
        return jsonify({"error": "Server error during registration"}), 500

    logging.info(f"[Registrations] User {user_id} registered for event {event_id} ({tickets} tickets)")
    return jsonify({
        "message": "Successfully registered for event",
        "data": format_registration(registration),
    }), 201


# --- CHECK ---
@registrations_bp.route("/check/<int:event_id>", methods=["GET"])
def check_registration(event_id: int) -> Tuple[Response, int]:
    """
    Is the caller actively registered for this event?

    Returns:
        200: { isRegistered: bool, data: registration | null }
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = REGISTRATION_SELECT + """
        WHERE r.user_id = %s AND r.event_id = %s AND r.registration_status = 'active';
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id, event_id))
                row = cur.fetchone()
    except Exception:
        logging.exception("Check registration error")
        return jsonify({"error": "Server error while checking registration"}), 500

    return jsonify({
        "isRegistered": bool(row),
        "data": format_registration(row) if row else None,
    }), 200


# --- MY REGISTRATIONS ---
@registrations_bp.route("/my-registrations", methods=["GET"])
def my_registrations() -> Tuple[Response, int]:
    """
    All of the caller's registrations (any status), newest first.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = REGISTRATION_SELECT + " WHERE r.user_id = %s ORDER BY r.created_at DESC;"
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                rows = [format_registration(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Get user registrations error")
        return jsonify({"error": "Server error while fetching registrations"}), 500

    return jsonify({"data": rows, "total": len(rows)}), 200


# --- EVENT COUNTS / LISTS ---
@registrations_bp.route("/event/<int:event_id>/count", methods=["GET"])
def event_registration_count(event_id: int) -> Tuple[Response, int]:
    """
    Public: number of active registrations for an event.
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT COUNT(*) AS count FROM registrations
                    WHERE event_id = %s AND registration_status = 'active';
                    """,
                    (event_id,),
                )
                count = cur.fetchone()["count"]
    except Exception:
        logging.exception("Get registrations count error")
        return jsonify({"error": "Server error while fetching registrations count"}), 500

    return jsonify({"count": count, "eventId": event_id}), 200


@registrations_bp.route("/event/<int:event_id>/registrations", methods=["GET"])
def event_registrations(event_id: int) -> Tuple[Response, int]:
    """
    Active registrations for an event. The event's organizer or an admin only.
    """
    user_id, role, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT organizer_id FROM events WHERE event_id = %s;", (event_id,))
                event = cur.fetchone()
                if not event:
                    return jsonify({"error": "Event not found"}), 404

                if role != 'admin' and event["organizer_id"] != user_id:
                    return jsonify({"error": "Not authorized to view event registrations"}), 403

                cur.execute(
                    REGISTRATION_SELECT
                    + " WHERE r.event_id = %s AND r.registration_status = 'active' ORDER BY r.created_at DESC;",
                    (event_id,),
                )
                rows = [format_registration(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Get event registrations error")
        return jsonify({"error": "Server error while fetching event registrations"}), 500

    return jsonify({"data": rows, "total": len(rows)}), 200


# --- ADMIN LIST ---
@registrations_bp.route("/", methods=["GET"])
def list_all_registrations() -> Tuple[Response, int]:
    """
    Admin-only: every registration with the registrant's name and email.
    """
    _, _, err, code = verify_token_from_request(required_roles=["admin"])
    if err:
        return err, code

    sql = """
        SELECT
            r.*,
            e.title AS event_title, e.date AS event_date, e.time AS event_time,
            e.location AS event_location, e.image AS event_image, e.price AS event_price,
            u.name AS user_name, u.email AS user_email
        FROM registrations r
        LEFT JOIN events e ON r.event_id = e.event_id
        LEFT JOIN users u ON r.user_id = u.user_id
        ORDER BY r.created_at DESC;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
                rows = []
                for r in cur.fetchall():
                    reg = format_registration(r)
                    reg['user'] = {
                        "id": reg.get('user_id'),
                        "name": reg.pop('user_name', None) or 'Unknown',
                        "email": reg.pop('user_email', None) or 'N/A',
                    }
                    rows.append(reg)
    except Exception:
        logging.exception("Get all registrations error")
        return jsonify({"error": "Server error while fetching registrations"}), 500

    return jsonify({"data": rows, "total": len(rows)}), 200


# --- SINGLE REGISTRATION ---
@registrations_bp.route("/<int:registration_id>", methods=["GET"])
def get_registration(registration_id: int) -> Tuple[Response, int]:
    """
    Get one of the caller's registrations.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                row = _fetch_registration(cur, registration_id)
    except Exception:
        logging.exception("Get registration error")
        return jsonify({"error": "Server error while fetching registration"}), 500

    if not row:
        return jsonify({"error": "Registration not found"}), 404
    if row["user_id"] != user_id:
        return jsonify({"error": "Not authorized to view this registration"}), 403

    return jsonify({"data": format_registration(row)}), 200


@registrations_bp.route("/<int:registration_id>", methods=["PUT"])
def update_registration(registration_id: int) -> Tuple[Response, int]:
    """
    Update attendee info, ticket type, or notes on one of the caller's registrations.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    fields, problem = attendee_from_body(data)
    if problem:
        return jsonify({"error": problem}), 400
    bad = non_string_fields(data, 'notes')
    if bad:
        return string_type_error(bad)

    if 'ticketType' in data:
        if data['ticketType'] not in VALID_TICKET_TYPES:
            return jsonify({"error": f"ticketType must be one of: {', '.join(VALID_TICKET_TYPES)}"}), 400
        fields['ticket_type'] = data['ticketType']
    if data.get('notes'):
        fields['notes'] = data['notes']

    if not fields:
        return jsonify({"error": "No valid fields to update"}), 400

    set_clause = ", ".join(f"{k} = %s" for k in fields) + ", updated_at = CURRENT_TIMESTAMP"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT user_id FROM registrations WHERE registration_id = %s;", (registration_id,))
                owner = cur.fetchone()
                if not owner:
                    return jsonify({"error": "Registration not found"}), 404
                if owner["user_id"] != user_id:
                    return jsonify({"error": "Not authorized to update this registration"}), 403

                cur.execute(
                    f"UPDATE registrations SET {set_clause} WHERE registration_id = %s;",
                    list(fields.values()) + [registration_id],
                )
                row = _fetch_registration(cur, registration_id)
                conn.commit()
    except Exception:
        logging.exception("Update registration error")
        return jsonify({"error": "Server error while updating registration"}), 500

    return jsonify({"data": format_registration(row)}), 200


@registrations_bp.route("/<int:registration_id>", methods=["DELETE"])
def cancel_registration(registration_id: int) -> Tuple[Response, int]:
    """
    Cancel one of the caller's registrations.

    The row is kept with status 'cancelled' (which frees the
    (user, event) slot for a later re-registration) and the event's
    attendee count is reduced by the cancelled tickets.

    Optional JSON: { "reason": str }
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    bad = non_string_fields(data, 'reason')
    if bad:
        return string_type_error(bad)
    reason = data.get('reason') or 'User cancelled'

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT user_id, event_id, number_of_tickets, registration_status
                    FROM registrations WHERE registration_id = %s;
                    """,
                    (registration_id,),
                )
                reg = cur.fetchone()
                if not reg:
                    return jsonify({"error": "Registration not found"}), 404
                if reg["user_id"] != user_id:
                    return jsonify({"error": "Not authorized to cancel this registration"}), 403
                if reg["registration_status"] != 'active':
                    return jsonify({"error": "Registration is not active"}), 400

                cur.execute(
                    """
                    UPDATE registrations
                    SET registration_status = 'cancelled', payment_status = 'cancelled',
                        cancellation_reason = %s, cancellation_date = CURRENT_TIMESTAMP,
                        updated_at = CURRENT_TIMESTAMP
                    WHERE registration_id = %s;
                    """,
                    (reason, registration_id),
                )
                cur.execute(
                    """
                    UPDATE events SET attendees = GREATEST(0, attendees - %s),
                                      updated_at = CURRENT_TIMESTAMP
                    WHERE event_id = %s;
                    """,
                    (reg["number_of_tickets"], reg["event_id"]),
                )
                conn.commit()
    except Exception:
        logging.exception("Cancel registration error")
        return jsonify({"error": "Server error while cancelling registration"}), 500

    return jsonify({"status": "cancelled", "message": "Registration cancelled successfully"}), 200
