"""
Events service routes: list/search, read, create, update, and delete events.
Also serves the per-user event lists (events I organize, events I'm registered for).
Signed-in users can bookmark events as favorites.
"""

import logging
from datetime import date, datetime
from typing import Tuple, Dict, Any, Optional, List

from flask import Blueprint, request, jsonify, Response

from backend.database.db_connection import get_db, serialize_row
from backend.auth_service.utils import (
    STAFF_ROLES,
    get_json_body,
    non_string_fields,
    verify_token_from_request,
)

events_bp = Blueprint("events", __name__)

# --- CONSTANTS FOR VALIDATION ---
TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000
DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 500

VALID_CATEGORIES = [
    'Technology', 'Business', 'Music', 'Arts', 'Sports',
    'Food & Drink', 'Education', 'Health', 'Marriage', 'Wedding',
    'Anniversary', 'Engagement', 'Bridal Shower', 'Bachelor Party', 'Mehendi',
    'Weddings', 'Anniversaries', 'Corporate Events', 'Birthdays', 'Festivals',
    'Cultural Events', 'Sports Events', 'Educational Events', 'Religious Events',
    'Award Ceremonies', 'Other',
]
VALID_TYPES = [
    'Conference', 'Workshop', 'Seminar', 'Networking',
    'Festival', 'Concert', 'Exhibition', 'Summit',
    'Bootcamp', 'Retreat', 'Sports', 'Marathon', 'Wedding',
    'Engagement', 'Bridal Shower', 'Bachelor Party', 'Mehendi', 'Other',
]

# sortBy value -> ORDER BY clause
SORT_OPTIONS = {
    'newest': 'e.created_at DESC',
    'popular': 'e.attendees DESC',
    'rating': 'e.rating DESC',
    'price-low': 'e.price ASC',
    'price-high': 'e.price DESC',
}

UPDATABLE_FIELDS = [
    'title', 'description', 'category', 'type', 'date', 'time',
    'location', 'price', 'capacity', 'image', 'tags',
]

EVENT_SELECT = """
    SELECT
        e.event_id, e.title, e.description, e.category, e.type,
        e.date, e.time, e.location, e.image,
        e.price, e.capacity, e.attendees, e.rating, e.reviews, e.tags,
        e.is_featured, e.is_trending, e.is_active,
        e.organizer_id, e.created_at, e.updated_at,
        u.name AS organizer_name, u.email AS organizer_email, u.avatar AS organizer_avatar
    FROM events e
    LEFT JOIN users u ON e.organizer_id = u.user_id
"""


def parse_date(val: Optional[str]) -> Optional[date]:
    """
    Parse 'YYYY-MM-DD' or a full ISO-8601 datetime into a date.

    Returns:
        date: The parsed date, or None if invalid.
    """
    if not val or not isinstance(val, str):
        return None
    try:
        if val.endswith('Z'):
            val = val[:-1] + '+00:00'
        return datetime.fromisoformat(val).date()
    except ValueError:
        return None


def like_pattern(term: str) -> str:
    """
    Wrap a user-supplied term for ILIKE, escaping LIKE wildcards.
    """
    escaped = term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


def format_event(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Serialize an event row and nest the organizer's public fields.
    """
    event = serialize_row(row)
    name = event.pop('organizer_name', None)
    email = event.pop('organizer_email', None)
    avatar = event.pop('organizer_avatar', None)
    event['organizer'] = (
        {"id": event.get('organizer_id'), "name": name, "email": email, "avatar": avatar}
        if event.get('organizer_id') else None
    )
    event['tags'] = list(event.get('tags') or [])
    return event


def validate_event_fields(data: Dict[str, Any], partial: bool = False) -> Tuple[Dict[str, Any], str]:
    """
    Check and normalize event input.

    Args:
        data: Raw JSON body.
        partial: True for updates (only provided fields are checked).

    Returns:
        (clean_fields, error_message). error_message is "" when valid.
    """
    clean: Dict[str, Any] = {}

    # --- START VALIDATION ---
    bad = non_string_fields(data, 'title', 'description', 'location', 'time', 'image')
    if bad:
        return {}, f"{', '.join(bad)} must be a string"

    if not partial:
        missing = [f for f in ('title', 'description', 'category', 'date', 'location') if not data.get(f)]
        if missing:
            return {}, f"Missing required fields: {', '.join(missing)}"

    if 'title' in data:
        title = (data.get('title') or '').strip()
        if not title:
            return {}, "Title cannot be empty"
        if len(title) > TITLE_MAX_LENGTH:
            return {}, f"Title cannot exceed {TITLE_MAX_LENGTH} characters"
        clean['title'] = title

    if 'description' in data:
        description = data.get('description') or ''
        if not description:
            return {}, "Description cannot be empty"
        if len(description) > DESCRIPTION_MAX_LENGTH:
            return {}, f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
        clean['description'] = description

    if 'category' in data:
        if data.get('category') not in VALID_CATEGORIES:
            return {}, "Invalid category"
        clean['category'] = data['category']

    if 'type' in data and data.get('type') is not None:
        if data['type'] not in VALID_TYPES:
            return {}, f"type must be one of: {', '.join(VALID_TYPES)}"
        clean['type'] = data['type']

    if 'date' in data:
        event_date = parse_date(data.get('date'))
        if not event_date:
            return {}, "Valid date is required (ISO-8601)"
        clean['date'] = event_date

    if 'location' in data:
        location = (data.get('location') or '').strip()
        if not location:
            return {}, "Location cannot be empty"
        clean['location'] = location

    if 'time' in data:
        clean['time'] = str(data.get('time') or '')

    if 'price' in data:
        price = data.get('price')
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            return {}, "Price cannot be negative"
        clean['price'] = price

    if 'capacity' in data:
        capacity = data.get('capacity')
        if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
            return {}, "Capacity must be at least 1"
        clean['capacity'] = capacity

    if 'tags' in data:
        tags = data.get('tags') or []
        if isinstance(tags, str):
            tags = [t.strip() for t in tags.split(',')]
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            return {}, "tags must be a list of strings"
        clean['tags'] = [t for t in tags if t]

    if 'image' in data and data.get('image'):
        clean['image'] = data['image']
    # --- END VALIDATION ---

    return clean, ""


def _int_arg(name: str, default: int, low: int, high: int) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if low <= value <= high else None


@events_bp.route("/", methods=["GET"])
def list_events() -> Tuple[Response, int]:
    """
    List active events with optional filtering, search, sorting, and paging.

    Query parameters:
    - search: case-insensitive substring over title, description,
      location, category, and tags.
    - category, type: exact match ('all' disables the filter).
    - location: case-insensitive substring.
    - sortBy: newest (default), popular, rating, price-low, price-high.
    - page (>= 1), limit (1-500, default 12).

    Returns:
        200: { data, total, totalPages, currentPage }
        400: Invalid query parameters.
        500: Database error.
    """
    page = _int_arg('page', 1, 1, 10 ** 6)
    limit = _int_arg('limit', DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE)
    sort_by = request.args.get('sortBy', 'newest')

    if page is None or limit is None:
        return jsonify({"error": f"page must be >= 1 and limit between 1 and {MAX_PAGE_SIZE}"}), 400
    if sort_by not in SORT_OPTIONS:
        return jsonify({"error": f"sortBy must be one of: {', '.join(SORT_OPTIONS)}"}), 400

    conditions: List[str] = ["e.is_active = TRUE"]
    params: List[Any] = []

    category = request.args.get('category')
    if category and category != 'all':
        conditions.append("e.category = %s")
        params.append(category)

    event_type = request.args.get('type')
    if event_type and event_type != 'all':
        conditions.append("e.type = %s")
        params.append(event_type)

    location = (request.args.get('location') or '').strip()
    if location and location != 'all':
        conditions.append("e.location ILIKE %s")
        params.append(like_pattern(location))

    search = (request.args.get('search') or '').strip()
    if search:
        pattern = like_pattern(search)
        conditions.append("""(
            e.title ILIKE %s OR e.description ILIKE %s OR e.location ILIKE %s
            OR e.category ILIKE %s
            OR EXISTS (SELECT 1 FROM unnest(e.tags) AS tag WHERE tag ILIKE %s)
        )""")
        params.extend([pattern] * 5)

    where = " WHERE " + " AND ".join(conditions)
    count_sql = "SELECT COUNT(*) AS total FROM events e" + where
    list_sql = (
        EVENT_SELECT + where
        + f" ORDER BY {SORT_OPTIONS[sort_by]}, e.event_id ASC LIMIT %s OFFSET %s;"
    )

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(count_sql, params)
                total = cur.fetchone()["total"]
                cur.execute(list_sql, params + [limit, (page - 1) * limit])
                events = [format_event(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Database error listing events")
        return jsonify({"error": "Server error while fetching events"}), 500

    logging.info(f"[Events] search={search!r} results={len(events)} total={total}")

    return jsonify({
        "data": events,
        "total": total,
        "totalPages": (total + limit - 1) // limit,
        "currentPage": page,
    }), 200


@events_bp.route("/user/my-events", methods=["GET"])
def my_events() -> Tuple[Response, int]:
    """
    Events organized by the caller, newest first.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = EVENT_SELECT + " WHERE e.organizer_id = %s ORDER BY e.created_at DESC;"
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                events = [format_event(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Database error listing organizer events")
        return jsonify({"error": "Server error while fetching your events"}), 500

    return jsonify({"data": events, "total": len(events)}), 200


@events_bp.route("/user/registered-events", methods=["GET"])
def registered_events() -> Tuple[Response, int]:
    """
    Events the caller holds an active registration for, soonest first.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = EVENT_SELECT + """
        WHERE e.event_id IN (
            SELECT event_id FROM registrations
            WHERE user_id = %s AND registration_status = 'active'
        )
        ORDER BY e.date ASC;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                events = [format_event(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Database error listing registered events")
        return jsonify({"error": "Server error while fetching registered events"}), 500

    return jsonify({"data": events, "total": len(events)}), 200


@events_bp.route("/<int:event_id>", methods=["GET"])
def get_event(event_id: int) -> Tuple[Response, int]:
    """
    Get a single event by ID.

    Returns:
        200: { data: event }
        404: Event not found.
        500: Database error.
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(EVENT_SELECT + " WHERE e.event_id = %s;", (event_id,))
                event = cur.fetchone()
    except Exception:
        logging.exception(f"Database error getting event {event_id}")
        return jsonify({"error": "Server error while fetching event"}), 500

    if not event:
        return jsonify({"error": "Event not found"}), 404

    return jsonify({"data": format_event(event)}), 200


@events_bp.route("/", methods=["POST"])
def create_event() -> Tuple[Response, int]:
    """
    Create an event. Organizers and admins only.

    Required: title, description, category, date, location.
    Optional: type, time, price, capacity, tags, image.

    Returns:
        201: { data: event }
        400: Validation error.
        401/403: Authentication or role failure.
        500: Server error.
    """
    user_id, _, err, code = verify_token_from_request(required_roles=STAFF_ROLES)
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    fields, problem = validate_event_fields(data)
    if problem:
        return jsonify({"error": problem}), 400

    fields['organizer_id'] = user_id
    columns = list(fields)
    placeholders = ", ".join(["%s"] * len(columns))

    sql = f"""
        INSERT INTO events ({', '.join(columns)})
        VALUES ({placeholders})
        RETURNING *;
    """

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, [fields[c] for c in columns])
                new_event = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception("Database error creating event")
        return jsonify({"error": "Server error while creating event"}), 500

    logging.info(f"[Events] Created event {new_event['event_id']} by user {user_id}")
    return jsonify({"data": format_event(new_event)}), 201


def _load_owner(cur, event_id: int) -> Optional[Dict[str, Any]]:
    cur.execute("SELECT event_id, organizer_id FROM events WHERE event_id = %s;", (event_id,))
    return cur.fetchone()


@events_bp.route("/<int:event_id>", methods=["PUT"])
def update_event(event_id: int) -> Tuple[Response, int]:
    """
    Update an event.

    Permission:
    - Admins, or the organizer who owns the event.

    Returns:
        200: { data: event }
        400: Validation error.
        403: Forbidden.
        404: Event not found.
    """
    user_id, role, err, code = verify_token_from_request(required_roles=STAFF_ROLES)
    if err:
        return err, code

    data, err, code = get_json_body()
    if err:
        return err, code
    updates = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
    if not updates:
        return jsonify({"error": "No valid fields to update"}), 400

    fields, problem = validate_event_fields(updates, partial=True)
    if problem:
        return jsonify({"error": problem}), 400

    set_clause = ", ".join(f"{k} = %s" for k in fields) + ", updated_at = CURRENT_TIMESTAMP"

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                ev = _load_owner(cur, event_id)
                if not ev:
                    return jsonify({"error": "Event not found"}), 404

                if role != 'admin' and ev["organizer_id"] != user_id:
                    return jsonify({"error": "You are not authorized to update this event"}), 403

                cur.execute(
                    f"UPDATE events SET {set_clause} WHERE event_id = %s RETURNING *;",
                    list(fields.values()) + [event_id],
                )
                updated = cur.fetchone()
                conn.commit()
    except Exception:
        logging.exception(f"Database error updating event {event_id}")
        return jsonify({"error": "Server error while updating event"}), 500

    return jsonify({"data": format_event(updated)}), 200


@events_bp.route("/<int:event_id>", methods=["DELETE"])
def delete_event(event_id: int) -> Tuple[Response, int]:
    """
    Delete an event if the caller is its organizer or an admin.
    Registrations for the event are removed by the foreign key cascade.
    """
    user_id, role, err, code = verify_token_from_request(required_roles=STAFF_ROLES)
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                ev = _load_owner(cur, event_id)
                if not ev:
                    return jsonify({"error": "Event not found"}), 404

                if role != 'admin' and ev["organizer_id"] != user_id:
                    return jsonify({"error": "You are not authorized to delete this event"}), 403

                cur.execute("DELETE FROM events WHERE event_id = %s;", (event_id,))
                conn.commit()

                if cur.rowcount == 0:
                    return jsonify({"error": "Event not found or already deleted"}), 404
    except Exception:
        logging.exception(f"Database error deleting event {event_id}")
        return jsonify({"error": "Server error while deleting event"}), 500

    return jsonify({"status": "deleted"}), 200


# --- FAVORITES ---
def _favorites_count(cur, user_id: int) -> int:
    cur.execute("SELECT COUNT(*) AS total FROM favorites WHERE user_id = %s;", (user_id,))
    return cur.fetchone()["total"]


@events_bp.route("/user/favorites", methods=["GET"])
def favorite_events() -> Tuple[Response, int]:
    """
    Events the caller has bookmarked, most recently added first.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    sql = EVENT_SELECT + """
        JOIN favorites f ON f.event_id = e.event_id
        WHERE f.user_id = %s
        ORDER BY f.created_at DESC;
    """
    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(sql, (user_id,))
                events = [format_event(r) for r in cur.fetchall()]
    except Exception:
        logging.exception("Database error listing favorites")
        return jsonify({"error": "Server error while fetching favorites"}), 500

    return jsonify({"data": events, "total": len(events)}), 200


@events_bp.route("/<int:event_id>/favorite", methods=["POST"])
def add_favorite(event_id: int) -> Tuple[Response, int]:
    """
    Bookmark an event.

    Returns:
        200: { message, data: { eventId, favoritesCount } }
        400: Event already in favorites.
        404: Event not found.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                if not _load_owner(cur, event_id):
                    return jsonify({"error": "Event not found"}), 404

                cur.execute(
                    """
                    INSERT INTO favorites (user_id, event_id) VALUES (%s, %s)
                    ON CONFLICT (user_id, event_id) DO NOTHING;
                    """,
                    (user_id, event_id),
                )
                if cur.rowcount == 0:
                    return jsonify({"error": "Event already in favorites"}), 400

                count = _favorites_count(cur, user_id)
                conn.commit()
    except Exception:
        logging.exception(f"Database error adding favorite {event_id}")
        return jsonify({"error": "Server error while adding to favorites"}), 500

    logging.info(f"[Events] User {user_id} favorited event {event_id}")
    return jsonify({
        "message": "Event added to favorites",
        "data": {"eventId": event_id, "favoritesCount": count},
    }), 200


@events_bp.route("/<int:event_id>/favorite", methods=["DELETE"])
def remove_favorite(event_id: int) -> Tuple[Response, int]:
    """
    Remove a bookmark.

    Returns:
        200: { message, data: { eventId, favoritesCount } }
        400: Event not in favorites.
    """
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM favorites WHERE user_id = %s AND event_id = %s;",
                    (user_id, event_id),
                )
                if cur.rowcount == 0:
                    return jsonify({"error": "Event not in favorites"}), 400

                count = _favorites_count(cur, user_id)
                conn.commit()
    except Exception:
        logging.exception(f"Database error removing favorite {event_id}")
        return jsonify({"error": "Server error while removing from favorites"}), 500

    return jsonify({
        "message": "Event removed from favorites",
        "data": {"eventId": event_id, "favoritesCount": count},
    }), 200


@events_bp.route("/<int:event_id>/is-favorite", methods=["GET"])
def is_favorite(event_id: int) -> Tuple[Response, int]:
    user_id, _, err, code = verify_token_from_request()
    if err:
        return err, code

    try:
        with get_db() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM favorites WHERE user_id = %s AND event_id = %s;",
                    (user_id, event_id),
                )
                found = cur.fetchone() is not None
    except Exception:
        logging.exception(f"Database error checking favorite {event_id}")
        return jsonify({"error": "Server error while checking favorite status"}), 500

    return jsonify({"data": {"eventId": event_id, "isFavorite": found}}), 200
