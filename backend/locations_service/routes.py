"""
Locations service route handlers.
Serves the fixed list of cities the UI offers for location filtering.
"""

from flask import Blueprint, request, jsonify

locations_bp = Blueprint("locations", __name__)

POPULAR_LOCATIONS = [
    {"id": 1, "name": "Mumbai", "state": "MH", "country": "India", "type": "city"},
    {"id": 2, "name": "Delhi", "state": "DL", "country": "India", "type": "city"},
    {"id": 3, "name": "Bangalore", "state": "KA", "country": "India", "type": "city"},
    {"id": 4, "name": "Hyderabad", "state": "TS", "country": "India", "type": "city"},
    {"id": 5, "name": "Chennai", "state": "TN", "country": "India", "type": "city"},
    {"id": 6, "name": "Kolkata", "state": "WB", "country": "India", "type": "city"},
    {"id": 7, "name": "Pune", "state": "MH", "country": "India", "type": "city"},
    {"id": 8, "name": "Ahmedabad", "state": "GJ", "country": "India", "type": "city"},
    {"id": 9, "name": "New York", "state": "NY", "country": "USA", "type": "city"},
    {"id": 10, "name": "Los Angeles", "state": "CA", "country": "USA", "type": "city"},
    {"id": 11, "name": "Chicago", "state": "IL", "country": "USA", "type": "city"},
    {"id": 12, "name": "Houston", "state": "TX", "country": "USA", "type": "city"},
]


@locations_bp.route("/", methods=["GET"])
def list_locations():
    """
    All known locations. Public.
    """
    return jsonify({"data": POPULAR_LOCATIONS, "total": len(POPULAR_LOCATIONS)}), 200


@locations_bp.route("/popular", methods=["GET"])
def popular_locations():
    return jsonify({"data": POPULAR_LOCATIONS, "total": len(POPULAR_LOCATIONS)}), 200


@locations_bp.route("/search", methods=["GET"])
def search_locations():
    """
    Case-insensitive substring match on city name or state code.
    An empty query returns an empty list.
    """
    q = (request.args.get("q") or "").strip().lower()
    if not q:
        return jsonify({"data": [], "total": 0}), 200

    results = [
        loc for loc in POPULAR_LOCATIONS
        if q in loc["name"].lower() or q in loc["state"].lower()
    ]
    return jsonify({"data": results, "total": len(results)}), 200
