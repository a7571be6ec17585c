"""
Shared authentication helpers.
Provides token creation, verification, role enforcement, and JSON body parsing.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Tuple, Optional
from flask import jsonify, request, Response
from dotenv import load_dotenv

# Load .env only once here
load_dotenv()

# Load secrets & configs
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    raise RuntimeError("JWT_SECRET is missing. Set it in .env")

TOKEN_EXPIRATION_MINUTES = int(os.getenv("TOKEN_EXPIRATION_MINUTES", 10080))  # Default 7 days

VALID_ROLES = ("user", "organizer", "admin")
STAFF_ROLES = ["organizer", "admin"]


# --- JWT CREATION ---
def create_token(user_id: int, role: str) -> str:
    """
    Generates a new JWT for a given user.

    The subject claim is stored as a string, as required by RFC 7519.

    Args:
        user_id (int): The unique ID of the user.
        role (str): The role of the user (user, organizer, admin).

    Returns:
        str: Encoded JWT string.
    """
    now = datetime.now(timezone.utc)

    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": now + timedelta(minutes=TOKEN_EXPIRATION_MINUTES),
        "iat": now
    }

    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def _decode(token: str) -> dict:
    return jwt.decode(token, JWT_SECRET, algorithms=["HS256"])


# --- JWT VALIDATION ---
def verify_token_from_request(required_roles: Optional[list] = None) -> Tuple[Optional[int], Optional[str], Optional[Response], Optional[int]]:
    """
    Verify the JWT in the Authorization header.

    Args:
        required_roles (list, optional): List of allowed roles.

    Returns:
        tuple: (user_id, role, error_response, status_code)
               If successful, error_response and status_code are None.
               If failed, user_id and role are None.
    """
    auth = request.headers.get("Authorization", "")

    if not auth.startswith("Bearer "):
        return None, None, jsonify({"error": "missing token"}), 401

    token = auth.split(" ", 1)[1]

    try:
        payload = _decode(token)
        user_id = int(payload.get("sub"))
    except jwt.ExpiredSignatureError:
        return None, None, jsonify({"error": "token expired"}), 401
    except (jwt.InvalidTokenError, TypeError, ValueError):
        return None, None, jsonify({"error": "invalid token"}), 401

    role = payload.get("role")

    if required_roles and role not in required_roles:
        return None, None, jsonify({"error": "permission denied"}), 403

    return user_id, role, None, None


# --- REQUEST BODY ---
def get_json_body() -> Tuple[Optional[Dict[str, Any]], Optional[Response], Optional[int]]:
    """
    Read the request's JSON body as an object.

    A missing or unparseable body counts as empty, so the handler's own
    required-field checks report what is missing.

    Returns:
        tuple: (data, error_response, status_code)
               error_response is set when the body is JSON but not an object.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}, None, None
    if not isinstance(data, dict):
        return None, jsonify({"error": "Request body must be a JSON object"}), 400
    return data, None, None


def non_string_fields(data: Dict[str, Any], *names: str) -> List[str]:
    """Names among `names` whose value is present, not null, and not a string."""
    return [n for n in names if data.get(n) is not None and not isinstance(data[n], str)]


def string_type_error(fields: List[str]) -> Tuple[Response, int]:
    return jsonify({"error": f"{', '.join(fields)} must be a string"}), 400
