"""
Registration form validation.
"""

import re
from typing import Any, Dict, Mapping

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")
PHONE_DIGITS = 10


def normalize_phone(phone: str) -> str:
    """Strip everything but digits: "(987) 654-3210" -> "9876543210"."""
    return re.sub(r"\D", "", phone or "")


def is_valid_phone(phone: str) -> bool:
    return len(normalize_phone(phone)) == PHONE_DIGITS


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.search(email or ""))


def validate_attendee(details: Mapping[str, Any]) -> Dict[str, str]:
    """
    Check the attendee form.

    Returns a dict of field -> message; empty when the form is valid.
    """
    errors: Dict[str, str] = {}

    if not str(details.get("firstName") or "").strip():
        errors["firstName"] = "First name is required"
    if not str(details.get("lastName") or "").strip():
        errors["lastName"] = "Last name is required"

    email = str(details.get("email") or "").strip()
    if not email:
        errors["email"] = "Email is required"
    elif not is_valid_email(email):
        errors["email"] = "Email is invalid"

    phone = str(details.get("phone") or "").strip()
    if not phone:
        errors["phone"] = "Phone number is required"
    elif not is_valid_phone(phone):
        errors["phone"] = "Phone number must be 10 digits"

    tickets = details.get("numberOfTickets", 1)
    if isinstance(tickets, bool) or not isinstance(tickets, int) or tickets < 1:
        errors["numberOfTickets"] = "At least one ticket is required"

    return errors
