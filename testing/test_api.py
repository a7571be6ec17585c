"""
Quick end-to-end check against a running EventEase gateway.
Tests: signup/login, create event, register twice (second must be rejected),
search, favorite, cancel.

Needs an organizer or admin login for event creation:
    SMOKE_ORGANIZER_EMAIL / SMOKE_ORGANIZER_PASSWORD

Usage:
    python testing/test_api.py
"""

import os
import sys
import uuid

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from client.api import EventEaseClient, API_BASE_URL
from client.errors import ClientError, DuplicateRegistration
from client.search import filter_events
from client.session import Session

BASE = os.getenv("EVENTEASE_API_BASE_URL", API_BASE_URL)


def main() -> int:
    organizer = EventEaseClient(Session(), base_url=BASE)
    attendee = EventEaseClient(Session(), base_url=BASE)

    # 1) Organizer login
    org_email = os.getenv("SMOKE_ORGANIZER_EMAIL")
    org_password = os.getenv("SMOKE_ORGANIZER_PASSWORD")
    if not org_email or not org_password:
        print("Set SMOKE_ORGANIZER_EMAIL and SMOKE_ORGANIZER_PASSWORD first.")
        return 1
    print("ORGANIZER LOGIN:", organizer.login(org_email, org_password))

    # 2) Create a new event
    event = organizer.create_event({
        "title": "Smoke Test Workshop",
        "description": "Created by testing/test_api.py",
        "category": "Technology",
        "type": "Workshop",
        "date": "2030-01-15",
        "time": "10:00 AM",
        "location": "Pune, Maharashtra",
        "price": 100,
        "capacity": 10,
        "tags": ["smoke", "test"],
    })
    print("CREATE EVENT:", event["event_id"], event["title"])

    # 3) Sign up a fresh attendee
    email = f"smoke-{uuid.uuid4().hex[:8]}@example.com"
    print("SIGNUP:", attendee.signup("Smoke Tester", email, "pass123"))

    attendee_info = {
        "firstName": "Smoke", "lastName": "Tester",
        "email": email, "phone": "9876543210",
    }

    # 4) Register, then register again
    reg = attendee.register_for_event(event["event_id"], attendee_info, payment_method="upi")
    print("REGISTER:", reg["registration_id"], reg["registration_status"])
    try:
        attendee.register_for_event(event["event_id"], attendee_info, payment_method="upi")
        print("REGISTER AGAIN: accepted (UNEXPECTED)")
        return 1
    except DuplicateRegistration as e:
        print("REGISTER AGAIN: rejected ->", e.message)

    print("CHECK:", attendee.check_registration(event["event_id"]))

    # 5) Search server-side and client-side
    page = attendee.list_events(search="smoke test")
    print("SEARCH (server):", page["total"])
    print("SEARCH (client):", len(filter_events(page["data"], "workshop")))

    # 6) Favorite, then unfavorite
    print("FAVORITE:", attendee.add_favorite(event["event_id"]))
    print("IS FAVORITE:", attendee.is_favorite(event["event_id"]))
    attendee.remove_favorite(event["event_id"])

    # 7) Cancel and clean up
    attendee.cancel_registration(reg["registration_id"], reason="Smoke test cleanup")
    print("CANCEL: ok, registered =", attendee.check_registration(event["event_id"]))
    organizer.delete_event(event["event_id"])
    print("DELETE EVENT: ok")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except ClientError as e:
        print("FAILED:", e)
        sys.exit(1)
