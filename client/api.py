"""
HTTP client for the EventEase API.

All calls go through `EventEaseClient._request`, which attaches the
session's bearer token, applies a timeout, and turns transport failures
and error statuses into `client.errors` exceptions. Successful responses
are checked against the expected envelope before being returned.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv

from client.errors import (
    DuplicateRegistration,
    MalformedResponse,
    NetworkError,
    NotFound,
)
from client.session import Session

load_dotenv()

logger = logging.getLogger(__name__)

API_BASE_URL = os.getenv("EVENTEASE_API_BASE_URL", "http://localhost:5050/api")
REQUEST_TIMEOUT = 10  # seconds

DUPLICATE_MARKER = "already registered"


def expect_list(body: Any) -> Dict[str, Any]:
    """
    Validate a list envelope: {"data": [...], "total": int}.
    """
    if not isinstance(body, dict):
        raise MalformedResponse("Expected a JSON object")
    data = body.get("data")
    total = body.get("total")
    if not isinstance(data, list):
        raise MalformedResponse("Response is missing a 'data' list")
    if isinstance(total, bool) or not isinstance(total, int):
        raise MalformedResponse("Response is missing an integer 'total'")
    return body


def expect_item(body: Any) -> Dict[str, Any]:
    """
    Validate a single-object envelope and return the object.
    """
    if not isinstance(body, dict) or not isinstance(body.get("data"), dict):
        raise MalformedResponse("Response is missing a 'data' object")
    return body["data"]


def expect_auth(body: Any) -> Dict[str, Any]:
    if (not isinstance(body, dict)
            or not isinstance(body.get("token"), str)
            or not isinstance(body.get("user"), dict)):
        raise MalformedResponse("Response is missing token or user")
    return body


class EventEaseClient:
    """
    Thin wrapper over the REST API.

    Args:
        session: holds the token used for authenticated calls; `login` and
            `signup` update it.
        base_url: API root, e.g. "http://localhost:5050/api".
        http: a `requests.Session` (or compatible object). One is created
            when omitted.
        timeout: per-request timeout in seconds.
    """

    def __init__(self, session: Session, base_url: str = API_BASE_URL,
                 http: Optional[requests.Session] = None, timeout: float = REQUEST_TIMEOUT) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.http = http if http is not None else requests.Session()
        self.timeout = timeout

    # --- TRANSPORT ---
    def _request(self, method: str, path: str, json: Any = None,
                 params: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        try:
            resp = self.http.request(
                method, url,
                json=json,
                params=params,
                headers=self.session.auth_headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error("%s %s failed: %s", method, path, e)
            raise NetworkError("Unable to reach the server. Please try again.") from e

        try:
            body = resp.json()
        except ValueError:
            body = None

        status = resp.status_code
        if not 200 <= status < 300:
            message = None
            if isinstance(body, dict):
                message = body.get("error") or body.get("message")
            message = str(message) if message else f"Request failed with status {status}"

            if status == 404:
                raise NotFound(message)
            if DUPLICATE_MARKER in message.lower():
                raise DuplicateRegistration(message)
            raise NetworkError(message, status=status)

        if body is None:
            raise MalformedResponse("Response body is not JSON")
        return body

    # --- AUTH ---
    def signup(self, name: str, email: str, password: str, phone: Optional[str] = None) -> Dict[str, Any]:
        payload = {"name": name, "email": email, "password": password}
        if phone:
            payload["phone"] = phone
        body = expect_auth(self._request("POST", "/auth/signup", json=payload))
        self.session.login(body["token"], body["user"])
        return body["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate and store the token and user on the session."""
        body = expect_auth(self._request("POST", "/auth/login", json={"email": email, "password": password}))
        self.session.login(body["token"], body["user"])
        return body["user"]

    def logout(self) -> None:
        # Tokens are stateless; forgetting it is the whole logout.
        self.session.logout()

    def me(self) -> Dict[str, Any]:
        body = self._request("GET", "/auth/me")
        if not isinstance(body, dict):
            raise MalformedResponse("Expected a user object")
        return body

    def settings(self) -> Dict[str, Any]:
        """Email-notification and privacy settings: {emailNotifications, privacy}."""
        return expect_item(self._request("GET", "/auth/me/settings"))

    def update_notification_settings(self, **flags: bool) -> Dict[str, Any]:
        """Flags not passed reset to their defaults on the server."""
        return expect_item(self._request("PUT", "/auth/me/settings/notifications", json=flags))

    def update_privacy_settings(self, **settings: Any) -> Dict[str, Any]:
        return expect_item(self._request("PUT", "/auth/me/settings/privacy", json=settings))

    # --- EVENTS ---
    def list_events(self, search: Optional[str] = None, category: Optional[str] = None,
                    type: Optional[str] = None, location: Optional[str] = None,
                    sort_by: Optional[str] = None, page: Optional[int] = None,
                    limit: Optional[int] = None) -> Dict[str, Any]:
        """
        One page of events. Returns the whole envelope
        ({data, total, totalPages, currentPage}) so callers can paginate.
        """
        params = {
            "search": search, "category": category, "type": type,
            "location": location, "sortBy": sort_by, "page": page, "limit": limit,
        }
        params = {k: v for k, v in params.items() if v not in (None, "")}
        return expect_list(self._request("GET", "/events", params=params))

    def get_event(self, event_id: int) -> Dict[str, Any]:
        return expect_item(self._request("GET", f"/events/{event_id}"))

    def create_event(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        return expect_item(self._request("POST", "/events", json=fields))

    def update_event(self, event_id: int, fields: Dict[str, Any]) -> Dict[str, Any]:
        return expect_item(self._request("PUT", f"/events/{event_id}", json=fields))

    def delete_event(self, event_id: int) -> None:
        self._request("DELETE", f"/events/{event_id}")

    def my_events(self) -> List[Dict[str, Any]]:
        return expect_list(self._request("GET", "/events/user/my-events"))["data"]

    # --- FAVORITES ---
    def favorites(self) -> List[Dict[str, Any]]:
        return expect_list(self._request("GET", "/events/user/favorites"))["data"]

    def add_favorite(self, event_id: int) -> Dict[str, Any]:
        return expect_item(self._request("POST", f"/events/{event_id}/favorite"))

    def remove_favorite(self, event_id: int) -> Dict[str, Any]:
        return expect_item(self._request("DELETE", f"/events/{event_id}/favorite"))

    def is_favorite(self, event_id: int) -> bool:
        status = expect_item(self._request("GET", f"/events/{event_id}/is-favorite"))
        if not isinstance(status.get("isFavorite"), bool):
            raise MalformedResponse("Response is missing 'isFavorite'")
        return status["isFavorite"]

    # --- REGISTRATIONS ---
    def check_registration(self, event_id: int) -> bool:
        body = self._request("GET", f"/registrations/check/{event_id}")
        if not isinstance(body, dict) or not isinstance(body.get("isRegistered"), bool):
            raise MalformedResponse("Response is missing 'isRegistered'")
        return body["isRegistered"]

    def register_for_event(self, event_id: int, attendee: Dict[str, Any], tickets: int = 1,
                           payment_method: str = "card", ticket_type: str = "standard") -> Dict[str, Any]:
        """
        Raises:
            DuplicateRegistration: the server already has an active
                registration for this user and event.
        """
        payload = {
            "eventId": event_id,
            "attendeeInfo": attendee,
            "numberOfTickets": tickets,
            "paymentMethod": payment_method,
            "ticketType": ticket_type,
        }
        return expect_item(self._request("POST", "/registrations/register", json=payload))

    def my_registrations(self) -> List[Dict[str, Any]]:
        return expect_list(self._request("GET", "/registrations/my-registrations"))["data"]

    def get_registration(self, registration_id: int) -> Dict[str, Any]:
        return expect_item(self._request("GET", f"/registrations/{registration_id}"))

    def cancel_registration(self, registration_id: int, reason: Optional[str] = None) -> None:
        self._request("DELETE", f"/registrations/{registration_id}", json={"reason": reason} if reason else None)

    # --- NOTIFICATIONS ---
    def notifications(self) -> Dict[str, Any]:
        """The caller's notifications envelope, including the `unread` count."""
        return expect_list(self._request("GET", "/notifications"))

    def mark_notification_read(self, notification_id: int) -> Dict[str, Any]:
        return expect_item(self._request("PATCH", f"/notifications/{notification_id}/read"))

    def delete_notification(self, notification_id: int) -> None:
        self._request("DELETE", f"/notifications/{notification_id}")

    # --- SUBSCRIPTIONS ---
    def subscribe(self, email: str, source: str = "footer",
                  preferences: Optional[Dict[str, bool]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"email": email, "source": source}
        if preferences:
            payload["preferences"] = preferences
        return expect_item(self._request("POST", "/subscriptions/subscribe", json=payload))

    def unsubscribe(self, email: str) -> None:
        self._request("POST", "/subscriptions/unsubscribe", json={"email": email})

    # --- LOCATIONS ---
    def search_locations(self, query: str) -> List[Dict[str, Any]]:
        return expect_list(self._request("GET", "/locations/search", params={"q": query}))["data"]

    # --- ADMIN ---
    def list_users(self) -> List[Dict[str, Any]]:
        return expect_list(self._request("GET", "/admin/users"))["data"]

    def update_user_role(self, user_id: int, role: str) -> Dict[str, Any]:
        return expect_item(self._request("PUT", f"/admin/users/{user_id}/role", json={"role": role}))

    def delete_user(self, user_id: int) -> None:
        self._request("DELETE", f"/admin/users/{user_id}")

    def list_subscribers(self, search: Optional[str] = None, filter: str = "all",
                         page: int = 1, limit: int = 20) -> Dict[str, Any]:
        params = {"filter": filter, "page": page, "limit": limit}
        if search:
            params["search"] = search
        return expect_list(self._request("GET", "/subscriptions", params=params))
