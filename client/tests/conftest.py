import pytest
from unittest.mock import MagicMock

from client.api import EventEaseClient
from client.session import MemorySessionStore, Session

_NO_JSON = object()


class FakeResponse:
    """Just enough of requests.Response for the client."""

    def __init__(self, status_code=200, body=_NO_JSON):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is _NO_JSON:
            raise ValueError("No JSON object could be decoded")
        return self._body


@pytest.fixture
def fake_response():
    return FakeResponse


@pytest.fixture
def http():
    """Stand-in for requests.Session; set .request.return_value / side_effect."""
    return MagicMock()


@pytest.fixture
def store():
    return MemorySessionStore()


@pytest.fixture
def session(store):
    return Session(store)


@pytest.fixture
def signed_in(session):
    session.login("tok-123", {"id": 3, "name": "Asha", "email": "asha@example.com", "role": "user"})
    return session


@pytest.fixture
def api(signed_in, http):
    return EventEaseClient(signed_in, base_url="http://api.test/api", http=http, timeout=5)


@pytest.fixture
def events():
    """Ten events; exactly two have "Workshop" in the title."""
    return [
        {"event_id": 1, "title": "Python Workshop", "category": "Technology",
         "location": "Pune", "description": "Hands-on coding", "tags": ["python"]},
        {"event_id": 2, "title": "Jazz Night", "category": "Music",
         "location": "Mumbai", "description": "Live quartet", "tags": ["jazz", "live"]},
        {"event_id": 3, "title": "Startup Pitch Day", "category": "Business",
         "location": "Bangalore", "description": "Founders meet investors", "tags": ["startup"]},
        {"event_id": 4, "title": "Pottery WORKSHOP for Beginners", "category": "Arts",
         "location": "Delhi", "description": "Clay and wheel basics", "tags": []},
        {"event_id": 5, "title": "City Marathon", "category": "Sports",
         "location": "Hyderabad", "description": "42 km run", "tags": ["running"]},
        {"event_id": 6, "title": "Food Festival", "category": "Food & Drink",
         "location": "Kolkata", "description": "Street food stalls", "tags": None},
        {"event_id": 7, "title": "AI Summit", "category": "Technology",
         "location": "Chennai", "description": None, "tags": ["ai", "ml"]},
        {"event_id": 8, "title": "Wedding Expo", "category": "Wedding",
         "location": "Ahmedabad", "description": "Vendors and planners"},
        {"event_id": 9, "title": "Yoga Retreat", "category": "Health",
         "location": None, "description": "Weekend wellness", "tags": ["yoga"]},
        {"event_id": 10, "title": "Art Exhibition", "category": "Arts",
         "location": "Pune", "description": "Modern paintings", "tags": ["art"]},
    ]
