import json
import pytest

from client.errors import PermissionDenied
from client.session import JsonFileSessionStore, MemorySessionStore, Session


def test_login_persists_token_and_user(session, store):
    session.login("tok", {"id": 1, "name": "A", "email": "a@example.com", "role": "organizer"})

    assert session.is_authenticated
    assert session.role == "organizer"
    assert session.is_organizer and not session.is_admin
    assert store.load()["token"] == "tok"
    assert session.auth_headers() == {"Authorization": "Bearer tok"}


def test_logout_keeps_location(session, store):
    session.set_location({"id": 7, "name": "Pune"})
    session.login("tok", {"id": 1, "role": "user"})

    session.logout()

    assert not session.is_authenticated
    assert session.auth_headers() == {}
    assert store.load() == {"selectedLocation": {"id": 7, "name": "Pune"}}


def test_session_restores_from_store():
    store = MemorySessionStore({"token": "t", "user": {"id": 2, "role": "admin"}})
    session = Session(store)
    assert session.is_admin


def test_require_role(signed_in):
    signed_in.require_role()
    signed_in.require_role("user", "admin")
    with pytest.raises(PermissionDenied):
        signed_in.require_role("admin")


def test_require_role_signed_out(session):
    with pytest.raises(PermissionDenied):
        session.require_role()


def test_detect_location_sets_selection(session, store):
    loc = session.detect_location(lambda: (28.7, 77.1))

    assert loc["name"] == "Delhi"
    assert session.selected_location == loc
    assert store.load()["selectedLocation"]["isCurrentLocation"] is True


def test_detect_location_denied_falls_back(session):
    session.set_location({"id": 3, "name": "Bangalore"})

    def denied():
        raise PermissionError("denied")

    assert session.detect_location(denied) is None
    assert session.selected_location == {"id": 3, "name": "Bangalore"}


def test_json_file_store_roundtrip(tmp_path):
    path = tmp_path / "nested" / "session.json"
    session = Session(JsonFileSessionStore(str(path)))
    session.login("tok", {"id": 1, "role": "user"})

    assert json.loads(path.read_text())["token"] == "tok"
    assert Session(JsonFileSessionStore(str(path))).token == "tok"


def test_json_file_store_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")
    assert JsonFileSessionStore(str(path)).load() == {}


def test_json_file_store_clear(tmp_path):
    path = tmp_path / "session.json"
    store = JsonFileSessionStore(str(path))
    store.save({"token": "x"})
    store.clear()
    assert not path.exists()
    store.clear()
