"""
Client session: the signed-in user, their token, and the selected location.

State lives on an explicit `Session` object. Persistence is delegated to a
`SessionStore` so the same session can be kept in memory (tests, scripts)
or in a JSON file between CLI runs.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from client.errors import LocationUnavailable, PermissionDenied
from client.location import GeolocationProvider, resolve_current_location

load_dotenv()

logger = logging.getLogger(__name__)

SESSION_FILE = os.getenv("EVENTEASE_SESSION_FILE", str(Path.home() / ".eventease" / "session.json"))

TOKEN_KEY = "token"
USER_KEY = "user"
LOCATION_KEY = "selectedLocation"


class SessionStore(ABC):
    """Where session keys are persisted."""

    @abstractmethod
    def load(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    def save(self, data: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemorySessionStore(SessionStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._data)

    def save(self, data: Dict[str, Any]) -> None:
        self._data = dict(data)

    def clear(self) -> None:
        self._data = {}


class JsonFileSessionStore(SessionStore):
    """
    Session keys in a JSON file. A missing file is an empty session; an
    unreadable one is logged and treated as empty.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or SESSION_FILE)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()


class Session:
    """
    The client's authentication and location state.

    Args:
        store: persistence backend; defaults to an in-memory store.
    """

    def __init__(self, store: Optional[SessionStore] = None) -> None:
        self.store = store if store is not None else MemorySessionStore()
        data = self.store.load()
        self.token: Optional[str] = data.get(TOKEN_KEY)
        self.user: Optional[Dict[str, Any]] = data.get(USER_KEY)
        self.selected_location: Optional[Dict[str, Any]] = data.get(LOCATION_KEY)

    def _persist(self) -> None:
        data = {
            TOKEN_KEY: self.token,
            USER_KEY: self.user,
            LOCATION_KEY: self.selected_location,
        }
        self.store.save({k: v for k, v in data.items() if v is not None})

    # --- AUTH ---
    def login(self, token: str, user: Dict[str, Any]) -> None:
        self.token = token
        self.user = dict(user)
        self._persist()

    def logout(self) -> None:
        """Forget the token and user. The selected location is kept."""
        self.token = None
        self.user = None
        self._persist()

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.user is not None

    @property
    def role(self) -> Optional[str]:
        return (self.user or {}).get("role")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_organizer(self) -> bool:
        return self.role == "organizer"

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def require_role(self, *roles: str) -> None:
        """
        Guard for role-restricted screens.

        Raises:
            PermissionDenied: not signed in, or signed in with another role.
        """
        if not self.is_authenticated:
            raise PermissionDenied("Please log in to continue")
        if roles and self.role not in roles:
            raise PermissionDenied()

    # --- LOCATION ---
    def set_location(self, location: Dict[str, Any]) -> None:
        self.selected_location = dict(location)
        self._persist()

    def detect_location(self, provider: Optional[GeolocationProvider]) -> Optional[Dict[str, Any]]:
        """
        Select the device's current location.

        Returns the new location, or None when geolocation is unavailable,
        in which case the previous selection stays and the user picks a
        city manually.
        """
        try:
            location = resolve_current_location(provider)
        except LocationUnavailable as e:
            logger.warning("Location detection failed, falling back to manual selection: %s", e.message)
            return None
        self.set_location(location)
        return location
