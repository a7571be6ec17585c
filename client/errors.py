"""Error types raised by the EventEase client."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class ErrorCode(Enum):
    """Client error codes."""

    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_REGISTRATION = "DUPLICATE_REGISTRATION"
    LOCATION_UNAVAILABLE = "LOCATION_UNAVAILABLE"
    NOT_FOUND = "NOT_FOUND"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PERMISSION_DENIED = "PERMISSION_DENIED"


@dataclass(eq=False)
class ClientError(Exception):
    """Base client error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class NetworkError(ClientError):
    """The backend could not be reached, or answered with an error status."""

    def __init__(self, message: str = "Network error", status: Optional[int] = None) -> None:
        super().__init__(code=ErrorCode.NETWORK_ERROR, message=message)
        self.status = status


class ValidationError(ClientError):
    """Form input failed validation. `fields` maps field name to message."""

    def __init__(self, fields: Dict[str, str]) -> None:
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message="Please correct the highlighted fields",
        )
        self.fields = dict(fields)


class DuplicateRegistration(ClientError):
    """The user already holds an active registration for the event."""

    def __init__(self, message: str = "You are already registered for this event") -> None:
        super().__init__(code=ErrorCode.DUPLICATE_REGISTRATION, message=message)


class LocationUnavailable(ClientError):
    """Geolocation was denied, unsupported, or failed."""

    def __init__(self, reason: str = "Unable to retrieve your location") -> None:
        super().__init__(code=ErrorCode.LOCATION_UNAVAILABLE, message=reason)


class NotFound(ClientError):
    def __init__(self, message: str = "Not found") -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=message)


class InvalidArgument(ClientError):
    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_ARGUMENT, message=message)


class MalformedResponse(ClientError):
    """The backend answered 2xx but the body is not the expected envelope."""

    def __init__(self, message: str = "Unexpected response from server") -> None:
        super().__init__(code=ErrorCode.MALFORMED_RESPONSE, message=message)


class InvalidTransition(ClientError):
    """A registration flow action is not allowed in the current state."""

    def __init__(self, state: str, action: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot {action} while {state}",
        )
        self.state = state
        self.action = action


class PermissionDenied(ClientError):
    def __init__(self, message: str = "You do not have permission to access this page") -> None:
        super().__init__(code=ErrorCode.PERMISSION_DENIED, message=message)
