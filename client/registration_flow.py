"""
Event registration flow with the duplicate-registration guard.

States:

    COLLECTING_DETAILS -> AWAITING_PAYMENT -> SUBMITTING -> SUCCESS
                                                         -> ALREADY_REGISTERED
                                                         -> FAILED -> AWAITING_PAYMENT

The registration status is checked when the flow starts and again right
before submitting. The server's own uniqueness check is the final word:
a rejection mentioning "already registered" ends the flow in
ALREADY_REGISTERED rather than FAILED.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from client.api import EventEaseClient
from client.errors import (
    ClientError,
    DuplicateRegistration,
    InvalidTransition,
    NetworkError,
    ValidationError,
)
from client.payment import simulate_payment
from client.validation import validate_attendee

logger = logging.getLogger(__name__)

MY_REGISTRATIONS_PATH = "/my-registrations"
SUCCESS_REDIRECT_DELAY = 2.0
DUPLICATE_REDIRECT_DELAY = 1.5
ALREADY_REGISTERED_MESSAGE = "You are already registered for this event"

ATTENDEE_KEYS = ("firstName", "lastName", "email", "phone", "company",
                 "dietaryRestrictions", "specialRequirements")


class RegistrationState(Enum):
    COLLECTING_DETAILS = "collecting_details"
    AWAITING_PAYMENT = "awaiting_payment"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ALREADY_REGISTERED = "already_registered"
    FAILED = "failed"


TERMINAL_STATES = (RegistrationState.SUCCESS, RegistrationState.ALREADY_REGISTERED)


class RegistrationFlow:
    """
    Drives one user's registration for one event.

    Args:
        client: API client whose session is signed in.
        event: the event being registered for (needs an id and a price).
        pay: payment step; defaults to `simulate_payment`.
    """

    def __init__(self, client: EventEaseClient, event: Mapping[str, Any],
                 pay: Callable[..., Dict[str, Any]] = simulate_payment) -> None:
        self.client = client
        self.event = event
        self.event_id = event.get("event_id") or event.get("id")
        self.pay = pay

        self.state = RegistrationState.COLLECTING_DETAILS
        self.history: List[RegistrationState] = [self.state]
        self.details: Dict[str, Any] = {}
        self.field_errors: Dict[str, str] = {}
        self.error: Optional[str] = None
        self.payment: Optional[Dict[str, Any]] = None
        self.registration: Optional[Dict[str, Any]] = None
        self.redirect_to: Optional[str] = None
        self.redirect_delay: Optional[float] = None

    # --- helpers ---
    def _move(self, state: RegistrationState) -> None:
        self.state = state
        self.history.append(state)

    def _require(self, expected: RegistrationState, action: str) -> None:
        if self.state != expected:
            raise InvalidTransition(self.state.value, action)

    def _already_registered(self) -> RegistrationState:
        self.error = ALREADY_REGISTERED_MESSAGE
        self.redirect_to = MY_REGISTRATIONS_PATH
        self.redirect_delay = DUPLICATE_REDIRECT_DELAY
        self._move(RegistrationState.ALREADY_REGISTERED)
        return self.state

    def _is_registered(self) -> bool:
        """Ask the server; a network failure counts as "not known to be registered"."""
        try:
            return self.client.check_registration(self.event_id)
        except NetworkError as e:
            logger.warning("Could not verify registration status for event %s: %s", self.event_id, e.message)
            return False

    @property
    def total_price(self) -> float:
        tickets = self.details.get("numberOfTickets", 1)
        return float(self.event.get("price") or 0) * tickets

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    # --- transitions ---
    def start(self) -> RegistrationState:
        """
        Entry check. An existing registration ends the flow immediately.
        """
        self._require(RegistrationState.COLLECTING_DETAILS, "start")
        self.client.session.require_role()
        if self._is_registered():
            return self._already_registered()
        return self.state

    def submit_details(self, details: Mapping[str, Any]) -> RegistrationState:
        """
        Validate attendee details and move on to payment.

        Raises:
            ValidationError: with per-field messages; the state is unchanged.
        """
        self._require(RegistrationState.COLLECTING_DETAILS, "submit details")

        errors = validate_attendee(details)
        if errors:
            self.field_errors = errors
            raise ValidationError(errors)

        self.field_errors = {}
        self.details = dict(details)
        self.details.setdefault("numberOfTickets", 1)
        self._move(RegistrationState.AWAITING_PAYMENT)
        return self.state

    def edit_details(self) -> RegistrationState:
        """Close the payment step and go back to the form."""
        self._require(RegistrationState.AWAITING_PAYMENT, "edit details")
        self._move(RegistrationState.COLLECTING_DETAILS)
        return self.state

    def confirm_payment(self, method: str, card: Optional[Mapping[str, Any]] = None) -> RegistrationState:
        """
        Re-check, pay, and submit the registration.

        Returns the outcome: SUCCESS, ALREADY_REGISTERED, or FAILED. After
        FAILED the flow is back in AWAITING_PAYMENT and `error` holds the
        message, so the user can try again.
        """
        self._require(RegistrationState.AWAITING_PAYMENT, "confirm payment")
        self.error = None
        self._move(RegistrationState.SUBMITTING)

        attendee = {k: self.details[k] for k in ATTENDEE_KEYS if self.details.get(k)}
        try:
            if self._is_registered():
                return self._already_registered()
            self.payment = self.pay(method, self.total_price, card=card)
            self.registration = self.client.register_for_event(
                self.event_id,
                attendee,
                tickets=self.details["numberOfTickets"],
                payment_method=method,
            )
        except DuplicateRegistration:
            return self._already_registered()
        except ClientError as e:
            logger.error("Registration for event %s failed: %s", self.event_id, e)
            self.error = e.message
            self._move(RegistrationState.FAILED)
            self._move(RegistrationState.AWAITING_PAYMENT)
            return RegistrationState.FAILED

        self.redirect_to = MY_REGISTRATIONS_PATH
        self.redirect_delay = SUCCESS_REDIRECT_DELAY
        self._move(RegistrationState.SUCCESS)
        return self.state
