"""
Simulated payment step.

There is no payment gateway: the step validates its input, waits a fixed
delay, and reports a completed payment.
"""

import logging
import time
import uuid
from typing import Any, Callable, Dict, Mapping, Optional

from client.errors import InvalidArgument, ValidationError

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("card", "upi", "netbanking", "wallet")
PAYMENT_DELAY_SECONDS = 2.0
CARD_FIELDS = ("cardNumber", "expiryDate", "cvv")


def simulate_payment(method: str, amount: float,
                     delay: float = PAYMENT_DELAY_SECONDS,
                     sleep: Callable[[float], None] = time.sleep,
                     card: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Pretend to charge `amount` via `method`.

    Card payments need card number, expiry and CVV to be present; they are
    not otherwise checked.

    Raises:
        InvalidArgument: unknown method or negative amount.
        ValidationError: card payment with missing card details.
    """
    if method not in PAYMENT_METHODS:
        raise InvalidArgument(f"paymentMethod must be one of: {', '.join(PAYMENT_METHODS)}")
    if amount is None or amount < 0:
        raise InvalidArgument("amount must not be negative")

    if method == "card":
        card = card or {}
        missing = {f: "Required" for f in CARD_FIELDS if not str(card.get(f) or "").strip()}
        if missing:
            raise ValidationError(missing)

    if delay > 0:
        sleep(delay)

    reference = f"PAY-{uuid.uuid4().hex[:12].upper()}"
    logger.info("Simulated %s payment of %.2f (%s)", method, amount, reference)

    return {
        "status": "completed",
        "reference": reference,
        "method": method,
        "amount": amount,
    }
