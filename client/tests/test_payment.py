import pytest

from client.errors import InvalidArgument, ValidationError
from client.payment import PAYMENT_DELAY_SECONDS, simulate_payment


def test_upi_payment_completes(mocker):
    sleep = mocker.Mock()

    result = simulate_payment("upi", 998.0, sleep=sleep)

    sleep.assert_called_once_with(PAYMENT_DELAY_SECONDS)
    assert result["status"] == "completed"
    assert result["method"] == "upi"
    assert result["amount"] == 998.0
    assert result["reference"].startswith("PAY-")


def test_free_event_is_fine():
    assert simulate_payment("wallet", 0, delay=0)["status"] == "completed"


def test_card_requires_details():
    with pytest.raises(ValidationError) as exc:
        simulate_payment("card", 10, delay=0, card={"cardNumber": "4242"})
    assert set(exc.value.fields) == {"expiryDate", "cvv"}


def test_card_with_details(mocker):
    card = {"cardNumber": "4242 4242 4242 4242", "expiryDate": "12/30", "cvv": "123"}
    assert simulate_payment("card", 10, sleep=mocker.Mock(), card=card)["status"] == "completed"


@pytest.mark.parametrize("method, amount", [("stripe", 10), ("upi", -1), ("upi", None)])
def test_invalid_input(method, amount):
    with pytest.raises(InvalidArgument):
        simulate_payment(method, amount, delay=0)
