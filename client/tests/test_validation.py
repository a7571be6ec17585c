import pytest

from client.validation import is_valid_phone, normalize_phone, validate_attendee

VALID = {
    "firstName": "Asha",
    "lastName": "Rao",
    "email": "asha@example.com",
    "phone": "98765 43210",
    "numberOfTickets": 1,
}


@pytest.mark.parametrize("phone", ["98765432 10", "(987) 654-3210", "9876543210", "98765-43210"])
def test_valid_phones(phone):
    assert is_valid_phone(phone)


@pytest.mark.parametrize("phone", ["12345", "", "98765432101", "phone"])
def test_invalid_phones(phone):
    assert not is_valid_phone(phone)


def test_normalize_phone():
    assert normalize_phone("(987) 654-3210") == "9876543210"


def test_valid_form_has_no_errors():
    assert validate_attendee(VALID) == {}


def test_every_missing_field_is_reported():
    errors = validate_attendee({})
    assert set(errors) == {"firstName", "lastName", "email", "phone"}
    assert errors["phone"] == "Phone number is required"


@pytest.mark.parametrize("field, value, message", [
    ("email", "asha@example", "Email is invalid"),
    ("phone", "12345", "Phone number must be 10 digits"),
    ("firstName", "   ", "First name is required"),
    ("numberOfTickets", 0, "At least one ticket is required"),
])
def test_single_field_errors(field, value, message):
    errors = validate_attendee({**VALID, field: value})
    assert errors == {field: message}
