"""Tests for sponsor input validation."""

from __future__ import annotations

import pytest

from apps.sponsorships.domain.errors import ValidationFailed
from apps.sponsorships.validation import validate_sponsor


def test_minimal_sponsor_gets_defaults():
    info = validate_sponsor({"name": "  Al Smith ", "email": "al@example.com"})

    assert info.name == "Al Smith"
    assert info.gift_preference == "shopping"
    assert info.phone == ""
    assert info.contact_fields() == {
        "sponsor_name": "Al Smith",
        "sponsor_email": "al@example.com",
        "sponsor_phone": "",
        "sponsor_address": "",
    }


@pytest.mark.parametrize(
    "overrides, field",
    [
        ({"name": ""}, "name"),
        ({"name": "A"}, "name"),
        ({"name": "x" * 101}, "name"),
        ({"email": "missing-at.example.com"}, "email"),
        ({"phone": "1" * 21}, "phone"),
        ({"address": "a" * 501}, "address"),
        ({"message": "m" * 1001}, "message"),
        ({"gift_preference": "pony"}, "gift_preference"),
    ],
)
def test_field_rules(sponsor, overrides, field):
    with pytest.raises(ValidationFailed) as excinfo:
        validate_sponsor({**sponsor, **overrides})

    assert field in excinfo.value.errors
    assert excinfo.value.reason.startswith("Please correct the following errors")
    assert excinfo.value.to_dict()["code"] == "validation_failed"


def test_missing_input():
    with pytest.raises(ValidationFailed) as excinfo:
        validate_sponsor(None)

    assert set(excinfo.value.errors) == {"name", "email"}


@pytest.mark.parametrize("preference", ["shopping", "gift_card", "cash_donation"])
def test_gift_preferences(sponsor, preference):
    assert validate_sponsor({**sponsor, "gift_preference": preference}).gift_preference == preference
