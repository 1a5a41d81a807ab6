"""Sponsor input validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from rest_framework import serializers  # type: ignore

from .domain.errors import ValidationFailed
from .models import GiftPreference


class SponsorInfoSerializer(serializers.Serializer):
    """Sponsor contact details submitted with a claim or reservation."""

    name = serializers.CharField(min_length=2, max_length=100, trim_whitespace=True)
    email = serializers.EmailField(max_length=255)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    address = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    gift_preference = serializers.ChoiceField(
        choices=GiftPreference.choices,
        required=False,
        default=GiftPreference.SHOPPING,
    )
    message = serializers.CharField(max_length=1000, required=False, allow_blank=True, default="")


@dataclass(frozen=True)
class SponsorInfo:
    name: str
    email: str
    phone: str = ""
    address: str = ""
    gift_preference: str = GiftPreference.SHOPPING
    message: str = ""

    def contact_fields(self) -> dict[str, str]:
        """Column values for the ledger's sponsor contact fields."""
        return {
            "sponsor_name": self.name,
            "sponsor_email": self.email,
            "sponsor_phone": self.phone,
            "sponsor_address": self.address,
        }


def _flatten(errors: Any) -> dict[str, list[str]]:
    return {field: [str(message) for message in messages] for field, messages in errors.items()}


def validate_sponsor(data: Mapping[str, Any] | None) -> SponsorInfo:
    """Validate raw sponsor input.

    Raises:
        ValidationFailed: with per-field messages in ``errors``.
    """
    serializer = SponsorInfoSerializer(data=dict(data or {}))
    if not serializer.is_valid():
        errors = _flatten(serializer.errors)
        summary = "; ".join(f"{field}: {msgs[0]}" for field, msgs in errors.items())
        raise ValidationFailed(f"Please correct the following errors: {summary}", errors=errors)
    return SponsorInfo(**serializer.validated_data)
