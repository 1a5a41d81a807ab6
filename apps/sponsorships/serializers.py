"""Serializers for the sponsorship API."""

from __future__ import annotations

from django.utils import timezone  # type: ignore
from rest_framework import serializers  # type: ignore

from apps.catalog.models import Child

from .models import Claim, Reservation


class ChildSerializer(serializers.ModelSerializer):
    display_id = serializers.CharField(read_only=True)
    family_number = serializers.CharField(source="family.family_number", read_only=True)

    class Meta:
        model = Child
        fields = ["id", "display_id", "family_number", "child_letter", "status"]
        read_only_fields = fields


class ClaimSerializer(serializers.ModelSerializer):
    child = ChildSerializer(read_only=True)

    class Meta:
        model = Claim
        fields = [
            "id",
            "child",
            "sponsor_name",
            "sponsor_email",
            "sponsor_phone",
            "sponsor_address",
            "gift_preference",
            "special_message",
            "status",
            "request_date",
            "confirmation_date",
            "completion_date",
            "cancelled_at",
            "notes",
        ]
        read_only_fields = fields


class ReservationSerializer(serializers.ModelSerializer):
    """Reservation without its token; safe for listings."""

    is_expired = serializers.SerializerMethodField()

    class Meta:
        model = Reservation
        fields = [
            "id",
            "sponsor_name",
            "sponsor_email",
            "sponsor_phone",
            "sponsor_address",
            "children_ids",
            "total_children",
            "status",
            "expires_at",
            "confirmed_at",
            "cancelled_at",
            "created_at",
            "is_expired",
        ]
        read_only_fields = fields

    def get_is_expired(self, obj: Reservation) -> bool:
        return obj.is_expired_at(timezone.now())


class ReservationViewSerializer(serializers.Serializer):
    """A reservation as its token holder sees it, children hydrated in order."""

    reservation = ReservationSerializer(read_only=True)
    children = ChildSerializer(many=True, read_only=True)
    is_expired = serializers.BooleanField(read_only=True)


class ReceiptSerializer(serializers.Serializer):
    reservation_id = serializers.IntegerField()
    token = serializers.CharField()
    expires_at = serializers.DateTimeField()
    child_ids = serializers.ListField(child=serializers.IntegerField())


# ============================================================================
# REQUEST BODIES
# ============================================================================

class ChildIdsSerializer(serializers.Serializer):
    child_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=True,
    )


class ClaimRequestSerializer(serializers.Serializer):
    child_id = serializers.IntegerField(min_value=1)
    # Validated by the engine once the child is held
    sponsor = serializers.DictField()


class BatchClaimRequestSerializer(serializers.Serializer):
    child_ids = serializers.ListField(child=serializers.IntegerField(min_value=1))
    sponsor = serializers.DictField()


class ReservationRequestSerializer(serializers.Serializer):
    """``child_ids`` falls back to the session selection when omitted."""

    child_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        required=False,
    )
    sponsor = serializers.DictField()
    ttl_hours = serializers.FloatField(required=False)


class CancelClaimSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=1000)


class CartItemSerializer(serializers.Serializer):
    child_id = serializers.IntegerField(min_value=1)
