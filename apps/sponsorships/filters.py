"""FilterSet definitions for the administrative listings."""

from __future__ import annotations

import django_filters  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Claim, Reservation


class ReservationFilterSet(django_filters.FilterSet):
    """Administrative reservation listing filters."""

    status = django_filters.ChoiceFilter(choices=Reservation.Status.choices)
    sponsor_email = django_filters.CharFilter(field_name="sponsor_email", lookup_expr="iexact")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")
    # Pending rows whose hold already ran out but were not swept yet
    overdue = django_filters.BooleanFilter(method="filter_overdue")

    class Meta:
        model = Reservation
        fields = ["status", "sponsor_email"]

    def filter_overdue(self, queryset, name, value):  # type: ignore
        if value is None:
            return queryset
        overdue = {"status": Reservation.Status.PENDING, "expires_at__lte": timezone.now()}
        if value:
            return queryset.filter(**overdue)
        return queryset.exclude(**overdue)


class ClaimFilterSet(django_filters.FilterSet):
    status = django_filters.ChoiceFilter(choices=Claim.Status.choices)
    family = django_filters.CharFilter(field_name="child__family__family_number", lookup_expr="exact")

    class Meta:
        model = Claim
        fields = ["status", "family"]
