"""Read-only queries over the sponsorship ledgers."""

from __future__ import annotations

from datetime import timedelta

from django.conf import settings  # type: ignore
from django.db.models import QuerySet  # type: ignore
from django.utils import timezone  # type: ignore

from apps.catalog.models import Child

from ..models import Claim, Reservation


def reservations_for_admin() -> QuerySet[Reservation]:
    """Newest reservations first. Status and date filters come from ``ReservationFilterSet``."""

    return Reservation.objects.all().order_by("-created_at")


def claims_for_sponsor(email: str) -> QuerySet[Claim]:
    """Non-cancelled claims placed with ``email``, newest first. Matching ignores case."""

    return (
        Claim.objects.select_related("child__family")
        .filter(sponsor_email__iexact=(email or "").strip())
        .exclude(status=Claim.Status.CANCELLED)
        .order_by("-request_date")
    )


def children_needing_attention(older_than_hours: float | None = None) -> QuerySet[Child]:
    """Children pending on a claim requested more than ``older_than_hours`` ago.

    Defaults to the claim timeout, i.e. what the next claim sweep would
    cancel.
    """

    hours = settings.CLAIM_PENDING_TIMEOUT_HOURS if older_than_hours is None else older_than_hours
    cutoff = timezone.now() - timedelta(hours=hours)
    return (
        Child.objects.select_related("family")
        .filter(
            status=Child.Status.PENDING,
            claims__status=Claim.Status.PENDING,
            claims__request_date__lt=cutoff,
        )
        .distinct()
        .order_by("status_changed_at")
    )
