"""Sponsorship ledgers: single-child claims and multi-child reservations."""

from __future__ import annotations

from datetime import datetime

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class GiftPreference(models.TextChoices):
    SHOPPING = "shopping", _("Shop for gifts")
    GIFT_CARD = "gift_card", _("Gift card")
    CASH_DONATION = "cash_donation", _("Cash donation")


class SponsorContact(models.Model):
    """Contact fields shared by both ledgers."""

    sponsor_name = models.CharField(max_length=100)
    sponsor_email = models.EmailField(max_length=255, db_index=True)
    sponsor_phone = models.CharField(max_length=20, blank=True)
    sponsor_address = models.CharField(max_length=500, blank=True)

    class Meta:
        abstract = True


class Claim(SponsorContact):
    """A sponsor's request for exactly one child.

    While a claim is pending or confirmed its child's status mirrors it and
    ``Child.claim_id`` points back here.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Awaiting confirmation")
        CONFIRMED = "confirmed", _("Confirmed")
        COMPLETED = "completed", _("Gifts delivered")
        CANCELLED = "cancelled", _("Cancelled")

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)

    child = models.ForeignKey(
        "catalog.Child",
        on_delete=models.PROTECT,
        related_name="claims",
    )
    gift_preference = models.CharField(
        max_length=20,
        choices=GiftPreference.choices,
        default=GiftPreference.SHOPPING,
    )
    special_message = models.TextField(blank=True)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    request_date = models.DateTimeField(default=timezone.now)
    confirmation_date = models.DateTimeField(null=True, blank=True)
    completion_date = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, help_text=_("Administrative notes."))
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Claim")
        verbose_name_plural = _("Claims")
        ordering = ["-request_date"]
        constraints = [
            models.UniqueConstraint(
                fields=["child"],
                condition=models.Q(status__in=["pending", "confirmed"]),
                name="claim_one_active_per_child",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "request_date"], name="sponsorship_claim_stale_idx"),
        ]

    def __str__(self) -> str:
        return f"Claim #{self.pk} for child {self.child_id} ({self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES


class Reservation(SponsorContact):
    """A token-addressable hold on one or more children.

    ``token`` is a bearer credential: possessing it is enough to view,
    confirm or cancel the reservation. It is never shown in ``__str__``.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        CONFIRMED = "confirmed", _("Confirmed")
        CANCELLED = "cancelled", _("Cancelled")
        EXPIRED = "expired", _("Expired")

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)

    token = models.CharField(max_length=64, unique=True, editable=False)
    children_ids = models.JSONField(default=list)
    total_children = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    expires_at = models.DateTimeField()
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="sponsorship_resv_sweep_idx"),
        ]

    def __str__(self) -> str:
        return f"Reservation #{self.pk} ({self.status}, {self.total_children} children)"

    def is_expired_at(self, moment: datetime) -> bool:
        return moment >= self.expires_at

    @property
    def is_active(self) -> bool:
        return self.status in self.ACTIVE_STATUSES
