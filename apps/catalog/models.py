"""Catalog models: families and the children that can be sponsored."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Family(models.Model):
    """A family registered in the programme."""

    family_number = models.CharField(max_length=10, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Family")
        verbose_name_plural = _("Families")
        ordering = ["family_number"]

    def __str__(self) -> str:
        return f"Family {self.family_number}"


class Child(models.Model):
    """A child in the shared pool.

    ``claim_id`` and ``reservation_id`` are weak back-references to the
    ledger row currently holding the child. They are lookup keys used by
    guarded releases, not foreign keys.
    """

    class Status(models.TextChoices):
        AVAILABLE = "available", _("Available for sponsorship")
        PENDING = "pending", _("Being processed by a sponsor")
        CONFIRMED = "confirmed", _("Sponsored")
        COMPLETED = "completed", _("Gifts delivered")
        INACTIVE = "inactive", _("Not available")

    family = models.ForeignKey(
        Family,
        on_delete=models.CASCADE,
        related_name="children",
    )
    child_letter = models.CharField(max_length=2)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.AVAILABLE,
    )
    claim_id = models.PositiveBigIntegerField(null=True, blank=True)
    reservation_id = models.PositiveBigIntegerField(null=True, blank=True)
    reservation_expires_at = models.DateTimeField(null=True, blank=True)
    status_changed_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Child")
        verbose_name_plural = _("Children")
        ordering = ["family__family_number", "child_letter"]
        constraints = [
            models.UniqueConstraint(
                fields=["family", "child_letter"],
                name="child_unique_letter_per_family",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="catalog_chi_status_7a1c2e_idx"),
            models.Index(fields=["claim_id"], name="catalog_chi_claim_i_4b0d93_idx"),
            models.Index(fields=["reservation_id"], name="catalog_chi_reserva_e52f10_idx"),
        ]

    def __str__(self) -> str:
        return f"Child {self.display_id}"

    @property
    def display_id(self) -> str:
        return f"{self.family.family_number}{self.child_letter}"

    @property
    def is_available(self) -> bool:
        return self.status == self.Status.AVAILABLE
