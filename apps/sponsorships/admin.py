"""Admin registration for claims and reservations."""

from __future__ import annotations

from django.contrib import admin, messages

from .models import Claim, Reservation
from .services.engine import Actor, engine


def _run_for_each(modeladmin, request, queryset, operation, verb):
    done = 0
    for obj in queryset:
        outcome = operation(obj)
        if outcome.ok:
            done += 1
        else:
            modeladmin.message_user(request, f"{obj}: {outcome.error.reason}", messages.WARNING)
    if done:
        modeladmin.message_user(request, f"{done} {verb}.", messages.SUCCESS)


@admin.action(description="Confirm selected pending claims")
def confirm_claims(modeladmin, request, queryset):
    _run_for_each(modeladmin, request, queryset, lambda c: engine.confirm_claim(c.pk), "claim(s) confirmed")


@admin.action(description="Mark selected confirmed claims completed")
def complete_claims(modeladmin, request, queryset):
    _run_for_each(modeladmin, request, queryset, lambda c: engine.complete_claim(c.pk), "claim(s) completed")


@admin.action(description="Cancel selected claims and release their children")
def cancel_claims(modeladmin, request, queryset):
    reason = f"Cancelled by {request.user}"
    _run_for_each(
        modeladmin,
        request,
        queryset,
        lambda c: engine.cancel_claim(c.pk, reason),
        "claim(s) cancelled",
    )


@admin.register(Claim)
class ClaimAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "child",
        "sponsor_name",
        "sponsor_email",
        "gift_preference",
        "status",
        "request_date",
        "confirmation_date",
    )
    list_filter = ("status", "gift_preference", "request_date")
    search_fields = ("sponsor_name", "sponsor_email", "child__family__family_number")
    list_select_related = ("child__family",)
    actions = [confirm_claims, complete_claims, cancel_claims]
    readonly_fields = (
        "child",
        "status",
        "request_date",
        "confirmation_date",
        "completion_date",
        "cancelled_at",
        "updated_at",
    )


@admin.action(description="Cancel selected reservations (administrator)")
def cancel_reservations(modeladmin, request, queryset):
    _run_for_each(
        modeladmin,
        request,
        queryset,
        lambda r: engine.cancel_reservation(r.token, actor=Actor.ADMIN),
        "reservation(s) cancelled",
    )


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "sponsor_name",
        "sponsor_email",
        "total_children",
        "status",
        "expires_at",
        "created_at",
    )
    list_filter = ("status", "created_at")
    search_fields = ("sponsor_name", "sponsor_email")
    actions = [cancel_reservations]
    # The bearer token never appears in the admin.
    exclude = ("token",)
    readonly_fields = (
        "children_ids",
        "total_children",
        "status",
        "expires_at",
        "confirmed_at",
        "cancelled_at",
        "ip_address",
        "user_agent",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):
        return False
