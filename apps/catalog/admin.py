"""Admin registration for the catalog."""

from __future__ import annotations

from django.contrib import admin, messages

from .guards import TransitionRejected, transition_child
from .models import Child, Family


class ChildInline(admin.TabularInline):
    model = Child
    extra = 0
    fields = ("child_letter", "status", "claim_id", "reservation_id", "reservation_expires_at")
    readonly_fields = ("status", "claim_id", "reservation_id", "reservation_expires_at")


@admin.register(Family)
class FamilyAdmin(admin.ModelAdmin):
    list_display = ("family_number", "created_at")
    search_fields = ("family_number",)
    inlines = [ChildInline]


def _bulk_transition(modeladmin, request, queryset, *, expected, target, verb):
    moved, skipped = 0, []
    for child in queryset.select_related("family"):
        try:
            transition_child(child.pk, expected=expected, target=target)
        except TransitionRejected:
            skipped.append(child.display_id)
        else:
            moved += 1
    if moved:
        modeladmin.message_user(request, f"{moved} child(ren) {verb}.", messages.SUCCESS)
    if skipped:
        modeladmin.message_user(
            request,
            f"Skipped (status changed meanwhile): {', '.join(skipped)}",
            messages.WARNING,
        )


@admin.action(description="Mark selected available children inactive")
def deactivate_children(modeladmin, request, queryset):
    _bulk_transition(
        modeladmin,
        request,
        queryset,
        expected=Child.Status.AVAILABLE,
        target=Child.Status.INACTIVE,
        verb="deactivated",
    )


@admin.action(description="Make selected inactive children available")
def reactivate_children(modeladmin, request, queryset):
    _bulk_transition(
        modeladmin,
        request,
        queryset,
        expected=Child.Status.INACTIVE,
        target=Child.Status.AVAILABLE,
        verb="reactivated",
    )


@admin.register(Child)
class ChildAdmin(admin.ModelAdmin):
    list_display = (
        "display_id",
        "status",
        "claim_id",
        "reservation_id",
        "reservation_expires_at",
        "status_changed_at",
    )
    list_filter = ("status",)
    search_fields = ("family__family_number",)
    list_select_related = ("family",)
    actions = [deactivate_children, reactivate_children]
    # Status only moves through guarded transitions.
    readonly_fields = (
        "status",
        "claim_id",
        "reservation_id",
        "reservation_expires_at",
        "status_changed_at",
        "created_at",
        "updated_at",
    )
