"""
Sponsorship event handlers

Turn committed domain events into Notifier calls. Handlers run after the
transaction commits, so nothing here can undo a claim or reservation.
"""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore

from apps.notifications.notifier import get_notifier
from shared.application.message_bus import MessageBus, message_bus

from .domain.events import (
    ClaimCancelled,
    ClaimCompleted,
    ClaimConfirmed,
    ClaimCreated,
    ReservationCancelled,
    ReservationConfirmed,
    ReservationCreated,
    ReservationExpired,
)
from .domain.tokens import token_fingerprint

logger = logging.getLogger(__name__)


def _notify(event_type: str, recipient: str, payload: dict) -> None:
    if not get_notifier().notify(event_type, recipient, payload):
        logger.warning(f"Notifier did not accept {event_type} for {recipient}")


def _notify_admin(event_type: str, payload: dict) -> None:
    admin_email = getattr(settings, "SPONSORSHIP_ADMIN_EMAIL", "")
    if admin_email:
        _notify(event_type, admin_email, payload)


def on_claim_created(event: ClaimCreated) -> None:
    payload = {
        "claim_id": event.claim_id,
        "child": event.child_display_id,
        "sponsor_name": event.sponsor_name,
        "sponsor_email": event.sponsor_email,
    }
    _notify("claim.created", event.sponsor_email, payload)
    _notify_admin("claim.created.admin", payload)


def on_claim_confirmed(event: ClaimConfirmed) -> None:
    _notify(
        "claim.confirmed",
        event.sponsor_email,
        {
            "claim_id": event.claim_id,
            "child": event.child_display_id,
            "sponsor_name": event.sponsor_name,
        },
    )


def on_claim_completed(event: ClaimCompleted) -> None:
    _notify(
        "claim.completed",
        event.sponsor_email,
        {"claim_id": event.claim_id, "child": event.child_display_id},
    )


def on_claim_cancelled(event: ClaimCancelled) -> None:
    _notify(
        "claim.cancelled",
        event.sponsor_email,
        {
            "claim_id": event.claim_id,
            "child": event.child_display_id,
            "reason": event.reason,
            "automatic": event.automatic,
        },
    )


def on_reservation_created(event: ReservationCreated) -> None:
    # The token goes to the sponsor and nowhere else.
    _notify(
        "reservation.created",
        event.sponsor_email,
        {
            "reservation_id": event.reservation_id,
            "token": event.token,
            "sponsor_name": event.sponsor_name,
            "children": list(event.children),
            "expires_at": event.expires_at.isoformat(),
        },
    )
    logger.debug(
        f"Reservation {event.reservation_id} token {token_fingerprint(event.token)} sent to sponsor"
    )


def on_reservation_confirmed(event: ReservationConfirmed) -> None:
    payload = {
        "reservation_id": event.reservation_id,
        "sponsor_name": event.sponsor_name,
        "sponsor_email": event.sponsor_email,
        "children": list(event.children),
    }
    _notify("reservation.confirmed", event.sponsor_email, payload)
    _notify_admin("reservation.confirmed.admin", payload)


def on_reservation_cancelled(event: ReservationCancelled) -> None:
    _notify(
        "reservation.cancelled",
        event.sponsor_email,
        {
            "reservation_id": event.reservation_id,
            "children": list(event.children),
            "by_admin": event.by_admin,
        },
    )


def on_reservation_expired(event: ReservationExpired) -> None:
    _notify(
        "reservation.expired",
        event.sponsor_email,
        {"reservation_id": event.reservation_id, "children": list(event.children)},
    )


HANDLERS = {
    ClaimCreated: on_claim_created,
    ClaimConfirmed: on_claim_confirmed,
    ClaimCompleted: on_claim_completed,
    ClaimCancelled: on_claim_cancelled,
    ReservationCreated: on_reservation_created,
    ReservationConfirmed: on_reservation_confirmed,
    ReservationCancelled: on_reservation_cancelled,
    ReservationExpired: on_reservation_expired,
}


def register(bus: MessageBus = message_bus) -> None:
    """Subscribe the notification handlers; safe to call more than once."""

    for event_type, handler in HANDLERS.items():
        bus.register_event_handler(event_type, handler)
