"""Plain-text subjects and bodies for sponsorship notifications."""

from __future__ import annotations

from typing import Any, Mapping

SUBJECTS = {
    "claim.created": "We received your sponsorship request for child {child}",
    "claim.created.admin": "New sponsorship request for child {child}",
    "claim.confirmed": "Your sponsorship of child {child} is confirmed",
    "claim.completed": "Thank you: gifts for child {child} were delivered",
    "claim.cancelled": "Your sponsorship request for child {child} was cancelled",
    "reservation.created": "Your reservation of {count} children",
    "reservation.confirmed": "Your sponsorship of {count} children is confirmed",
    "reservation.confirmed.admin": "Reservation #{reservation_id} confirmed",
    "reservation.cancelled": "Your reservation was cancelled",
    "reservation.expired": "Your reservation has expired",
}


def _children(payload: Mapping[str, Any]) -> list[str]:
    children = payload.get("children") or []
    if not children and payload.get("child"):
        children = [payload["child"]]
    return list(children)


def render(event_type: str, payload: Mapping[str, Any]) -> tuple[str, str]:
    """Return ``(subject, body)`` for one notification."""

    children = _children(payload)
    context = {
        "child": payload.get("child", ""),
        "count": len(children),
        "reservation_id": payload.get("reservation_id", ""),
    }
    subject = SUBJECTS.get(event_type, "Sponsorship update").format(**context)

    lines = []
    if payload.get("sponsor_name"):
        lines.append(f"Dear {payload['sponsor_name']},")
        lines.append("")
    if children:
        lines.append("Children: " + ", ".join(children))
    if payload.get("expires_at"):
        lines.append(f"Please confirm before {payload['expires_at']}.")
    if payload.get("token"):
        lines.append(f"Your reservation code: {payload['token']}")
        lines.append("Keep it private: anyone with this code can manage the reservation.")
    if payload.get("reason"):
        lines.append(f"Reason: {payload['reason']}")
    if payload.get("sponsor_email") and event_type.endswith(".admin"):
        lines.append(f"Sponsor: {payload['sponsor_email']}")
    return subject, "\n".join(lines)
