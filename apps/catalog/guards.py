"""Guarded status transitions for catalog children.

Every change of ``Child.status`` is a single conditional UPDATE::

    UPDATE child SET status = <target>, ...
     WHERE id = <child_id> AND status IN (<expected>) AND <where>

executed inside a transaction, with the affected-row count as the only
success signal. What a previous SELECT observed is irrelevant: two
requests racing for the same child meet at the UPDATE and exactly one of
them matches the row.

The contract is "identify, then set": ``expected`` and ``where`` identify
the row, ``values`` are written to it. The two are never interchangeable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from django.db import transaction  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Child

logger = logging.getLogger(__name__)

HOLD_FIELDS = ("claim_id", "reservation_id", "reservation_expires_at")


class TransitionRejected(Exception):
    """Raised when a guarded update matched no row."""

    def __init__(self, child_id: int, expected: tuple[str, ...], target: str) -> None:
        self.child_id = child_id
        self.expected = expected
        self.target = target
        super().__init__(
            f"Child {child_id} is not in {'/'.join(expected)}; refused transition to {target}"
        )


def _as_statuses(expected: str | Iterable[str]) -> tuple[str, ...]:
    if isinstance(expected, str):
        return (expected,)
    statuses = tuple(expected)
    if not statuses:
        raise ValueError("At least one expected status is required.")
    return statuses


def transition_child(
    child_id: int,
    *,
    expected: str | Iterable[str],
    target: str,
    where: Mapping[str, Any] | None = None,
    values: Mapping[str, Any] | None = None,
    now: datetime | None = None,
) -> None:
    """Move one child from ``expected`` to ``target`` or raise.

    ``where`` narrows the match (for example ``{"reservation_id": 7}`` so a
    release only touches a child still held by reservation 7). ``values``
    are extra columns written together with the status.

    Raises:
        TransitionRejected: no row matched, the child is gone or was
            changed by someone else first.
    """
    statuses = _as_statuses(expected)
    if target not in Child.Status.values:
        raise ValueError(f"Unknown child status: {target!r}")

    filters: dict[str, Any] = {"pk": child_id, "status__in": statuses}
    if where:
        filters.update(where)

    changes: dict[str, Any] = {"status": target, "status_changed_at": now or timezone.now()}
    if values:
        if "status" in values:
            raise ValueError("Pass the new status as `target`, not inside `values`.")
        changes.update(values)

    with transaction.atomic():
        updated = Child.objects.filter(**filters).update(**changes)

    if updated != 1:
        logger.info(
            "Guarded transition rejected for child %s (%s -> %s)",
            child_id,
            "/".join(statuses),
            target,
        )
        raise TransitionRejected(child_id, statuses, target)


def release_values() -> dict[str, None]:
    """Column values that clear every hold reference on a child."""

    return {field: None for field in HOLD_FIELDS}


def current_status(child_id: int) -> str | None:
    """Fresh read of a child's status, ``None`` when the child is unknown."""

    return Child.objects.filter(pk=child_id).values_list("status", flat=True).first()
