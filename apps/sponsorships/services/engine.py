"""
Reservation Engine

The only code allowed to move a child between available, pending and
confirmed. Both claim pathways live here:

- single-child claims (reserve -> create_claim -> confirm/complete/cancel)
- multi-child reservations addressed by a bearer token
  (create_reservation -> confirm/cancel, or expiry by the sweeper)

Each transition is a guarded update on ``Child`` (see
:mod:`apps.catalog.guards`) plus a compare-and-swap on the ledger row,
inside one unit of work. Holds are tagged on the child with the id of the
ledger row that owns them, so a release from one pathway can never free a
child that the other pathway (or a newer request) is holding.

Public operations return an :class:`Outcome`; notifications are recorded
as domain events and leave the process only after commit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from django.conf import settings  # type: ignore
from django.db import DatabaseError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.catalog.guards import TransitionRejected, current_status, release_values, transition_child
from apps.catalog.models import Child
from shared.application.uow import DjangoUnitOfWork

from ..domain.cart import SelectionCart
from ..domain.errors import Conflict, Forbidden, NotFound, SponsorshipError, ValidationFailed
from ..domain.events import (
    ClaimCancelled,
    ClaimCompleted,
    ClaimConfirmed,
    ClaimCreated,
    ReservationCancelled,
    ReservationConfirmed,
    ReservationCreated,
    ReservationExpired,
)
from ..domain.outcome import reports_outcome
from ..domain.tokens import generate_token, token_fingerprint
from ..models import Claim, Reservation
from ..validation import validate_sponsor

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    Child.Status.PENDING: "This child is currently being processed by another sponsor",
    Child.Status.CONFIRMED: "This child has already been sponsored",
    Child.Status.COMPLETED: "This child has already received their gifts",
    Child.Status.INACTIVE: "This child is not currently available for sponsorship",
}
JUST_TAKEN = "This child was just selected by another sponsor. Please choose a different child."
AUTO_CANCEL_REASON = "Automatically cancelled due to timeout"
UNCLAIMED = {"claim_id__isnull": True, "reservation_id__isnull": True}


class Actor(str, Enum):
    SPONSOR = "sponsor"
    ADMIN = "admin"


@dataclass(frozen=True)
class RequestOrigin:
    """Audit metadata of the request that placed a reservation."""

    ip_address: str | None = None
    user_agent: str = ""


@dataclass(frozen=True)
class Unavailable:
    child_id: int
    display_id: str
    status: str  # "missing" for unknown ids


@dataclass(frozen=True)
class ReservationReceipt:
    reservation_id: int
    token: str
    expires_at: datetime
    child_ids: tuple[int, ...]

    def __repr__(self) -> str:
        return (
            f"ReservationReceipt(reservation_id={self.reservation_id}, "
            f"token={token_fingerprint(self.token)}..., expires_at={self.expires_at})"
        )


@dataclass
class ReservationView:
    reservation: Reservation
    children: list[Child]
    is_expired: bool


@dataclass
class BatchClaimResult:
    claims: list[Claim] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def added(self) -> list[str]:
        return [claim.child.display_id for claim in self.claims]


@dataclass
class SweepReport:
    """Aggregate result of one sweep.

    ``closed_count`` is the number of ledger rows moved to a terminal state
    (or, on a dry run, the number of candidates); ``released_count`` is the
    number of children returned to available.
    """

    closed_count: int = 0
    released_count: int = 0
    errors: list[str] = field(default_factory=list)
    dry_run: bool = False

    def as_dict(self) -> dict[str, Any]:
        return {
            "closed_count": self.closed_count,
            "released_count": self.released_count,
            "errors": list(self.errors),
            "dry_run": self.dry_run,
        }


class ReservationEngine:
    """Reserve, confirm, cancel and expire holds on catalog children."""

    def __init__(
        self,
        clock: Callable[[], datetime] = timezone.now,
        uow_factory: Callable[[], DjangoUnitOfWork] = DjangoUnitOfWork,
    ) -> None:
        self._clock = clock
        self._uow = uow_factory

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Single-child claims
    # ------------------------------------------------------------------

    @reports_outcome
    def reserve(self, child_id: int) -> Child:
        """Guarded available -> pending for one child."""

        self._hold_child(child_id)
        return Child.objects.select_related("family").get(pk=child_id)

    @reports_outcome
    def create_claim(self, child_id: int, sponsor_data: Mapping[str, Any] | None) -> Claim:
        """Reserve a child, validate the sponsor and record a pending claim.

        A failed validation or insert releases the hold before returning.
        """

        child = self.reserve(child_id).unwrap()

        try:
            sponsor = validate_sponsor(sponsor_data)
        except ValidationFailed:
            self._release_unclaimed(child_id)
            raise

        now = self.now()
        try:
            with self._uow() as uow:
                claim = Claim.objects.create(
                    child=child,
                    gift_preference=sponsor.gift_preference,
                    special_message=sponsor.message,
                    status=Claim.Status.PENDING,
                    request_date=now,
                    **sponsor.contact_fields(),
                )
                # Stamp ownership; the hold must still be ours and unowned.
                transition_child(
                    child_id,
                    expected=Child.Status.PENDING,
                    target=Child.Status.PENDING,
                    where=UNCLAIMED,
                    values={"claim_id": claim.pk},
                    now=now,
                )
                uow.record(
                    ClaimCreated(
                        claim_id=claim.pk,
                        child_id=child.pk,
                        child_display_id=child.display_id,
                        sponsor_name=sponsor.name,
                        sponsor_email=sponsor.email,
                    )
                )
        except TransitionRejected:
            raise Conflict(JUST_TAKEN, child_id=child_id) from None
        except DatabaseError:
            self._release_unclaimed_quietly(child_id)
            raise

        logger.info(f"Claim {claim.pk} created for child {child.display_id}")
        return claim

    @reports_outcome
    def add_children_to_claims(
        self, child_ids: Iterable[int], sponsor_data: Mapping[str, Any] | None
    ) -> BatchClaimResult:
        """Place one claim per child; children that fail are reported, not fatal."""

        cart = self._cart(child_ids)
        validate_sponsor(sponsor_data)

        result = BatchClaimResult()
        for child_id in cart.child_ids:
            outcome = self.create_claim(child_id, sponsor_data)
            if outcome.ok:
                result.claims.append(outcome.value)
            else:
                result.errors.append(outcome.error.reason)

        if not result.claims:
            raise Conflict(
                "Failed to add children: " + ", ".join(result.errors),
                errors=result.errors,
            )
        return result

    @reports_outcome
    def confirm_claim(self, claim_id: int) -> Claim:
        """Administrative pending -> confirmed, for the claim and its child together.

        A pending claim older than ``CLAIM_PENDING_TIMEOUT_HOURS`` is expired
        even before the sweep reaches it and can no longer be confirmed.
        """

        now = self.now()
        cutoff = now - timedelta(hours=settings.CLAIM_PENDING_TIMEOUT_HOURS)
        with self._uow() as uow:
            claim = self._get_claim(claim_id)
            if claim.status == Claim.Status.PENDING and claim.request_date < cutoff:
                raise Conflict("This claim has expired.", claim_id=claim.pk)
            self._advance_claim(
                claim,
                expected=(Claim.Status.PENDING,),
                target=Claim.Status.CONFIRMED,
                where={"request_date__gte": cutoff},
                rejected="This claim has expired or was changed meanwhile.",
                confirmation_date=now,
                updated_at=now,
            )
            self._move_claimed_child(
                claim,
                expected=Child.Status.PENDING,
                target=Child.Status.CONFIRMED,
                now=now,
            )
            uow.record(
                ClaimConfirmed(
                    claim_id=claim.pk,
                    child_display_id=claim.child.display_id,
                    sponsor_name=claim.sponsor_name,
                    sponsor_email=claim.sponsor_email,
                )
            )

        logger.info(f"Claim {claim.pk} confirmed")
        return claim

    @reports_outcome
    def complete_claim(self, claim_id: int) -> Claim:
        """Administrative confirmed -> completed. The child stays confirmed."""

        now = self.now()
        with self._uow() as uow:
            claim = self._get_claim(claim_id)
            self._advance_claim(
                claim,
                expected=(Claim.Status.CONFIRMED,),
                target=Claim.Status.COMPLETED,
                completion_date=now,
                updated_at=now,
            )
            self._move_claimed_child(
                claim,
                expected=Child.Status.CONFIRMED,
                target=Child.Status.CONFIRMED,
                now=now,
            )
            uow.record(
                ClaimCompleted(
                    claim_id=claim.pk,
                    child_display_id=claim.child.display_id,
                    sponsor_email=claim.sponsor_email,
                )
            )

        logger.info(f"Claim {claim.pk} completed")
        return claim

    @reports_outcome
    def cancel_claim(self, claim_id: int, reason: str = "") -> Claim:
        """Administrative cancellation; the child is released whatever its state."""

        now = self.now()
        with self._uow() as uow:
            claim = self._get_claim(claim_id)
            notes = "\n".join(part for part in (claim.notes, reason) if part)
            self._advance_claim(
                claim,
                expected=(Claim.Status.PENDING, Claim.Status.CONFIRMED, Claim.Status.COMPLETED),
                target=Claim.Status.CANCELLED,
                cancelled_at=now,
                notes=notes,
                updated_at=now,
            )
            self._release_claimed_child(
                claim,
                expected=(Child.Status.PENDING, Child.Status.CONFIRMED, Child.Status.COMPLETED),
                now=now,
            )
            uow.record(
                ClaimCancelled(
                    claim_id=claim.pk,
                    child_display_id=claim.child.display_id,
                    sponsor_email=claim.sponsor_email,
                    reason=reason,
                )
            )

        logger.info(f"Claim {claim.pk} cancelled")
        return claim

    def release_stale_pending(
        self,
        *,
        timeout_hours: float | None = None,
        dry_run: bool = False,
    ) -> SweepReport:
        """Cancel pending claims older than the timeout and free their children.

        Each candidate runs in its own transaction; one failure does not
        stop the others. Pending children that no ledger row owns (a crash
        between reserve and claim insert) are reclaimed on the same cutoff.
        """

        now = self.now()
        hours = settings.CLAIM_PENDING_TIMEOUT_HOURS if timeout_hours is None else timeout_hours
        cutoff = now - timedelta(hours=hours)
        report = SweepReport(dry_run=dry_run)

        try:
            candidates = list(
                Claim.objects.filter(status=Claim.Status.PENDING, request_date__lt=cutoff)
                .order_by("request_date")
                .values_list("pk", flat=True)
            )
            orphans = list(
                Child.objects.filter(status=Child.Status.PENDING, status_changed_at__lt=cutoff, **UNCLAIMED)
                .values_list("pk", flat=True)
            )
        except DatabaseError as e:
            logger.error(f"Claim sweep could not scan for stale holds: {e}", exc_info=True)
            report.errors.append(f"scan: {e}")
            return report

        if dry_run:
            report.closed_count = len(candidates)
            report.released_count = len(orphans)
            return report

        for claim_id in candidates:
            try:
                with self._uow() as uow:
                    expired = Claim.objects.filter(
                        pk=claim_id,
                        status=Claim.Status.PENDING,
                        request_date__lt=cutoff,
                    ).update(
                        status=Claim.Status.CANCELLED,
                        cancelled_at=now,
                        notes=AUTO_CANCEL_REASON,
                        updated_at=now,
                    )
                    if not expired:
                        # Confirmed or cancelled since the scan.
                        continue
                    claim = Claim.objects.select_related("child__family").get(pk=claim_id)
                    released = self._release_claimed_child(
                        claim, expected=(Child.Status.PENDING,), now=now
                    )
                    uow.record(
                        ClaimCancelled(
                            claim_id=claim.pk,
                            child_display_id=claim.child.display_id,
                            sponsor_email=claim.sponsor_email,
                            reason=AUTO_CANCEL_REASON,
                            automatic=True,
                        )
                    )
                report.closed_count += 1
                report.released_count += int(released)
            except Exception as e:
                logger.error(f"Error releasing stale claim {claim_id}: {e}", exc_info=True)
                report.errors.append(f"claim {claim_id}: {e}")

        for child_id in orphans:
            try:
                transition_child(
                    child_id,
                    expected=Child.Status.PENDING,
                    target=Child.Status.AVAILABLE,
                    where={**UNCLAIMED, "status_changed_at__lt": cutoff},
                    values=release_values(),
                    now=now,
                )
            except TransitionRejected:
                continue
            except Exception as e:
                logger.error(f"Error releasing orphaned hold on child {child_id}: {e}", exc_info=True)
                report.errors.append(f"child {child_id}: {e}")
            else:
                report.released_count += 1

        if report.closed_count or report.released_count:
            logger.info(
                f"Claim sweep cancelled {report.closed_count} claims, "
                f"released {report.released_count} children"
            )
        return report

    # ------------------------------------------------------------------
    # Multi-child reservations
    # ------------------------------------------------------------------

    @reports_outcome
    def check_availability(self, child_ids: Iterable[int]) -> list[Unavailable]:
        """Children among ``child_ids`` that are not available right now.

        A fast pre-check for the user; create_reservation re-checks inside
        its transaction and the guarded update remains the real gate.
        """

        ids = self._cart(child_ids).child_ids
        return self._unavailable(ids, self._load_children(ids))

    @reports_outcome
    def create_reservation(
        self,
        sponsor_data: Mapping[str, Any] | None,
        child_ids: Iterable[int] | SelectionCart,
        ttl_hours: float | None = None,
        *,
        origin: RequestOrigin | None = None,
    ) -> ReservationReceipt:
        """Hold every requested child under one token, or none of them."""

        cart = child_ids if isinstance(child_ids, SelectionCart) else self._cart(child_ids)
        if cart.is_empty:
            raise ValidationFailed(
                "Please select at least one child.",
                errors={"child_ids": ["At least one child is required."]},
            )
        if len(cart) > settings.RESERVATION_MAX_CHILDREN:
            raise ValidationFailed(
                f"A reservation may hold at most {settings.RESERVATION_MAX_CHILDREN} children.",
                errors={"child_ids": ["Too many children selected."]},
            )
        ttl = self._ttl(ttl_hours)
        sponsor = validate_sponsor(sponsor_data)
        ids = cart.child_ids

        unavailable = self._unavailable(ids, self._load_children(ids))
        if unavailable:
            raise self._unavailable_conflict(unavailable)

        origin = origin or RequestOrigin()
        token = generate_token()
        now = self.now()
        expires_at = now + timedelta(hours=ttl)

        with self._uow() as uow:
            children = self._load_children(ids)
            unavailable = self._unavailable(ids, children)
            if unavailable:
                raise self._unavailable_conflict(unavailable)

            reservation = Reservation.objects.create(
                token=token,
                children_ids=list(ids),
                total_children=len(ids),
                status=Reservation.Status.PENDING,
                expires_at=expires_at,
                ip_address=origin.ip_address or None,
                user_agent=(origin.user_agent or "")[:255],
                **sponsor.contact_fields(),
            )

            for child_id in ids:
                try:
                    transition_child(
                        child_id,
                        expected=Child.Status.AVAILABLE,
                        target=Child.Status.PENDING,
                        values={
                            "claim_id": None,
                            "reservation_id": reservation.pk,
                            "reservation_expires_at": expires_at,
                        },
                        now=now,
                    )
                except TransitionRejected:
                    # Aborts the unit of work: earlier children and the row roll back.
                    taken = children[child_id]
                    raise self._unavailable_conflict(
                        [Unavailable(child_id, taken.display_id, current_status(child_id) or "missing")]
                    ) from None

            uow.record(
                ReservationCreated(
                    reservation_id=reservation.pk,
                    token=token,
                    sponsor_name=sponsor.name,
                    sponsor_email=sponsor.email,
                    children=tuple(children[child_id].display_id for child_id in ids),
                    expires_at=expires_at,
                )
            )

        logger.info(
            f"Reservation {reservation.pk} created for {len(ids)} children "
            f"(token {token_fingerprint(token)}), expires {expires_at.isoformat()}"
        )
        return ReservationReceipt(
            reservation_id=reservation.pk,
            token=token,
            expires_at=expires_at,
            child_ids=ids,
        )

    @reports_outcome
    def get_reservation(self, token: str) -> ReservationView:
        reservation = self._get_reservation(token)
        return ReservationView(
            reservation=reservation,
            children=self._children_in_order(reservation.children_ids),
            is_expired=reservation.is_expired_at(self.now()),
        )

    @reports_outcome
    def confirm_reservation(self, token: str) -> Reservation:
        """pending -> confirmed for the reservation and all its children at once."""

        now = self.now()
        with self._uow() as uow:
            reservation = self._get_reservation(token)
            if reservation.status == Reservation.Status.CONFIRMED:
                raise Conflict("This reservation has already been confirmed.")
            if reservation.status != Reservation.Status.PENDING:
                raise Conflict(f"This reservation has been {reservation.status}.")
            if reservation.is_expired_at(now):
                raise Conflict("This reservation has expired.")

            # Expiry is re-checked by the UPDATE itself, not by the read above.
            updated = Reservation.objects.filter(
                pk=reservation.pk,
                status=Reservation.Status.PENDING,
                expires_at__gt=now,
            ).update(status=Reservation.Status.CONFIRMED, confirmed_at=now, updated_at=now)
            if not updated:
                raise Conflict("This reservation has expired or was changed meanwhile.")
            reservation.status = Reservation.Status.CONFIRMED
            reservation.confirmed_at = now

            children = self._children_in_order(reservation.children_ids)
            for child_id in reservation.children_ids:
                try:
                    transition_child(
                        child_id,
                        expected=Child.Status.PENDING,
                        target=Child.Status.CONFIRMED,
                        where={"reservation_id": reservation.pk},
                        values={"reservation_expires_at": None},
                        now=now,
                    )
                except TransitionRejected:
                    raise Conflict(
                        "A child in this reservation is no longer held by it.",
                        child_id=child_id,
                    ) from None

            uow.record(
                ReservationConfirmed(
                    reservation_id=reservation.pk,
                    sponsor_name=reservation.sponsor_name,
                    sponsor_email=reservation.sponsor_email,
                    children=tuple(child.display_id for child in children),
                )
            )

        logger.info(f"Reservation {reservation.pk} confirmed (token {token_fingerprint(token)})")
        return reservation

    @reports_outcome
    def cancel_reservation(self, token: str, *, actor: Actor = Actor.SPONSOR) -> Reservation:
        """Cancel a pending reservation; confirmed ones need an administrator."""

        now = self.now()
        with self._uow() as uow:
            reservation = self._get_reservation(token)
            if reservation.status == Reservation.Status.CONFIRMED and actor != Actor.ADMIN:
                raise Forbidden("Cannot cancel a confirmed reservation. Please contact support.")
            if reservation.status not in Reservation.ACTIVE_STATUSES:
                raise Conflict(f"This reservation is already {reservation.status}.")

            updated = Reservation.objects.filter(
                pk=reservation.pk,
                status=reservation.status,
            ).update(status=Reservation.Status.CANCELLED, cancelled_at=now, updated_at=now)
            if not updated:
                raise Conflict("This reservation was changed meanwhile. Please reload it.")
            reservation.status = Reservation.Status.CANCELLED
            reservation.cancelled_at = now

            self._release_reserved_children(
                reservation,
                expected=(Child.Status.PENDING, Child.Status.CONFIRMED),
                now=now,
            )
            uow.record(
                ReservationCancelled(
                    reservation_id=reservation.pk,
                    sponsor_email=reservation.sponsor_email,
                    children=self._display_ids(reservation.children_ids),
                    by_admin=actor == Actor.ADMIN,
                )
            )

        logger.info(f"Reservation {reservation.pk} cancelled by {actor.value}")
        return reservation

    def sweep_expired_reservations(self, *, dry_run: bool = False) -> SweepReport:
        """Expire pending reservations past ``expires_at`` and free their children."""

        now = self.now()
        report = SweepReport(dry_run=dry_run)
        try:
            candidates = list(
                Reservation.objects.filter(status=Reservation.Status.PENDING, expires_at__lte=now)
                .order_by("expires_at")
                .values_list("pk", flat=True)
            )
        except DatabaseError as e:
            logger.error(f"Reservation sweep could not scan for expired holds: {e}", exc_info=True)
            report.errors.append(f"scan: {e}")
            return report

        if dry_run:
            report.closed_count = len(candidates)
            return report

        for reservation_id in candidates:
            try:
                with self._uow() as uow:
                    expired = Reservation.objects.filter(
                        pk=reservation_id,
                        status=Reservation.Status.PENDING,
                        expires_at__lte=now,
                    ).update(status=Reservation.Status.EXPIRED, updated_at=now)
                    if not expired:
                        continue
                    reservation = Reservation.objects.get(pk=reservation_id)
                    freed = self._release_reserved_children(
                        reservation, expected=(Child.Status.PENDING,), now=now
                    )
                    uow.record(
                        ReservationExpired(
                            reservation_id=reservation.pk,
                            sponsor_email=reservation.sponsor_email,
                            children=self._display_ids(reservation.children_ids),
                        )
                    )
                report.closed_count += 1
                report.released_count += freed
            except Exception as e:
                logger.error(f"Error expiring reservation {reservation_id}: {e}", exc_info=True)
                report.errors.append(f"reservation {reservation_id}: {e}")

        if report.closed_count:
            logger.info(
                f"Expired {report.closed_count} reservations, "
                f"freed {report.released_count} children"
            )
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _hold_child(self, child_id: int) -> None:
        try:
            transition_child(
                child_id,
                expected=Child.Status.AVAILABLE,
                target=Child.Status.PENDING,
                values=release_values(),
                now=self.now(),
            )
        except TransitionRejected:
            raise self._unavailable_reason(child_id) from None

    def _unavailable_reason(self, child_id: int) -> SponsorshipError:
        # Keyed to the status now, not the one seen when the call started.
        status = current_status(child_id)
        if status is None:
            return NotFound("Child not found.", child_id=child_id)
        return Conflict(STATUS_MESSAGES.get(status, JUST_TAKEN), child_id=child_id, status=status)

    def _release_unclaimed(self, child_id: int) -> None:
        try:
            transition_child(
                child_id,
                expected=Child.Status.PENDING,
                target=Child.Status.AVAILABLE,
                where=UNCLAIMED,
                values=release_values(),
                now=self.now(),
            )
        except TransitionRejected:
            logger.warning(f"Child {child_id} was not released: it is no longer an unowned hold")

    def _release_unclaimed_quietly(self, child_id: int) -> None:
        try:
            self._release_unclaimed(child_id)
        except DatabaseError as e:
            # The claim sweep reclaims orphaned holds.
            logger.error(f"Could not release child {child_id}: {e}")

    def _get_claim(self, claim_id: int) -> Claim:
        claim = Claim.objects.select_related("child__family").filter(pk=claim_id).first()
        if claim is None:
            raise NotFound("Claim not found.", claim_id=claim_id)
        return claim

    def _advance_claim(
        self,
        claim: Claim,
        *,
        expected: Sequence[str],
        target: str,
        where: Mapping[str, Any] | None = None,
        rejected: str = "This claim was changed meanwhile. Please reload it.",
        **values: Any,
    ) -> None:
        if claim.status not in expected:
            raise Conflict(
                f"This claim is {claim.status} and cannot become {target}.",
                claim_id=claim.pk,
                status=claim.status,
            )
        updated = Claim.objects.filter(pk=claim.pk, status=claim.status, **(where or {})).update(
            status=target, **values
        )
        if not updated:
            raise Conflict(rejected, claim_id=claim.pk)
        claim.status = target
        for name, value in values.items():
            setattr(claim, name, value)

    def _move_claimed_child(self, claim: Claim, *, expected: str, target: str, now: datetime) -> None:
        try:
            transition_child(
                claim.child_id,
                expected=expected,
                target=target,
                where={"claim_id": claim.pk},
                now=now,
            )
        except TransitionRejected:
            raise Conflict(
                f"Child {claim.child.display_id} is no longer held by this claim.",
                claim_id=claim.pk,
            ) from None
        claim.child.status = target

    def _release_claimed_child(self, claim: Claim, *, expected: Sequence[str], now: datetime) -> bool:
        try:
            transition_child(
                claim.child_id,
                expected=expected,
                target=Child.Status.AVAILABLE,
                where={"claim_id": claim.pk},
                values=release_values(),
                now=now,
            )
        except TransitionRejected:
            logger.warning(f"Child {claim.child_id} not released: no longer held by claim {claim.pk}")
            return False
        claim.child.status = Child.Status.AVAILABLE
        return True

    def _release_reserved_children(
        self, reservation: Reservation, *, expected: Sequence[str], now: datetime
    ) -> int:
        freed = 0
        for child_id in reservation.children_ids:
            try:
                transition_child(
                    child_id,
                    expected=expected,
                    target=Child.Status.AVAILABLE,
                    where={"reservation_id": reservation.pk},
                    values=release_values(),
                    now=now,
                )
            except TransitionRejected:
                logger.warning(
                    f"Child {child_id} not released: no longer held by reservation {reservation.pk}"
                )
            else:
                freed += 1
        return freed

    def _get_reservation(self, token: str) -> Reservation:
        if not isinstance(token, str) or not token:
            raise NotFound("Reservation not found.")
        reservation = Reservation.objects.filter(token=token).first()
        if reservation is None:
            raise NotFound("Reservation not found.")
        return reservation

    def _cart(self, child_ids: Iterable[int] | None) -> SelectionCart:
        try:
            return SelectionCart.from_ids(child_ids or [])
        except (TypeError, ValueError):
            raise ValidationFailed(
                "Child ids must be integers.",
                errors={"child_ids": ["Child ids must be integers."]},
            ) from None

    def _ttl(self, ttl_hours: float | None) -> float:
        if ttl_hours is None:
            return float(settings.RESERVATION_TTL_HOURS)
        try:
            ttl = float(ttl_hours)
        except (TypeError, ValueError):
            ttl = -1.0
        if not 0 < ttl <= settings.RESERVATION_MAX_TTL_HOURS:
            raise ValidationFailed(
                f"Hold length must be between 0 and {settings.RESERVATION_MAX_TTL_HOURS} hours.",
                errors={"ttl_hours": ["Out of range."]},
            )
        return ttl

    def _load_children(self, ids: Iterable[int]) -> dict[int, Child]:
        return Child.objects.select_related("family").in_bulk(list(ids))

    def _children_in_order(self, ids: Iterable[int]) -> list[Child]:
        ids = list(ids)
        found = self._load_children(ids)
        return [found[child_id] for child_id in ids if child_id in found]

    def _display_ids(self, ids: Iterable[int]) -> tuple[str, ...]:
        return tuple(child.display_id for child in self._children_in_order(ids))

    def _unavailable(self, ids: Iterable[int], children: Mapping[int, Child]) -> list[Unavailable]:
        result = []
        for child_id in ids:
            child = children.get(child_id)
            if child is None:
                result.append(Unavailable(child_id, f"#{child_id}", "missing"))
            elif child.status != Child.Status.AVAILABLE:
                result.append(Unavailable(child_id, child.display_id, child.status))
        return result

    def _unavailable_conflict(self, unavailable: Sequence[Unavailable]) -> Conflict:
        labels = [item.display_id for item in unavailable]
        return Conflict(
            "Some children are no longer available: " + ", ".join(labels),
            unavailable=labels,
        )


# Default engine used by views, tasks and commands
engine = ReservationEngine()
