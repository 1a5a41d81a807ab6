"""
Sponsorship Domain Events

Recorded on the unit of work during a claim/reservation transition and
published only after the transaction commits. Handlers turn them into
Notifier calls.
"""

from dataclasses import dataclass
from datetime import datetime

from shared.domain.base import DomainEvent


# ===== Claim Events =====

@dataclass
class ClaimCreated(DomainEvent):
    """
    Event: A sponsor requested exactly one child

    Triggers:
    - Confirmation message to the sponsor
    - Notification to the administrators
    """
    claim_id: int
    child_id: int
    child_display_id: str
    sponsor_name: str
    sponsor_email: str


@dataclass
class ClaimConfirmed(DomainEvent):
    """Event: An administrator confirmed a claim (pending -> confirmed)"""
    claim_id: int
    child_display_id: str
    sponsor_name: str
    sponsor_email: str


@dataclass
class ClaimCompleted(DomainEvent):
    """Event: Gifts for a claimed child were delivered"""
    claim_id: int
    child_display_id: str
    sponsor_email: str


@dataclass
class ClaimCancelled(DomainEvent):
    """
    Event: A claim was cancelled

    ``automatic`` is true when the sweeper cancelled a stale request.
    """
    claim_id: int
    child_display_id: str
    sponsor_email: str
    reason: str
    automatic: bool = False


# ===== Reservation Events =====

@dataclass
class ReservationCreated(DomainEvent):
    """
    Event: A multi-child hold was placed

    Carries the bearer token: it reaches the sponsor through the
    notification channel and nowhere else.
    """
    reservation_id: int
    token: str
    sponsor_name: str
    sponsor_email: str
    children: tuple[str, ...]
    expires_at: datetime

    def __repr__(self) -> str:
        return (
            f"ReservationCreated(reservation_id={self.reservation_id}, "
            f"children={self.children}, expires_at={self.expires_at})"
        )


@dataclass
class ReservationConfirmed(DomainEvent):
    """Event: The sponsor confirmed a pending reservation"""
    reservation_id: int
    sponsor_name: str
    sponsor_email: str
    children: tuple[str, ...]


@dataclass
class ReservationCancelled(DomainEvent):
    """Event: A reservation was cancelled by the sponsor or an administrator"""
    reservation_id: int
    sponsor_email: str
    children: tuple[str, ...]
    by_admin: bool = False


@dataclass
class ReservationExpired(DomainEvent):
    """Event: The sweeper expired a reservation that was never confirmed"""
    reservation_id: int
    sponsor_email: str
    children: tuple[str, ...]
