"""Application services for the sponsorship pool."""

from .engine import (
    Actor,
    BatchClaimResult,
    ReservationEngine,
    ReservationReceipt,
    ReservationView,
    RequestOrigin,
    SweepReport,
    Unavailable,
    engine,
)

__all__ = [
    "Actor",
    "BatchClaimResult",
    "ReservationEngine",
    "ReservationReceipt",
    "ReservationView",
    "RequestOrigin",
    "SweepReport",
    "Unavailable",
    "engine",
]
