"""Celery tasks for the sponsorship pool."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .services.engine import engine

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled through Celery Beat)
# ============================================================================

@shared_task(name="sponsorships.run_reservation_sweep")
def run_reservation_sweep() -> dict:
    """
    Expire pending reservations whose hold ran out.

    Children still held by an expired reservation go back to available.
    Runs every five minutes.

    Returns:
        dict: counts plus per-reservation error messages
    """
    report = engine.sweep_expired_reservations()
    if report.errors:
        logger.warning(f"Reservation sweep finished with {len(report.errors)} errors")
    return report.as_dict()


@shared_task(name="sponsorships.run_claim_sweep")
def run_claim_sweep() -> dict:
    """
    Cancel pending claims nobody confirmed within the timeout.

    Runs hourly.

    Returns:
        dict: counts plus per-claim error messages
    """
    report = engine.release_stale_pending()
    if report.errors:
        logger.warning(f"Claim sweep finished with {len(report.errors)} errors")
    return report.as_dict()
