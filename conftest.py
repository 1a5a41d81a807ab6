"""Shared pytest fixtures for the sponsorship apps."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from django.utils import timezone

from apps.catalog.models import Child, Family
from apps.notifications.notifier import get_notifier
from apps.sponsorships.services.engine import ReservationEngine


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now += timedelta(**delta)
        return self.now


@pytest.fixture
def clock():
    return FrozenClock(timezone.now())


@pytest.fixture
def engine(clock):
    return ReservationEngine(clock=clock)


@pytest.fixture
def make_child(db):
    """Create a child; families are created on demand by number."""

    def _make(family_number: str = "42", letter: str = "A", status: str = Child.Status.AVAILABLE) -> Child:
        family, _ = Family.objects.get_or_create(family_number=family_number)
        return Child.objects.create(family=family, child_letter=letter, status=status)

    return _make


@pytest.fixture
def children(make_child):
    return [make_child("42", letter) for letter in "ABC"]


@pytest.fixture
def sponsor():
    return {
        "name": "Jane Sponsor",
        "email": "jane@example.com",
        "phone": "555-0100",
        "address": "1 Main St",
        "gift_preference": "shopping",
        "message": "Happy holidays!",
    }


@pytest.fixture
def notifier():
    get_notifier.cache_clear()
    null_notifier = get_notifier()
    yield null_notifier
    get_notifier.cache_clear()
