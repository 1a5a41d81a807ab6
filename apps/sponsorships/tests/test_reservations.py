"""Tests for the multi-child reservation pathway."""

from __future__ import annotations

import logging
import re
from unittest import mock

import pytest
from django.db import DatabaseError

from apps.catalog.models import Child
from apps.sponsorships.domain.cart import SelectionCart
from apps.sponsorships.domain.errors import Conflict, Forbidden, NotFound, TransientStoreError, ValidationFailed
from apps.sponsorships.models import Reservation
from apps.sponsorships.services.engine import Actor, RequestOrigin


def _statuses(children):
    return [Child.objects.get(pk=child.pk).status for child in children]


@pytest.mark.django_db
def test_create_reservation_holds_every_child(engine, children, sponsor):
    ids = [child.pk for child in children]

    outcome = engine.create_reservation(
        sponsor,
        ids,
        origin=RequestOrigin(ip_address="10.0.0.1", user_agent="pytest"),
    )

    assert outcome.ok, outcome.error
    receipt = outcome.value
    assert re.fullmatch(r"[0-9a-f]{64}", receipt.token)
    assert receipt.token not in repr(receipt)
    reservation = Reservation.objects.get(pk=receipt.reservation_id)
    assert reservation.status == Reservation.Status.PENDING
    assert reservation.children_ids == ids
    assert reservation.total_children == 3
    assert reservation.ip_address == "10.0.0.1"
    for child in children:
        child.refresh_from_db()
        assert child.status == Child.Status.PENDING
        assert child.reservation_id == reservation.pk
        assert child.reservation_expires_at == receipt.expires_at


@pytest.mark.django_db
def test_round_trip_keeps_submitted_order(engine, children, sponsor):
    ids = [children[2].pk, children[0].pk, children[1].pk, children[2].pk]
    receipt = engine.create_reservation(sponsor, ids).unwrap()

    view = engine.get_reservation(receipt.token).unwrap()

    assert [child.pk for child in view.children] == ids[:3]
    assert all(child.status == Child.Status.PENDING for child in view.children)
    assert view.is_expired is False
    assert view.reservation.expires_at > engine.now()


@pytest.mark.django_db
def test_default_hold_length(engine, children, sponsor, settings):
    settings.RESERVATION_TTL_HOURS = 12

    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()

    assert (receipt.expires_at - engine.now()).total_seconds() == 12 * 3600


@pytest.mark.django_db
def test_accepts_a_selection_cart(engine, children, sponsor):
    cart = SelectionCart().add(children[1].pk).add(children[0].pk)

    receipt = engine.create_reservation(sponsor, cart).unwrap()

    assert receipt.child_ids == (children[1].pk, children[0].pk)


@pytest.mark.django_db
def test_one_unavailable_child_aborts_everything(engine, children, sponsor):
    engine.reserve(children[1].pk)

    outcome = engine.create_reservation(sponsor, [child.pk for child in children])

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == "Some children are no longer available: 42B"
    assert outcome.error.details["unavailable"] == ["42B"]
    assert Reservation.objects.count() == 0
    assert _statuses(children) == [Child.Status.AVAILABLE, Child.Status.PENDING, Child.Status.AVAILABLE]


@pytest.mark.django_db
def test_guard_rolls_back_when_precheck_was_stale(engine, children, sponsor):
    engine.reserve(children[2].pk)

    # Pretend both availability checks raced ahead of the other request.
    with mock.patch.object(engine, "_unavailable", return_value=[]):
        outcome = engine.create_reservation(sponsor, [child.pk for child in children])

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.details["unavailable"] == ["42C"]
    assert Reservation.objects.count() == 0
    assert _statuses(children) == [Child.Status.AVAILABLE, Child.Status.AVAILABLE, Child.Status.PENDING]
    assert Child.objects.filter(reservation_id__isnull=False).count() == 0


@pytest.mark.django_db
def test_unknown_child_is_reported_missing(engine, children, sponsor):
    unavailable = engine.check_availability([children[0].pk, 999]).unwrap()
    assert [item.status for item in unavailable] == ["missing"]

    outcome = engine.create_reservation(sponsor, [children[0].pk, 999])

    assert isinstance(outcome.error, Conflict)
    assert "#999" in outcome.error.reason


@pytest.mark.django_db
def test_check_availability_lists_unavailable(engine, children):
    engine.reserve(children[0].pk)

    unavailable = engine.check_availability([child.pk for child in children]).unwrap()

    assert [(item.display_id, item.status) for item in unavailable] == [("42A", Child.Status.PENDING)]


@pytest.mark.django_db
def test_check_availability_reports_store_outage(engine, children):
    with mock.patch.object(Child.objects, "select_related", side_effect=DatabaseError("connection lost")):
        outcome = engine.check_availability([child.pk for child in children])

    assert isinstance(outcome.error, TransientStoreError)
    assert outcome.error.retryable


@pytest.mark.django_db
def test_sweep_records_failed_scan(engine, clock, children, sponsor):
    engine.create_reservation(sponsor, [children[0].pk], ttl_hours=1)
    clock.advance(hours=2)

    with mock.patch.object(Reservation.objects, "filter", side_effect=DatabaseError("connection lost")):
        report = engine.sweep_expired_reservations()

    assert report.closed_count == 0
    assert report.errors and report.errors[0].startswith("scan:")


@pytest.mark.django_db
def test_status_changes_touch_updated_at(engine, clock, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()
    clock.advance(minutes=5)

    engine.confirm_reservation(receipt.token)

    reservation = Reservation.objects.get(pk=receipt.reservation_id)
    assert reservation.updated_at == clock()


@pytest.mark.django_db
@pytest.mark.parametrize(
    "child_ids, ttl_hours",
    [
        ([], None),
        (["abc"], None),
        (None, 0),
        (None, 169),
    ],
)
def test_rejects_bad_requests(engine, children, sponsor, child_ids, ttl_hours):
    ids = [children[0].pk] if child_ids is None else child_ids

    outcome = engine.create_reservation(sponsor, ids, ttl_hours)

    assert isinstance(outcome.error, ValidationFailed)
    assert Reservation.objects.count() == 0


@pytest.mark.django_db
def test_rejects_too_many_children(engine, children, sponsor, settings):
    settings.RESERVATION_MAX_CHILDREN = 2

    outcome = engine.create_reservation(sponsor, [child.pk for child in children])

    assert isinstance(outcome.error, ValidationFailed)


@pytest.mark.django_db
def test_invalid_sponsor_holds_nothing(engine, children, sponsor):
    outcome = engine.create_reservation({**sponsor, "email": "nope"}, [children[0].pk])

    assert isinstance(outcome.error, ValidationFailed)
    assert _statuses(children[:1]) == [Child.Status.AVAILABLE]


@pytest.mark.django_db
def test_confirm_reservation(engine, children, sponsor):
    receipt = engine.create_reservation(sponsor, [child.pk for child in children]).unwrap()

    outcome = engine.confirm_reservation(receipt.token)

    assert outcome.ok
    assert outcome.value.status == Reservation.Status.CONFIRMED
    assert outcome.value.confirmed_at == engine.now()
    for child in children:
        child.refresh_from_db()
        assert child.status == Child.Status.CONFIRMED
        assert child.reservation_id == receipt.reservation_id
        assert child.reservation_expires_at is None


@pytest.mark.django_db
def test_confirm_twice_conflicts(engine, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()
    engine.confirm_reservation(receipt.token)

    outcome = engine.confirm_reservation(receipt.token)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == "This reservation has already been confirmed."


@pytest.mark.django_db
def test_confirm_after_expiry_fails_even_if_seen_fresh(engine, clock, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk], ttl_hours=1).unwrap()
    assert engine.get_reservation(receipt.token).unwrap().is_expired is False

    clock.advance(hours=1)
    outcome = engine.confirm_reservation(receipt.token)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == "This reservation has expired."
    assert engine.get_reservation(receipt.token).unwrap().is_expired is True
    assert _statuses(children[:1]) == [Child.Status.PENDING]


@pytest.mark.django_db
def test_unknown_token(engine):
    assert isinstance(engine.get_reservation("0" * 64).error, NotFound)
    assert isinstance(engine.confirm_reservation("0" * 64).error, NotFound)
    assert isinstance(engine.cancel_reservation("").error, NotFound)


@pytest.mark.django_db
def test_sponsor_cancels_pending_reservation(engine, children, sponsor):
    receipt = engine.create_reservation(sponsor, [child.pk for child in children]).unwrap()

    outcome = engine.cancel_reservation(receipt.token)

    assert outcome.ok
    assert outcome.value.status == Reservation.Status.CANCELLED
    for child in children:
        child.refresh_from_db()
        assert child.status == Child.Status.AVAILABLE
        assert child.reservation_id is None
        assert child.reservation_expires_at is None


@pytest.mark.django_db
def test_confirmed_reservation_needs_an_administrator(engine, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()
    engine.confirm_reservation(receipt.token)

    refused = engine.cancel_reservation(receipt.token)
    assert isinstance(refused.error, Forbidden)
    assert _statuses(children[:1]) == [Child.Status.CONFIRMED]

    allowed = engine.cancel_reservation(receipt.token, actor=Actor.ADMIN)
    assert allowed.ok
    assert _statuses(children[:1]) == [Child.Status.AVAILABLE]


@pytest.mark.django_db
def test_cancel_twice_conflicts(engine, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()
    engine.cancel_reservation(receipt.token)

    assert isinstance(engine.cancel_reservation(receipt.token).error, Conflict)


@pytest.mark.django_db
def test_sweep_expires_and_frees_children(engine, clock, children, sponsor):
    receipt = engine.create_reservation(sponsor, [child.pk for child in children], ttl_hours=2).unwrap()
    clock.advance(hours=2)

    report = engine.sweep_expired_reservations()

    assert (report.closed_count, report.released_count, report.errors) == (1, 3, [])
    assert Reservation.objects.get(pk=receipt.reservation_id).status == Reservation.Status.EXPIRED
    assert _statuses(children) == [Child.Status.AVAILABLE] * 3
    assert engine.sweep_expired_reservations().closed_count == 0
    assert isinstance(engine.confirm_reservation(receipt.token).error, Conflict)


@pytest.mark.django_db
def test_sweep_leaves_unexpired_and_confirmed_alone(engine, clock, make_child, sponsor):
    short = engine.create_reservation(sponsor, [make_child("1").pk], ttl_hours=1).unwrap()
    confirmed = engine.create_reservation(sponsor, [make_child("2").pk], ttl_hours=1).unwrap()
    engine.confirm_reservation(confirmed.token)
    engine.create_reservation(sponsor, [make_child("3").pk], ttl_hours=10).unwrap()
    clock.advance(hours=2)

    report = engine.sweep_expired_reservations()

    assert report.closed_count == 1
    assert Reservation.objects.get(pk=short.reservation_id).status == Reservation.Status.EXPIRED
    assert Reservation.objects.get(pk=confirmed.reservation_id).status == Reservation.Status.CONFIRMED
    assert Reservation.objects.filter(status=Reservation.Status.PENDING).count() == 1


@pytest.mark.django_db
def test_sweep_only_frees_children_it_still_holds(engine, clock, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk, children[1].pk], ttl_hours=1).unwrap()
    Child.objects.filter(pk=children[0].pk).update(reservation_id=None, claim_id=999)
    clock.advance(hours=1)

    report = engine.sweep_expired_reservations()

    assert report.released_count == 1
    assert Reservation.objects.get(pk=receipt.reservation_id).status == Reservation.Status.EXPIRED
    first = Child.objects.get(pk=children[0].pk)
    assert first.status == Child.Status.PENDING
    assert first.claim_id == 999


@pytest.mark.django_db
def test_sweep_error_does_not_stop_the_rest(engine, clock, make_child, sponsor):
    first = engine.create_reservation(sponsor, [make_child("1").pk], ttl_hours=1).unwrap()
    second = engine.create_reservation(sponsor, [make_child("2").pk], ttl_hours=1).unwrap()
    clock.advance(hours=1)

    with mock.patch.object(
        engine,
        "_release_reserved_children",
        side_effect=[DatabaseError("connection lost"), 1],
    ):
        report = engine.sweep_expired_reservations()

    assert report.closed_count == 1
    assert report.released_count == 1
    assert len(report.errors) == 1
    statuses = sorted(
        Reservation.objects.filter(pk__in=[first.reservation_id, second.reservation_id])
        .values_list("status", flat=True)
    )
    assert statuses == [Reservation.Status.EXPIRED, Reservation.Status.PENDING]


@pytest.mark.django_db
def test_claim_cannot_take_a_reserved_child(engine, children, sponsor):
    engine.create_reservation(sponsor, [children[0].pk]).unwrap()

    outcome = engine.create_claim(children[0].pk, sponsor)

    assert isinstance(outcome.error, Conflict)


@pytest.mark.django_db
def test_reservation_cannot_take_a_claimed_child(engine, children, sponsor):
    engine.create_claim(children[0].pk, sponsor).unwrap()

    outcome = engine.create_reservation(sponsor, [children[0].pk, children[1].pk])

    assert isinstance(outcome.error, Conflict)
    assert _statuses(children[1:2]) == [Child.Status.AVAILABLE]


@pytest.mark.django_db
def test_expiring_reservation_does_not_release_claimed_child(engine, clock, children, sponsor):
    receipt = engine.create_reservation(sponsor, [children[0].pk], ttl_hours=1).unwrap()
    engine.cancel_reservation(receipt.token)
    claim = engine.create_claim(children[0].pk, sponsor).unwrap()
    clock.advance(hours=2)

    engine.sweep_expired_reservations()

    child = Child.objects.get(pk=children[0].pk)
    assert child.status == Child.Status.PENDING
    assert child.claim_id == claim.pk


@pytest.mark.django_db
def test_token_only_reaches_the_sponsor(
    engine, children, sponsor, notifier, caplog, django_capture_on_commit_callbacks
):
    caplog.set_level(logging.DEBUG)

    with django_capture_on_commit_callbacks(execute=True):
        receipt = engine.create_reservation(sponsor, [children[0].pk, children[1].pk]).unwrap()

    assert notifier.events() == ["reservation.created"]
    event_type, recipient, payload = notifier.sent[0]
    assert recipient == "jane@example.com"
    assert payload["token"] == receipt.token
    assert payload["children"] == ["42A", "42B"]
    assert receipt.token not in caplog.text


@pytest.mark.django_db
def test_confirmation_notifies_sponsor_and_admin(
    engine, children, sponsor, notifier, django_capture_on_commit_callbacks
):
    receipt = engine.create_reservation(sponsor, [children[0].pk]).unwrap()
    notifier.clear()

    with django_capture_on_commit_callbacks(execute=True):
        engine.confirm_reservation(receipt.token)

    assert [(event, recipient) for event, recipient, _ in notifier.sent] == [
        ("reservation.confirmed", "jane@example.com"),
        ("reservation.confirmed.admin", "admin@sponsorship.test"),
    ]
    assert all("token" not in payload for _, _, payload in notifier.sent)


@pytest.mark.django_db
def test_sweep_notifies_expiry(engine, clock, children, sponsor, notifier, django_capture_on_commit_callbacks):
    engine.create_reservation(sponsor, [children[0].pk], ttl_hours=1).unwrap()
    clock.advance(hours=1)

    with django_capture_on_commit_callbacks(execute=True):
        engine.sweep_expired_reservations()

    assert notifier.events() == ["reservation.expired"]
