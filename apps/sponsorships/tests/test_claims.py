"""Tests for the single-child claim pathway."""

from __future__ import annotations

from unittest import mock

import pytest
from django.db import DatabaseError

from apps.catalog.models import Child
from apps.sponsorships.domain.errors import Conflict, NotFound, TransientStoreError, ValidationFailed
from apps.sponsorships.models import Claim
from apps.sponsorships.services.engine import AUTO_CANCEL_REASON


@pytest.mark.django_db
def test_reserve_holds_an_available_child(engine, make_child):
    child = make_child()

    outcome = engine.reserve(child.pk)

    assert outcome.ok
    child.refresh_from_db()
    assert child.status == Child.Status.PENDING
    assert child.claim_id is None


@pytest.mark.django_db
def test_second_reserve_loses_with_status_reason(engine, make_child):
    child = make_child()
    engine.reserve(child.pk)

    outcome = engine.reserve(child.pk)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == "This child is currently being processed by another sponsor"


@pytest.mark.django_db
@pytest.mark.parametrize(
    "status, reason",
    [
        (Child.Status.CONFIRMED, "This child has already been sponsored"),
        (Child.Status.COMPLETED, "This child has already received their gifts"),
        (Child.Status.INACTIVE, "This child is not currently available for sponsorship"),
    ],
)
def test_reserve_explains_why_child_is_unavailable(engine, make_child, status, reason):
    child = make_child(status=status)

    outcome = engine.reserve(child.pk)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == reason


@pytest.mark.django_db
def test_reserve_unknown_child(engine):
    outcome = engine.reserve(12345)

    assert isinstance(outcome.error, NotFound)


@pytest.mark.django_db
def test_create_claim_links_claim_and_child(engine, make_child, sponsor):
    child = make_child()

    outcome = engine.create_claim(child.pk, sponsor)

    assert outcome.ok, outcome.error
    claim = outcome.value
    child.refresh_from_db()
    assert claim.status == Claim.Status.PENDING
    assert claim.sponsor_email == "jane@example.com"
    assert claim.request_date == engine.now()
    assert child.status == Child.Status.PENDING
    assert child.claim_id == claim.pk


@pytest.mark.django_db
def test_invalid_sponsor_releases_the_hold(engine, make_child, sponsor):
    child = make_child()
    sponsor["email"] = "not-an-email"

    outcome = engine.create_claim(child.pk, sponsor)

    assert isinstance(outcome.error, ValidationFailed)
    assert "email" in outcome.error.errors
    child.refresh_from_db()
    assert child.status == Child.Status.AVAILABLE
    assert Claim.objects.count() == 0


@pytest.mark.django_db
def test_claim_on_taken_child_conflicts(engine, make_child, sponsor):
    child = make_child()
    assert engine.create_claim(child.pk, sponsor).ok

    outcome = engine.create_claim(child.pk, {**sponsor, "email": "other@example.com"})

    assert isinstance(outcome.error, Conflict)
    assert Claim.objects.count() == 1


@pytest.mark.django_db
def test_store_failure_releases_child_and_reports_transient(engine, make_child, sponsor):
    child = make_child()

    with mock.patch.object(Claim.objects, "create", side_effect=DatabaseError("disk full")):
        outcome = engine.create_claim(child.pk, sponsor)

    assert isinstance(outcome.error, TransientStoreError)
    assert outcome.error.retryable
    child.refresh_from_db()
    assert child.status == Child.Status.AVAILABLE


@pytest.mark.django_db
def test_confirm_then_complete(engine, make_child, sponsor):
    child = make_child()
    claim = engine.create_claim(child.pk, sponsor).unwrap()

    confirmed = engine.confirm_claim(claim.pk)
    assert confirmed.ok
    child.refresh_from_db()
    assert child.status == Child.Status.CONFIRMED
    assert confirmed.value.confirmation_date == engine.now()

    completed = engine.complete_claim(claim.pk)
    assert completed.ok
    claim.refresh_from_db()
    child.refresh_from_db()
    assert claim.status == Claim.Status.COMPLETED
    assert child.status == Child.Status.CONFIRMED
    assert child.claim_id == claim.pk


@pytest.mark.django_db
def test_expired_claim_cannot_be_confirmed_before_the_sweep(engine, clock, make_child, sponsor):
    child = make_child()
    claim = engine.create_claim(child.pk, sponsor).unwrap()
    clock.advance(hours=49)

    outcome = engine.confirm_claim(claim.pk)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason == "This claim has expired."
    claim.refresh_from_db()
    child.refresh_from_db()
    assert claim.status == Claim.Status.PENDING
    assert child.status == Child.Status.PENDING


@pytest.mark.django_db
def test_confirm_update_rechecks_the_timeout(engine, clock, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(hours=49)
    stale_read = Claim.objects.select_related("child__family").get(pk=claim.pk)
    stale_read.request_date = engine.now()

    # The read says the claim is fresh; the conditional update must still refuse it.
    with mock.patch.object(engine, "_get_claim", return_value=stale_read):
        outcome = engine.confirm_claim(claim.pk)

    assert isinstance(outcome.error, Conflict)
    claim.refresh_from_db()
    assert claim.status == Claim.Status.PENDING


@pytest.mark.django_db
def test_claim_status_changes_touch_updated_at(engine, clock, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(minutes=10)

    engine.confirm_claim(claim.pk)

    claim.refresh_from_db()
    assert claim.updated_at == clock()


@pytest.mark.django_db
def test_confirm_twice_conflicts(engine, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    engine.confirm_claim(claim.pk)

    outcome = engine.confirm_claim(claim.pk)

    assert isinstance(outcome.error, Conflict)


@pytest.mark.django_db
def test_complete_requires_confirmation(engine, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()

    outcome = engine.complete_claim(claim.pk)

    assert isinstance(outcome.error, Conflict)
    claim.refresh_from_db()
    assert claim.status == Claim.Status.PENDING


@pytest.mark.django_db
def test_confirm_unknown_claim(engine):
    assert isinstance(engine.confirm_claim(404).error, NotFound)


@pytest.mark.django_db
def test_cancel_confirmed_claim_releases_child(engine, make_child, sponsor):
    child = make_child()
    claim = engine.create_claim(child.pk, sponsor).unwrap()
    engine.confirm_claim(claim.pk)

    outcome = engine.cancel_claim(claim.pk, "Sponsor withdrew")

    assert outcome.ok
    claim.refresh_from_db()
    child.refresh_from_db()
    assert claim.status == Claim.Status.CANCELLED
    assert "Sponsor withdrew" in claim.notes
    assert child.status == Child.Status.AVAILABLE
    assert child.claim_id is None


@pytest.mark.django_db
def test_cancel_twice_conflicts(engine, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    engine.cancel_claim(claim.pk)

    outcome = engine.cancel_claim(claim.pk)

    assert isinstance(outcome.error, Conflict)


@pytest.mark.django_db
def test_cancel_leaves_child_held_by_someone_else(engine, make_child, sponsor):
    child = make_child()
    claim = engine.create_claim(child.pk, sponsor).unwrap()
    Child.objects.filter(pk=child.pk).update(claim_id=None, reservation_id=77)

    outcome = engine.cancel_claim(claim.pk)

    assert outcome.ok
    child.refresh_from_db()
    assert child.status == Child.Status.PENDING
    assert child.reservation_id == 77


@pytest.mark.django_db
def test_stale_pending_claims_are_cancelled(engine, clock, make_child, sponsor):
    stale_child = make_child("1", "A")
    stale = engine.create_claim(stale_child.pk, sponsor).unwrap()
    clock.advance(hours=49)
    fresh_child = make_child("2", "A")
    fresh = engine.create_claim(fresh_child.pk, sponsor).unwrap()

    report = engine.release_stale_pending()

    assert report.closed_count == 1
    assert report.released_count == 1
    assert report.errors == []
    stale.refresh_from_db()
    fresh.refresh_from_db()
    assert stale.status == Claim.Status.CANCELLED
    assert stale.notes == AUTO_CANCEL_REASON
    assert fresh.status == Claim.Status.PENDING
    stale_child.refresh_from_db()
    assert stale_child.status == Child.Status.AVAILABLE


@pytest.mark.django_db
def test_second_claim_sweep_finds_nothing(engine, clock, make_child, sponsor):
    engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(hours=49)

    first = engine.release_stale_pending()
    second = engine.release_stale_pending()

    assert (first.closed_count, first.released_count) == (1, 1)
    assert (second.closed_count, second.released_count) == (0, 0)
    assert second.errors == []


@pytest.mark.django_db
def test_claim_sweep_records_failed_scan(engine, clock, make_child, sponsor):
    engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(hours=49)

    with mock.patch.object(Claim.objects, "filter", side_effect=DatabaseError("connection lost")):
        report = engine.release_stale_pending()

    assert report.closed_count == 0
    assert report.errors[0].startswith("scan:")


@pytest.mark.django_db
def test_sweep_ignores_confirmed_claims(engine, clock, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    engine.confirm_claim(claim.pk)
    clock.advance(hours=100)

    report = engine.release_stale_pending()

    assert report.closed_count == 0
    claim.refresh_from_db()
    assert claim.status == Claim.Status.CONFIRMED


@pytest.mark.django_db
def test_sweep_reclaims_orphaned_pending_child(engine, clock, make_child):
    child = make_child()
    engine.reserve(child.pk)
    clock.advance(hours=49)

    report = engine.release_stale_pending()

    assert report.released_count == 1
    child.refresh_from_db()
    assert child.status == Child.Status.AVAILABLE


@pytest.mark.django_db
def test_sweep_dry_run_changes_nothing(engine, clock, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(hours=49)

    report = engine.release_stale_pending(dry_run=True)

    assert report.dry_run
    assert report.closed_count == 1
    claim.refresh_from_db()
    assert claim.status == Claim.Status.PENDING


@pytest.mark.django_db
def test_custom_timeout(engine, clock, make_child, sponsor):
    claim = engine.create_claim(make_child().pk, sponsor).unwrap()
    clock.advance(hours=3)

    assert engine.release_stale_pending().closed_count == 0
    assert engine.release_stale_pending(timeout_hours=2).closed_count == 1
    claim.refresh_from_db()
    assert claim.status == Claim.Status.CANCELLED


@pytest.mark.django_db
def test_add_children_reports_partial_success(engine, make_child, sponsor):
    first, second, taken = make_child("5", "A"), make_child("5", "B"), make_child("5", "C")
    engine.reserve(taken.pk)

    outcome = engine.add_children_to_claims([first.pk, second.pk, taken.pk], sponsor)

    assert outcome.ok
    assert outcome.value.added == ["5A", "5B"]
    assert len(outcome.value.errors) == 1


@pytest.mark.django_db
def test_add_children_fails_when_nothing_added(engine, make_child, sponsor):
    child = make_child(status=Child.Status.CONFIRMED)

    outcome = engine.add_children_to_claims([child.pk], sponsor)

    assert isinstance(outcome.error, Conflict)
    assert outcome.error.reason.startswith("Failed to add children")


@pytest.mark.django_db
def test_add_children_validates_sponsor_before_holding(engine, make_child):
    child = make_child()

    outcome = engine.add_children_to_claims([child.pk], {"name": "J"})

    assert isinstance(outcome.error, ValidationFailed)
    child.refresh_from_db()
    assert child.status == Child.Status.AVAILABLE


@pytest.mark.django_db
def test_claim_notifications_sent_after_commit(
    engine, make_child, sponsor, notifier, django_capture_on_commit_callbacks
):
    child = make_child()

    with django_capture_on_commit_callbacks(execute=True):
        claim = engine.create_claim(child.pk, sponsor).unwrap()

    assert notifier.sent == [
        (
            "claim.created",
            "jane@example.com",
            {
                "claim_id": claim.pk,
                "child": "42A",
                "sponsor_name": "Jane Sponsor",
                "sponsor_email": "jane@example.com",
            },
        ),
        (
            "claim.created.admin",
            "admin@sponsorship.test",
            {
                "claim_id": claim.pk,
                "child": "42A",
                "sponsor_name": "Jane Sponsor",
                "sponsor_email": "jane@example.com",
            },
        ),
    ]


@pytest.mark.django_db
def test_failed_claim_sends_nothing(engine, make_child, notifier, django_capture_on_commit_callbacks):
    child = make_child()

    with django_capture_on_commit_callbacks(execute=True):
        engine.create_claim(child.pk, {"email": "bad"})

    assert notifier.sent == []
