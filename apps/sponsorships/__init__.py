"""Sponsorships app package.

This app holds the two claim ledgers (single-child claims and
token-addressed multi-child reservations) and the reservation engine
that moves children between available, pending and confirmed. Both
pathways share one guarded-transition primitive so neither can release
or confirm a child held by the other. Stale holds are reclaimed by the
periodic sweeper in :mod:`apps.sponsorships.tasks`.
"""
