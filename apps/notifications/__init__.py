"""Notifications app package.

Delivers sponsor and administrator messages asynchronously. The
reservation engine only ever talks to a :class:`Notifier`; delivery runs
in Celery workers with its own retry policy.
"""
