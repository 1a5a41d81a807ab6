import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("sponsorship_engine")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Expire unconfirmed reservations - every five minutes
    "sweep-expired-reservations": {
        "task": "sponsorships.run_reservation_sweep",
        "schedule": 300.0,
        "options": {"expires": 280},
    },
    # Cancel stale pending claims - hourly
    "release-stale-claims": {
        "task": "sponsorships.run_claim_sweep",
        "schedule": crontab(minute=0),
    },
}
