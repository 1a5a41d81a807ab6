"""Celery tasks delivering notifications."""

from __future__ import annotations

import logging
from smtplib import SMTPException

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore

from .messages import render

logger = logging.getLogger(__name__)


@shared_task(
    name="notifications.deliver_notification",
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_kwargs={"max_retries": 5},
)
def deliver_notification(event_type: str, recipient: str, payload: dict) -> bool:
    """
    Send one notification email.

    Transport errors are retried with exponential backoff; the reservation
    engine never waits for this task.

    Returns:
        bool: True when the message was handed to the mail backend
    """
    subject, body = render(event_type, payload)
    send_mail(
        subject=subject,
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[recipient],
        fail_silently=False,
    )
    logger.info(f"Notification {event_type} sent to {recipient}")
    return True
