"""Test settings for the sponsorship engine.

In-memory SQLite, eager Celery and the locmem mail backend so the test
suite needs neither a broker nor an SMTP server.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

SPONSORSHIP_ADMIN_EMAIL = 'admin@sponsorship.test'
SPONSORSHIP_NOTIFIER = 'apps.notifications.notifier.NullNotifier'

# Plain propagating loggers so pytest's caplog sees every record
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
}
