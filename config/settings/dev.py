"""Development settings.

Debug on, console email backend and an emulated payment gateway unless
PAYMENT_GATEWAY_API_KEY is provided. Do not use these settings in production!
"""

from .base import *  # noqa: F401,F403

DEBUG = True

ALLOWED_HOSTS = ['*']

EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'
