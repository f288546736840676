"""Django project configuration for the rental booking engine.

Settings modules for each environment plus the WSGI, ASGI and Celery
entry points.
"""

# Import the Celery application as soon as Django starts so shared tasks register.
from .celery import app as celery_app  # noqa: F401
