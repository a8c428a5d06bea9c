# backend/wsgi.py
"""
WSGI entrypoint for the inventory ledger API.

Falls back to dev settings. Production must export
DJANGO_SETTINGS_MODULE=backend.settings.prod (Postgres, fail-closed secrets).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings.dev")

application = get_wsgi_application()
