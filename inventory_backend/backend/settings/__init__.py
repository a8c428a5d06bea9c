# backend/settings/__init__.py
"""
Settings package for the inventory ledger API.

Select a module with DJANGO_SETTINGS_MODULE:
- backend.settings.dev   (local SQLite, throttles off under tests)
- backend.settings.prod  (Postgres only, required for stock row locks)
"""
