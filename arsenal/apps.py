"""Django app configuration for the Arsenal layer."""

from __future__ import annotations

from django.apps import AppConfig


class ArsenalConfig(AppConfig):
    """AppConfig for normalized weapon statistics."""

    default_auto_field = "django.db.models.AutoField"
    name = "arsenal"
