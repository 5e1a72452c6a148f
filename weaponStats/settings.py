"""Django settings for weaponStats.

Configuration is driven by environment variables so connection secrets are not
checked into the repository. The project has no web surface: it is used
through management commands and the `arsenal` client API.
"""

from __future__ import annotations

import os
from pathlib import Path

import dj_database_url

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, *, default: bool) -> bool:
    """Parse a boolean environment variable.

    Args:
        name: Environment variable name.
        default: Value when the variable is not set.

    Returns:
        Parsed boolean value.
    """

    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, *, default: int) -> int:
    """Parse an integer environment variable.

    Args:
        name: Environment variable name.
        default: Value when the variable is not set.

    Returns:
        Parsed integer value.
    """

    raw = os.getenv(name)
    if raw is None:
        return default
    return int(raw.strip())


def _database_config() -> dict:
    """Build the default database configuration.

    Discrete `WEAPON_STATS_DB_*` variables take precedence and always describe
    a PostgreSQL server. Otherwise `DATABASE_URL` is honoured, falling back to
    a local SQLite file.

    Returns:
        A Django `DATABASES["default"]` mapping.
    """

    conn_max_age = _env_int("WEAPON_STATS_DB_CONN_MAX_AGE", default=60)
    host = os.getenv("WEAPON_STATS_DB_HOST")
    if host:
        return {
            "ENGINE": "django.db.backends.postgresql",
            "HOST": host,
            "PORT": str(_env_int("WEAPON_STATS_DB_PORT", default=5432)),
            "USER": os.getenv("WEAPON_STATS_DB_USER", "postgres"),
            "PASSWORD": os.getenv("WEAPON_STATS_DB_PASSWORD", ""),
            "NAME": os.getenv("WEAPON_STATS_DB_NAME", "weapon_stats"),
            "CONN_MAX_AGE": conn_max_age,
            "CONN_HEALTH_CHECKS": True,
        }
    return dj_database_url.config(
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=conn_max_age,
        conn_health_checks=True,
    )


DEBUG = _env_bool("DJANGO_DEBUG", default=False)

_DEV_SECRET_KEY = "dev-only-insecure-secret-key"
SECRET_KEY = os.getenv("DJANGO_SECRET_KEY") or _DEV_SECRET_KEY

ALLOWED_HOSTS: list[str] = []

INSTALLED_APPS = [
    "arsenal.apps.ArsenalConfig",
]

DATABASES = {"default": _database_config()}

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = False
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

WEAPON_STATS = {
    "SOURCE_PATH": os.getenv(
        "WEAPON_STATS_SOURCE",
        str(BASE_DIR / "arsenal" / "data" / "weapons.json"),
    ),
    "QUERY_CHUNK_SIZE": _env_int("WEAPON_STATS_QUERY_CHUNK_SIZE", default=500),
    "INGEST_BATCH_SIZE": _env_int("WEAPON_STATS_INGEST_BATCH_SIZE", default=500),
    "DEFAULT_TARGET_HEALTH": _env_int("WEAPON_STATS_TARGET_HEALTH", default=100),
}

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "loggers": {
        "arsenal": {
            "handlers": ["console"],
            "level": os.getenv("WEAPON_STATS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
