"""
Settings for the rental car provider participant.

Everything deployment-specific comes from the environment.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "carprovider-insecure-dev-key")
DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() == "true"
ALLOWED_HOSTS = []

INSTALLED_APPS = [
    "rentals",
]

USE_TZ = True
TIME_ZONE = "UTC"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

if os.environ.get("RENTALS_DB_ENGINE", "sqlite") == "postgresql":
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("RENTALS_DB_NAME", "rentals"),
            "USER": os.environ.get("RENTALS_DB_USER", "postgres"),
            "PASSWORD": os.environ.get("RENTALS_DB_PASSWORD", ""),
            "HOST": os.environ.get("RENTALS_DB_HOST", "localhost"),
            "PORT": os.environ.get("RENTALS_DB_PORT", "5432"),
            "CONN_MAX_AGE": int(os.environ.get("RENTALS_DB_CONN_MAX_AGE", "60")),
            "CONN_HEALTH_CHECKS": True,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": os.environ.get("RENTALS_DB_NAME", str(BASE_DIR / "rentals.sqlite3")),
        }
    }

PARTICIPANT = {
    "NAME": os.environ.get("PARTICIPANT_NAME", "CarProvider"),
    "HOST": os.environ.get("PARTICIPANT_HOST", "0.0.0.0"),
    "PORT": int(os.environ.get("PARTICIPANT_PORT", "5001")),
    "JOURNAL_DIR": os.environ.get("PARTICIPANT_JOURNAL_DIR", str(BASE_DIR / "journal")),
    "ESCALATION_INTERVAL": float(os.environ.get("PARTICIPANT_ESCALATION_INTERVAL", "10")),
    "GC_DELAY": float(os.environ.get("PARTICIPANT_GC_DELAY", "60")),
    "RELAY_PEERS": [name for name in os.environ.get("PARTICIPANT_RELAY_PEERS", "HotelProvider").split(",") if name],
}

LOG_LEVEL = os.environ.get("PARTICIPANT_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "participant": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
        "rentals": {"handlers": ["console"], "level": LOG_LEVEL, "propagate": False},
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
}
