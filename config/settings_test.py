import os

os.environ.setdefault("DJANGO_SECRET_KEY", "test-only-secret-key")
os.environ.setdefault("USE_SQLITE", "1")

from .settings import *  # noqa: E402,F401,F403


# File-backed so threads in the concurrency tests share one database, with the
# same write-lock mode as the SQLite production setting.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": str(BASE_DIR / "db.sqlite3"),  # noqa: F405
        "OPTIONS": {"transaction_mode": "IMMEDIATE", "timeout": 20},
        "TEST": {"NAME": str(BASE_DIR / "test_courttime.sqlite3")},  # noqa: F405
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]
EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
COURTTIME_FACILITY_TIME_ZONE = "America/New_York"

# Let pytest's caplog see the app loggers.
LOGGING["loggers"]["bookings"]["propagate"] = True  # noqa: F405
