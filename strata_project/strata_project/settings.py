import os
import sys
from pathlib import Path

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.environ.get("SECRET_KEY", os.environ.get("DJANGO_SECRET_KEY", "changeme"))
DEBUG = os.getenv("DEBUG", os.getenv("DJANGO_DEBUG", "True")) == "True"
ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "127.0.0.1,localhost").split(",")

# Include Django's manage.py test invocation.
TESTING = (
    "PYTEST_CURRENT_TEST" in os.environ
    or "pytest" in sys.modules
    or "test" in sys.argv
)

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "trust_accounting.apps.TrustAccountingConfig",
]

# =============================================================================
# Database Configuration
# =============================================================================
# Production runs on PostgreSQL via DATABASE_URL=postgresql://...
DATABASES = {
    "default": dj_database_url.config(
        env="DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
        conn_max_age=600,
    )
}

LANGUAGE_CODE = "en-au"
TIME_ZONE = os.getenv("TIME_ZONE", "Australia/Perth")
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# =============================================================================
# Celery Configuration (Async Task Processing)
# =============================================================================
REDIS_URL = os.getenv("REDIS_URL", "redis://127.0.0.1:6379/0")

# Tests run tasks eagerly; the in-memory transport needs no broker
CELERY_BROKER_URL = "memory://" if TESTING else REDIS_URL
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = TESTING
CELERY_TASK_EAGER_PROPAGATES = TESTING
CELERY_TASK_TIME_LIMIT = 5 * 60

# =============================================================================
# Trust accounting
# =============================================================================
# Overrides for trust_accounting.conf.DEFAULTS
TRUST_ACCOUNTING = {
    "MATCH_WINDOW_DAYS": int(os.getenv("MATCH_WINDOW_DAYS", "3")),
    "MATCH_AMOUNT_TOLERANCE": os.getenv("MATCH_AMOUNT_TOLERANCE", "0.01"),
}

# =============================================================================
# Structured Logging Configuration
# =============================================================================
from strata_project.logging_config import get_logging_config  # noqa: E402

LOGGING = get_logging_config(DEBUG)
