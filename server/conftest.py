"""
Pytest bootstrap for running the sellmyimages Django tests without pytest-django.

Tests are plain Django `TestCase` / `SimpleTestCase` classes. Before Django is
set up, the environment is pinned so a developer `.env` never points a test
run at a real database, Redis or Stripe account:
- SQLite test database and local-memory cache
- no Celery broker, no Stripe keys (tests opt in with `override_settings`)
- uploads and upscaled files written to a throwaway media root
"""

import os
import shutil
import tempfile

import django
from django.test.utils import (
    setup_databases,
    setup_test_environment,
    teardown_databases,
    teardown_test_environment,
)


_db_cfg = None
_media_root = None

_PINNED_ENV = (
    "DATABASE_URL",
    "REDIS_URL",
    "CELERY_BROKER_URL",
    "CELERY_RESULT_BACKEND",
    "STRIPE_SECRET_KEY",
    "STRIPE_WEBHOOK_SECRET",
    "UPSAMPLER_API_KEY",
)


def pytest_configure():
    global _media_root
    for name in _PINNED_ENV:
        os.environ[name] = ""
    _media_root = tempfile.mkdtemp(prefix="smi-test-media-")
    os.environ["MEDIA_ROOT"] = _media_root
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")
    django.setup()


def pytest_sessionstart(session):
    global _db_cfg
    setup_test_environment()
    _db_cfg = setup_databases(verbosity=0, interactive=False, keepdb=False)


def pytest_sessionfinish(session, exitstatus):
    global _db_cfg
    if _db_cfg:
        teardown_databases(_db_cfg, verbosity=0)
        _db_cfg = None
    teardown_test_environment()
    if _media_root:
        shutil.rmtree(_media_root, ignore_errors=True)
