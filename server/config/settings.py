import os
from decimal import Decimal
from pathlib import Path
from urllib.parse import urlparse

import cloudinary
from dotenv import load_dotenv

load_dotenv()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-secret-key")

# SECURITY WARNING: don't run with debug turned on in production!
def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name, "")
    if not value:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_decimal(name: str, default: str) -> Decimal:
    value = os.environ.get(name, "").strip()
    return Decimal(value or default)


DEBUG = _env_bool("DEBUG", True)

_raw_allowed_hosts = os.environ.get("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")
ALLOWED_HOSTS = [h.strip() for h in _raw_allowed_hosts.split(",") if h.strip()]


def _database_from_url(database_url: str):
    if not database_url:
        return {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }

    parsed = urlparse(database_url)
    scheme = (parsed.scheme or "").lower()

    if scheme in {"sqlite", "sqlite3"}:
        db_path = parsed.path or ""
        if not db_path or db_path == "/":
            return {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": BASE_DIR / "db.sqlite3",
            }
        if db_path.startswith("//"):
            return {"ENGINE": "django.db.backends.sqlite3", "NAME": db_path[1:]}
        if db_path.startswith("/"):
            return {
                "ENGINE": "django.db.backends.sqlite3",
                "NAME": BASE_DIR / db_path.lstrip("/"),
            }
        return {"ENGINE": "django.db.backends.sqlite3", "NAME": BASE_DIR / db_path}

    if scheme in {"postgres", "postgresql"}:
        return {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": (parsed.path or "").lstrip("/"),
            "USER": parsed.username or "",
            "PASSWORD": parsed.password or "",
            "HOST": parsed.hostname or "",
            "PORT": parsed.port or "",
        }

    return {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }

# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    #Third-party
    "rest_framework",
    "rest_framework.authtoken",
    "corsheaders",
    "cloudinary",
    "drf_spectacular",

    # Local apps
    "sellmyimages.apps.SellMyImagesConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "config.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "config.wsgi.application"


# Database
# https://docs.djangoproject.com/en/5.1/ref/settings/#databases

DATABASES = {
    "default": _database_from_url(os.environ.get("DATABASE_URL", "")),
}


# Internationalization
# https://docs.djangoproject.com/en/5.1/topics/i18n/

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True


# Static files (CSS, JavaScript, Images)
# https://docs.djangoproject.com/en/5.1/howto/static-files/

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# Upscaled files live here; they are streamed through the download endpoint
# and never exposed under MEDIA_URL.
MEDIA_URL = "/media/"
MEDIA_ROOT = Path(os.environ.get("MEDIA_ROOT", "") or BASE_DIR / "media")

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"


# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        'rest_framework.authentication.TokenAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_RENDERER_CLASSES": (
        "rest_framework.renderers.JSONRenderer",
        'rest_framework.renderers.BrowsableAPIRenderer',
    ),
    "DEFAULT_PARSER_CLASSES": (
        "rest_framework.parsers.JSONParser",
        "rest_framework.parsers.MultiPartParser",
    ),
    "EXCEPTION_HANDLER": "sellmyimages.utils.exception_handler",
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

# CORS Settings
_raw_cors = os.environ.get("CORS_ALLOWED_ORIGINS", "").strip()

if _raw_cors:
    CORS_ALLOWED_ORIGINS = [
        o.strip().strip("'\"")
        for o in _raw_cors.split(",")
        if o.strip()
    ]
else:
    CORS_ALLOWED_ORIGINS = ["http://localhost:3000"]

# Public site that embeds the buy buttons (Stripe success/cancel links).
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000").strip().rstrip("/")

# Public base URL of this API, used for download links and provider callbacks.
SITE_URL = os.environ.get("SITE_URL", "http://localhost:8000").strip().rstrip("/")

CLOUDINARY_URL = os.environ.get("CLOUDINARY_URL", "").strip()
if CLOUDINARY_URL:
    cloudinary.config(cloudinary_url=CLOUDINARY_URL)
else:
    cloudinary.config(
        cloud_name=os.environ.get("CLOUDINARY_CLOUD_NAME", ""),
        api_key=os.environ.get("CLOUDINARY_API_KEY", ""),
        api_secret=os.environ.get("CLOUDINARY_API_SECRET", ""),
    )

# Celery
_redis_url = os.environ.get("REDIS_URL", "").strip()

_celery_broker_url = os.environ.get("CELERY_BROKER_URL", "").strip()
if not _celery_broker_url:
    _celery_broker_url = _redis_url
if not _celery_broker_url and DEBUG:
    _celery_broker_url = "memory://"

_celery_result_backend = os.environ.get("CELERY_RESULT_BACKEND", "").strip()
if not _celery_result_backend:
    _celery_result_backend = _redis_url
if not _celery_result_backend and DEBUG:
    _celery_result_backend = "cache+memory://"

CELERY_BROKER_URL = _celery_broker_url
CELERY_RESULT_BACKEND = _celery_result_backend
CELERY_TASK_SERIALIZER = "json"
CELERY_RESULT_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"
CELERY_ENABLE_UTC = True

# Stripe
STRIPE_SECRET_KEY = os.environ.get("STRIPE_SECRET_KEY", "")
STRIPE_PUBLISHABLE_KEY = os.environ.get("STRIPE_PUBLISHABLE_KEY", "")
STRIPE_WEBHOOK_SECRET = os.environ.get("STRIPE_WEBHOOK_SECRET", "")
STRIPE_CURRENCY = os.environ.get("STRIPE_CURRENCY", "usd").strip().lower()

# Upsampler (upscaling provider)
UPSAMPLER_API_KEY = os.environ.get("UPSAMPLER_API_KEY", "")
UPSAMPLER_API_URL = os.environ.get("UPSAMPLER_API_URL", "https://upsampler.com/api/v1").rstrip("/")
UPSAMPLER_TIMEOUT_SECONDS = _env_int("UPSAMPLER_TIMEOUT_SECONDS", 30)
UPSAMPLER_CREDIT_PRICE = _env_decimal("UPSAMPLER_CREDIT_PRICE", "0.04")
UPSAMPLER_MEGAPIXELS_PER_CREDIT = _env_int("UPSAMPLER_MEGAPIXELS_PER_CREDIT", 4)
UPSAMPLER_MAX_OUTPUT_MEGAPIXELS = _env_int("UPSAMPLER_MAX_OUTPUT_MEGAPIXELS", 400)

# Sell My Images
SMI_ENABLED = _env_bool("SMI_ENABLED", True)
SMI_MARKUP_PERCENTAGE = _env_decimal("SMI_MARKUP_PERCENTAGE", "550")
SMI_MINIMUM_PRICE = _env_decimal("SMI_MINIMUM_PRICE", "1.00")
CHECKOUT_REUSE_WINDOW_MINUTES = _env_int("CHECKOUT_REUSE_WINDOW_MINUTES", 10)
CHECKOUT_LOCK_SECONDS = _env_int("CHECKOUT_LOCK_SECONDS", 30)
ABANDONED_JOB_TTL_HOURS = _env_int("ABANDONED_JOB_TTL_HOURS", 24)
ABANDONED_JOB_RETENTION_DAYS = _env_int("ABANDONED_JOB_RETENTION_DAYS", 30)
DOWNLOAD_EXPIRY_HOURS = _env_int("DOWNLOAD_EXPIRY_HOURS", 24)
DOWNLOAD_MAX_USES = _env_int("DOWNLOAD_MAX_USES", 1)
DOWNLOAD_FILE_RETENTION_DAYS = _env_int("DOWNLOAD_FILE_RETENTION_DAYS", 7)

# Cache
if _redis_url:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": _redis_url,
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "sellmyimages-default",
        }
    }

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "sellmyimages": {
            "handlers": ["console"],
            "level": os.environ.get("SMI_LOG_LEVEL", "INFO").upper(),
        },
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Sell My Images API",
    "DESCRIPTION": "Checkout, upscaling and download API for AI-upscaled site images",
    "VERSION": "2.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
    "SCHEMA_PATH_PREFIX": "/api",
}

# Security Settings (production)
if not DEBUG:
    SECURE_SSL_REDIRECT = True
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SECURE_BROWSER_XSS_FILTER = True
    SECURE_CONTENT_TYPE_NOSNIFF = True
    SECURE_HSTS_SECONDS = 31536000
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
