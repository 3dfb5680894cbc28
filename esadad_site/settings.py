"""
Settings for the e-SADAD merchant gateway service.
"""

from pathlib import Path
import os

from django.core.management.utils import get_random_secret_key
import environ
import dj_database_url

# ---------------------------------------------------------------------
# Paths / env
# ---------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent

env = environ.Env(DEBUG=(bool, False))
environ.Env.read_env(BASE_DIR / ".env")

DEBUG = env.bool("DEBUG", False)
IS_PROD = not DEBUG

SECRET_KEY = env("SECRET_KEY", default=None)
if not SECRET_KEY:
    if DEBUG:
        SECRET_KEY = "django-insecure-" + get_random_secret_key()
    else:
        raise RuntimeError("SECRET_KEY is not set in environment.")

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=[])
if DEBUG:
    ALLOWED_HOSTS += ["127.0.0.1", "localhost", "[::1]"]

# ---------------------------------------------------------------------
# Core Django plumbing
# ---------------------------------------------------------------------
ROOT_URLCONF = "esadad_site.urls"
WSGI_APPLICATION = "esadad_site.wsgi.application"
ASGI_APPLICATION = "esadad_site.asgi.application"

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "drf_spectacular",

    # First-party
    "esadad.apps.ESadadConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

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

# ---------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------
DATABASES = {
    "default": dj_database_url.parse(
        env("DATABASE_URL", default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
        conn_max_age=600,
    )
}

# In-tests: in-memory sqlite
if os.environ.get("PYTEST_CURRENT_TEST"):
    DATABASES = {"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": ":memory:"}}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---------------------------------------------------------------------
# Sessions (checkout wizard state)
# ---------------------------------------------------------------------
SESSION_ENGINE = "django.contrib.sessions.backends.db"
SESSION_SERIALIZER = "django.contrib.sessions.serializers.JSONSerializer"
SESSION_COOKIE_AGE = env.int("SESSION_COOKIE_AGE", default=15 * 60)

# ---------------------------------------------------------------------
# Cache (token cache lives here)
# ---------------------------------------------------------------------
REDIS_URL = env("REDIS_URL", default="")
REDIS_SSL = REDIS_URL.startswith("rediss://") if REDIS_URL else False

if REDIS_URL:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.redis.RedisCache",
            "LOCATION": REDIS_URL,
            "TIMEOUT": None,
            "OPTIONS": {"ssl": True} if REDIS_SSL else {},
        }
    }
else:
    CACHES = {
        "default": {
            "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
            "LOCATION": "esadad-local",
            "TIMEOUT": None,
        }
    }

# ---------------------------------------------------------------------
# e-SADAD gateway
# ---------------------------------------------------------------------
ESADAD_MERCHANT_CODE = env("ESADAD_MERCHANT_CODE", default="")
ESADAD_MERCHANT_PASSWORD = env("ESADAD_MERCHANT_PASSWORD", default="")
ESADAD_WSDL_URLS = {
    "authentication": env(
        "ESADAD_AUTH_WSDL",
        default="https://172.19.0.17:8002/EBPP_ONLINE-MERC_ONLINE_AUTHENTICATION-context-root/MERC_ONLINE_AUTHENTICATIONPort?wsdl",
    ),
    "payment_initiation": env(
        "ESADAD_INIT_WSDL",
        default="https://172.19.0.17:8002/EBPP_ONLINE-MERC_ONLINE_PAYMENT_INITIATION-context-root/MERC_ONLINE_PAYMENT_INITIATIONPort?WSDL",
    ),
    "payment_request": env(
        "ESADAD_REQUEST_WSDL",
        default="https://172.19.0.17:8002/EBPP_ONLINE-MERC_ONLINE_PAYMENT_REQUEST-context-root/MERC_ONLINE_PAYMENT_REQUESTPort?WSDL",
    ),
    "payment_confirm": env(
        "ESADAD_CONFIRM_WSDL",
        default="https://172.19.0.17:8002/EBPP_ONLINE-MERC_ONLINE_PAYMENT_CONFIRM-context-root/MERC_ONLINE_PAYMENT_CONFIRMPort?WSDL",
    ),
}
ESADAD_PUBLIC_KEY_PATH = env("ESADAD_PUBLIC_KEY_PATH", default="")
ESADAD_CURRENCY_CODE = env("ESADAD_CURRENCY_CODE", default="886")  # Yemeni Riyal
ESADAD_TRANSACTIONS_TABLE = env("ESADAD_TRANSACTIONS_TABLE", default="esadad_transactions")
ESADAD_LOGS_TABLE = env("ESADAD_LOGS_TABLE", default="esadad_logs")
ESADAD_LOG_CHANNEL = env("ESADAD_LOG_CHANNEL", default="esadad")
ESADAD_CACHE_ALIAS = env("ESADAD_CACHE_ALIAS", default="default")
ESADAD_TRANSPORT_CLASS = env("ESADAD_TRANSPORT_CLASS", default="esadad.transport.ZeepTransport")
# Set False only for a gateway endpoint whose certificate cannot be verified.
ESADAD_VERIFY_TLS = env.bool("ESADAD_VERIFY_TLS", default=True)
ESADAD_TIMEOUT = env.float("ESADAD_TIMEOUT", default=30.0)

if IS_PROD:
    missing = [k for k, v in {
        "ESADAD_MERCHANT_CODE": ESADAD_MERCHANT_CODE,
        "ESADAD_MERCHANT_PASSWORD": ESADAD_MERCHANT_PASSWORD,
        "ESADAD_PUBLIC_KEY_PATH": ESADAD_PUBLIC_KEY_PATH,
    }.items() if not v]
    if missing:
        raise RuntimeError(f"Missing required e-SADAD envs: {', '.join(missing)}")

# ------------------------ Celery Beat --------------------------
from celery.schedules import crontab  # noqa: E402

_token_schedule = crontab(minute="*/30")

CELERY_BROKER_URL = env("CELERY_BROKER_URL", default=REDIS_URL or "memory://")
CELERY_BEAT_SCHEDULE = {
    "esadad-token-refresh": {
        "task": "esadad.tasks.refresh_token",
        "schedule": _token_schedule,
        "kwargs": {"force": False},
    }
}

# ---------------------------------------------------------------------
# DRF / OpenAPI
# ---------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": [
        "rest_framework.authentication.SessionAuthentication",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "e-SADAD Merchant Gateway API",
    "DESCRIPTION": "Checkout wizard and transaction ledger for the e-SADAD gateway.",
    "VERSION": "1.0.0",
}

# ---------------------------------------------------------------------
# I18N / Time
# ---------------------------------------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = env("TIME_ZONE", default="Asia/Aden")  # gateway timestamps are local time
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

# ---------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------
SECURE_SSL_REDIRECT = IS_PROD
if IS_PROD:
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

# ---------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {"console": {"class": "logging.StreamHandler"}},
    "root": {"handlers": ["console"], "level": "INFO"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "esadad": {"handlers": ["console"], "level": "DEBUG" if DEBUG else "INFO", "propagate": False},
    },
}
