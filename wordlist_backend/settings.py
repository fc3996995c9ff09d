# wordlist_backend/settings.py
"""
Django settings for the word-list backend.

Everything that differs between environments comes from environment variables:

- DJANGO_SECRET_KEY      signing key (tokens are signed with it)
- DJANGO_DEBUG           "1", "true", "yes" or "on" to enable debug mode
- DJANGO_ALLOWED_HOSTS   comma-separated host names
- DJANGO_TIME_ZONE       default timezone for listing date filters (default "UTC")
- DATABASE_ENGINE / DATABASE_NAME / DATABASE_USER / DATABASE_PASSWORD /
  DATABASE_HOST / DATABASE_PORT
                         defaults to a local SQLite file
- WORDS_LOG_LEVEL        level of the "words" logger (default "INFO")
- WORDS_TOKEN_COOKIE     cookie carrying the signed token (default "token")
- WORDS_TOKEN_SALT       signing salt for tokens
- WORDS_TOKEN_MAX_AGE    token lifetime in seconds (default 7 days)
- WORDS_MINE_LIMIT / WORDS_ALL_LIMIT
                         caps on the two listing collections (2000 / 5000)
"""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-only-insecure-secret-key")
DEBUG = _env_bool("DJANGO_DEBUG", False)
ALLOWED_HOSTS = [h.strip() for h in os.environ.get("DJANGO_ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "rest_framework",
    "words",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "wordlist_backend.urls"
WSGI_APPLICATION = "wordlist_backend.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": os.environ.get("DATABASE_ENGINE", "django.db.backends.sqlite3"),
        "NAME": os.environ.get("DATABASE_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.environ.get("DATABASE_USER", ""),
        "PASSWORD": os.environ.get("DATABASE_PASSWORD", ""),
        "HOST": os.environ.get("DATABASE_HOST", ""),
        "PORT": os.environ.get("DATABASE_PORT", ""),
    }
}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

USE_TZ = True
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
LANGUAGE_CODE = "en-us"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["words.identity.SignedCookieAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["rest_framework.permissions.IsAuthenticated"],
    "DEFAULT_PARSER_CLASSES": ["rest_framework.parsers.JSONParser"],
    "DEFAULT_RENDERER_CLASSES": ["rest_framework.renderers.JSONRenderer"],
}

# Identity tokens (signed with SECRET_KEY via django.core.signing)
WORDS_TOKEN_COOKIE = os.environ.get("WORDS_TOKEN_COOKIE", "token")
WORDS_TOKEN_SALT = os.environ.get("WORDS_TOKEN_SALT", "words.identity")
WORDS_TOKEN_MAX_AGE = _env_int("WORDS_TOKEN_MAX_AGE", 7 * 24 * 60 * 60)

# Listing caps
WORDS_MINE_LIMIT = _env_int("WORDS_MINE_LIMIT", 2000)
WORDS_ALL_LIMIT = _env_int("WORDS_ALL_LIMIT", 5000)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {
            "format": "[%(asctime)s] %(levelname)s in %(module)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "default",
        },
    },
    "root": {"level": "WARNING", "handlers": ["console"]},
    "loggers": {
        "words": {
            "level": os.environ.get("WORDS_LOG_LEVEL", "INFO").upper(),
            "propagate": True,
        },
    },
}
