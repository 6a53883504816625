"""
Django settings for embed_redirects_site.

This file contains a minimal configuration for a site that serves verified
redirects for embedded content. The project uses SQLite by default for the
option table that holds the redirect signing key, and installs the
embed_redirects app and its middleware.

Please consult the Django documentation for additional configuration
options: https://docs.djangoproject.com/en/4.2/ref/settings/
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from urllib.parse import parse_qs, unquote, urlparse

from django.core.exceptions import ImproperlyConfigured

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'django-insecure-change-me')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DJANGO_DEBUG', 'false').lower() == 'true'

# pytest-django loads settings before any conftest runs.
RUNNING_TESTS = os.getenv('PYTEST_CURRENT_TEST') is not None or 'pytest' in sys.modules
if RUNNING_TESTS:
    DEBUG = True

if not DEBUG and SECRET_KEY == 'django-insecure-change-me' and not RUNNING_TESTS:
    raise ImproperlyConfigured('DJANGO_SECRET_KEY must be set when DEBUG is False.')

ALLOWED_HOSTS: list[str] = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', '127.0.0.1,localhost').split(',')
    if host.strip()
]

# One of 'local', 'development', 'staging' or 'production'. Verified
# redirects are permanent (301) on the last two and temporary (302) otherwise.
ENVIRONMENT_TYPE = os.getenv('DJANGO_ENVIRONMENT_TYPE', 'production').lower()

# Application definition
INSTALLED_APPS = [
    'embed_redirects',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'embed_redirects.middleware.SlidingWindowRateThrottle',
    'embed_redirects.middleware.VerifiedRedirectMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'embed_redirects_site.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
            ],
        },
    },
]

WSGI_APPLICATION = 'embed_redirects_site.wsgi.application'

# Database
# https://docs.djangoproject.com/en/4.2/ref/settings/#databases


def _database_config_from_url(
    url: str,
    *,
    conn_max_age: int,
    ssl_require: bool,
    sqlite_default: Path,
) -> dict[str, object]:
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    if scheme in {'postgres', 'postgresql'}:
        engine = 'django.db.backends.postgresql'
        name = unquote(parsed.path.lstrip('/')) or ''
    elif scheme in {'mysql', 'mariadb'}:
        engine = 'django.db.backends.mysql'
        name = unquote(parsed.path.lstrip('/')) or ''
    elif scheme == 'sqlite':
        engine = 'django.db.backends.sqlite3'
        raw_path = unquote(parsed.path or '')
        if raw_path.startswith('/'):
            raw_path = raw_path[1:]
        candidate = raw_path or str(sqlite_default)
        if os.path.isabs(candidate):
            name = candidate
        else:
            name = str((sqlite_default.parent / candidate).resolve())
    else:
        raise ImproperlyConfigured(f'Unsupported DATABASE_URL scheme: {scheme}')

    config: dict[str, object] = {
        'ENGINE': engine,
        'NAME': name,
        'CONN_MAX_AGE': conn_max_age,
    }

    if parsed.username:
        config['USER'] = unquote(parsed.username)
    if parsed.password:
        config['PASSWORD'] = unquote(parsed.password)
    if parsed.hostname:
        config['HOST'] = parsed.hostname
    if parsed.port:
        config['PORT'] = str(parsed.port)

    query_options = {key: values[-1] for key, values in parse_qs(parsed.query).items() if values}
    if (
        engine != 'django.db.backends.sqlite3'
        and ssl_require
        and query_options.get('sslmode', '').lower() != 'require'
    ):
        query_options.setdefault('sslmode', 'require')

    if query_options:
        config['OPTIONS'] = query_options

    return config


default_sqlite_path = BASE_DIR / 'db.sqlite3'
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': default_sqlite_path,
    }
}

database_url = os.getenv('DATABASE_URL')
if database_url:
    conn_max_age = int(os.getenv('DATABASE_CONN_MAX_AGE', '600'))
    ssl_require = os.getenv('DATABASE_SSL_REQUIRE', 'true').lower() == 'true'
    DATABASES['default'] = _database_config_from_url(
        database_url,
        conn_max_age=conn_max_age,
        ssl_require=ssl_require,
        sqlite_default=default_sqlite_path,
    )

# Internationalization
# https://docs.djangoproject.com/en/4.2/topics/i18n/

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'UTC'

USE_I18N = True

USE_TZ = True

# Default primary key field type
# https://docs.djangoproject.com/en/4.2/ref/settings/#default-auto-field

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# Verified redirects
EMBED_REDIRECTS_ROUTE_PREFIX = os.getenv('EMBED_REDIRECTS_ROUTE_PREFIX', 'verified-redirect')
EMBED_REDIRECTS_DESTINATION_PARAM = 'verified-redirect'
EMBED_REDIRECTS_CHECKSUM_PARAM = 'er-checksum'
# Set to false when the web server merges slashes or rewrites paths; links
# then carry the destination in the query string instead.
EMBED_REDIRECTS_DESCRIPTIVE_PATHS = os.getenv('EMBED_REDIRECTS_DESCRIPTIVE_PATHS', 'true').lower() == 'true'
EMBED_REDIRECTS_HOME_URL = os.getenv('EMBED_REDIRECTS_HOME_URL') or None
# Dotted paths to f(request) -> bool and f(status_code) -> status_code.
EMBED_REDIRECTS_EMBED_POLICY = None
EMBED_REDIRECTS_REDIRECT_CODE_POLICY = None


# Security headers
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_REFERRER_POLICY = 'strict-origin-when-cross-origin'
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
USE_X_FORWARDED_HOST = True

if not DEBUG:
    SECURE_SSL_REDIRECT = os.getenv('DJANGO_SECURE_SSL_REDIRECT', 'true').lower() == 'true'
    SECURE_HSTS_SECONDS = int(os.getenv('DJANGO_SECURE_HSTS_SECONDS', '31536000'))
    SECURE_HSTS_INCLUDE_SUBDOMAINS = True
    SECURE_HSTS_PRELOAD = True
else:
    SECURE_SSL_REDIRECT = False

# Throttling of signed redirect attempts (per IP)
THROTTLE_LIMIT = int(os.getenv('EMBED_REDIRECTS_THROTTLE_LIMIT', '60'))
THROTTLE_WINDOW = int(os.getenv('EMBED_REDIRECTS_THROTTLE_WINDOW', '60'))
THROTTLE_IP_HEADER = os.getenv('EMBED_REDIRECTS_THROTTLE_HEADER', 'HTTP_X_FORWARDED_FOR')
THROTTLE_KEY_PREFIX = 'embed_redirects:throttle'


log_level = os.getenv('DJANGO_LOG_LEVEL', 'INFO').upper()
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': log_level,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
        'embed_redirects': {
            'handlers': ['console'],
            'level': log_level,
            'propagate': False,
        },
    },
}
