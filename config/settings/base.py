"""
Django settings for Tessera Platform - Base Configuration
Multi-tenant commerce backend: orders, stock, affiliate points and revenue.
"""

import os
from pathlib import Path
from typing import Any

# ===============================================================================
# CORE DJANGO SETTINGS
# ===============================================================================

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Application definition
DJANGO_APPS: list[str] = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
]

THIRD_PARTY_APPS: list[str] = [
    'rest_framework',
    'django_q',
]

LOCAL_APPS: list[str] = [
    'apps.common',
    'apps.customers',
    'apps.products',
    'apps.inventory',       # 📦 Warehouse stock counters
    'apps.affiliates',      # 🪙 Point ledger & bonuses
    'apps.orders',
    'apps.billing',         # 💰 Exchange rates & revenue snapshots
    'apps.notifications',
    'apps.api',
]

INSTALLED_APPS: list[str] = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE: list[str] = [
    'apps.common.middleware.RequestIDMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# ===============================================================================
# DATABASE CONFIGURATION
# ===============================================================================

DATABASES: dict[str, dict[str, Any]] = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': os.environ.get('DB_NAME', 'tessera'),
        'USER': os.environ.get('DB_USER', 'tessera'),
        'PASSWORD': os.environ.get('DB_PASSWORD', 'development_password'),
        'HOST': os.environ.get('DB_HOST', 'localhost'),
        'PORT': os.environ.get('DB_PORT', '5432'),
        'CONN_MAX_AGE': 60,
        'OPTIONS': {
            'application_name': 'tessera_platform',
        },
    }
}

# ===============================================================================
# AUTHENTICATION
# ===============================================================================

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 12}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

# ===============================================================================
# INTERNATIONALIZATION & LOCALIZATION
# ===============================================================================

LANGUAGE_CODE = 'en-gb'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# ===============================================================================
# STATIC FILES
# ===============================================================================

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# ===============================================================================
# CACHE CONFIGURATION (overridden with Redis in prod.py)
# ===============================================================================

REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'tessera-cache',
    }
}

# ===============================================================================
# DJANGO REST FRAMEWORK
# ===============================================================================

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
}

# ===============================================================================
# DJANGO-Q2 ASYNC TASK PROCESSING 🚀
# ===============================================================================

Q_CLUSTER_BASE = {
    'name': 'tessera-cluster',
    'timeout': 300,  # 5 minutes
    'retry': 600,  # must exceed timeout
    'save_limit': 1000,
    'catch_up': False,  # Drains run every minute; missed runs are not replayed
    'orm': 'default',
    'bulk': 10,
    'queue_limit': 100,
}

Q_CLUSTER = {
    **Q_CLUSTER_BASE,
    'workers': 2,
    'recycle': 500,
    'sync': False,
}

# ===============================================================================
# EXTERNAL INTEGRATIONS
# ===============================================================================

# currencylayer live USD quotes
CURRENCY_LAYER_API_KEY = os.environ.get('CURRENCY_LAYER_API_KEY', '')
CURRENCY_LAYER_API_URL = os.environ.get('CURRENCY_LAYER_API_URL', 'https://api.currencylayer.com/live')

# CoinGecko historical spot prices for crypto settlements
COINGECKO_API_URL = os.environ.get('COINGECKO_API_URL', 'https://api.coingecko.com/api/v3')

# Telegram bot used for admin notifications
TELEGRAM_BOT_TOKEN = os.environ.get('TELEGRAM_BOT_TOKEN', '')

API_TIMEOUTS = {
    'REQUEST_TIMEOUT': int(os.environ.get('EXTERNAL_API_TIMEOUT', '10')),
    'MAX_RETRIES': int(os.environ.get('EXTERNAL_API_MAX_RETRIES', '2')),
}

# ===============================================================================
# ORDER SETTLEMENT CONFIGURATION 💰
# ===============================================================================

# Payment methods settled in crypto; revenue uses the paid asset's spot price
CRYPTO_PAYMENT_METHODS: list[str] = ['niftipay']

# Countries whose home currency is EUR (GB is GBP, everything else USD)
EURO_AREA_COUNTRIES: list[str] = [
    'AT', 'BE', 'HR', 'CY', 'EE', 'FI', 'FR', 'DE', 'GR', 'IE',
    'IT', 'LV', 'LT', 'LU', 'MT', 'NL', 'PT', 'SK', 'SI', 'ES',
]

# Channels every order status notification fans out to
ORDER_NOTIFICATION_CHANNELS: list[str] = ['email', 'in_app', 'telegram']

NOTIFICATION_OUTBOX_MAX_ATTEMPTS = int(os.environ.get('NOTIFICATION_OUTBOX_MAX_ATTEMPTS', '8'))

SETTLEMENT_JOB_MAX_ATTEMPTS = int(os.environ.get('SETTLEMENT_JOB_MAX_ATTEMPTS', '8'))
SETTLEMENT_RETRY_BASE_SECONDS = 30
SETTLEMENT_RETRY_MAX_SECONDS = 3600

# ===============================================================================
# EMAIL
# ===============================================================================

DEFAULT_FROM_EMAIL = os.environ.get('DEFAULT_FROM_EMAIL', 'noreply@tessera.local')

# ===============================================================================
# DEFAULT AUTO FIELD
# ===============================================================================

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# ===============================================================================
# SECURITY SETTINGS (Base - override in prod.py)
# ===============================================================================

SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY')
if not SECRET_KEY:
    # Development fallback - never use this in production
    import warnings
    warnings.warn(
        "🚨 SECURITY WARNING: Using default SECRET_KEY. "
        "Set DJANGO_SECRET_KEY environment variable for production!",
        UserWarning,
        stacklevel=2
    )
    SECRET_KEY = 'django-insecure-dev-key-only-change-in-production-or-tests'  # noqa: S105


def validate_production_secret_key() -> None:
    """Validate SECRET_KEY meets production security requirements"""
    if SECRET_KEY and SECRET_KEY.startswith('django-insecure-'):
        raise ValueError(
            "🔥 CRITICAL SECURITY ERROR: Cannot use insecure SECRET_KEY in production!"
        )
