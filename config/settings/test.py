"""
Test settings for Tessera Platform
Fast, isolated testing environment.
"""

from .base import *  # noqa: F403

# ===============================================================================
# TEST FLAGS
# ===============================================================================

DEBUG = False

# ===============================================================================
# TEST DATABASE (In-memory for speed)
# ===============================================================================

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'OPTIONS': {
            'timeout': 20,
        }
    }
}

# ===============================================================================
# TEST CACHE
# ===============================================================================

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'test-cache',
    }
}

# ===============================================================================
# TEST EMAIL BACKEND
# ===============================================================================

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

# ===============================================================================
# PASSWORD HASHER (Fast for tests)
# ===============================================================================

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',  # Fast but insecure (test only)
]

# ===============================================================================
# LOGGING (Minimal for tests)
# ===============================================================================

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'root': {
        'handlers': ['null'],
        'level': 'CRITICAL',
    },
}

# ===============================================================================
# LOCALIZATION (English for tests)
# ===============================================================================

LANGUAGE_CODE = 'en-us'
USE_TZ = True

# ===============================================================================
# SECURITY (Relaxed for tests)
# ===============================================================================

SECRET_KEY = 'django-test-key-not-secure'  # noqa: S105
ALLOWED_HOSTS = ['testserver', 'localhost', '127.0.0.1']

TESTING = True

# ===============================================================================
# EXTERNAL SERVICES (Disabled in tests)
# ===============================================================================

CURRENCY_LAYER_API_KEY = 'test-currency-key'
CURRENCY_LAYER_API_URL = 'https://currency.test/live'
COINGECKO_API_URL = 'https://prices.test/api/v3'
TELEGRAM_BOT_TOKEN = ''

API_TIMEOUTS = {
    'REQUEST_TIMEOUT': 1,
    'MAX_RETRIES': 0,
}

# ===============================================================================
# TASK QUEUE (Synchronous for tests)
# ===============================================================================

Q_CLUSTER = {
    **Q_CLUSTER_BASE,  # noqa: F405
    'workers': 1,
    'sync': True,
}
