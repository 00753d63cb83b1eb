# ===============================================================================
# PYTEST CONFIGURATION FOR TESSERA PLATFORM
# ===============================================================================
"""
Global test configuration for Tessera Platform.

Test Structure:
- tests/ mirrors apps/ structure for app-specific tests
- tests/factories/ holds plain factory functions shared by every suite
- Naming convention: test_{app}_{feature}.py
"""

import os

import django


def pytest_configure():
    """Configure Django settings for pytest"""
    os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.test')
    django.setup()


import pytest  # noqa: E402
from django.core.cache import cache  # noqa: E402


@pytest.fixture(autouse=True)
def clear_cache():
    """Exchange-rate lookups and drain locks live in the cache; start every test empty"""
    cache.clear()
    yield
    cache.clear()
