"""
URL configuration for Tessera Platform
"""

from django.contrib import admin
from django.urls import include, path

# ===============================================================================
# MAIN URL PATTERNS
# ===============================================================================

urlpatterns = [
    path("admin/", admin.site.urls),
    # REST API (order lifecycle, affiliate points)
    path("api/", include("apps.api.urls")),
]
