# ===============================================================================
# TESSERA API APP CONFIGURATION 🛠️
# ===============================================================================

from django.apps import AppConfig


class ApiConfig(AppConfig):
    """
    Configuration for Tessera's centralized API app.

    REST endpoints for order status changes and manual affiliate point
    adjustments. Authentication is wired by the deployment; every endpoint
    requires an authenticated user and an ``X-Organization-ID`` header.
    """

    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.api"
    label = "platform_api"
    verbose_name = "Tessera Platform API"
