"""
Django app configuration for Affiliates app
"""

from django.apps import AppConfig


class AffiliatesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.affiliates'
    verbose_name = 'Affiliates'
