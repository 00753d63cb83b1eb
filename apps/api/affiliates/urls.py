"""
Affiliate API URLs for Tessera Platform
"""

from django.urls import path

from . import views

app_name = 'affiliates'

urlpatterns = [
    path('points', views.adjust_points, name='adjust_points'),
]
