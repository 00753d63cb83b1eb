"""
Order API URLs for Tessera Platform
"""

from django.urls import path

from . import views

app_name = 'orders'

urlpatterns = [
    path('<uuid:order_id>/change-status', views.change_order_status, name='change_status'),
]
