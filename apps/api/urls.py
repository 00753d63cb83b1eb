# ===============================================================================
# TESSERA API MAIN URLS 🚀
# ===============================================================================
#
# URL Structure:
#   /api/order/      → Order lifecycle APIs
#   /api/affiliate/  → Affiliate point ledger APIs
#

from django.urls import include, path

app_name = 'api'

urlpatterns = [
    path('order/', include('apps.api.orders.urls')),
    path('affiliate/', include('apps.api.affiliates.urls')),
]
