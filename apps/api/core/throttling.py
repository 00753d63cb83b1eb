# ===============================================================================
# API THROTTLING CLASSES 🚦
# ===============================================================================

from rest_framework.throttling import UserRateThrottle


class StandardAPIThrottle(UserRateThrottle):
    """Standard rate limiting for Tessera API endpoints"""
    rate = '1000/hour'
