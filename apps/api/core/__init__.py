# ===============================================================================
# API CORE INFRASTRUCTURE - SHARED BUILDING BLOCKS 🏗️
# ===============================================================================

from .context import OrganizationHeaderError, get_organization_id
from .throttling import StandardAPIThrottle

__all__ = [
    'OrganizationHeaderError',
    'StandardAPIThrottle',
    'get_organization_id',
]
