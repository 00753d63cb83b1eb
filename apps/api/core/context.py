# ===============================================================================
# API TENANT CONTEXT 🏢
# ===============================================================================

import uuid

from rest_framework.request import Request

from apps.common.types import ValidationError

ORGANIZATION_HEADER = 'X-Organization-ID'


class OrganizationHeaderError(ValidationError):
    """Missing or malformed organization header"""

    def __init__(self, message: str):
        super().__init__('organization', message)


def get_organization_id(request: Request) -> uuid.UUID:
    """Tenant of the request, taken from the ``X-Organization-ID`` header"""
    raw = request.headers.get(ORGANIZATION_HEADER)
    if not raw:
        raise OrganizationHeaderError(f"{ORGANIZATION_HEADER} header is required")
    try:
        return uuid.UUID(raw)
    except ValueError as e:
        raise OrganizationHeaderError(f"{ORGANIZATION_HEADER} must be a UUID") from e
