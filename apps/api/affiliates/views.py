"""
Affiliate API Views for Tessera Platform
"""

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from apps.affiliates.services import DEFAULT_DESCRIPTIONS, PointLedgerService
from apps.api.core import OrganizationHeaderError, StandardAPIThrottle, get_organization_id
from apps.common.types import ValidationError
from apps.common.validators import log_security_event
from apps.customers.models import Client

from .serializers import ManualPointsInputSerializer, PointLogSerializer

logger = logging.getLogger(__name__)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([StandardAPIThrottle])
def adjust_points(request: Request) -> Response:
    """Award or remove points by hand; the change goes through the ledger like any other"""
    try:
        organization_id = get_organization_id(request)
    except OrganizationHeaderError as e:
        return Response({'success': False, 'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ManualPointsInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'success': False, 'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    client = Client.objects.filter(id=data['client_id'], organization_id=organization_id).first()
    if client is None:
        return Response({'success': False, 'error': 'Client not found'}, status=status.HTTP_404_NOT_FOUND)

    action = data['action']
    description = data.get('description') or DEFAULT_DESCRIPTIONS.get(action, 'Manual adjustment')

    try:
        log = PointLedgerService.record(client.id, organization_id, data['points'], action, description)
    except ValidationError as e:
        return Response({'success': False, 'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

    log_security_event(
        'affiliate_points_adjusted',
        {
            'client_id': str(client.id),
            'organization_id': str(organization_id),
            'points': str(data['points']),
            'action': action,
            'user_id': str(request.user.pk),
        },
        request_ip=request.META.get('REMOTE_ADDR'),
    )
    return Response(PointLogSerializer(log).data, status=status.HTTP_201_CREATED)
