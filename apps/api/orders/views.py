"""
Order API Views for Tessera Platform
DRF views for order lifecycle management.
"""

import logging
import uuid

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response

from apps.api.core import OrganizationHeaderError, StandardAPIThrottle, get_organization_id
from apps.common.types import NotFoundError, ValidationError
from apps.orders.models import Order
from apps.orders.services import OrderTransitionService

from .serializers import OrderStatusChangeInputSerializer, OrderStatusSerializer

logger = logging.getLogger(__name__)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
@throttle_classes([StandardAPIThrottle])
def change_order_status(request: Request, order_id: uuid.UUID) -> Response:
    """
    Move an order to a new status.

    400 for an unknown status or missing organization header, 404 when the
    order is not in the organization, 500 when the transition rolled back.
    """
    try:
        organization_id = get_organization_id(request)
    except OrganizationHeaderError as e:
        return Response({'success': False, 'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

    serializer = OrderStatusChangeInputSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'success': False, 'errors': serializer.errors}, status=status.HTTP_400_BAD_REQUEST)

    new_status = serializer.validated_data['status']
    logger.info(f"🔄 [Orders API] Status change request for order {order_id} → {new_status}")

    try:
        result = OrderTransitionService.change_status(order_id, organization_id, new_status)
    except NotFoundError:
        return Response({'success': False, 'error': 'Order not found'}, status=status.HTTP_404_NOT_FOUND)
    except ValidationError as e:
        return Response({'success': False, 'error': e.message}, status=status.HTTP_400_BAD_REQUEST)

    if result.is_err():
        return Response(
            {'success': False, 'error': 'Unable to change order status'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    order = Order.objects.get(pk=result.unwrap().order_id)
    return Response(OrderStatusSerializer(order).data)
