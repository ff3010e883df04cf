"""
Order Views

Consumers place and follow orders; farmers progress them.
"""

from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from core.exceptions import ValidationError
from .serializers import OrderCreateSerializer, OrderSerializer, OrderStatusUpdateSerializer
from .services import OrderService


class OrderCreateView(APIView):
    """
    Place an order on a farm.

    POST /api/orders/create/
    {
        "farmId": 12,
        "items": [{"productId": 4, "quantity": 2}],
        "deliveryMode": "pickup",
        "deliveryDay": "Saturday",
        "customerNotes": "..."
    }

    Prices are recomputed from the catalog; the response carries the
    persisted order with its item snapshots.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        order = OrderService().create_order(request.user, serializer.validated_data)
        return Response(
            {'success': True, 'order': OrderSerializer(order).data},
            status=status.HTTP_201_CREATED
        )


class OrderListView(APIView):
    """
    GET /api/orders/             the caller's purchases
    GET /api/orders/?scope=farm  orders placed on the caller's farm
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        scope = request.query_params.get('scope', 'mine')
        if scope not in ('mine', 'farm'):
            raise ValidationError('Invalid query parameters', ['scope: must be one of mine, farm'])

        orders = OrderService().list_orders(request.user, scope=scope)
        data = OrderSerializer(orders, many=True).data
        return Response({'success': True, 'orders': data, 'count': len(data)})


class OrderDetailView(APIView):
    """
    GET /api/orders/<id>/

    Visible to the purchaser, the farm owner and admins.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, order_id):
        order = OrderService().get_order(request.user, order_id)
        return Response({'success': True, 'order': OrderSerializer(order).data})


class OrderStatusUpdateView(APIView):
    """
    PATCH /api/orders/<id>/status/
    {
        "status": "confirmed",
        "farmerNotes": "Ready from 10am"
    }
    """
    permission_classes = [IsAuthenticated]

    def patch(self, request, order_id):
        serializer = OrderStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = OrderService().update_status(
            request.user,
            order_id,
            data['status'],
            farmer_notes=data.get('farmerNotes'),
            cancelled_reason=data.get('cancelledReason'),
        )
        return Response({
            'success': True,
            'message': f'Order is now {order.status}',
            'order': OrderSerializer(order).data,
        })
