"""
Order Serializers

Input validation for the order creation pipeline and the order
representation returned to purchasers and farmers.
"""

from django.conf import settings
from rest_framework import serializers

from .models import Order


class OrderItemInputSerializer(serializers.Serializer):
    """A cart line: which product and how many. Prices never come from the client."""
    productId = serializers.IntegerField(min_value=1)
    quantity = serializers.IntegerField(min_value=1, max_value=settings.ORDER_MAX_QUANTITY)


class DeliveryAddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=255)
    city = serializers.CharField(max_length=100)
    postalCode = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100)
    additionalInfo = serializers.CharField(required=False, allow_blank=True, max_length=500)


class OrderCreateSerializer(serializers.Serializer):
    """
    Shape validation for POST /api/orders/create/.

    Every field error is reported together; business rules (farm state,
    stock, prices, address requirement) are checked by OrderService.
    """
    farmId = serializers.IntegerField(min_value=1)
    items = OrderItemInputSerializer(many=True)
    deliveryMode = serializers.ChoiceField(choices=Order.DeliveryMode.values)
    deliveryDay = serializers.CharField(max_length=100)
    deliveryAddress = DeliveryAddressSerializer(required=False, allow_null=True)
    customerNotes = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=settings.ORDER_NOTES_MAX_LENGTH,
    )

    def validate_items(self, value):
        if not value:
            raise serializers.ValidationError('At least one item is required.')
        if len(value) > settings.ORDER_MAX_ITEMS:
            raise serializers.ValidationError(f'At most {settings.ORDER_MAX_ITEMS} items per order.')
        return value


class OrderStatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Order.Status.values)
    farmerNotes = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=settings.ORDER_NOTES_MAX_LENGTH,
    )
    cancelledReason = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=settings.ORDER_NOTES_MAX_LENGTH,
    )


class OrderSerializer(serializers.ModelSerializer):
    """Full order record as persisted."""
    userId = serializers.CharField(source='user_id', read_only=True)
    farmId = serializers.IntegerField(source='farm_id', read_only=True)
    farmName = serializers.CharField(source='farm.name', read_only=True)
    totalPrice = serializers.DecimalField(
        source='total_price',
        max_digits=10,
        decimal_places=2,
        coerce_to_string=False,
        read_only=True,
    )
    deliveryMode = serializers.CharField(source='delivery_mode', read_only=True)
    deliveryDay = serializers.CharField(source='delivery_day', read_only=True)
    deliveryAddress = serializers.JSONField(source='delivery_address', read_only=True)
    customerNotes = serializers.CharField(source='customer_notes', read_only=True)
    farmerNotes = serializers.CharField(source='farmer_notes', read_only=True)
    paymentStatus = serializers.CharField(source='payment_status', read_only=True)
    cancelledReason = serializers.CharField(source='cancelled_reason', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'userId', 'farmId', 'farmName', 'items', 'totalPrice',
            'deliveryMode', 'deliveryDay', 'deliveryAddress', 'customerNotes',
            'farmerNotes', 'status', 'paymentStatus', 'cancelledReason',
            'createdAt', 'updatedAt',
        ]
        read_only_fields = ['id', 'items', 'status']
