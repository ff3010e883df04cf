"""
Order Models

An order is a historical record: line items are snapshots of the product
name, price and unit at creation time and never follow later catalog edits.
"""
from django.db import models


class Order(models.Model):

    class Status(models.TextChoices):
        PENDING = 'pending', 'Pending'
        CONFIRMED = 'confirmed', 'Confirmed'
        READY = 'ready', 'Ready'
        DELIVERED = 'delivered', 'Delivered'
        CANCELLED = 'cancelled', 'Cancelled'

    class PaymentStatus(models.TextChoices):
        UNPAID = 'unpaid', 'Unpaid'
        PAID = 'paid', 'Paid'
        REFUNDED = 'refunded', 'Refunded'

    class DeliveryMode(models.TextChoices):
        PICKUP = 'pickup', 'Pickup'
        DELIVERY = 'delivery', 'Delivery'

    # Valid status transitions
    STATUS_TRANSITIONS = {
        'pending': ['confirmed', 'cancelled'],
        'confirmed': ['ready', 'cancelled'],
        'ready': ['delivered', 'cancelled'],
        'delivered': [],
        'cancelled': [],
    }

    user_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="Identity provider subject of the purchaser"
    )
    farm = models.ForeignKey(
        'farms.Listing',
        on_delete=models.PROTECT,
        related_name='orders',
        db_column='farm_id',
    )

    items = models.JSONField(
        default=list,
        help_text="Snapshot: [{productId, productName, price, quantity, unit, imageUrl, lineTotal}]"
    )
    total_price = models.DecimalField(max_digits=10, decimal_places=2)

    delivery_mode = models.CharField(max_length=20, choices=DeliveryMode.choices)
    delivery_day = models.CharField(max_length=100)
    delivery_address = models.JSONField(null=True, blank=True)
    customer_notes = models.TextField(blank=True, default='')

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.UNPAID,
    )

    farmer_notes = models.TextField(blank=True, default='')
    cancelled_reason = models.TextField(blank=True, default='')
    cancelled_by = models.CharField(max_length=255, blank=True, default='')

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'orders'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['farm', 'status'], name='orders_farm_status_idx'),
        ]

    def __str__(self):
        return f"Order #{self.id} ({self.status})"

    def can_transition_to(self, new_status):
        return new_status in self.STATUS_TRANSITIONS.get(self.status, [])
