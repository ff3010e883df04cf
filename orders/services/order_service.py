"""
Order Service

Order creation pipeline:
    farm -> products -> stock -> prices -> delivery address -> insert

Each stage raises a typed API error and nothing is written until every
stage has passed, so an order either exists fully formed or not at all.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List
import logging

from django.db import DatabaseError, transaction

from core.exceptions import Forbidden, InternalError, InvalidState, NotFound, ValidationError
from farms.models import Listing, Product
from orders.models import Order

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal('0.01')

# Order.total_price is max_digits=10, decimal_places=2
MAX_ORDER_TOTAL = Decimal('99999999.99')


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half up (3.505 -> 3.51)."""
    return amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def validate_status_transition(current_status: str, new_status: str,
                               transitions: Dict[str, List[str]]) -> bool:
    """
    Validate that a status transition is allowed.

    Raises:
        InvalidState if the transition is not in the map
    """
    valid_transitions = transitions.get(current_status, [])
    if new_status not in valid_transitions:
        raise InvalidState(
            f"Invalid order status transition: {current_status} -> {new_status}",
            [f"allowed from {current_status}: {', '.join(valid_transitions) or 'none'}"],
        )
    return True


class OrderService:
    """Create, read and progress consumer orders"""

    def create_order(self, profile, data):
        """
        Run the creation pipeline on validated input (OrderCreateSerializer).

        Returns the persisted Order.
        """
        farm = self._load_farm(data['farmId'])
        products = self._load_products(farm, data['items'])
        self._check_stock(products)
        items, total_price = self._price_items(data['items'], products)
        delivery_address = self._check_delivery_address(data['deliveryMode'], data.get('deliveryAddress'))

        try:
            with transaction.atomic():
                order = Order.objects.create(
                    user_id=profile.user_id,
                    farm=farm,
                    items=items,
                    total_price=total_price,
                    delivery_mode=data['deliveryMode'],
                    delivery_day=data['deliveryDay'],
                    delivery_address=delivery_address,
                    customer_notes=data.get('customerNotes', ''),
                    status=Order.Status.PENDING,
                    payment_status=Order.PaymentStatus.UNPAID,
                )
        except DatabaseError as e:
            logger.error(f"Failed to store order for {profile.user_id} on farm {farm.id}: {str(e)}")
            raise InternalError('Could not create the order')

        logger.info(
            f"Order {order.id} created by {profile.user_id} on farm {farm.id}: "
            f"{len(items)} line(s), total {total_price}"
        )
        return order

    def _load_farm(self, farm_id):
        farm = Listing.objects.filter(pk=farm_id).first()
        if farm is None:
            raise NotFound(f'Farm {farm_id} not found')
        if not farm.active:
            raise InvalidState(f'Farm {farm_id} is not accepting orders')
        return farm

    def _load_products(self, farm, items):
        requested_ids = list(dict.fromkeys(item['productId'] for item in items))
        products = {
            product.id: product
            for product in Product.objects.filter(
                listing=farm,
                id__in=requested_ids,
                active=True,
                is_published=True,
            )
        }
        missing = [product_id for product_id in requested_ids if product_id not in products]
        if missing:
            raise NotFound(
                f"Products not found for this farm: {', '.join(str(pid) for pid in missing)}",
                [f'productId {pid}: not available' for pid in missing],
            )
        return products

    def _check_stock(self, products):
        out_of_stock = sorted(
            product.name for product in products.values()
            if product.stock_status == Product.StockStatus.OUT_OF_STOCK
        )
        if out_of_stock:
            raise InvalidState(
                f"Out of stock: {', '.join(out_of_stock)}",
                [f'{name}: out of stock' for name in out_of_stock],
            )

    def _price_items(self, requested_items, products):
        """Build item snapshots from server-side prices."""
        items = []
        total = Decimal('0')
        for requested in requested_items:
            product = products[requested['productId']]
            if product.price is None or not product.unit:
                logger.error(f"Product {product.id} has no price or unit; order rejected")
                raise InternalError(f'Product {product.id} is missing its price or unit')

            quantity = requested['quantity']
            if quantity <= 0:
                raise ValidationError('Quantity must be positive', [f'productId {product.id}: invalid quantity'])

            line_total = product.price * quantity
            total += line_total
            items.append({
                'productId': product.id,
                'productName': product.name,
                'price': float(product.price),
                'quantity': quantity,
                'unit': product.unit,
                'imageUrl': product.image_url or None,
                'lineTotal': float(round_money(line_total)),
            })
        total = round_money(total)
        if total > MAX_ORDER_TOTAL:
            raise ValidationError(
                'Order total is too large',
                [f'items: total {total} exceeds the maximum of {MAX_ORDER_TOTAL}'],
            )
        return items, total

    def _check_delivery_address(self, delivery_mode, delivery_address):
        if delivery_mode != Order.DeliveryMode.DELIVERY:
            return None
        if not isinstance(delivery_address, dict) or not delivery_address:
            raise ValidationError(
                'A delivery address is required for delivery orders',
                ['deliveryAddress: required when deliveryMode is delivery'],
            )
        return dict(delivery_address)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_orders(self, profile, scope='mine'):
        """The caller's purchases, or the orders placed on the caller's farm."""
        queryset = Order.objects.select_related('farm')
        if scope == 'farm':
            return queryset.filter(farm__clerk_user_id=profile.user_id).order_by('-created_at', '-id')
        return queryset.filter(user_id=profile.user_id).order_by('-created_at', '-id')

    def get_order(self, profile, order_id):
        order = Order.objects.select_related('farm').filter(pk=order_id).first()
        if order is None or not self._can_view(profile, order):
            raise NotFound(f'Order {order_id} not found')
        return order

    def _is_farm_owner(self, profile, order):
        return order.farm.clerk_user_id == profile.user_id

    def _can_view(self, profile, order):
        return (
            order.user_id == profile.user_id
            or self._is_farm_owner(profile, order)
            or getattr(profile, 'role', None) == 'admin'
        )

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_status(self, profile, order_id, new_status, farmer_notes=None, cancelled_reason=None):
        """
        Move an order along pending -> confirmed -> ready -> delivered.

        The farm owner (or an admin) drives the order; the purchaser may
        only cancel while it is still pending.
        """
        order = Order.objects.select_for_update().select_related('farm').filter(pk=order_id).first()
        if order is None or not self._can_view(profile, order):
            raise NotFound(f'Order {order_id} not found')

        is_manager = self._is_farm_owner(profile, order) or getattr(profile, 'role', None) == 'admin'
        is_purchaser = order.user_id == profile.user_id

        if not is_manager:
            if not (is_purchaser and new_status == Order.Status.CANCELLED):
                raise Forbidden('Only the farm can update this order')
            if order.status != Order.Status.PENDING:
                raise InvalidState('Orders can only be cancelled while pending')

        validate_status_transition(order.status, new_status, Order.STATUS_TRANSITIONS)

        previous = order.status
        order.status = new_status
        if farmer_notes is not None and is_manager:
            order.farmer_notes = farmer_notes
        if new_status == Order.Status.CANCELLED:
            order.cancelled_reason = cancelled_reason or ''
            order.cancelled_by = profile.user_id
        order.save()

        logger.info(f"Order {order.id}: {previous} -> {new_status} by {profile.user_id}")
        return order
