"""
Order Services

Service layer for consumer order creation and fulfilment.
"""

from .order_service import OrderService, round_money, validate_status_transition

__all__ = [
    'OrderService',
    'round_money',
    'validate_status_transition',
]
