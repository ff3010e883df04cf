"""
Farm Services

Service layer for farmer onboarding, the listing catalog and notifications.
"""

from .approval_workflow import FarmerRequestWorkflowService
from .catalog_service import CatalogService
from .notification_service import FarmerNotificationService

__all__ = [
    'FarmerRequestWorkflowService',
    'CatalogService',
    'FarmerNotificationService',
]
