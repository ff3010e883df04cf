"""
Farms Celery tasks for the Farm To Fork backend.

Background tasks for the onboarding workflow.
"""
from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def notify_admins_of_request(request_id: int):
    """
    Email platform admins about a newly submitted farmer request.

    Queued after the submission commits.

    Usage:
        from farms.tasks import notify_admins_of_request
        notify_admins_of_request.delay(farmer_request.id)
    """
    from farms.models import FarmerRequest
    from farms.services.notification_service import FarmerNotificationService

    farmer_request = FarmerRequest.objects.filter(pk=request_id).first()
    if farmer_request is None:
        logger.warning(f"Farmer request {request_id} not found; admin alert skipped")
        return {'sent': False}

    sent = FarmerNotificationService().send_new_request_to_admins(farmer_request)
    return {'sent': sent}


@shared_task
def replay_incomplete_decisions(limit: int = 100):
    """
    Resume admin decisions left incomplete by a failed step.

    Scheduled via Celery Beat to run hourly.
    """
    from farms.services.approval_workflow import FarmerRequestWorkflowService

    logger.info("Replaying incomplete farmer request decisions...")
    return FarmerRequestWorkflowService().replay_incomplete_decisions(limit=limit)
