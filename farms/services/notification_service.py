"""
Farmer Notification Service

Transactional emails for the onboarding workflow:
- Applicant: request approved / rejected
- Platform admins: new farmer request submitted
"""

from django.core.mail import send_mail
from django.conf import settings
import logging

logger = logging.getLogger(__name__)


class FarmerNotificationService:
    """Service for sending onboarding notifications"""

    def __init__(self):
        self.from_email = getattr(settings, 'DEFAULT_FROM_EMAIL', 'noreply@farmtofork.fr')
        self.frontend_url = getattr(settings, 'FRONTEND_URL', 'http://localhost:3000').rstrip('/')
        self.admin_emails = list(getattr(settings, 'ADMIN_NOTIFICATION_EMAILS', []))

    def send_status_change(self, farmer_request, reason=''):
        """Notify the applicant of the admin decision on their request."""
        if farmer_request.status == 'approved':
            return self.send_request_approved(farmer_request)
        return self.send_request_rejected(farmer_request, reason)

    def send_request_approved(self, farmer_request):
        subject = f"Your producer request for {farmer_request.farm_name} is approved"
        message = f"""
Hello {farmer_request.first_name},

Good news: your request to sell on Farm To Fork has been approved.

Farm: {farmer_request.farm_name}
Request: #{farmer_request.id}

Next Steps:
1. Complete your farm profile
2. Add your products and prices
3. Publish your farm to start receiving orders

Continue your onboarding here:
{self.frontend_url}/onboarding/{farmer_request.id}

See you soon,
The Farm To Fork team
        """.strip()

        return self._send_email(subject, message, [farmer_request.email])

    def send_request_rejected(self, farmer_request, reason=''):
        subject = f"Your producer request for {farmer_request.farm_name}"
        reason_block = f"\nReason given by our team:\n{reason}\n" if reason else ''
        message = f"""
Hello {farmer_request.first_name},

Thank you for your interest in Farm To Fork. After review, we are unable
to approve your producer request for {farmer_request.farm_name} at this time.
{reason_block}
You are welcome to submit a new request once the points above are addressed:
{self.frontend_url}/become-farmer

The Farm To Fork team
        """.strip()

        return self._send_email(subject, message, [farmer_request.email])

    def send_new_request_to_admins(self, farmer_request):
        """Alert platform admins that a request is waiting for review."""
        if not self.admin_emails:
            logger.info(f"No admin notification emails configured; skipping alert for request {farmer_request.id}")
            return False

        subject = f"New producer request: {farmer_request.farm_name}"
        message = f"""
A new producer request is waiting for review.

Request: #{farmer_request.id}
Farm: {farmer_request.farm_name}
Applicant: {farmer_request.first_name} {farmer_request.last_name} <{farmer_request.email}>
SIRET: {farmer_request.siret}
Department: {farmer_request.department}
Location: {farmer_request.location}

Review pending requests:
{self.frontend_url}/admin/farmer-requests
        """.strip()

        return self._send_email(subject, message, self.admin_emails)

    def _send_email(self, subject, message, recipients):
        """Send a plain-text email. Failures are logged and re-raised."""
        try:
            send_mail(
                subject=subject,
                message=message,
                from_email=self.from_email,
                recipient_list=recipients,
                fail_silently=False,
            )
        except Exception as e:
            logger.error(f"Email send failed: {str(e)}")
            raise
        logger.info(f"Email sent to {', '.join(recipients)}: {subject}")
        return True
