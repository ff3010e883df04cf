"""
Farmer Request Workflow Service

Handles the producer onboarding lifecycle:
- Submitting requests (one pending request per user)
- Admin decisions (approve / reject) with a resumable step journal
- Listing provisioning on approval
- Post-approval detail edits by the owner
- Listing finalization (profile, products, publication)
"""

from django.utils import timezone
from django.db import transaction, DatabaseError, IntegrityError
import logging

from accounts.models import Profile
from accounts.services.identity_provider import (
    ClerkIdentityProvider,
    IdentityProviderError,
    IdentityUserNotFound,
)
from core.exceptions import (
    Conflict,
    FarmToForkError,
    Forbidden,
    InternalError,
    InvalidState,
    NotFound,
    ValidationError,
)
from farms.models import FarmerRequest, FarmerRequestDecision, Listing, Product
from farms.validators import validate_submission
from .notification_service import FarmerNotificationService

logger = logging.getLogger(__name__)


class FarmerRequestWorkflowService:
    """Service for managing the farmer request state machine"""

    # Role implied by each decision when the admin does not pass one
    DEFAULT_ROLES = {
        FarmerRequest.Status.APPROVED: Profile.UserRole.FARMER,
        FarmerRequest.Status.REJECTED: Profile.UserRole.USER,
    }

    DECISION_MESSAGES = {
        FarmerRequest.Status.APPROVED: 'Farmer request approved',
        FarmerRequest.Status.REJECTED: 'Farmer request rejected',
    }

    EDITABLE_FIELDS = ('description', 'products', 'website')

    def __init__(self, identity_provider=None, notification_service=None):
        self.identity_provider = identity_provider or ClerkIdentityProvider()
        self.notification_service = notification_service or FarmerNotificationService()

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_request(self, profile, data):
        """
        Create a pending request for the caller.

        The pre-check gives a clear error for the common case; the partial
        unique constraint on (user_id, status='pending') is what actually
        guarantees a single pending request under concurrent submissions.
        """
        cleaned = validate_submission(data, identity_email=profile.email)

        if FarmerRequest.objects.filter(user_id=profile.user_id, status=FarmerRequest.Status.PENDING).exists():
            raise Conflict('You already have a pending farmer request')

        now = timezone.now()
        try:
            with transaction.atomic():
                farmer_request = FarmerRequest.objects.create(
                    user_id=profile.user_id,
                    status=FarmerRequest.Status.PENDING,
                    created_at=now,
                    updated_at=now,
                    **cleaned
                )
        except IntegrityError:
            raise Conflict('You already have a pending farmer request')
        except DatabaseError as e:
            logger.error(f"Failed to store farmer request for {profile.user_id}: {str(e)}")
            raise InternalError('Could not save the farmer request')

        transaction.on_commit(lambda: self._queue_admin_alert(farmer_request.id))

        logger.info(f"Farmer request {farmer_request.id} submitted by {profile.user_id} ({farmer_request.farm_name})")
        return farmer_request

    def _queue_admin_alert(self, request_id):
        from farms.tasks import notify_admins_of_request
        try:
            notify_admins_of_request.delay(request_id)
        except Exception as e:
            logger.warning(f"Could not queue admin alert for request {request_id}: {str(e)}")

    def get_latest_request(self, profile):
        farmer_request = FarmerRequest.objects.filter(user_id=profile.user_id).order_by('-created_at', '-id').first()
        if farmer_request is None:
            raise NotFound('No farmer request found for this account')
        return farmer_request

    # ------------------------------------------------------------------
    # Admin decision
    # ------------------------------------------------------------------

    def decide(self, request_id, status, decided_by, role=None, reason='', user_id=None):
        """
        Approve or reject a request.

        Steps run in order: identity provider role, profile role, request
        status, listing provisioning (approval only), applicant email.
        They are not one transaction; each completed step is recorded on a
        FarmerRequestDecision so a failed decision can be re-issued or
        replayed without repeating finished work.

        Returns (decision, listing_or_None).
        """
        if status not in self.DEFAULT_ROLES:
            raise ValidationError(
                "status must be 'approved' or 'rejected'",
                [f'status: invalid value {status!r}'],
            )

        farmer_request = FarmerRequest.objects.filter(pk=request_id).first()
        if farmer_request is None:
            raise NotFound(f'Farmer request {request_id} not found')

        if user_id and user_id != farmer_request.user_id:
            raise ValidationError(
                'userId does not match the request owner',
                ['userId: does not match the request owner'],
            )

        if farmer_request.status not in (FarmerRequest.Status.PENDING, status):
            raise InvalidState(f'Farmer request {request_id} has already been {farmer_request.status}')

        decision = FarmerRequestDecision.objects.filter(
            request=farmer_request,
            status=status,
            completed_at__isnull=True,
        ).order_by('-created_at').first()

        if decision is None and farmer_request.status == status:
            # Same decision re-issued after it completed
            logger.info(f"Farmer request {request_id} already {status}; nothing to do")
            completed = farmer_request.decisions.filter(status=status).order_by('-created_at').first()
            return completed, self._existing_listing(farmer_request)

        if decision is None:
            FarmerRequestDecision.objects.filter(
                request=farmer_request,
                completed_at__isnull=True,
            ).exclude(status=status).update(
                completed_at=timezone.now(),
                last_error=f'superseded by {status} decision',
            )
            decision = FarmerRequestDecision.objects.create(
                request=farmer_request,
                status=status,
                role=role or self.DEFAULT_ROLES[status],
                reason=reason or '',
                decided_by=decided_by or '',
            )

        listing = self.run_decision(decision)
        return decision, listing

    def run_decision(self, decision):
        """Execute (or resume) the pending steps of a decision."""
        farmer_request = decision.request
        decision.attempts += 1
        decision.save(update_fields=['attempts', 'updated_at'])

        # 1. Identity provider role
        if not decision.identity_synced:
            try:
                self.identity_provider.update_role(
                    farmer_request.user_id,
                    decision.role,
                    updated_by=decision.decided_by,
                    reason=decision.reason or None,
                )
            except IdentityUserNotFound as e:
                self._record_failure(decision, f'identity: {e}')
                raise NotFound('Applicant not found in the identity provider')
            except IdentityProviderError as e:
                self._record_failure(decision, f'identity: {e}')
                raise InternalError('Could not update the role in the identity provider')
            self._mark_step(decision, 'identity_synced')

        # 2. Profile role
        if not decision.profile_synced:
            try:
                Profile.objects.update_or_create(
                    user_id=farmer_request.user_id,
                    defaults={'role': decision.role},
                    create_defaults={
                        'role': decision.role,
                        'email': farmer_request.email,
                        'first_name': farmer_request.first_name,
                        'last_name': farmer_request.last_name,
                        'phone': farmer_request.phone,
                    },
                )
            except DatabaseError as e:
                self._record_failure(decision, f'profile: {e}')
                raise InternalError('Could not update the applicant profile')
            self._mark_step(decision, 'profile_synced')

        # 3. Request status
        if not decision.status_updated:
            now = timezone.now()
            farmer_request.status = decision.status
            farmer_request.updated_at = now
            farmer_request.decided_at = now
            farmer_request.decided_by = decision.decided_by
            farmer_request.admin_reason = decision.reason
            try:
                farmer_request.save(update_fields=['status', 'updated_at', 'decided_at', 'decided_by', 'admin_reason'])
            except DatabaseError as e:
                self._record_failure(decision, f'status: {e}')
                raise InternalError('Could not update the farmer request status')
            self._mark_step(decision, 'status_updated')
            logger.info(f"Farmer request {farmer_request.id} {decision.status} by {decision.decided_by}")

        # 4. Listing provisioning
        listing = None
        if decision.status == FarmerRequest.Status.APPROVED:
            if decision.listing_provisioned:
                listing = self._existing_listing(farmer_request)
            else:
                try:
                    with transaction.atomic():
                        listing = self.provision_listing(farmer_request)
                except DatabaseError as e:
                    logger.warning(f"Listing provisioning failed for request {farmer_request.id}: {str(e)}")
                    self._record_failure(decision, f'listing: {e}')
                else:
                    self._mark_step(decision, 'listing_provisioned')

        # 5. Applicant email
        if not decision.notified:
            try:
                self.notification_service.send_status_change(farmer_request, decision.reason)
            except Exception as e:
                logger.warning(f"Status email for request {farmer_request.id} not sent: {str(e)}")
            else:
                self._mark_step(decision, 'notified')

        required_done = decision.identity_synced and decision.profile_synced and decision.status_updated
        if decision.status == FarmerRequest.Status.APPROVED:
            required_done = required_done and decision.listing_provisioned
        if required_done:
            decision.completed_at = timezone.now()
            decision.last_error = ''
            decision.save(update_fields=['completed_at', 'last_error', 'updated_at'])

        return listing

    def _mark_step(self, decision, step):
        setattr(decision, step, True)
        decision.save(update_fields=[step, 'updated_at'])

    def _record_failure(self, decision, error):
        logger.error(f"Decision {decision.id} on request {decision.request_id} failed: {error}")
        decision.last_error = str(error)[:2000]
        decision.save(update_fields=['last_error', 'updated_at'])

    def replay_incomplete_decisions(self, limit=100):
        """
        Resume decisions left incomplete by an earlier failure.

        Returns a summary dict with completed / failed counts.
        """
        pending = FarmerRequestDecision.objects.filter(
            completed_at__isnull=True,
        ).select_related('request').order_by('created_at')[:limit]

        summary = {'processed': 0, 'completed': 0, 'failed': 0}
        for decision in pending:
            summary['processed'] += 1
            if decision.request.status not in (FarmerRequest.Status.PENDING, decision.status):
                # Superseded by a different decision
                self._record_failure(decision, f'superseded: request is {decision.request.status}')
                decision.completed_at = timezone.now()
                decision.save(update_fields=['completed_at', 'updated_at'])
                summary['failed'] += 1
                continue
            try:
                self.run_decision(decision)
            except FarmToForkError as e:
                logger.warning(f"Replay of decision {decision.id} failed: {e.message}")
                summary['failed'] += 1
                continue
            if decision.is_complete:
                summary['completed'] += 1
            else:
                summary['failed'] += 1

        logger.info(
            f"Replayed {summary['processed']} decision(s): "
            f"{summary['completed']} completed, {summary['failed']} still incomplete"
        )
        return summary

    # ------------------------------------------------------------------
    # Listing provisioning & finalization
    # ------------------------------------------------------------------

    def _existing_listing(self, farmer_request):
        return Listing.objects.filter(clerk_user_id=farmer_request.user_id).first()

    def provision_listing(self, farmer_request):
        """
        Create the owner's storefront from the approved request.

        Idempotent: an existing listing for the owner is returned unchanged.
        The listing starts inactive; publication happens on finalization.
        """
        listing, created = Listing.objects.get_or_create(
            clerk_user_id=farmer_request.user_id,
            defaults={
                'created_by': farmer_request.email,
                'name': farmer_request.farm_name,
                'description': farmer_request.description,
                'address': farmer_request.location,
                'email': farmer_request.email,
                'phone_number': farmer_request.phone,
                'website': farmer_request.website,
                'lat': farmer_request.lat,
                'lng': farmer_request.lng,
                'orders_enabled': False,
                'active': False,
            },
        )
        if created:
            logger.info(f"Provisioned listing {listing.id} for request {farmer_request.id}")
        return listing

    def _get_owned_approved_request(self, profile, request_id):
        farmer_request = FarmerRequest.objects.filter(pk=request_id).first()
        if farmer_request is None:
            raise NotFound(f'Farmer request {request_id} not found')
        if farmer_request.user_id != profile.user_id:
            raise Forbidden('This farmer request belongs to another user')
        if not farmer_request.is_approved:
            raise Forbidden('Farmer request is not approved')
        return farmer_request

    def update_request_details(self, profile, request_id, changes):
        """Owner edits of description / products / website after approval."""
        farmer_request = self._get_owned_approved_request(profile, request_id)

        update_fields = []
        for field in self.EDITABLE_FIELDS:
            if field in changes:
                setattr(farmer_request, field, changes[field])
                update_fields.append(field)

        farmer_request.updated_at = timezone.now()
        farmer_request.save(update_fields=update_fields + ['updated_at'])
        logger.info(f"Farmer request {farmer_request.id} details updated by owner ({', '.join(update_fields) or 'no fields'})")
        return farmer_request

    def finalize_listing(self, profile, request_id, farm_profile=None, products=None,
                         enable_orders=False, publish_farm=False):
        """
        Complete onboarding: fill in the listing, add products, publish.

        Product insertion and the profile link are best-effort; their
        failures are logged and do not fail the call.

        Returns (listing, products_created).
        """
        farmer_request = self._get_owned_approved_request(profile, request_id)

        listing = self._existing_listing(farmer_request)
        if listing is None:
            raise Conflict('Listing not provisioned for this request')

        farm_profile = farm_profile or {}
        now = timezone.now()

        listing.name = farm_profile.get('name') or farmer_request.farm_name
        listing.description = farm_profile.get('description') or farmer_request.description
        listing.address = farm_profile.get('location') or farmer_request.location
        listing.phone_number = farm_profile.get('contact') or farmer_request.phone
        listing.email = listing.email or farmer_request.email
        listing.website = listing.website or farmer_request.website
        listing.orders_enabled = bool(enable_orders)
        listing.active = bool(publish_farm)
        if publish_farm:
            listing.published_at = listing.published_at or now
        else:
            listing.published_at = None

        try:
            listing.save()
        except DatabaseError as e:
            logger.error(f"Failed to update listing {listing.id}: {str(e)}")
            raise InternalError('Could not update the listing')

        products_created = self._create_initial_products(listing, products or [], publish_farm)
        self._link_profile(farmer_request, listing)

        farmer_request.updated_at = now
        farmer_request.save(update_fields=['updated_at'])

        state = 'published' if listing.active else 'saved as draft'
        logger.info(f"Listing {listing.id} {state} by {profile.user_id} with {products_created} new product(s)")
        return listing, products_created

    def _create_initial_products(self, listing, products, publish_farm):
        rows = [
            Product(
                listing=listing,
                name=item['name'].strip(),
                category=(item.get('category') or '').strip(),
                price=item.get('price'),
                unit=item.get('unit') or 'kg',
                stock_status=item.get('status') or Product.StockStatus.IN_STOCK,
                active=True,
                is_published=bool(publish_farm),
            )
            for item in products
            if (item.get('name') or '').strip()
        ]
        if not rows:
            return 0

        try:
            with transaction.atomic():
                Product.objects.bulk_create(rows)
        except DatabaseError as e:
            logger.warning(f"Product creation failed for listing {listing.id}: {str(e)}")
            return 0
        return len(rows)

    def _link_profile(self, farmer_request, listing):
        try:
            with transaction.atomic():
                Profile.objects.filter(user_id=farmer_request.user_id).update(
                    listing=listing,
                    updated_at=timezone.now(),
                )
        except DatabaseError as e:
            logger.warning(f"Could not link profile {farmer_request.user_id} to listing {listing.id}: {str(e)}")
