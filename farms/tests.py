"""
Tests for farmer onboarding, admin decisions and the listing catalog
"""
import pytest
from datetime import timedelta
from decimal import Decimal
from io import StringIO
from unittest.mock import Mock, patch
from django.core import mail
from django.core.management import call_command
from django.db import DatabaseError
from django.utils import timezone
from rest_framework import status

from accounts.models import Profile
from accounts.services.identity_provider import IdentityProviderError, IdentityUserNotFound
from core.exceptions import Conflict, InternalError, ValidationError
from farms.models import FarmerRequest, FarmerRequestDecision, Listing, Product
from farms.services.approval_workflow import FarmerRequestWorkflowService
from farms.tasks import notify_admins_of_request, replay_incomplete_decisions
from farms.validators import (
    is_valid_department,
    is_valid_siret,
    validate_coordinates,
    validate_submission,
)

pytestmark = pytest.mark.django_db

UPDATE_ROLE = 'accounts.services.identity_provider.ClerkIdentityProvider.update_role'


# =============================================================================
# VALIDATION
# =============================================================================

class TestSubmissionValidation:
    """Staged validation of farmer request payloads."""

    @pytest.mark.parametrize('siret', ['12345678901234', '123 456 789 01234'])
    def test_valid_siret(self, siret):
        assert is_valid_siret(siret)

    @pytest.mark.parametrize('siret', ['1234567890123', '1234567890123a', '', '123456789012345'])
    def test_invalid_siret(self, siret):
        assert not is_valid_siret(siret)

    @pytest.mark.parametrize('department', ['33', '974', '2A', '2b', '01'])
    def test_valid_department(self, department):
        assert is_valid_department(department)

    @pytest.mark.parametrize('department', ['3', '2C', '9745', 'AB', ''])
    def test_invalid_department(self, department):
        assert not is_valid_department(department)

    def test_coordinates_in_range(self):
        assert validate_coordinates(45.0, 2.0) == (45.0, 2.0)

    @pytest.mark.parametrize('lat,lng', [(91, 2.0), (45.0, 181), (-90.5, 0), ('abc', 2.0), (float('nan'), 2.0), (True, 2.0)])
    def test_coordinates_rejected(self, lat, lng):
        with pytest.raises(ValidationError):
            validate_coordinates(lat, lng)

    def test_all_missing_fields_reported_together(self, request_payload):
        del request_payload['firstName']
        request_payload['farmName'] = '   '
        request_payload['lat'] = None

        with pytest.raises(ValidationError) as exc_info:
            validate_submission(request_payload, identity_email='jean@example.com')

        details = ' '.join(exc_info.value.details)
        assert 'firstName' in details
        assert 'farmName' in details
        assert 'lat' in details

    def test_email_falls_back_to_body(self, request_payload):
        request_payload['email'] = 'Body@Example.com'

        cleaned = validate_submission(request_payload, identity_email='')

        assert cleaned['email'] == 'body@example.com'

    def test_identity_email_wins_over_body(self, request_payload):
        request_payload['email'] = 'body@example.com'

        cleaned = validate_submission(request_payload, identity_email='identity@example.com')

        assert cleaned['email'] == 'identity@example.com'

    def test_missing_email_is_reported(self, request_payload):
        with pytest.raises(ValidationError) as exc_info:
            validate_submission(request_payload, identity_email='')

        assert any(detail.startswith('email') for detail in exc_info.value.details)

    def test_invalid_email(self, request_payload):
        with pytest.raises(ValidationError, match='email'):
            validate_submission(request_payload, identity_email='not-an-email')

    def test_coordinates_checked_before_siret(self, request_payload):
        request_payload['lat'] = 91
        request_payload['siret'] = '123'

        with pytest.raises(ValidationError) as exc_info:
            validate_submission(request_payload, identity_email='jean@example.com')

        assert exc_info.value.message == 'Invalid coordinates'

    def test_normalizes_values(self, request_payload):
        request_payload['siret'] = ' 123 456 789 01234 '
        request_payload['department'] = '2a'
        request_payload['farmName'] = '  Ferme du Lac  '

        cleaned = validate_submission(request_payload, identity_email='jean@example.com')

        assert cleaned['siret'] == '12345678901234'
        assert cleaned['department'] == '2A'
        assert cleaned['farm_name'] == 'Ferme du Lac'


# =============================================================================
# SUBMISSION
# =============================================================================

class TestSubmitFarmerRequest:
    """POST /api/onboarding/submit-request/"""

    url = '/api/onboarding/submit-request/'

    def test_requires_authentication(self, api_client, request_payload):
        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert FarmerRequest.objects.count() == 0

    def test_creates_pending_request(self, api_client, applicant, request_payload):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['success'] is True
        farmer_request = FarmerRequest.objects.get(pk=response.data['requestId'])
        assert farmer_request.status == 'pending'
        assert farmer_request.user_id == applicant.user_id
        assert farmer_request.email == applicant.email
        assert farmer_request.created_at == farmer_request.updated_at

    def test_second_pending_request_conflicts(self, api_client, applicant, request_payload):
        api_client.force_authenticate(user=applicant)
        api_client.post(self.url, request_payload, format='json')

        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['error'] == 'conflict'
        assert FarmerRequest.objects.filter(user_id=applicant.user_id).count() == 1

    def test_new_request_allowed_after_rejection(self, api_client, applicant, request_payload, farmer_request_factory):
        farmer_request_factory(applicant, status='rejected')
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_201_CREATED

    def test_store_constraint_is_the_safety_net(self, applicant, request_payload, farmer_request_factory):
        """A pending row slipping past the pre-check still yields Conflict."""
        farmer_request_factory(applicant)
        service = FarmerRequestWorkflowService()

        with patch('farms.services.approval_workflow.FarmerRequest.objects.filter') as mock_filter:
            mock_filter.return_value.exists.return_value = False
            with pytest.raises(Conflict):
                service.submit_request(applicant, request_payload)

    @pytest.mark.parametrize('siret', ['1234567890123', '1234567890123a', ''])
    def test_invalid_siret_rejected(self, api_client, applicant, request_payload, siret):
        api_client.force_authenticate(user=applicant)
        request_payload['siret'] = siret

        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'
        assert FarmerRequest.objects.count() == 0

    @pytest.mark.parametrize('field,value', [('lat', 91), ('lng', 181)])
    def test_out_of_range_coordinates_rejected(self, api_client, applicant, request_payload, field, value):
        api_client.force_authenticate(user=applicant)
        request_payload[field] = value

        response = api_client.post(self.url, request_payload, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['details']

    def test_my_request_returns_latest(self, api_client, applicant, request_payload):
        api_client.force_authenticate(user=applicant)
        api_client.post(self.url, request_payload, format='json')

        response = api_client.get('/api/onboarding/my-request/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['request']['farmName'] == request_payload['farmName']
        assert response.data['request']['status'] == 'pending'

    def test_my_request_not_found(self, api_client, consumer):
        api_client.force_authenticate(user=consumer)

        response = api_client.get('/api/onboarding/my-request/')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['error'] == 'not_found'


class TestAdminAlert:

    def test_admins_emailed_about_new_request(self, settings, pending_request):
        settings.ADMIN_NOTIFICATION_EMAILS = ['ops@farmtofork.fr']

        result = notify_admins_of_request(pending_request.id)

        assert result == {'sent': True}
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == ['ops@farmtofork.fr']
        assert pending_request.farm_name in mail.outbox[0].subject

    def test_no_admin_emails_configured(self, settings, pending_request):
        settings.ADMIN_NOTIFICATION_EMAILS = []

        assert notify_admins_of_request(pending_request.id) == {'sent': False}
        assert len(mail.outbox) == 0

    def test_unknown_request(self):
        assert notify_admins_of_request(999999) == {'sent': False}


# =============================================================================
# ADMIN DECISION
# =============================================================================

class TestValidateFarmerRequest:
    """POST /api/validate-farmer-request/"""

    url = '/api/validate-farmer-request/'

    def test_requires_admin_role(self, api_client, applicant, pending_request):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        pending_request.refresh_from_db()
        assert pending_request.status == 'pending'

    def test_approve_runs_every_step(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE) as mock_update_role:
            response = api_client.post(
                self.url,
                {'requestId': pending_request.id, 'status': 'approved', 'reason': 'Dossier complet'},
                format='json',
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message'] == 'Farmer request approved'
        mock_update_role.assert_called_once_with(
            applicant.user_id, 'farmer', updated_by=admin_profile.user_id, reason='Dossier complet',
        )

        applicant.refresh_from_db()
        pending_request.refresh_from_db()
        assert applicant.role == 'farmer'
        assert pending_request.status == 'approved'
        assert pending_request.decided_by == admin_profile.user_id
        assert pending_request.decided_at is not None

        listing = Listing.objects.get(clerk_user_id=applicant.user_id)
        assert response.data['listingId'] == listing.id
        assert listing.active is False
        assert listing.name == pending_request.farm_name

        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.is_complete
        assert len(mail.outbox) == 1
        assert mail.outbox[0].to == [pending_request.email]

    def test_reject_sets_user_role_and_no_listing(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(
            self.url,
            {'requestId': pending_request.id, 'status': 'rejected', 'reason': 'SIRET inactif'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message'] == 'Farmer request rejected'
        assert 'listingId' not in response.data
        pending_request.refresh_from_db()
        assert pending_request.status == 'rejected'
        assert pending_request.admin_reason == 'SIRET inactif'
        assert not Listing.objects.filter(clerk_user_id=applicant.user_id).exists()
        assert 'SIRET inactif' in mail.outbox[0].body

    def test_invalid_status_rejected(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'pending'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'

    def test_missing_params(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert any(detail.startswith('requestId') for detail in response.data['details'])
        assert any(detail.startswith('status') for detail in response.data['details'])

    def test_unknown_request(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {'requestId': 424242, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_user_id_must_match_owner(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(
            self.url,
            {'requestId': pending_request.id, 'status': 'approved', 'userId': 'user_someone_else'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_explicit_role_is_used(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)

        api_client.post(
            self.url,
            {'requestId': pending_request.id, 'status': 'approved', 'role': 'admin'},
            format='json',
        )

        applicant.refresh_from_db()
        assert applicant.role == 'admin'

    def test_opposite_decision_is_invalid_state(self, api_client, admin_profile, approved_request):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {'requestId': approved_request.id, 'status': 'rejected'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'invalid_state'
        approved_request.refresh_from_db()
        assert approved_request.status == 'approved'

    def test_repeated_decision_is_idempotent(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)
        payload = {'requestId': pending_request.id, 'status': 'approved'}
        api_client.post(self.url, payload, format='json')

        with patch(UPDATE_ROLE) as mock_update_role:
            response = api_client.post(self.url, payload, format='json')

        assert response.status_code == status.HTTP_200_OK
        mock_update_role.assert_not_called()
        assert FarmerRequestDecision.objects.filter(request=pending_request).count() == 1
        assert Listing.objects.count() == 1
        assert len(mail.outbox) == 1

    def test_identity_failure_stops_before_status_change(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data['error'] == 'internal_error'
        pending_request.refresh_from_db()
        assert pending_request.status == 'pending'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert not decision.is_complete
        assert 'down' in decision.last_error

    def test_identity_gateway_error_is_journaled(self, api_client, settings, admin_profile, pending_request):
        settings.CLERK_SECRET_KEY = 'sk_test_123'
        settings.CLERK_API_URL = 'https://api.clerk.test/v1'
        gateway_error = Mock(status_code=502, content=b'<html>Bad gateway</html>', text='<html>Bad gateway</html>')
        gateway_error.json.side_effect = ValueError('Expecting value')
        api_client.force_authenticate(user=admin_profile)

        with patch('accounts.services.identity_provider.requests.request', return_value=gateway_error):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data['error'] == 'internal_error'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.last_error.startswith('identity:')
        assert 'Bad gateway' in decision.last_error
        pending_request.refresh_from_db()
        assert pending_request.status == 'pending'

    def test_profile_failure_stops_before_status_change(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch(
            'farms.services.approval_workflow.Profile.objects.update_or_create',
            side_effect=DatabaseError('profiles locked'),
        ):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        pending_request.refresh_from_db()
        assert pending_request.status == 'pending'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.identity_synced is True
        assert decision.profile_synced is False
        assert decision.last_error.startswith('profile:')
        assert not decision.is_complete

    def test_status_failure_is_journaled(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch.object(FarmerRequest, 'save', side_effect=DatabaseError('requests locked')):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        pending_request.refresh_from_db()
        assert pending_request.status == 'pending'
        applicant.refresh_from_db()
        assert applicant.role == 'farmer'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.profile_synced is True
        assert decision.status_updated is False
        assert decision.last_error.startswith('status:')
        assert not Listing.objects.filter(clerk_user_id=applicant.user_id).exists()

    def test_listing_failure_leaves_pending_steps(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch(
            'farms.services.approval_workflow.Listing.objects.get_or_create',
            side_effect=DatabaseError('listings locked'),
        ):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['pendingSteps'] is True
        assert 'listingId' not in response.data
        pending_request.refresh_from_db()
        assert pending_request.status == 'approved'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.status_updated is True
        assert decision.listing_provisioned is False
        assert decision.notified is True
        assert decision.last_error.startswith('listing:')
        assert not decision.is_complete
        assert not Listing.objects.filter(clerk_user_id=applicant.user_id).exists()

    def test_unknown_identity_user_is_not_found(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE, side_effect=IdentityUserNotFound('gone')):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_failed_decision_resumes_on_retry(self, api_client, admin_profile, applicant, pending_request):
        api_client.force_authenticate(user=admin_profile)
        payload = {'requestId': pending_request.id, 'status': 'approved'}
        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            api_client.post(self.url, payload, format='json')

        response = api_client.post(self.url, payload, format='json')

        assert response.status_code == status.HTTP_200_OK
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.is_complete
        assert decision.attempts == 2
        pending_request.refresh_from_db()
        assert pending_request.status == 'approved'

    def test_email_failure_is_not_fatal(self, api_client, admin_profile, pending_request):
        api_client.force_authenticate(user=admin_profile)

        with patch('farms.services.notification_service.send_mail', side_effect=OSError('smtp down')):
            response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        pending_request.refresh_from_db()
        assert pending_request.status == 'approved'
        decision = FarmerRequestDecision.objects.get(request=pending_request)
        assert decision.notified is False
        assert decision.is_complete

    def test_existing_listing_is_kept_on_approval(self, api_client, admin_profile, applicant, pending_request):
        listing = Listing.objects.create(clerk_user_id=applicant.user_id, name='Ancienne ferme')
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {'requestId': pending_request.id, 'status': 'approved'}, format='json')

        assert response.data['listingId'] == listing.id
        assert Listing.objects.count() == 1


class TestReplayIncompleteDecisions:

    def test_replay_completes_failed_decision(self, admin_profile, applicant, pending_request):
        service = FarmerRequestWorkflowService()
        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            with pytest.raises(InternalError):
                service.decide(pending_request.id, 'approved', decided_by=admin_profile.user_id)

        summary = replay_incomplete_decisions()

        assert summary == {'processed': 1, 'completed': 1, 'failed': 0}
        pending_request.refresh_from_db()
        assert pending_request.status == 'approved'
        assert Listing.objects.filter(clerk_user_id=applicant.user_id).exists()

    def test_replay_provisions_missing_listing(self, admin_profile, applicant, pending_request):
        service = FarmerRequestWorkflowService()
        with patch(
            'farms.services.approval_workflow.Listing.objects.get_or_create',
            side_effect=DatabaseError('listings locked'),
        ):
            decision, listing = service.decide(pending_request.id, 'approved', decided_by=admin_profile.user_id)
        assert listing is None
        assert not decision.is_complete

        with patch(UPDATE_ROLE) as mock_update_role:
            summary = replay_incomplete_decisions()

        assert summary == {'processed': 1, 'completed': 1, 'failed': 0}
        mock_update_role.assert_not_called()
        decision.refresh_from_db()
        assert decision.listing_provisioned is True
        assert decision.last_error == ''
        assert Listing.objects.filter(clerk_user_id=applicant.user_id, active=False).exists()
        assert len(mail.outbox) == 1

    def test_replay_keeps_failing_decision_incomplete(self, admin_profile, pending_request):
        service = FarmerRequestWorkflowService()
        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            with pytest.raises(InternalError):
                service.decide(pending_request.id, 'approved', decided_by=admin_profile.user_id)
            summary = service.replay_incomplete_decisions()

        assert summary['failed'] == 1
        assert FarmerRequestDecision.objects.get(request=pending_request).attempts == 2

    def test_new_decision_supersedes_stale_one(self, admin_profile, pending_request):
        service = FarmerRequestWorkflowService()
        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            with pytest.raises(InternalError):
                service.decide(pending_request.id, 'rejected', decided_by=admin_profile.user_id)

        service.decide(pending_request.id, 'approved', decided_by=admin_profile.user_id)

        assert FarmerRequestDecision.objects.filter(completed_at__isnull=True).count() == 0
        pending_request.refresh_from_db()
        assert pending_request.status == 'approved'

    def test_management_command(self):
        out = StringIO()

        call_command('replay_incomplete_decisions', stdout=out)

        assert 'No incomplete decisions found' in out.getvalue()


# =============================================================================
# POST-APPROVAL EDITS
# =============================================================================

class TestUpdateRequestDetails:
    """PATCH /api/onboarding/requests/<id>/"""

    def url(self, farmer_request):
        return f'/api/onboarding/requests/{farmer_request.id}/'

    def test_owner_updates_approved_request(self, api_client, applicant, approved_request):
        api_client.force_authenticate(user=applicant)
        before = approved_request.updated_at

        response = api_client.patch(
            self.url(approved_request),
            {'description': 'Maraîchage bio', 'website': 'https://example.fr', 'status': 'pending'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        approved_request.refresh_from_db()
        assert approved_request.description == 'Maraîchage bio'
        assert approved_request.website == 'https://example.fr'
        assert approved_request.status == 'approved'
        assert approved_request.updated_at > before

    def test_pending_request_cannot_be_edited(self, api_client, applicant, pending_request):
        api_client.force_authenticate(user=applicant)

        response = api_client.patch(self.url(pending_request), {'description': 'x'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_other_user_cannot_edit(self, api_client, other_user, approved_request):
        api_client.force_authenticate(user=other_user)

        response = api_client.patch(self.url(approved_request), {'description': 'x'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_empty_body_rejected(self, api_client, applicant, approved_request):
        api_client.force_authenticate(user=applicant)

        response = api_client.patch(self.url(approved_request), {}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST


# =============================================================================
# LISTING FINALIZATION
# =============================================================================

class TestFinalizeListing:
    """POST /api/onboarding/create-listing/"""

    url = '/api/onboarding/create-listing/'

    @pytest.fixture
    def provisioned(self, approved_request):
        return FarmerRequestWorkflowService().provision_listing(approved_request)

    def payload(self, farmer_request, **overrides):
        data = {
            'requestId': farmer_request.id,
            'farmProfile': {
                'name': 'La Ferme de Jean',
                'description': 'Légumes de saison',
                'location': 'Saint-Émilion',
                'contact': '0600000000',
            },
            'products': [
                {'name': 'Tomates', 'category': 'Légumes', 'price': '3.50', 'unit': 'kg'},
                {'name': '   ', 'price': '1.00'},
                {'name': 'Courgettes', 'price': '2.10', 'status': 'low_stock'},
            ],
            'enableOrders': True,
            'publishFarm': True,
        }
        data.update(overrides)
        return data

    def test_owner_publishes_listing(self, api_client, applicant, approved_request, provisioned):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, self.payload(approved_request), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['listingId'] == provisioned.id
        assert response.data['productsCreated'] == 2

        provisioned.refresh_from_db()
        assert provisioned.name == 'La Ferme de Jean'
        assert provisioned.phone_number == '0600000000'
        assert provisioned.active is True
        assert provisioned.orders_enabled is True
        assert provisioned.published_at is not None

        names = set(Product.objects.filter(listing=provisioned).values_list('name', flat=True))
        assert names == {'Tomates', 'Courgettes'}
        assert Product.objects.filter(listing=provisioned, is_published=True).count() == 2

        applicant.refresh_from_db()
        assert applicant.listing_id == provisioned.id

    def test_profile_falls_back_to_request(self, api_client, applicant, approved_request, provisioned):
        api_client.force_authenticate(user=applicant)

        api_client.post(
            self.url,
            {'requestId': approved_request.id, 'publishFarm': False},
            format='json',
        )

        provisioned.refresh_from_db()
        assert provisioned.name == approved_request.farm_name
        assert provisioned.address == approved_request.location
        assert provisioned.active is False
        assert provisioned.published_at is None

    def test_republishing_keeps_first_published_at(self, api_client, applicant, approved_request, provisioned):
        first = timezone.now() - timedelta(days=10)
        provisioned.active = True
        provisioned.published_at = first
        provisioned.save()
        api_client.force_authenticate(user=applicant)

        api_client.post(self.url, self.payload(approved_request, products=[]), format='json')

        provisioned.refresh_from_db()
        assert provisioned.published_at == first

    def test_unpublishing_clears_published_at(self, api_client, applicant, approved_request, provisioned):
        provisioned.active = True
        provisioned.published_at = timezone.now()
        provisioned.save()
        api_client.force_authenticate(user=applicant)

        api_client.post(self.url, self.payload(approved_request, publishFarm=False, products=[]), format='json')

        provisioned.refresh_from_db()
        assert provisioned.active is False
        assert provisioned.published_at is None

    def test_non_owner_is_forbidden(self, api_client, other_user, approved_request, provisioned):
        api_client.force_authenticate(user=other_user)

        response = api_client.post(self.url, self.payload(approved_request), format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        provisioned.refresh_from_db()
        assert provisioned.active is False

    def test_pending_request_is_forbidden(self, api_client, applicant, pending_request):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, self.payload(pending_request), format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_listing_conflicts(self, api_client, applicant, approved_request):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, self.payload(approved_request), format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert 'not provisioned' in response.data['message']

    def test_unknown_request(self, api_client, applicant):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(self.url, {'requestId': 999999}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_negative_product_price_rejected(self, api_client, applicant, approved_request, provisioned):
        api_client.force_authenticate(user=applicant)

        response = api_client.post(
            self.url,
            self.payload(approved_request, products=[{'name': 'Tomates', 'price': '-1'}]),
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert any(detail.startswith('products[0].price') for detail in response.data['details'])

    def test_product_failure_is_not_fatal(self, api_client, applicant, approved_request, provisioned):
        from django.db import DatabaseError
        api_client.force_authenticate(user=applicant)

        with patch('farms.services.approval_workflow.Product.objects.bulk_create', side_effect=DatabaseError('boom')):
            response = api_client.post(self.url, self.payload(approved_request), format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['productsCreated'] == 0
        provisioned.refresh_from_db()
        assert provisioned.active is True


# =============================================================================
# QUERIES
# =============================================================================

class TestFarmerRequestList:
    """GET /api/get-farmer-requests/"""

    url = '/api/get-farmer-requests/'

    @pytest.fixture
    def requests_mix(self, farmer_request_factory):
        users = [Profile.objects.create(user_id=f'user_mix_{i}', email=f'mix{i}@example.com') for i in range(4)]
        farmer_request_factory(users[0], farm_name='Alpha')
        farmer_request_factory(users[1], farm_name='Bravo')
        farmer_request_factory(users[2], farm_name='Charlie', status='approved')
        farmer_request_factory(users[3], farm_name='Delta', status='rejected')

    def test_defaults_to_pending(self, api_client, admin_profile, requests_mix):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 2
        assert {r['status'] for r in response.data['requests']} == {'pending'}
        assert 'pagination' not in response.data

    def test_all_sorted_by_name(self, api_client, admin_profile, requests_mix):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'status': 'all', 'sortBy': 'farm_name', 'sortOrder': 'asc'})

        assert [r['farmName'] for r in response.data['requests']] == ['Alpha', 'Bravo', 'Charlie', 'Delta']

    def test_pagination_only_with_limit(self, api_client, admin_profile, requests_mix):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'status': 'all', 'limit': 3, 'offset': 0})

        assert response.data['count'] == 3
        assert response.data['pagination'] == {'total': 4, 'page': 1, 'limit': 3, 'hasMore': True}

    def test_invalid_params_reported_together(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'status': 'archived', 'limit': 500, 'sortBy': 'email'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert len(response.data['details']) == 3


class TestListingCatalog:

    def test_public_listing_hides_inactive(self, api_client, active_listing):
        Listing.objects.create(clerk_user_id='user_draft', name='Brouillon', active=False)

        response = api_client.get('/api/get-listings/')

        assert response.status_code == status.HTTP_200_OK
        assert [listing['id'] for listing in response.data['listings']] == [active_listing.id]

    def test_include_inactive(self, api_client, active_listing):
        Listing.objects.create(clerk_user_id='user_draft', name='Brouillon', active=False)

        response = api_client.get('/api/get-listings/', {'includeInactive': 'true'})

        assert response.data['count'] == 2

    def test_offset_without_limit_uses_default_window(self, api_client, settings):
        settings.LISTING_DEFAULT_WINDOW = 2
        for i in range(5):
            Listing.objects.create(clerk_user_id=f'user_l{i}', name=f'Ferme {i}', active=True)

        response = api_client.get('/api/get-listings/', {'offset': 1, 'sortBy': 'id', 'sortOrder': 'asc'})

        assert response.data['count'] == 2
        assert 'pagination' not in response.data

    def test_zero_offset_still_uses_default_window(self, api_client, settings):
        settings.LISTING_DEFAULT_WINDOW = 2
        for i in range(5):
            Listing.objects.create(clerk_user_id=f'user_l{i}', name=f'Ferme {i}', active=True)

        unbounded = api_client.get('/api/get-listings/')
        windowed = api_client.get('/api/get-listings/', {'offset': 0})

        assert unbounded.data['count'] == 5
        assert windowed.data['count'] == 2

    def test_invalid_limit(self, api_client):
        response = api_client.get('/api/get-listings/', {'limit': 0})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_listing_detail_shows_published_products(self, api_client, active_listing, tomatoes, product_factory):
        product_factory(active_listing, 'Secret', Decimal('1.00'), 'kg', is_published=False)

        response = api_client.get(f'/api/listings/{active_listing.id}/')

        assert response.status_code == status.HTTP_200_OK
        assert [p['name'] for p in response.data['listing']['products']] == ['Tomates']

    def test_draft_listing_visible_to_owner_only(self, api_client, farmer, active_listing, other_user):
        active_listing.active = False
        active_listing.save()

        assert api_client.get(f'/api/listings/{active_listing.id}/').status_code == status.HTTP_404_NOT_FOUND

        api_client.force_authenticate(user=other_user)
        assert api_client.get(f'/api/listings/{active_listing.id}/').status_code == status.HTTP_404_NOT_FOUND

        api_client.force_authenticate(user=farmer)
        assert api_client.get(f'/api/listings/{active_listing.id}/').status_code == status.HTTP_200_OK


class TestProductManagement:

    def test_owner_adds_product(self, api_client, farmer, active_listing):
        api_client.force_authenticate(user=farmer)

        response = api_client.post(
            f'/api/listings/{active_listing.id}/products/',
            {'name': 'Miel', 'price': '8.00', 'unit': 'pot', 'category': 'Épicerie'},
            format='json',
        )

        assert response.status_code == status.HTTP_201_CREATED
        product = Product.objects.get(pk=response.data['product']['id'])
        assert product.price == Decimal('8.00')
        assert product.is_published is True

    def test_other_user_cannot_add_product(self, api_client, other_user, active_listing):
        api_client.force_authenticate(user=other_user)

        response = api_client.post(f'/api/listings/{active_listing.id}/products/', {'name': 'Miel'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_owner_updates_stock_and_price(self, api_client, farmer, tomatoes):
        api_client.force_authenticate(user=farmer)

        response = api_client.patch(
            f'/api/products/{tomatoes.id}/',
            {'stockStatus': 'out_of_stock', 'price': '4.20'},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        tomatoes.refresh_from_db()
        assert tomatoes.stock_status == 'out_of_stock'
        assert tomatoes.price == Decimal('4.20')
        assert tomatoes.name == 'Tomates'

    def test_negative_price_rejected(self, api_client, farmer, tomatoes):
        api_client.force_authenticate(user=farmer)

        response = api_client.patch(f'/api/products/{tomatoes.id}/', {'price': '-2'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
