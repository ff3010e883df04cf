"""
Tests for caller identity, roles and the identity provider adapter
"""
import pytest
import jwt
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from io import StringIO
from unittest.mock import Mock, patch
from django.core.management import call_command
from rest_framework import status

from accounts.models import Profile
from accounts.services.identity_provider import (
    ClerkIdentityProvider,
    IdentityProviderError,
    IdentityUserNotFound,
)

pytestmark = pytest.mark.django_db

UPDATE_ROLE = 'accounts.services.identity_provider.ClerkIdentityProvider.update_role'
GET_USER = 'accounts.services.identity_provider.ClerkIdentityProvider.get_user'


def bearer(claims):
    token = jwt.encode(claims, 'test-signing-key-for-unverified-session-tokens', algorithm='HS256')
    return f'Bearer {token}'


class TestBearerAuthentication:
    """Session token handling on API requests."""

    def test_missing_token_is_unauthenticated(self, api_client):
        response = api_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['success'] is False
        assert response.data['error'] == 'unauthenticated'
        assert response['WWW-Authenticate'] == 'Bearer'

    def test_garbage_token_is_unauthenticated(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION='Bearer not-a-jwt')

        response = api_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['error'] == 'unauthenticated'

    def test_token_without_subject_is_rejected(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION=bearer({'email': 'x@example.com'}))

        response = api_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_first_request_creates_profile(self, api_client):
        api_client.credentials(HTTP_AUTHORIZATION=bearer({'sub': 'user_new_42', 'email': 'New@Example.com'}))

        response = api_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['userId'] == 'user_new_42'
        assert response.data['role'] == 'user'
        profile = Profile.objects.get(user_id='user_new_42')
        assert profile.email == 'new@example.com'

    def test_existing_profile_is_reused(self, api_client, farmer):
        api_client.credentials(HTTP_AUTHORIZATION=bearer({'sub': farmer.user_id}))

        response = api_client.get('/api/auth/me/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['role'] == 'farmer'
        assert Profile.objects.filter(user_id=farmer.user_id).count() == 1


@pytest.fixture(scope='module')
def signing_keys():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_key, public_pem


class TestSessionTokenVerification:
    """Signature checks on session tokens."""

    url = '/api/get-farmer-requests/'

    def test_unverified_tokens_refused_when_not_allowed(self, api_client, settings, admin_profile):
        settings.CLERK_ALLOW_UNVERIFIED_TOKENS = False
        forged = jwt.encode({'sub': admin_profile.user_id}, 'attacker-secret', algorithm='HS256')
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {forged}')

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.data['error'] == 'unauthenticated'

    def test_token_signed_by_identity_provider_accepted(self, api_client, settings, signing_keys, admin_profile):
        private_key, public_pem = signing_keys
        settings.CLERK_JWT_PUBLIC_KEY = public_pem
        settings.CLERK_ALLOW_UNVERIFIED_TOKENS = False
        token = jwt.encode({'sub': admin_profile.user_id}, private_key, algorithm='RS256')
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK

    def test_token_signed_by_another_key_rejected(self, api_client, settings, signing_keys, admin_profile):
        settings.CLERK_JWT_PUBLIC_KEY = signing_keys[1]
        other_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        forged = jwt.encode({'sub': admin_profile.user_id}, other_key, algorithm='RS256')
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {forged}')

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_hmac_token_rejected_when_key_configured(self, api_client, settings, signing_keys, admin_profile):
        settings.CLERK_JWT_PUBLIC_KEY = signing_keys[1]
        forged = jwt.encode({'sub': admin_profile.user_id}, 'attacker-secret', algorithm='HS256')
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {forged}')

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestCurrentProfile:
    """GET/PATCH /api/auth/me/"""

    def test_profile_update_cannot_change_role(self, api_client, consumer):
        api_client.force_authenticate(user=consumer)

        response = api_client.patch('/api/auth/me/', {'firstName': 'Chloé', 'role': 'admin'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        consumer.refresh_from_db()
        assert consumer.first_name == 'Chloé'
        assert consumer.role == 'user'

    def test_listing_id_is_exposed(self, api_client, farmer, active_listing):
        api_client.force_authenticate(user=farmer)

        response = api_client.get('/api/auth/me/')

        assert response.data['listingId'] == active_listing.id


class TestAdminPermission:

    def test_non_admin_cannot_list_requests(self, api_client, consumer):
        api_client.force_authenticate(user=consumer)

        response = api_client.get('/api/get-farmer-requests/')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['error'] == 'forbidden'

    def test_admin_can_list_requests(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get('/api/get-farmer-requests/')

        assert response.status_code == status.HTTP_200_OK


class TestUserDirectory:
    """GET /api/auth/users/"""

    url = '/api/auth/users/'

    def test_requires_admin_role(self, api_client, consumer):
        api_client.force_authenticate(user=consumer)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_lists_every_role_by_default(self, api_client, admin_profile, consumer, farmer):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['success'] is True
        assert response.data['count'] == 3
        assert 'pagination' not in response.data
        assert {user['userId'] for user in response.data['users']} == {
            admin_profile.user_id, consumer.user_id, farmer.user_id,
        }

    def test_role_filter(self, api_client, admin_profile, consumer, farmer):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'role': 'farmer'})

        assert [user['userId'] for user in response.data['users']] == [farmer.user_id]
        assert response.data['message'] == '1 user(s) found with role farmer'

    def test_search_matches_email_and_name(self, api_client, admin_profile, applicant, consumer):
        api_client.force_authenticate(user=admin_profile)

        by_email = api_client.get(self.url, {'search': 'jean.dupont'})
        by_name = api_client.get(self.url, {'search': 'MARTIN'})

        assert [user['userId'] for user in by_email.data['users']] == [applicant.user_id]
        assert [user['userId'] for user in by_name.data['users']] == [consumer.user_id]

    def test_sort_by_email(self, api_client, admin_profile, consumer, farmer):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'sortBy': 'email', 'sortOrder': 'asc'})

        assert [user['email'] for user in response.data['users']] == [
            'admin@farmtofork.fr', 'consumer@example.com', 'farmer@example.com',
        ]

    def test_limit_returns_pagination(self, api_client, admin_profile, consumer, farmer):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'limit': 2, 'offset': 0, 'sortBy': 'email', 'sortOrder': 'asc'})

        assert response.data['count'] == 2
        assert response.data['pagination'] == {'total': 3, 'page': 1, 'limit': 2, 'hasMore': True}

    def test_invalid_parameters_reported_together(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.get(self.url, {'role': 'owner', 'sortBy': 'phone', 'limit': 500, 'search': 'x'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'
        paths = {detail.split(':')[0] for detail in response.data['details']}
        assert paths == {'role', 'sortBy', 'limit', 'search'}


class TestUpdateUserRole:
    """POST /api/auth/users/role/"""

    url = '/api/auth/users/role/'
    clerk_id = 'user_2NNEqL2nrIRdJ194ndJqAHwEfxC'

    @pytest.fixture
    def member(self, db):
        return Profile.objects.create(user_id=self.clerk_id, email='membre@example.com')

    def test_requires_admin_role(self, api_client, consumer, member):
        api_client.force_authenticate(user=consumer)

        response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'admin'}, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        member.refresh_from_db()
        assert member.role == 'user'

    def test_role_change_updates_identity_and_profile(self, api_client, admin_profile, member):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE) as mock_update_role:
            response = api_client.post(
                self.url,
                {'userId': self.clerk_id, 'role': 'farmer', 'reason': 'Producteur vérifié'},
                format='json',
            )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message'] == 'Role updated from user to farmer'
        assert response.data['updatedUser']['id'] == self.clerk_id
        assert response.data['updatedUser']['role'] == 'farmer'
        mock_update_role.assert_called_once_with(
            self.clerk_id, 'farmer', updated_by=admin_profile.user_id, reason='Producteur vérifié',
        )
        member.refresh_from_db()
        assert member.role == 'farmer'

    def test_unknown_local_profile_is_created(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'admin'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert Profile.objects.get(user_id=self.clerk_id).role == 'admin'

    def test_same_role_is_a_no_op(self, api_client, admin_profile, member):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE) as mock_update_role:
            response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'user'}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['message'] == 'User already has role user'
        mock_update_role.assert_not_called()

    @pytest.mark.parametrize('body,field', [
        ({'userId': 'user_applicant_001', 'role': 'farmer'}, 'userId'),
        ({'userId': 'usr_2NNEqL2nrIRdJ194ndJqAHwEfxC', 'role': 'farmer'}, 'userId'),
        ({'userId': clerk_id, 'role': 'superadmin'}, 'role'),
        ({'userId': clerk_id, 'role': 'farmer', 'reason': 'x' * 501}, 'reason'),
        ({'role': 'farmer'}, 'userId'),
    ])
    def test_invalid_body_rejected(self, api_client, admin_profile, member, body, field):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE) as mock_update_role:
            response = api_client.post(self.url, body, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['error'] == 'validation_error'
        assert any(detail.startswith(field) for detail in response.data['details'])
        mock_update_role.assert_not_called()

    def test_unknown_identity_user_is_not_found(self, api_client, admin_profile):
        api_client.force_authenticate(user=admin_profile)

        with patch(GET_USER, side_effect=IdentityUserNotFound('gone')):
            response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'farmer'}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert not Profile.objects.filter(user_id=self.clerk_id).exists()

    def test_identity_failure_leaves_profile_unchanged(self, api_client, admin_profile, member):
        api_client.force_authenticate(user=admin_profile)

        with patch(UPDATE_ROLE, side_effect=IdentityProviderError('down')):
            response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'farmer'}, format='json')

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.data['error'] == 'internal_error'
        member.refresh_from_db()
        assert member.role == 'user'

    def test_current_role_read_from_identity_provider(self, api_client, admin_profile, member):
        api_client.force_authenticate(user=admin_profile)
        identity_user = {'id': self.clerk_id, 'public_metadata': {'role': 'farmer'}}

        with patch(GET_USER, return_value=identity_user), patch(UPDATE_ROLE):
            response = api_client.post(self.url, {'userId': self.clerk_id, 'role': 'user'}, format='json')

        assert response.data['message'] == 'Role updated from farmer to user'


class TestClerkIdentityProvider:
    """Identity provider adapter against a mocked Clerk API."""

    @pytest.fixture
    def provider(self, settings):
        settings.CLERK_SECRET_KEY = 'sk_test_123'
        settings.CLERK_API_URL = 'https://api.clerk.test/v1'
        return ClerkIdentityProvider()

    def test_simulated_without_secret_key(self):
        with patch('accounts.services.identity_provider.requests.request') as mock_request:
            result = ClerkIdentityProvider().update_role('user_1', 'farmer')

        mock_request.assert_not_called()
        assert result['simulated'] is True
        assert result['public_metadata']['role'] == 'farmer'

    def test_update_role_patches_public_metadata(self, provider):
        response = Mock(status_code=200, content=b'{"id": "user_1"}')
        response.json.return_value = {'id': 'user_1'}

        with patch('accounts.services.identity_provider.requests.request', return_value=response) as mock_request:
            provider.update_role('user_1', 'farmer', updated_by='user_admin', reason='Dossier complet')

        method, url = mock_request.call_args[0]
        payload = mock_request.call_args[1]['json']
        assert method == 'PATCH'
        assert url == 'https://api.clerk.test/v1/users/user_1/metadata'
        assert payload['public_metadata']['role'] == 'farmer'
        assert payload['public_metadata']['roleUpdatedBy'] == 'user_admin'
        assert payload['public_metadata']['roleChangeReason'] == 'Dossier complet'
        assert mock_request.call_args[1]['headers']['Authorization'] == 'Bearer sk_test_123'

    def test_unknown_user_raises_not_found(self, provider):
        response = Mock(status_code=404, content=b'')

        with patch('accounts.services.identity_provider.requests.request', return_value=response):
            with pytest.raises(IdentityUserNotFound):
                provider.update_role('user_missing', 'farmer')

    def test_server_error_raises_provider_error(self, provider):
        response = Mock(status_code=500, content=b'{"errors": [{"message": "boom"}]}')
        response.json.return_value = {'errors': [{'message': 'boom'}]}

        with patch('accounts.services.identity_provider.requests.request', return_value=response):
            with pytest.raises(IdentityProviderError, match='boom'):
                provider.update_role('user_1', 'farmer')

    def test_html_gateway_error_raises_provider_error(self, provider):
        response = Mock(status_code=502, content=b'<html>Bad gateway</html>', text='<html>Bad gateway</html>')
        response.json.side_effect = ValueError('Expecting value')

        with patch('accounts.services.identity_provider.requests.request', return_value=response):
            with pytest.raises(IdentityProviderError, match='Bad gateway'):
                provider.update_role('user_1', 'farmer')

    def test_unreadable_success_body_raises_provider_error(self, provider):
        response = Mock(status_code=200, content=b'OK', text='OK')
        response.json.side_effect = ValueError('Expecting value')

        with patch('accounts.services.identity_provider.requests.request', return_value=response):
            with pytest.raises(IdentityProviderError):
                provider.get_user('user_1')

    def test_timeout_raises_provider_error(self, provider):
        with patch(
            'accounts.services.identity_provider.requests.request',
            side_effect=requests.exceptions.Timeout(),
        ):
            with pytest.raises(IdentityProviderError):
                provider.update_role('user_1', 'farmer')


class TestSetUserRoleCommand:

    def test_creates_admin_profile(self):
        out = StringIO()

        call_command('set_user_role', 'user_boot_admin', 'admin', '--email', 'Boss@Example.com', stdout=out)

        profile = Profile.objects.get(user_id='user_boot_admin')
        assert profile.role == 'admin'
        assert profile.email == 'boss@example.com'
        assert 'Created profile' in out.getvalue()

    def test_updates_existing_profile(self, consumer):
        call_command('set_user_role', consumer.user_id, 'farmer', stdout=StringIO())

        consumer.refresh_from_db()
        assert consumer.role == 'farmer'
