"""
Clerk Identity Provider Adapter.

Keeps the marketplace role in the identity provider's public metadata in
step with the local profile.

Clerk Backend API documentation:
https://clerk.com/docs/reference/backend-api
"""
import requests
import logging
from typing import Dict, Optional
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)


class IdentityProviderError(Exception):
    """The identity provider could not be reached or rejected the call."""


class IdentityUserNotFound(IdentityProviderError):
    """The identity provider has no user with the given id."""


class ClerkIdentityProvider:
    """
    Thin client over the Clerk Backend API.

    Without a secret key (local development, tests) calls are simulated
    and logged instead of sent.
    """

    def __init__(self):
        self.api_url = getattr(settings, 'CLERK_API_URL', 'https://api.clerk.com/v1').rstrip('/')
        self.secret_key = getattr(settings, 'CLERK_SECRET_KEY', '')
        self.timeout = getattr(settings, 'CLERK_API_TIMEOUT', 10)

        if not self.secret_key:
            logger.warning("Clerk credentials not configured. Identity provider calls will be simulated.")

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json',
        }

    def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Dict:
        url = f'{self.api_url}{path}'
        try:
            response = requests.request(
                method,
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.error(f"Timeout calling identity provider: {method} {path}")
            raise IdentityProviderError('Identity provider timeout')
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error calling identity provider: {method} {path}: {str(e)}")
            raise IdentityProviderError(f'Network error: {str(e)}')

        if response.status_code == 404:
            raise IdentityUserNotFound(f'Identity provider user not found ({path})')

        if response.status_code >= 400:
            try:
                error_data = response.json() if response.content else {}
                errors = error_data.get('errors') or [{}]
                error_message = errors[0].get('message', 'Unknown error')
            except (ValueError, AttributeError):
                # Gateways answer with HTML bodies
                error_message = response.text[:200] or 'Unknown error'
            logger.error(
                f"Identity provider rejected {method} {path}. "
                f"Status: {response.status_code}, Error: {error_message}"
            )
            raise IdentityProviderError(error_message)

        try:
            return response.json() if response.content else {}
        except ValueError:
            logger.error(f"Identity provider returned a non-JSON body for {method} {path}")
            raise IdentityProviderError('Identity provider returned an unreadable response')

    def get_user(self, user_id: str) -> Dict:
        """Fetch a user record (id, email_addresses, public_metadata...)."""
        if not self.enabled:
            return {'id': user_id, 'public_metadata': {}, 'simulated': True}
        return self._request('GET', f'/users/{user_id}')

    def update_role(
        self,
        user_id: str,
        role: str,
        updated_by: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> Dict:
        """
        Merge the role into the user's public metadata.

        Setting the same role twice leaves the user unchanged apart from the
        audit fields, so the call is safe to repeat.
        """
        metadata = {
            'role': role,
            'roleUpdatedAt': timezone.now().isoformat(),
            'roleUpdatedBy': updated_by or 'system',
        }
        if reason:
            metadata['roleChangeReason'] = reason

        if not self.enabled:
            logger.info(f"[SIMULATED] Identity provider role for {user_id} set to {role}")
            return {'id': user_id, 'public_metadata': metadata, 'simulated': True}

        data = self._request('PATCH', f'/users/{user_id}/metadata', {'public_metadata': metadata})
        logger.info(f"Identity provider role for {user_id} set to {role}")
        return data
