"""
User Directory Service

Admin-side listing of profiles and marketplace role changes. A role change
is written to the identity provider first, then mirrored on the profile.
"""
import logging

from django.conf import settings
from django.db import DatabaseError
from django.db.models import Q

from accounts.models import Profile
from core.exceptions import InternalError, NotFound, ValidationError
from core.pagination import paginate, parse_choice, parse_int
from .identity_provider import ClerkIdentityProvider, IdentityProviderError, IdentityUserNotFound

logger = logging.getLogger(__name__)


class UserDirectoryService:
    """Profiles directory and role administration"""

    ROLE_FILTERS = ['all'] + Profile.UserRole.values
    SORT_FIELDS = ['created_at', 'updated_at', 'email', 'role']
    SORT_ORDERS = ['asc', 'desc']
    SEARCH_MIN_LENGTH = 2

    def __init__(self, identity_provider=None):
        self.identity_provider = identity_provider or ClerkIdentityProvider()
        self.max_limit = getattr(settings, 'QUERY_MAX_LIMIT', 100)

    def list_users(self, params):
        """
        Query params: role, search, limit, offset, sortBy, sortOrder.

        Returns (profiles, pagination_or_None).
        """
        errors = []
        role = parse_choice(params, 'role', self.ROLE_FILTERS, 'all', errors)
        limit = parse_int(params, 'limit', errors, minimum=1, maximum=self.max_limit)
        offset = parse_int(params, 'offset', errors, minimum=0)
        sort_by = parse_choice(params, 'sortBy', self.SORT_FIELDS, 'created_at', errors)
        sort_order = parse_choice(params, 'sortOrder', self.SORT_ORDERS, 'desc', errors)
        search = (params.get('search') or '').strip()
        if search and len(search) < self.SEARCH_MIN_LENGTH:
            errors.append(f'search: must be at least {self.SEARCH_MIN_LENGTH} characters')
        if errors:
            raise ValidationError('Invalid query parameters', errors)

        queryset = Profile.objects.all()
        if role != 'all':
            queryset = queryset.filter(role=role)
        if search:
            queryset = queryset.filter(
                Q(email__icontains=search) |
                Q(first_name__icontains=search) |
                Q(last_name__icontains=search) |
                Q(user_id__icontains=search)
            )
        prefix = '-' if sort_order == 'desc' else ''
        queryset = queryset.order_by(f'{prefix}{sort_by}', f'{prefix}id')

        try:
            return paginate(queryset, limit, offset)
        except DatabaseError as e:
            logger.error(f"Failed to list users: {str(e)}")
            raise InternalError('Could not load users')

    def change_role(self, user_id, role, updated_by, reason=''):
        """
        Set a user's marketplace role.

        Returns (profile, previous_role). When the identity provider already
        holds the requested role nothing is written.
        """
        try:
            identity_user = self.identity_provider.get_user(user_id)
        except IdentityUserNotFound:
            raise NotFound(f'User {user_id} not found')
        except IdentityProviderError as e:
            logger.error(f"Could not read identity provider user {user_id}: {str(e)}")
            raise InternalError('Could not read the user from the identity provider')

        profile = Profile.objects.filter(user_id=user_id).first()
        metadata = identity_user.get('public_metadata') or {}
        previous_role = metadata.get('role') or (profile.role if profile else Profile.UserRole.USER)

        if previous_role == role and profile is not None and profile.role == role:
            logger.info(f"User {user_id} already has role {role}")
            return profile, previous_role

        try:
            self.identity_provider.update_role(user_id, role, updated_by=updated_by, reason=reason or None)
        except IdentityUserNotFound:
            raise NotFound(f'User {user_id} not found')
        except IdentityProviderError as e:
            logger.error(f"Role update for {user_id} rejected by the identity provider: {str(e)}")
            raise InternalError('Could not update the role in the identity provider')

        try:
            profile, _ = Profile.objects.update_or_create(
                user_id=user_id,
                defaults={'role': role},
            )
        except DatabaseError as e:
            logger.error(f"Role for {user_id} set in the identity provider but not locally: {str(e)}")
            raise InternalError('Could not update the user profile')

        logger.info(
            f"Role change: {user_id} {previous_role} -> {role} by {updated_by}"
            + (f" ({reason})" if reason else '')
        )
        return profile, previous_role
