"""
Bearer token authentication against identity-provider session tokens.

The token's ``sub`` claim is the stable user identifier. The signature is
verified against CLERK_JWT_PUBLIC_KEY. Without a key, claims are only read
as-is when CLERK_ALLOW_UNVERIFIED_TOKENS is on (local development); every
token is refused otherwise.
"""
import logging

import jwt
from django.conf import settings
from django.db import IntegrityError
from rest_framework.authentication import BaseAuthentication, get_authorization_header

from core.exceptions import Unauthenticated
from .models import Profile

logger = logging.getLogger(__name__)


def decode_session_token(token):
    """Return the claims of a session token, or raise Unauthenticated."""
    public_key = getattr(settings, 'CLERK_JWT_PUBLIC_KEY', '')
    if not public_key and not getattr(settings, 'CLERK_ALLOW_UNVERIFIED_TOKENS', False):
        logger.error("CLERK_JWT_PUBLIC_KEY is not configured; refusing unverified session token")
        raise Unauthenticated('Session token verification is not configured')
    try:
        if public_key:
            return jwt.decode(
                token,
                public_key,
                algorithms=getattr(settings, 'CLERK_JWT_ALGORITHMS', ['RS256']),
                options={'verify_aud': False},
            )
        return jwt.decode(token, options={'verify_signature': False})
    except jwt.ExpiredSignatureError:
        raise Unauthenticated('Session token has expired')
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected session token: {e}")
        raise Unauthenticated('Invalid session token')


class BearerTokenAuthentication(BaseAuthentication):
    keyword = 'Bearer'

    def authenticate(self, request):
        auth = get_authorization_header(request).split()

        if not auth or auth[0].lower() != self.keyword.lower().encode():
            return None

        if len(auth) != 2:
            raise Unauthenticated('Invalid authorization header')

        try:
            token = auth[1].decode()
        except UnicodeError:
            raise Unauthenticated('Invalid authorization header')

        claims = decode_session_token(token)
        user_id = claims.get('sub')
        if not user_id or not isinstance(user_id, str):
            raise Unauthenticated('Session token has no subject')

        profile = self.get_profile(user_id, claims.get('email') or '')
        return (profile, claims)

    def get_profile(self, user_id, email):
        try:
            profile, created = Profile.objects.get_or_create(
                user_id=user_id,
                defaults={'email': email.lower()},
            )
        except IntegrityError:
            # Concurrent first request for the same subject
            profile = Profile.objects.get(user_id=user_id)
            created = False

        if created:
            logger.info(f"Created profile for {user_id}")
        elif email and not profile.email:
            profile.email = email.lower()
            profile.save(update_fields=['email', 'updated_at'])
        return profile

    def authenticate_header(self, request):
        return self.keyword
