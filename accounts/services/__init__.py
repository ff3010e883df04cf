"""
Account Services

Identity provider adapter and the admin user directory.
"""

from .identity_provider import ClerkIdentityProvider, IdentityProviderError, IdentityUserNotFound
from .user_directory import UserDirectoryService

__all__ = [
    'ClerkIdentityProvider',
    'IdentityProviderError',
    'IdentityUserNotFound',
    'UserDirectoryService',
]
