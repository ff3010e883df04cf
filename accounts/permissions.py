"""
Role-based permissions for marketplace endpoints.
"""
from rest_framework import permissions


class IsAdminRole(permissions.BasePermission):
    """
    Platform administrators only (farmer request decisions and listing).
    """

    message = 'Administrator role required'

    def has_permission(self, request, view):
        return bool(
            request.user and
            request.user.is_authenticated and
            getattr(request.user, 'role', None) == 'admin'
        )
