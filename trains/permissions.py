"""
Permissions for train management.
"""
from rest_framework.permissions import BasePermission


class IsAdminUser(BasePermission):
    """Allow access only to users flagged as admins."""
    message = 'Admin access required.'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and request.user.is_admin)
