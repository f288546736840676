"""Role based permission classes shared by the API apps."""

from __future__ import annotations

from rest_framework import permissions  # type: ignore


def is_platform_admin(user) -> bool:
    if not getattr(user, "is_authenticated", False):
        return False
    if getattr(user, "is_staff", False) or getattr(user, "is_superuser", False):
        return True
    return hasattr(user, "is_platform_admin") and user.is_platform_admin()


class IsPlatformAdmin(permissions.BasePermission):
    """Only platform administrators may access the endpoint."""

    def has_permission(self, request, view) -> bool:  # type: ignore
        return is_platform_admin(request.user)
