from rest_framework.permissions import BasePermission
from apps.domain.models import Profile


def user_role(user) -> str:
    if not user or not user.is_authenticated:
        return None
    if user.is_superuser:
        return Profile.ROLE_ADMIN
    profile = getattr(user, 'profile', None)
    return profile.role if profile else Profile.ROLE_CLIENT


def is_admin(user) -> bool:
    return user_role(user) == Profile.ROLE_ADMIN


class IsAdminRole(BasePermission):
    message = 'Admin access required'

    def has_permission(self, request, view):
        return is_admin(request.user)


class IsAdminOrReadOnly(BasePermission):
    message = 'Admin access required'

    def has_permission(self, request, view):
        if request.method in ('GET', 'HEAD', 'OPTIONS'):
            return bool(request.user and request.user.is_authenticated)
        return is_admin(request.user)
