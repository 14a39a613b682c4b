from typing import Iterable, Sequence

from rest_framework.permissions import BasePermission

ALL_OPERATOR_ROLES = (
    "operator_support",
    "operator_finance",
    "operator_admin",
)
FINANCE_ROLES = ("operator_finance", "operator_admin")
SUPPORT_ROLES = ("operator_support", "operator_admin")


class IsOperator(BasePermission):
    """
    Allows access only to authenticated staff users.
    """

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and user.is_staff)


class HasOperatorRole(BasePermission):
    """
    Staff users who belong to at least one of ``required_roles`` (auth groups).
    """

    required_roles: Sequence[str] = ()

    def has_permission(self, request, view):
        if not IsOperator().has_permission(request, view) or not self.required_roles:
            return False
        return request.user.groups.filter(name__in=self.required_roles).exists()

    @classmethod
    def with_roles(cls, roles: Iterable[str]):
        """Build a permission class with baked-in required roles."""
        role_tuple = tuple(roles)

        class _HasOperatorRole(cls):
            required_roles = role_tuple

        _HasOperatorRole.__name__ = f"{cls.__name__}WithRoles"
        return _HasOperatorRole
