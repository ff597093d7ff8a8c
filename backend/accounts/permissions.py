# accounts/permissions.py
from rest_framework.permissions import BasePermission


class HasRole(BasePermission):
    """
    Allows access only to authenticated users whose role matches `role`.
    Keeps role check logic centralized.
    """
    role = None

    def has_permission(self, request, view):
        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return False
        return getattr(user, "role", None) == self.role


class IsDonor(HasRole):
    role = "donor"


class IsBeneficiary(HasRole):
    role = "beneficiary"


class IsVolunteer(HasRole):
    """Bearer credential must resolve to a volunteer identity."""
    role = "volunteer"
