"""
Role based permission classes.
"""
from rest_framework.permissions import BasePermission

from .models import User


class IsAdminRole(BasePermission):
    """Allow access only to platform administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == User.ROLE_ADMIN)


class IsPatientRole(BasePermission):
    """Allow access only to users with the patient role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == User.ROLE_PATIENT)


class IsHospitalRole(BasePermission):
    """Hospital operators bound to a hospital."""
    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        return bool(
            user and user.is_authenticated
            and getattr(user, "role", None) == User.ROLE_HOSPITAL
            and getattr(user, "hospital_id", None)
        )


class IsPatientOrAdmin(BasePermission):
    def has_permission(self, request, view) -> bool:
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in {User.ROLE_PATIENT, User.ROLE_ADMIN})
