"""
Portal session: who is acting.

A PortalSession is built once when a user logs in and is handed explicitly
to every service call. Roles are the auth groups staff users belong to.
"""
from dataclasses import dataclass, asdict

from django.core.exceptions import PermissionDenied
from django.db import models


class Role(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    MANAGER = 'manager', 'Manager'
    RECEPTIONIST = 'receptionist', 'Receptionist'
    WAITSTAFF = 'waitstaff', 'Waitstaff'
    KITCHEN = 'kitchen', 'Kitchen'
    CLEANING = 'cleaning', 'Cleaning'
    DELIVERY = 'delivery', 'Delivery'
    CUSTOMER = 'customer', 'Customer'


class PortalType(models.TextChoices):
    MANAGEMENT = 'management', 'Management'
    STAFF = 'staff', 'Staff'
    CUSTOMER = 'customer', 'Customer'


MANAGEMENT_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.RECEPTIONIST})

# Auth group name for each staff role, e.g. 'Kitchen'.
GROUP_NAMES = {role: role.label for role in Role if role != Role.CUSTOMER}


@dataclass(frozen=True)
class PortalSession:
    portal_type: str
    role: str
    user_id: int = None
    staff_id: int = None
    customer_id: int = None

    def has_role(self, *roles):
        return self.role in {str(role) for role in roles}

    def as_dict(self):
        return asdict(self)


def role_for_user(user):
    """Resolve a user's role from group membership. Superusers act as admin."""
    if user.is_superuser:
        return Role.ADMIN
    group_names = set(user.groups.values_list('name', flat=True))
    for role, group_name in GROUP_NAMES.items():
        if group_name in group_names:
            return role
    if hasattr(user, 'customer_profile'):
        return Role.CUSTOMER
    return None


def session_for_user(user):
    """Build the session for an authenticated user, or None if they have no role."""
    if user is None or not user.is_authenticated:
        return None

    role = role_for_user(user)
    if role is None:
        return None

    if role == Role.CUSTOMER:
        return PortalSession(
            portal_type=PortalType.CUSTOMER.value,
            role=role.value,
            user_id=user.id,
            customer_id=user.customer_profile.id,
        )

    staff = getattr(user, 'staff_profile', None)
    portal_type = PortalType.MANAGEMENT if role in MANAGEMENT_ROLES else PortalType.STAFF
    return PortalSession(
        portal_type=portal_type.value,
        role=role.value,
        user_id=user.id,
        staff_id=staff.id if staff is not None else None,
    )


def require_role(session, *roles):
    """Presence and role-membership check."""
    if session is None:
        raise PermissionDenied('No active portal session.')
    if roles and not session.has_role(*roles):
        raise PermissionDenied(f"Role '{session.role}' is not allowed to do this.")
    return session
