# Overview: Utility functions for permission lookups.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def role_has_permission(role, code):
    """Check a role string against the default role mappings."""
    from .roles import DEFAULT_ROLE_PERMISSIONS

    return code in DEFAULT_ROLE_PERMISSIONS.get(role, ())
