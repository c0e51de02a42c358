# Overview: Permission system package.
# Re-exports all public APIs.

from .categories import PermissionCategory
from .definitions import PERMISSION_DEFINITIONS
from .roles import DEFAULT_ROLE_PERMISSIONS, KNOWN_ROLES
from .helpers import get_all_permission_codes, role_has_permission

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "KNOWN_ROLES",
    "get_all_permission_codes",
    "role_has_permission",
]
