# Overview: Default role -> permission mappings.
#
# Roles come from the identity collaborator as plain strings.
# Only the owner may cancel posted documents or make destructive stock changes.

from .helpers import get_all_permission_codes


_OWNER_ONLY = {"CANCEL_DOCUMENT", "ADJUST_STOCK_DESTRUCTIVE"}

DEFAULT_ROLE_PERMISSIONS = {
    "owner": set(get_all_permission_codes()),
    "admin": set(get_all_permission_codes()) - _OWNER_ONLY,
    "seller": {
        "VIEW_INVENTORY",
        "VIEW_DOCUMENTS",
        "CREATE_SALE",
        "POST_DOCUMENT",
        "VIEW_CASH",
        "RECORD_PAYMENT",
        "OPERATE_REGISTER",
        "CREATE_RETURN",
        "PROCESS_RETURN",
    },
    "technician": {
        "VIEW_INVENTORY",
        "VIEW_DOCUMENTS",
    },
}

KNOWN_ROLES = frozenset(DEFAULT_ROLE_PERMISSIONS)
