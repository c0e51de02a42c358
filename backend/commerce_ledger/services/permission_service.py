# Overview: Actor identity and role-based authorization checks.

"""
Authorization for ledger operations.

Identity and store resolution happen outside this package; every call
receives an already-resolved Actor and this module only answers "may this
role do that". Fail closed: unknown roles have no permissions.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import Unauthorized
from ..permissions import KNOWN_ROLES, role_has_permission


@dataclass(frozen=True)
class Actor:
    """Resolved caller: who is acting, for which store, under which role."""
    actor_id: int
    store_id: int
    role: str


def user_has_permission(actor: Actor, permission_code: str) -> bool:
    if actor.role not in KNOWN_ROLES:
        return False
    return role_has_permission(actor.role, permission_code)


def require_permission(actor: Actor, permission_code: str) -> None:
    """
    Raise Unauthorized unless the actor's role grants permission_code.

    Called before any other validation so unprivileged callers learn nothing
    about the state of the target entity.
    """
    if not user_has_permission(actor, permission_code):
        raise Unauthorized(
            f"Role '{actor.role}' is not allowed to perform this action",
            details={"required_permission": permission_code},
        )
