# permissions/roles.py

"""
ROLES + WAREHOUSE ACCESS POLICY

Two layers live here:

1) Warehouse scope (the real security boundary for stock):
   - admin / manager: every warehouse
   - user: only the warehouse assigned on their account
   Pure predicates, no DB access. The transaction engine and query layer
   call these on every request.

2) Capabilities (what an authenticated actor may attempt at all):
   - DRF permission classes read them from the view.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
ROLE_ADMIN = "admin"
ROLE_MANAGER = "manager"
ROLE_USER = "user"

# Roles that are not bound to a single warehouse.
UNRESTRICTED_ROLES = {ROLE_ADMIN, ROLE_MANAGER}

STAFF_ROLES = {
    ROLE_ADMIN,
    ROLE_MANAGER,
    ROLE_USER,
}


# =========================================================
# CAPABILITIES
# =========================================================
CAP_INVENTORY_VIEW = "inventory.view"
CAP_INVENTORY_EDIT = "inventory.edit"          # inbound / outbound / bulk
CAP_INVENTORY_ADJUST = "inventory.adjust"      # absolute corrections
CAP_INVENTORY_TRANSFER = "inventory.transfer"  # cross-warehouse moves
CAP_WAREHOUSES_MANAGE = "warehouses.manage"

ALL_CAPABILITIES = {
    CAP_INVENTORY_VIEW,
    CAP_INVENTORY_EDIT,
    CAP_INVENTORY_ADJUST,
    CAP_INVENTORY_TRANSFER,
    CAP_WAREHOUSES_MANAGE,
}

ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_ADMIN: {
        *ALL_CAPABILITIES,
    },
    ROLE_MANAGER: {
        *ALL_CAPABILITIES,
    },
    ROLE_USER: {
        CAP_INVENTORY_VIEW,
        CAP_INVENTORY_EDIT,
        CAP_INVENTORY_ADJUST,
        # never transfer, never manage warehouses
    },
}


# =========================================================
# ACTOR
# =========================================================
@dataclass(frozen=True)
class Actor:
    """
    The identity performing an inventory operation.

    Derived from the authenticated user per request; never stored.
    """

    role: str
    warehouse_id: Optional[int] = None
    user_id: Optional[object] = None

    def __post_init__(self):
        if self.role not in STAFF_ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")

        if self.role == ROLE_USER and self.warehouse_id is None:
            raise ValueError("Actors with role 'user' must be assigned a warehouse")

        if self.role in UNRESTRICTED_ROLES and self.warehouse_id is not None:
            raise ValueError(f"Actors with role '{self.role}' are not warehouse-scoped")

    @property
    def is_unrestricted(self) -> bool:
        return self.role in UNRESTRICTED_ROLES


def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def actor_from_user(user) -> Optional[Actor]:
    """
    Build an Actor from an authenticated user.

    Returns None for anonymous users or accounts whose role/warehouse
    combination is not valid for inventory work.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return None

    role = get_user_role(user)
    warehouse_id = getattr(user, "warehouse_id", None)
    if role in UNRESTRICTED_ROLES:
        warehouse_id = None

    try:
        return Actor(role=role, warehouse_id=warehouse_id, user_id=getattr(user, "pk", None))
    except ValueError:
        return None


# =========================================================
# WAREHOUSE POLICY
# =========================================================
def _as_id(value):
    return getattr(value, "id", value)


def can_access_warehouse(actor: Actor, warehouse_id) -> bool:
    if actor is None:
        return False

    if actor.role in UNRESTRICTED_ROLES:
        return True

    if actor.role == ROLE_USER:
        target = _as_id(warehouse_id)
        if target is None:
            return False
        try:
            return int(target) == int(actor.warehouse_id)
        except (TypeError, ValueError):
            return False

    return False


def get_accessible_warehouses(actor: Actor, warehouses: Iterable) -> list:
    """Filter warehouses (objects or ids) down to the ones the actor may see."""
    return [w for w in (warehouses or []) if can_access_warehouse(actor, w)]


def can_transfer_between_warehouses(actor: Actor) -> bool:
    if actor is None:
        return False
    return CAP_INVENTORY_TRANSFER in ROLE_CAPABILITIES.get(actor.role, set())


def resolve_default_warehouse(actor: Actor, explicit=None):
    """
    Users are pinned to their own warehouse whatever the request says.
    Everyone else gets the explicit value (or None).
    """
    if actor is not None and actor.role == ROLE_USER:
        return actor.warehouse_id
    return _as_id(explicit) if explicit not in ("", None) else None


def capabilities_for(actor: Optional[Actor]) -> set[str]:
    if actor is None:
        return set()
    return set(ROLE_CAPABILITIES.get(actor.role, set()))


# =========================================================
# DRF PERMISSIONS
# =========================================================
class IsInventoryActor(BasePermission):
    """
    Authenticated user whose role/warehouse assignment is coherent.

    Misconfigured accounts (e.g. role=user without a warehouse) are denied
    rather than silently given an empty scope.
    """

    def has_permission(self, request, view):
        return actor_from_user(getattr(request, "user", None)) is not None


class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        view.required_capability = CAP_INVENTORY_EDIT
    """

    def has_permission(self, request, view):
        actor = actor_from_user(getattr(request, "user", None))
        if actor is None:
            return False

        required = getattr(view, "required_capability", None)
        if not required:
            # deny-by-default to avoid accidental open endpoints
            return False

        return required in capabilities_for(actor)


class HasAnyCapability(BasePermission):
    """
    Require ANY capability from a list.

    Usage:
        view.required_any_capabilities = {CAP_INVENTORY_VIEW, CAP_INVENTORY_EDIT}
    """

    def has_permission(self, request, view):
        actor = actor_from_user(getattr(request, "user", None))
        if actor is None:
            return False

        required = getattr(view, "required_any_capabilities", None)
        if not required:
            return False

        caps = capabilities_for(actor)
        return any(cap in caps for cap in set(required))
