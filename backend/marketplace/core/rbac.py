"""Roles and permissions.

RBAC Matrix:
┌──────────────────────────┬───────┬────────┬──────────┐
│ Permission               │ Admin │ Vendor │ Customer │
├──────────────────────────┼───────┼────────┼──────────┤
│ inventory:read           │  ✓    │   ✓    │          │
│ inventory:create         │  ✓    │   ✓    │          │
│ inventory:update         │  ✓    │   ✓    │          │
│ inventory:adjust         │  ✓    │   ✓    │          │
│ inventory:delete         │  ✓    │        │          │
│ inventory:reserve        │  ✓    │   ✓    │    ✓     │
│ inventory:sweep          │  ✓    │        │          │
│ order:read               │  ✓    │   ✓    │    ✓     │
│ order:cancel             │  ✓    │        │    ✓     │
│ report:cancellations     │  ✓    │        │          │
│ commission:recalculate   │  ✓    │        │          │
│ payments:create          │  ✓    │        │    ✓     │
│ payments:confirm         │  ✓    │        │          │
└──────────────────────────┴───────┴────────┴──────────┘
"""

import enum


class PermissionAction(str, enum.Enum):
    # Inventory
    INVENTORY_READ = "inventory:read"
    INVENTORY_CREATE = "inventory:create"
    INVENTORY_UPDATE = "inventory:update"
    INVENTORY_ADJUST = "inventory:adjust"
    INVENTORY_DELETE = "inventory:delete"
    INVENTORY_RESERVE = "inventory:reserve"
    INVENTORY_SWEEP = "inventory:sweep"
    # Orders
    ORDER_READ = "order:read"
    ORDER_CANCEL = "order:cancel"
    # Reports
    REPORT_CANCELLATIONS = "report:cancellations"
    # Commissions
    COMMISSION_RECALCULATE = "commission:recalculate"
    # Payments
    PAYMENTS_CREATE = "payments:create"
    PAYMENTS_CONFIRM = "payments:confirm"


class RoleType(str, enum.Enum):
    ADMIN = "admin"
    VENDOR = "vendor"
    CUSTOMER = "customer"


ROLE_PERMISSIONS: dict[RoleType, list[PermissionAction]] = {
    RoleType.ADMIN: list(PermissionAction),  # All permissions
    RoleType.VENDOR: [
        PermissionAction.INVENTORY_READ,
        PermissionAction.INVENTORY_CREATE,
        PermissionAction.INVENTORY_UPDATE,
        PermissionAction.INVENTORY_ADJUST,
        PermissionAction.INVENTORY_RESERVE,
        PermissionAction.ORDER_READ,
    ],
    RoleType.CUSTOMER: [
        PermissionAction.INVENTORY_RESERVE,
        PermissionAction.ORDER_READ,
        PermissionAction.ORDER_CANCEL,
        PermissionAction.PAYMENTS_CREATE,
    ],
}


def permissions_for(role: str) -> list[str]:
    """Permission strings granted to a role name; unknown roles get none."""
    try:
        role_type = RoleType(role)
    except ValueError:
        return []
    return [p.value for p in ROLE_PERMISSIONS[role_type]]
