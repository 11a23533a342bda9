# Who may do what in the escrow workflow, keyed by account type

from enum import Enum
from typing import List, Set


class UserType(str, Enum):
    """Account types."""
    BRAND = "brand"
    CREATOR = "creator"
    ADMIN = "admin"


class Permission(str, Enum):
    """Actions gated per account type."""

    # Paying side
    MANAGE_PAYMENT_METHODS = "manage_payment_methods"
    PAY_CONTRACTS = "pay_contracts"
    MANAGE_CONTRACTS = "manage_contracts"

    # Earning side
    VIEW_OWN_BALANCE = "view_own_balance"
    WITHDRAW_FUNDS = "withdraw_funds"

    # Either party on a contract
    VIEW_CONTRACTS = "view_contracts"
    LEAVE_REVIEWS = "leave_reviews"
    RAISE_DISPUTES = "raise_disputes"

    # Operations staff
    RESOLVE_DISPUTES = "resolve_disputes"
    MANAGE_PAYOUTS = "manage_payouts"
    VIEW_AUDIT_LOGS = "view_audit_logs"


ROLE_PERMISSIONS: dict[UserType, Set[Permission]] = {
    UserType.BRAND: {
        Permission.MANAGE_PAYMENT_METHODS,
        Permission.PAY_CONTRACTS,
        Permission.MANAGE_CONTRACTS,
        Permission.VIEW_CONTRACTS,
        Permission.LEAVE_REVIEWS,
        Permission.RAISE_DISPUTES,
    },

    UserType.CREATOR: {
        Permission.VIEW_OWN_BALANCE,
        Permission.WITHDRAW_FUNDS,
        Permission.VIEW_CONTRACTS,
        Permission.LEAVE_REVIEWS,
        Permission.RAISE_DISPUTES,
    },

    UserType.ADMIN: {
        *Permission.__members__.values()
    },
}


def get_permissions_for_role(user_type: UserType) -> Set[Permission]:
    """Permission set granted to an account type; empty for unknown types."""
    return ROLE_PERMISSIONS.get(user_type, set())


def has_permission(user_type: UserType, permission: Permission) -> bool:
    return permission in get_permissions_for_role(user_type)


def has_any_permission(user_type: UserType, permissions: List[Permission]) -> bool:
    """True when at least one of `permissions` is granted."""
    user_permissions = get_permissions_for_role(user_type)
    return any(p in user_permissions for p in permissions)
