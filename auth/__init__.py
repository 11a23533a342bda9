# Bearer-token authentication and role checks for the API routes

from auth.roles import (
    UserType,
    Permission,
    ROLE_PERMISSIONS,
    get_permissions_for_role,
    has_permission,
    has_any_permission,
)

from auth.decorators import (
    AuthError,
    require_user_type,
    require_permission,
    require_admin,
)

from auth.dependencies import (
    create_access_token,
    get_current_user,
)

__all__ = [
    "UserType",
    "Permission",
    "ROLE_PERMISSIONS",
    "get_permissions_for_role",
    "has_permission",
    "has_any_permission",

    "AuthError",
    "require_user_type",
    "require_permission",
    "require_admin",
    "create_access_token",
    "get_current_user",
]
