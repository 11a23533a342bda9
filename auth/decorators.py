# Route guards built on get_current_user

from fastapi import HTTPException, status, Depends

from database.models import User
from auth.roles import UserType, Permission, has_any_permission
from auth.dependencies import get_current_user


class AuthError(HTTPException):
    """Raised by the guards below; 403 unless told otherwise."""

    def __init__(self, detail: str, status_code: int = status.HTTP_403_FORBIDDEN):
        super().__init__(status_code=status_code, detail=detail)


def require_user_type(*allowed_types: UserType):
    """
    Let through only the listed account types. Admins always pass.

    Usage:
        @router.post("/contracts/{contract_id}/pay")
        async def pay(
            user: User = Depends(require_user_type(UserType.BRAND))
        ):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        if user_type == UserType.ADMIN:
            return current_user

        if user_type not in allowed_types:
            allowed_names = ", ".join(t.value for t in allowed_types)
            raise AuthError(
                detail=f"This endpoint requires user type: {allowed_names}",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def require_permission(*permissions: Permission):
    """
    Let through accounts granted at least one of `permissions`.

    Usage:
        @router.post("/balance/withdrawals")
        async def withdraw(
            user: User = Depends(require_permission(Permission.WITHDRAW_FUNDS))
        ):
            ...
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        user_type = _get_user_type(current_user)

        if not has_any_permission(user_type, list(permissions)):
            raise AuthError(
                detail="You don't have permission to perform this action",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def require_admin():
    """Operations staff only."""
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if _get_user_type(current_user) != UserType.ADMIN:
            raise AuthError(
                detail="Admin access required",
                status_code=status.HTTP_403_FORBIDDEN
            )

        return current_user

    return dependency


def _get_user_type(user: User) -> UserType:
    val = user.user_type.value if hasattr(user.user_type, 'value') else user.user_type
    try:
        return UserType(str(val).lower())
    except ValueError:
        raise AuthError(detail="Unknown account type")
