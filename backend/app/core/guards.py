"""
Security guards for role-based and ownership-based access control.

Provides dependencies for protecting endpoints.
"""

from typing import List, Optional
from fastapi import Depends, HTTPException, status
from backend.app.models.enums import UserRole
from backend.app.core.dependencies import get_current_user


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/admin/add-money")
        async def add_money(current_user: dict = Depends(require_role([UserRole.ADMIN]))):
            ...

    Args:
        allowed_roles: List of UserRole enums that are allowed to access the endpoint

    Returns:
        FastAPI dependency function that validates user role

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        # Convert string role to UserRole enum
        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        # Check if user role is in allowed roles
        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


def verify_ownership(enrollment: Optional[str], current_user: dict) -> bool:
    """
    Verify that the current user may act on the account `enrollment`.

    Staff roles may act on any account; a USER only on the enrollment
    carried in their token.
    """
    if current_user.get("role") != UserRole.USER.value:
        return True
    return enrollment is not None and current_user.get("enrollment") == enrollment


class OwnershipGuard:
    """
    Class-based ownership guard for validating per-account access.

    Usage:
        ownership_guard.enforce(order.enrollment, current_user, "order")
    """

    def enforce(self, enrollment: Optional[str], current_user: dict, resource_name: str = "resource"):
        """
        Enforce ownership validation, raise 403 if access denied.
        """
        if not verify_ownership(enrollment, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. You do not have permission to access this {resource_name}."
            )

    def filter_by_ownership(self, current_user: dict) -> Optional[str]:
        """
        Get the enrollment to filter database queries by.

        Returns None for staff (no filtering), the token enrollment for USER.
        """
        if current_user.get("role") == UserRole.USER.value:
            return current_user.get("enrollment") or ""
        return None


ownership_guard = OwnershipGuard()


def require_enrollment(current_user: dict = Depends(require_role([UserRole.USER]))) -> str:
    """Dependency returning the wallet enrollment of a USER token."""
    enrollment = current_user.get("enrollment")
    if not enrollment:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token is not linked to a wallet account"
        )
    return enrollment
