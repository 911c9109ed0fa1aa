"""
Security guards for role-based and participation-based access control.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from petwash.app.models.enums import UserRole
from petwash.app.core.dependencies import get_current_user
from petwash.app.core.exceptions import WalkAccessDeniedError


def require_role(allowed_roles: List[UserRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.post("/walks/{walk_id}/gps")
        async def record_gps(current_user: dict = Depends(require_role([UserRole.WALKER]))):
            ...

    Raises:
        HTTPException 403 if user role is not in allowed_roles
    """
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        user_role_str = current_user.get("role")

        if not user_role_str:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role information missing from token"
            )

        try:
            user_role = UserRole(user_role_str)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Invalid role in token"
            )

        if user_role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return current_user

    return role_checker


class WalkParticipantGuard:
    """
    Validates that the caller takes part in a walk.

    Admins see every walk; owners see walks of their pets; walkers see the
    walks they are assigned to.

    Usage:
        participant_guard = WalkParticipantGuard()
        participant_guard.enforce(walk, current_user)
        participant_guard.enforce(walk, current_user, walker_only=True)
    """

    def is_participant(self, walk, current_user: dict) -> bool:
        role = current_user.get("role")
        user_id = current_user.get("user_id")

        if role == UserRole.ADMIN.value:
            return True
        if role == UserRole.OWNER.value:
            return walk.owner_id == user_id
        if role == UserRole.WALKER.value:
            return walk.walker_id == user_id
        return False

    def enforce(self, walk, current_user: dict, walker_only: bool = False):
        """
        Raise WalkAccessDeniedError unless the caller takes part in the walk.

        With walker_only, only the assigned walker passes.
        """
        if walker_only:
            if current_user.get("user_id") != walk.walker_id:
                raise WalkAccessDeniedError(walk.id)
            return
        if not self.is_participant(walk, current_user):
            raise WalkAccessDeniedError(walk.id)
