import uuid

from fastapi import Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from control_tower.database import get_db
from control_tower.middleware.auth import get_current_user
from control_tower.models.user import ProjectMember

logger = structlog.get_logger()

OWNER_ROLE = "owner"


def require_project_role(*allowed_roles: str):
    """
    FastAPI dependency factory for project-scoped access control.

    With no roles, any member of the project passes. Returns the caller's
    claims with ``project_role`` added.

    Usage:
        @router.put("/budget")
        async def adjust_budget(
            project_id: uuid.UUID,
            current_user: dict = Depends(require_project_role("owner")),
        ):
    """
    async def check_role(
        project_id: uuid.UUID,
        current_user: dict = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> dict:
        result = await db.execute(
            select(ProjectMember.role).where(
                ProjectMember.project_id == project_id,
                ProjectMember.user_id == current_user["user_id"],
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            logger.warning(
                "project_access_denied",
                project_id=str(project_id),
                user_id=str(current_user["user_id"]),
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "NOT_A_PROJECT_MEMBER",
                        "message": "You are not a member of this project",
                    }
                },
            )
        if allowed_roles and role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "error": {
                        "code": "INSUFFICIENT_PERMISSIONS",
                        "message": "Only the project owner can perform this action",
                    }
                },
            )
        return {**current_user, "project_role": role}

    return check_role


require_member = require_project_role()
require_owner = require_project_role(OWNER_ROLE)
