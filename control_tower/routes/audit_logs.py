import uuid

from fastapi import APIRouter, Depends, Query

from control_tower.config import settings
from control_tower.middleware.authorization import require_member
from control_tower.schemas.audit_log import AuditLogResponse
from control_tower.schemas.common import ListResponse
from control_tower.services.financial_service import (
    FinancialService,
    get_financial_service,
)

router = APIRouter()


@router.get("", response_model=ListResponse[AuditLogResponse])
async def list_audit_log(
    project_id: uuid.UUID,
    limit: int = Query(settings.AUDIT_LOG_DEFAULT_LIMIT, ge=1, le=settings.AUDIT_LOG_MAX_LIMIT),
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    rows = await service.get_audit_log(project_id, limit)

    items = [
        AuditLogResponse(
            id=str(log.id),
            project_id=str(log.project_id),
            actor_id=str(log.actor_id) if log.actor_id else None,
            actor_name=actor_name,
            action=log.action,
            amount=log.amount,
            note=log.note,
            ref_id=str(log.ref_id) if log.ref_id else None,
            created_at=log.created_at.isoformat() if log.created_at else "",
        )
        for log, actor_name in rows
    ]
    return ListResponse(data=items)
