import uuid
from typing import Optional

from fastapi import APIRouter, Depends, status
import structlog

from control_tower.middleware.authorization import require_member, require_owner
from control_tower.models.disbursement import Disbursement
from control_tower.schemas.common import ListResponse
from control_tower.schemas.disbursement import (
    BatchPayoutResponse,
    DisbursementCreate,
    DisbursementResponse,
    DisbursementStatusUpdate,
)
from control_tower.services.financial_service import (
    FinancialService,
    get_financial_service,
)

logger = structlog.get_logger()
router = APIRouter()


def disbursement_to_response(
    d: Disbursement, recipient_name: Optional[str] = None
) -> DisbursementResponse:
    return DisbursementResponse(
        id=str(d.id),
        project_id=str(d.project_id),
        fund_request_id=str(d.fund_request_id) if d.fund_request_id else None,
        recipient_id=str(d.recipient_id) if d.recipient_id else None,
        amount=d.amount,
        category=d.category,
        status=d.status,
        description=d.description,
        created_at=d.created_at.isoformat() if d.created_at else "",
        paid_at=d.paid_at.isoformat() if d.paid_at else None,
        recipient_name=recipient_name,
    )


@router.get("", response_model=ListResponse[DisbursementResponse])
async def list_disbursements(
    project_id: uuid.UUID,
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    rows = await service.list_disbursements(project_id)
    return ListResponse(
        data=[disbursement_to_response(r.disbursement, r.recipient_name) for r in rows]
    )


@router.post("", response_model=DisbursementResponse, status_code=status.HTTP_201_CREATED)
async def schedule_disbursement(
    project_id: uuid.UUID,
    body: DisbursementCreate,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    disbursement = await service.schedule_disbursement(
        project_id,
        current_user["user_id"],
        body.amount,
        category=body.category,
        description=body.description,
        recipient_id=body.recipient_id,
    )
    return disbursement_to_response(disbursement)


@router.patch("/{disbursement_id}/status", response_model=DisbursementResponse)
async def update_disbursement_status(
    project_id: uuid.UUID,
    disbursement_id: uuid.UUID,
    body: DisbursementStatusUpdate,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    disbursement = await service.update_disbursement_status(
        project_id, disbursement_id, body.status, current_user["user_id"]
    )
    return disbursement_to_response(disbursement)


@router.post("/approve-all", response_model=BatchPayoutResponse)
async def approve_all_pending(
    project_id: uuid.UUID,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    payout = await service.approve_all_pending(project_id, current_user["user_id"])
    return BatchPayoutResponse(
        count=payout.count,
        paid_at=payout.paid_at,
        disbursement_ids=[str(i) for i in payout.disbursement_ids],
    )
