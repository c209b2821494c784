"""
Fund request routes: any member may submit; only the project owner may
approve or reject.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
import structlog

from control_tower.middleware.authorization import require_member, require_owner
from control_tower.models.fund_request import FundRequest
from control_tower.routes.disbursements import disbursement_to_response
from control_tower.schemas.common import ListResponse
from control_tower.schemas.fund_request import (
    FundRequestApprovalResponse,
    FundRequestApprove,
    FundRequestCreate,
    FundRequestReject,
    FundRequestResponse,
)
from control_tower.services.financial_service import (
    FinancialService,
    get_financial_service,
)

logger = structlog.get_logger()
router = APIRouter()


def _to_response(
    fr: FundRequest,
    requester_name: Optional[str] = None,
    approver_name: Optional[str] = None,
) -> FundRequestResponse:
    return FundRequestResponse(
        id=str(fr.id),
        project_id=str(fr.project_id),
        requester_id=str(fr.requester_id),
        amount=fr.amount,
        category=fr.category,
        justification=fr.justification,
        status=fr.status,
        approver_id=str(fr.approver_id) if fr.approver_id else None,
        approved_amount=fr.approved_amount,
        reviewer_note=fr.reviewer_note,
        created_at=fr.created_at.isoformat() if fr.created_at else "",
        reviewed_at=fr.reviewed_at.isoformat() if fr.reviewed_at else None,
        requester_name=requester_name,
        approver_name=approver_name,
    )


@router.get("", response_model=ListResponse[FundRequestResponse])
async def list_fund_requests(
    project_id: uuid.UUID,
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    rows = await service.list_fund_requests(project_id, status_filter)
    return ListResponse(
        data=[
            _to_response(r.fund_request, r.requester_name, r.approver_name)
            for r in rows
        ]
    )


@router.post("", response_model=FundRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_fund_request(
    project_id: uuid.UUID,
    body: FundRequestCreate,
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    fund_request = await service.create_fund_request(
        project_id,
        current_user["user_id"],
        body.amount,
        body.category,
        body.justification,
    )
    return _to_response(fund_request)


@router.patch("/{request_id}/approve", response_model=FundRequestApprovalResponse)
async def approve_fund_request(
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    body: Optional[FundRequestApprove] = None,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    # An absent body means no adjustment and no note.
    body = body or FundRequestApprove()
    outcome = await service.approve_fund_request(
        project_id,
        request_id,
        current_user["user_id"],
        adjusted_amount=body.adjusted_amount,
        note=body.note,
    )
    return FundRequestApprovalResponse(
        request=_to_response(outcome.fund_request),
        disbursement=disbursement_to_response(outcome.disbursement),
    )


@router.patch("/{request_id}/reject", response_model=FundRequestResponse)
async def reject_fund_request(
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    body: Optional[FundRequestReject] = None,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    body = body or FundRequestReject()
    fund_request = await service.reject_fund_request(
        project_id, request_id, current_user["user_id"], note=body.note
    )
    return _to_response(fund_request)
