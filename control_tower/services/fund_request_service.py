"""
Fund request workflow: pending → approved | rejected.

Both outcomes are terminal. Every transition is a conditional UPDATE on
status = 'pending', which is the only concurrency guard: of two racing
reviewers exactly one matches a row, the other gets Conflict.

All functions use the caller's session (no commit).
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
import structlog

from control_tower.exceptions import Conflict, NotFound, ValidationError
from control_tower.models.audit_log import AuditAction
from control_tower.models.disbursement import Disbursement
from control_tower.models.fund_request import FUND_REQUEST_STATUSES, FundRequest
from control_tower.models.user import User
from control_tower.services import ledger_store
from control_tower.services.audit_service import record_financial_event
from control_tower.services.money import Amount, require_positive

logger = structlog.get_logger()

DEFAULT_CATEGORY = "General"


@dataclass
class ApprovalOutcome:
    fund_request: FundRequest
    disbursement: Disbursement


@dataclass
class FundRequestRow:
    fund_request: FundRequest
    requester_name: Optional[str] = None
    approver_name: Optional[str] = None


async def _raise_missed_transition(
    session: AsyncSession, project_id: uuid.UUID, request_id: uuid.UUID
):
    """The guarded UPDATE matched nothing: tell missing apart from already resolved."""
    existing = await ledger_store.get_fund_request(session, request_id, project_id)
    if existing is None:
        raise NotFound("Fund request not found")
    raise Conflict(f"Fund request is already {existing.status}")


async def create_fund_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    requester_id: uuid.UUID,
    amount: Amount,
    category: Optional[str],
    justification: Optional[str],
) -> FundRequest:
    value = require_positive(amount, "amount")
    if not justification or not justification.strip():
        raise ValidationError("Justification is required")

    fund_request = await ledger_store.insert_fund_request(
        session,
        project_id=project_id,
        requester_id=requester_id,
        amount=value,
        category=(category or "").strip() or DEFAULT_CATEGORY,
        justification=justification.strip(),
    )

    logger.info(
        "fund_request_created",
        request_id=str(fund_request.id),
        project_id=str(project_id),
        amount=str(value),
    )
    return fund_request


async def approve_fund_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    approver_id: uuid.UUID,
    adjusted_amount: Optional[Amount] = None,
    note: Optional[str] = None,
) -> ApprovalOutcome:
    """
    Approve a pending request, open an approved disbursement for the final
    amount and record REQUEST_APPROVED. The three writes share the caller's
    transaction; any failure leaves the request pending.
    """
    final_amount = (
        require_positive(adjusted_amount, "adjusted_amount")
        if adjusted_amount is not None
        else FundRequest.amount
    )

    # The guarded UPDATE runs first so a losing racer fails before writing anything.
    flipped = await ledger_store.transition_fund_request(
        session,
        project_id=project_id,
        request_id=request_id,
        from_status="pending",
        to_status="approved",
        approver_id=approver_id,
        approved_amount=final_amount,
        reviewer_note=note,
        reviewed_at=datetime.utcnow(),
    )
    if not flipped:
        await _raise_missed_transition(session, project_id, request_id)

    fund_request = await ledger_store.get_fund_request(session, request_id, project_id)
    approved = Decimal(fund_request.approved_amount)

    disbursement = await ledger_store.insert_disbursement(
        session,
        project_id=project_id,
        amount=approved,
        status="approved",
        category=fund_request.category or DEFAULT_CATEGORY,
        description=fund_request.justification,
        fund_request_id=fund_request.id,
        recipient_id=fund_request.requester_id,
    )
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=approver_id,
        action=AuditAction.REQUEST_APPROVED,
        amount=approved,
        note=note or "Approved",
        ref_id=fund_request.id,
    )

    logger.info(
        "fund_request_approved",
        request_id=str(request_id),
        disbursement_id=str(disbursement.id),
        amount=str(approved),
        approver_id=str(approver_id),
    )
    return ApprovalOutcome(fund_request=fund_request, disbursement=disbursement)


async def reject_fund_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    approver_id: uuid.UUID,
    note: Optional[str] = None,
) -> FundRequest:
    flipped = await ledger_store.transition_fund_request(
        session,
        project_id=project_id,
        request_id=request_id,
        from_status="pending",
        to_status="rejected",
        approver_id=approver_id,
        reviewer_note=note,
        reviewed_at=datetime.utcnow(),
    )
    if not flipped:
        await _raise_missed_transition(session, project_id, request_id)

    fund_request = await ledger_store.get_fund_request(session, request_id, project_id)
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=approver_id,
        action=AuditAction.REQUEST_REJECTED,
        amount=Decimal(fund_request.amount),
        note=note or "Rejected",
        ref_id=fund_request.id,
    )

    logger.info(
        "fund_request_rejected",
        request_id=str(request_id),
        approver_id=str(approver_id),
    )
    return fund_request


async def list_fund_requests(
    session: AsyncSession,
    project_id: uuid.UUID,
    status: Optional[str] = None,
) -> list[FundRequestRow]:
    """Newest-first, with requester and approver usernames."""
    if status is not None and status not in FUND_REQUEST_STATUSES:
        raise ValidationError(
            f"status must be one of: {', '.join(FUND_REQUEST_STATUSES)}"
        )

    requester = aliased(User)
    approver = aliased(User)
    q = (
        select(FundRequest, requester.username, approver.username)
        .outerjoin(requester, FundRequest.requester_id == requester.id)
        .outerjoin(approver, FundRequest.approver_id == approver.id)
        .where(FundRequest.project_id == project_id)
    )
    if status is not None:
        q = q.where(FundRequest.status == status)

    result = await session.execute(q.order_by(FundRequest.created_at.desc()))
    return [
        FundRequestRow(fund_request=row[0], requester_name=row[1], approver_name=row[2])
        for row in result.all()
    ]
