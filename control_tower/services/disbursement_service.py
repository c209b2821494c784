"""
Disbursement ledger: money-movement records and their status machine.

    scheduled → approved → paid
    scheduled → cancelled
    approved  → cancelled

paid and cancelled are terminal. Like fund requests, each transition is a
single UPDATE guarded on the legal source statuses.

All functions use the caller's session (no commit).
"""

import uuid
from dataclasses import dataclass, field
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
from control_tower.models.user import User
from control_tower.services import ledger_store
from control_tower.services.audit_service import record_financial_event
from control_tower.services.money import Amount, require_positive

logger = structlog.get_logger()

# target status -> statuses it may be reached from
ALLOWED_SOURCES: dict[str, tuple[str, ...]] = {
    "approved": ("scheduled",),
    "paid": ("approved",),
    "cancelled": ("scheduled", "approved"),
}

BATCH_PAYABLE_STATUSES = ("approved", "scheduled")


@dataclass
class BatchPayout:
    count: int
    paid_at: datetime
    disbursement_ids: list[uuid.UUID] = field(default_factory=list)


@dataclass
class DisbursementRow:
    disbursement: Disbursement
    recipient_name: Optional[str] = None


async def schedule_disbursement(
    session: AsyncSession,
    project_id: uuid.UUID,
    actor_id: uuid.UUID,
    amount: Amount,
    category: Optional[str] = None,
    description: Optional[str] = None,
    recipient_id: Optional[uuid.UUID] = None,
) -> Disbursement:
    """Manual disbursement with no fund request behind it, created as scheduled."""
    value = require_positive(amount, "amount")
    if recipient_id is not None and not await ledger_store.user_exists(session, recipient_id):
        raise ValidationError("recipient_id does not match a known user")

    disbursement = await ledger_store.insert_disbursement(
        session,
        project_id=project_id,
        amount=value,
        status="scheduled",
        category=(category or "").strip() or "General",
        description=description,
        recipient_id=recipient_id,
    )
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=actor_id,
        action=AuditAction.DISBURSEMENT_SCHEDULED,
        amount=value,
        note=description or "Manual disbursement scheduled",
        ref_id=disbursement.id,
    )

    logger.info(
        "disbursement_scheduled",
        disbursement_id=str(disbursement.id),
        project_id=str(project_id),
        amount=str(value),
    )
    return disbursement


async def update_disbursement_status(
    session: AsyncSession,
    project_id: uuid.UUID,
    disbursement_id: uuid.UUID,
    new_status: str,
    actor_id: uuid.UUID,
) -> Disbursement:
    if new_status not in ALLOWED_SOURCES:
        raise ValidationError(
            f"Status must be one of: {', '.join(ALLOWED_SOURCES)}"
        )

    fields = {}
    if new_status == "paid":
        fields["paid_at"] = datetime.utcnow()

    flipped = await ledger_store.transition_disbursement(
        session,
        project_id=project_id,
        disbursement_id=disbursement_id,
        from_statuses=ALLOWED_SOURCES[new_status],
        to_status=new_status,
        **fields,
    )
    if not flipped:
        existing = await ledger_store.get_disbursement(session, disbursement_id, project_id)
        if existing is None:
            raise NotFound("Disbursement not found")
        raise Conflict(
            f"Cannot change disbursement from {existing.status} to {new_status}"
        )

    disbursement = await ledger_store.get_disbursement(session, disbursement_id, project_id)
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=actor_id,
        action=AuditAction(f"DISBURSEMENT_{new_status.upper()}"),
        amount=Decimal(disbursement.amount),
        note=f"Status changed to {new_status}",
        ref_id=disbursement.id,
    )

    logger.info(
        "disbursement_status_changed",
        disbursement_id=str(disbursement_id),
        status=new_status,
        actor_id=str(actor_id),
    )
    return disbursement


async def approve_all_pending(
    session: AsyncSession,
    project_id: uuid.UUID,
    actor_id: uuid.UUID,
) -> BatchPayout:
    """Pay every approved or scheduled disbursement of the project in one statement."""
    paid_at = datetime.utcnow()
    ids = await ledger_store.mark_disbursements_paid(
        session, project_id, BATCH_PAYABLE_STATUSES, paid_at
    )
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=actor_id,
        action=AuditAction.BATCH_PAYROLL_APPROVED,
        amount=Decimal("0"),
        note=f"Batch approved {len(ids)} disbursements",
    )

    logger.info(
        "disbursements_batch_paid",
        project_id=str(project_id),
        count=len(ids),
        actor_id=str(actor_id),
    )
    return BatchPayout(count=len(ids), paid_at=paid_at, disbursement_ids=ids)


async def list_disbursements(
    session: AsyncSession, project_id: uuid.UUID
) -> list[DisbursementRow]:
    recipient = aliased(User)
    result = await session.execute(
        select(Disbursement, recipient.username)
        .outerjoin(recipient, Disbursement.recipient_id == recipient.id)
        .where(Disbursement.project_id == project_id)
        .order_by(Disbursement.created_at.desc())
    )
    return [
        DisbursementRow(disbursement=row[0], recipient_name=row[1])
        for row in result.all()
    ]
