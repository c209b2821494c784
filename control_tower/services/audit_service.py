"""Financial audit trail: append-only writes and newest-first reads."""

from typing import Optional, Union
from datetime import datetime
from decimal import Decimal
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased
import structlog

from control_tower.models.audit_log import AuditAction, FinancialAuditLog
from control_tower.models.user import User
from control_tower.services import ledger_store

logger = structlog.get_logger()


def _to_uuid(value, field_name: str, required: bool = False) -> Optional[uuid.UUID]:
    """None passes through for optional fields; anything else must parse."""
    if value is None:
        if required:
            raise ValueError(f"{field_name} is required")
        return None
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise ValueError(f"{field_name} must be a valid UUID")


async def record_financial_event(
    session: AsyncSession,
    project_id,
    actor_id,
    action: Union[AuditAction, str],
    amount: Decimal = Decimal("0"),
    note: Optional[str] = None,
    ref_id=None,
) -> FinancialAuditLog:
    """
    Append one audit entry.

    Uses session.flush(); the caller owns the transaction. A failure here
    propagates so the state change it describes is rolled back with it.
    """
    action = AuditAction(action)

    entry = FinancialAuditLog(
        project_id=_to_uuid(project_id, "project_id", required=True),
        actor_id=_to_uuid(actor_id, "actor_id"),
        action=action.value,
        amount=amount,
        note=note,
        ref_id=_to_uuid(ref_id, "ref_id"),
        created_at=datetime.utcnow(),
    )
    await ledger_store.append_audit(session, entry)

    logger.info(
        "financial_audit_recorded",
        action=action.value,
        project_id=str(project_id),
        ref_id=str(ref_id) if ref_id else None,
        amount=str(amount),
        actor_id=str(actor_id) if actor_id else None,
    )
    return entry


async def list_audit_log(
    session: AsyncSession, project_id: uuid.UUID, limit: int = 100
) -> list[tuple[FinancialAuditLog, Optional[str]]]:
    """Newest-first audit entries paired with the actor's username."""
    actor = aliased(User)
    result = await session.execute(
        select(FinancialAuditLog, actor.username)
        .outerjoin(actor, FinancialAuditLog.actor_id == actor.id)
        .where(FinancialAuditLog.project_id == project_id)
        .order_by(FinancialAuditLog.created_at.desc())
        .limit(limit)
    )
    return [(row[0], row[1]) for row in result.all()]
