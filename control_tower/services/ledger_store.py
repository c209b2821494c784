"""
Ledger store: query/update primitives for budgets, fund requests,
disbursements and audit rows.

All functions use the caller's session (no commit). The facade owns the
transaction. Status transitions are single conditional UPDATEs that carry
the expected current status in the WHERE clause; the return value says
whether a row matched, so a lost race is visible to the caller.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from control_tower.models.audit_log import FinancialAuditLog
from control_tower.models.budget import ProjectBudget
from control_tower.models.disbursement import Disbursement
from control_tower.models.fund_request import FundRequest
from control_tower.models.user import User

logger = structlog.get_logger()


# ---------- budgets ----------

async def get_budget(
    session: AsyncSession, project_id: uuid.UUID
) -> Optional[ProjectBudget]:
    result = await session.execute(
        select(ProjectBudget).where(ProjectBudget.project_id == project_id)
    )
    return result.scalar_one_or_none()


async def upsert_budget(
    session: AsyncSession,
    project_id: uuid.UUID,
    total_budget: Decimal,
    actor_id: uuid.UUID,
    default_currency: str,
) -> ProjectBudget:
    """Insert or update the single budget row. Currency is kept once set."""
    result = await session.execute(
        select(ProjectBudget)
        .where(ProjectBudget.project_id == project_id)
        .with_for_update()
    )
    budget = result.scalar_one_or_none()
    now = datetime.utcnow()

    if budget is None:
        budget = ProjectBudget(
            project_id=project_id,
            total_budget=total_budget,
            currency=default_currency,
            updated_by=actor_id,
            updated_at=now,
        )
        session.add(budget)
    else:
        budget.total_budget = total_budget
        budget.updated_by = actor_id
        budget.updated_at = now

    await session.flush()
    return budget


async def sum_disbursements(
    session: AsyncSession, project_id: uuid.UUID, statuses: Iterable[str]
) -> Decimal:
    result = await session.execute(
        select(func.coalesce(func.sum(Disbursement.amount), 0)).where(
            Disbursement.project_id == project_id,
            Disbursement.status.in_(list(statuses)),
        )
    )
    return Decimal(str(result.scalar() or 0))


async def pending_request_totals(
    session: AsyncSession, project_id: uuid.UUID
) -> tuple[int, Decimal]:
    """Returns (count, total amount) of fund requests still pending."""
    result = await session.execute(
        select(
            func.count(FundRequest.id),
            func.coalesce(func.sum(FundRequest.amount), 0),
        ).where(
            FundRequest.project_id == project_id,
            FundRequest.status == "pending",
        )
    )
    count, total = result.one()
    return int(count or 0), Decimal(str(total or 0))


# ---------- fund requests ----------

async def insert_fund_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    requester_id: uuid.UUID,
    amount: Decimal,
    category: str,
    justification: str,
) -> FundRequest:
    fund_request = FundRequest(
        project_id=project_id,
        requester_id=requester_id,
        amount=amount,
        category=category,
        justification=justification,
        status="pending",
        created_at=datetime.utcnow(),
    )
    session.add(fund_request)
    await session.flush()
    return fund_request


async def get_fund_request(
    session: AsyncSession,
    request_id: uuid.UUID,
    project_id: Optional[uuid.UUID] = None,
) -> Optional[FundRequest]:
    q = select(FundRequest).where(FundRequest.id == request_id)
    if project_id is not None:
        q = q.where(FundRequest.project_id == project_id)
    # Bulk UPDATEs bypass the identity map, so always reload.
    result = await session.execute(q.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def transition_fund_request(
    session: AsyncSession,
    project_id: uuid.UUID,
    request_id: uuid.UUID,
    from_status: str,
    to_status: str,
    **fields,
) -> bool:
    """UPDATE ... WHERE id = :id AND status = :from_status. True if a row flipped."""
    result = await session.execute(
        update(FundRequest)
        .where(
            FundRequest.id == request_id,
            FundRequest.project_id == project_id,
            FundRequest.status == from_status,
        )
        .values(status=to_status, **fields)
        .execution_options(synchronize_session=False)
    )
    matched = result.rowcount == 1
    if not matched:
        logger.info(
            "fund_request_transition_missed",
            request_id=str(request_id),
            from_status=from_status,
            to_status=to_status,
        )
    return matched


# ---------- users ----------

async def user_exists(session: AsyncSession, user_id: uuid.UUID) -> bool:
    result = await session.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


# ---------- disbursements ----------

async def insert_disbursement(
    session: AsyncSession,
    project_id: uuid.UUID,
    amount: Decimal,
    status: str,
    category: str,
    description: Optional[str] = None,
    fund_request_id: Optional[uuid.UUID] = None,
    recipient_id: Optional[uuid.UUID] = None,
) -> Disbursement:
    disbursement = Disbursement(
        project_id=project_id,
        fund_request_id=fund_request_id,
        recipient_id=recipient_id,
        amount=amount,
        category=category,
        status=status,
        description=description,
        created_at=datetime.utcnow(),
    )
    session.add(disbursement)
    await session.flush()
    return disbursement


async def get_disbursement(
    session: AsyncSession,
    disbursement_id: uuid.UUID,
    project_id: Optional[uuid.UUID] = None,
) -> Optional[Disbursement]:
    q = select(Disbursement).where(Disbursement.id == disbursement_id)
    if project_id is not None:
        q = q.where(Disbursement.project_id == project_id)
    result = await session.execute(q.execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def transition_disbursement(
    session: AsyncSession,
    project_id: uuid.UUID,
    disbursement_id: uuid.UUID,
    from_statuses: Iterable[str],
    to_status: str,
    **fields,
) -> bool:
    result = await session.execute(
        update(Disbursement)
        .where(
            Disbursement.id == disbursement_id,
            Disbursement.project_id == project_id,
            Disbursement.status.in_(list(from_statuses)),
        )
        .values(status=to_status, **fields)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def mark_disbursements_paid(
    session: AsyncSession,
    project_id: uuid.UUID,
    from_statuses: Iterable[str],
    paid_at: datetime,
) -> list[uuid.UUID]:
    """Flip every matching row to paid in one statement; returns the ids flipped."""
    result = await session.execute(
        update(Disbursement)
        .where(
            Disbursement.project_id == project_id,
            Disbursement.status.in_(list(from_statuses)),
        )
        .values(status="paid", paid_at=paid_at)
        .returning(Disbursement.id)
        .execution_options(synchronize_session=False)
    )
    return list(result.scalars().all())


async def paid_disbursements_since(
    session: AsyncSession,
    project_id: uuid.UUID,
    since: Optional[datetime] = None,
) -> list[tuple[datetime, Decimal]]:
    """(paid_at, amount) pairs for paid rows, oldest first."""
    q = select(Disbursement.paid_at, Disbursement.amount).where(
        Disbursement.project_id == project_id,
        Disbursement.status == "paid",
        Disbursement.paid_at.is_not(None),
    )
    if since is not None:
        q = q.where(Disbursement.paid_at >= since)
    result = await session.execute(q.order_by(Disbursement.paid_at))
    return [(row[0], Decimal(str(row[1]))) for row in result.all()]


# ---------- audit ----------

async def append_audit(
    session: AsyncSession, entry: FinancialAuditLog
) -> FinancialAuditLog:
    session.add(entry)
    await session.flush()
    return entry
