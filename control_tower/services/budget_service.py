"""
Budget service: project budget figure and the derived overview.

All functions use the caller's session (no commit). Used and remaining
amounts are always summed from the disbursement ledger at read time;
nothing here keeps a running counter.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from control_tower.config import settings
from control_tower.exceptions import NotConfigured
from control_tower.models.audit_log import AuditAction
from control_tower.models.budget import ProjectBudget
from control_tower.models.disbursement import COMMITTED_STATUSES
from control_tower.services import ledger_store
from control_tower.services.audit_service import record_financial_event
from control_tower.services.forecast_service import get_monthly_burn, runway_months
from control_tower.services.money import Amount, require_non_negative, round_whole

logger = structlog.get_logger()


@dataclass
class PendingRequests:
    count: int = 0
    total: Decimal = Decimal("0")


@dataclass
class BudgetOverview:
    currency: str
    total_budget: Decimal
    budget_used: Decimal
    remaining: Decimal
    used_percent: int
    monthly_burn: Decimal
    runway_months: Optional[int]
    pending_requests: PendingRequests = field(default_factory=PendingRequests)


def used_percent(budget_used: Decimal, total_budget: Decimal) -> int:
    if total_budget <= 0:
        return 0
    return round_whole(budget_used / total_budget * 100)


async def get_overview(
    session: AsyncSession,
    project_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> BudgetOverview:
    budget = await ledger_store.get_budget(session, project_id)
    if budget is None:
        raise NotConfigured("No budget configured for this project")

    total = Decimal(budget.total_budget)
    used = await ledger_store.sum_disbursements(session, project_id, COMMITTED_STATUSES)
    # Overspend is reported, not blocked: remaining may go negative.
    remaining = total - used

    burn = await get_monthly_burn(session, project_id, now=now)
    pending_count, pending_total = await ledger_store.pending_request_totals(
        session, project_id
    )

    return BudgetOverview(
        currency=budget.currency,
        total_budget=total,
        budget_used=used,
        remaining=remaining,
        used_percent=used_percent(used, total),
        monthly_burn=burn,
        runway_months=runway_months(remaining, burn),
        pending_requests=PendingRequests(count=pending_count, total=pending_total),
    )


async def adjust_budget(
    session: AsyncSession,
    project_id: uuid.UUID,
    new_total: Amount,
    reason: Optional[str],
    actor_id: uuid.UUID,
) -> ProjectBudget:
    """Set the project's total budget and record BUDGET_ADJUSTED."""
    total = require_non_negative(new_total, "total_budget")

    budget = await ledger_store.upsert_budget(
        session,
        project_id=project_id,
        total_budget=total,
        actor_id=actor_id,
        default_currency=settings.DEFAULT_CURRENCY,
    )
    await record_financial_event(
        session,
        project_id=project_id,
        actor_id=actor_id,
        action=AuditAction.BUDGET_ADJUSTED,
        amount=total,
        note=reason or "Manual budget adjustment",
    )

    logger.info(
        "budget_adjusted",
        project_id=str(project_id),
        total_budget=str(total),
        actor_id=str(actor_id),
    )
    return budget
