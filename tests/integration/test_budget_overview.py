"""
Budget figure and derived overview against a real database.
"""

import uuid
from datetime import datetime
from decimal import Decimal

import pytest

from control_tower.exceptions import NotConfigured, ValidationError
from control_tower.models.audit_log import FinancialAuditLog
from control_tower.models.budget import ProjectBudget
from tests.helpers import add_disbursement, fetch_all


@pytest.mark.asyncio
async def test_overview_without_budget_is_not_configured(service, project_id):
    with pytest.raises(NotConfigured):
        await service.get_overview(project_id)


@pytest.mark.asyncio
async def test_committed_disbursements_count_as_used(service, session_factory, project_id, owner):
    await service.adjust_budget(project_id, Decimal("10000"), "Initial allocation", owner.id)
    await add_disbursement(session_factory, project_id, "2500", status="approved")
    # Neither scheduled nor cancelled rows commit budget.
    await add_disbursement(session_factory, project_id, "700", status="scheduled")
    await add_disbursement(session_factory, project_id, "900", status="cancelled")

    overview = await service.get_overview(project_id)

    assert overview.total_budget == Decimal("10000")
    assert overview.budget_used == Decimal("2500")
    assert overview.remaining == Decimal("7500")
    assert overview.used_percent == 25
    assert overview.currency == "USD"


@pytest.mark.asyncio
async def test_no_payments_means_no_burn_and_no_runway(service, project_id, owner):
    await service.adjust_budget(project_id, 5000, None, owner.id)

    overview = await service.get_overview(project_id)

    assert overview.monthly_burn == Decimal("0")
    assert overview.runway_months is None
    assert overview.pending_requests.count == 0
    assert overview.pending_requests.total == Decimal("0")


@pytest.mark.asyncio
async def test_runway_from_recent_payments(service, session_factory, project_id, owner):
    await service.adjust_budget(project_id, 10000, None, owner.id)
    await add_disbursement(session_factory, project_id, 300, paid_at=datetime(2026, 4, 10))
    await add_disbursement(session_factory, project_id, 600, paid_at=datetime(2026, 5, 10))
    await add_disbursement(session_factory, project_id, 900, paid_at=datetime(2026, 6, 10))

    overview = await service.get_overview(project_id, now=datetime(2026, 7, 1))

    assert overview.budget_used == Decimal("1800")
    assert overview.monthly_burn == Decimal("600.00")
    # 8200 / 600 = 13.67, floored.
    assert overview.runway_months == 13


@pytest.mark.asyncio
async def test_pending_requests_are_summarised(service, project_id, owner, member):
    await service.adjust_budget(project_id, 10000, None, owner.id)
    await service.create_fund_request(project_id, member.id, 400, "Travel", "Flights")
    await service.create_fund_request(project_id, member.id, 350, "Travel", "Hotel")
    rejected = await service.create_fund_request(project_id, member.id, 99, None, "Snacks")
    await service.reject_fund_request(project_id, rejected.id, owner.id)

    overview = await service.get_overview(project_id)

    assert overview.pending_requests.count == 2
    assert overview.pending_requests.total == Decimal("750")
    # Pending requests do not consume budget until approved.
    assert overview.budget_used == Decimal("0")


@pytest.mark.asyncio
async def test_negative_budget_is_rejected_without_writes(service, session_factory, project_id, owner):
    with pytest.raises(ValidationError):
        await service.adjust_budget(project_id, -5, "typo", owner.id)

    assert await fetch_all(session_factory, ProjectBudget, ProjectBudget.project_id == project_id) == []
    assert await fetch_all(session_factory, FinancialAuditLog) == []


@pytest.mark.asyncio
async def test_readjusting_updates_single_row_and_audits_each_change(
    service, session_factory, project_id, owner
):
    await service.adjust_budget(project_id, 10000, None, owner.id)
    await service.adjust_budget(project_id, 12500, "Phase two funding", owner.id)

    budgets = await fetch_all(session_factory, ProjectBudget, ProjectBudget.project_id == project_id)
    assert len(budgets) == 1
    assert budgets[0].total_budget == Decimal("12500")

    entries = await fetch_all(
        session_factory, FinancialAuditLog, FinancialAuditLog.project_id == project_id
    )
    assert sorted(e.note for e in entries) == ["Manual budget adjustment", "Phase two funding"]
    assert {e.action for e in entries} == {"BUDGET_ADJUSTED"}


@pytest.mark.asyncio
async def test_overspend_is_reported_not_blocked(service, session_factory, project_id, owner):
    await service.adjust_budget(project_id, 1000, None, owner.id)
    await add_disbursement(session_factory, project_id, 1500, status="approved")

    overview = await service.get_overview(project_id)

    assert overview.remaining == Decimal("-500")
    assert overview.used_percent == 150


@pytest.mark.asyncio
async def test_other_projects_do_not_leak_into_overview(service, session_factory, project_id, owner):
    other_project = uuid.uuid4()
    await service.adjust_budget(project_id, 1000, None, owner.id)
    await add_disbursement(session_factory, other_project, 800, status="approved")

    overview = await service.get_overview(project_id)

    assert overview.budget_used == Decimal("0")
