"""
Unit tests for control_tower/services/budget_service.py

Tests: used_percent rounding, overview derivation, NotConfigured,
       adjust_budget validation and audit.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from control_tower.exceptions import NotConfigured, ValidationError
from control_tower.models.audit_log import FinancialAuditLog
from control_tower.models.budget import ProjectBudget
from control_tower.services.budget_service import adjust_budget, get_overview, used_percent

LEDGER = "control_tower.services.ledger_store"
BURN = "control_tower.services.budget_service.get_monthly_burn"


def _mock_session() -> AsyncMock:
    session = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session


def _make_budget(total: str = "10000.00", currency: str = "USD"):
    b = MagicMock()
    b.total_budget = Decimal(total)
    b.currency = currency
    return b


# ---------------------------------------------------------------------------
# used_percent
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "used, total, expected",
    [
        ("2500", "10000", 25),
        ("1", "3", 33),
        ("2", "3", 67),
        ("1", "200", 1),  # 0.5 rounds half up
        ("12000", "10000", 120),
        ("500", "0", 0),
    ],
)
def test_used_percent(used, total, expected):
    assert used_percent(Decimal(used), Decimal(total)) == expected


# ---------------------------------------------------------------------------
# get_overview
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_overview_without_budget_raises_not_configured():
    with patch(f"{LEDGER}.get_budget", AsyncMock(return_value=None)):
        with pytest.raises(NotConfigured):
            await get_overview(_mock_session(), uuid.uuid4())


@pytest.mark.asyncio
async def test_overview_derives_remaining_and_runway():
    with patch(f"{LEDGER}.get_budget", AsyncMock(return_value=_make_budget("10000.00"))), \
         patch(f"{LEDGER}.sum_disbursements", AsyncMock(return_value=Decimal("2500.00"))) as used, \
         patch(f"{LEDGER}.pending_request_totals", AsyncMock(return_value=(2, Decimal("900.00")))), \
         patch(BURN, AsyncMock(return_value=Decimal("600.00"))):
        overview = await get_overview(_mock_session(), uuid.uuid4(), now=datetime(2026, 10, 1))

    assert used.await_args.args[2] == ("approved", "paid")
    assert overview.total_budget == Decimal("10000.00")
    assert overview.budget_used == Decimal("2500.00")
    assert overview.remaining == Decimal("7500.00")
    assert overview.used_percent == 25
    assert overview.monthly_burn == Decimal("600.00")
    assert overview.runway_months == 12
    assert overview.pending_requests.count == 2
    assert overview.pending_requests.total == Decimal("900.00")
    assert overview.currency == "USD"


@pytest.mark.asyncio
async def test_overview_allows_overspend():
    with patch(f"{LEDGER}.get_budget", AsyncMock(return_value=_make_budget("1000.00"))), \
         patch(f"{LEDGER}.sum_disbursements", AsyncMock(return_value=Decimal("1500.00"))), \
         patch(f"{LEDGER}.pending_request_totals", AsyncMock(return_value=(0, Decimal("0")))), \
         patch(BURN, AsyncMock(return_value=Decimal("0"))):
        overview = await get_overview(_mock_session(), uuid.uuid4())

    assert overview.remaining == Decimal("-500.00")
    assert overview.used_percent == 150
    assert overview.runway_months is None


# ---------------------------------------------------------------------------
# adjust_budget
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_adjust_negative_total_writes_nothing():
    session = _mock_session()

    with pytest.raises(ValidationError, match="total_budget"):
        await adjust_budget(session, uuid.uuid4(), -5, "typo", uuid.uuid4())

    session.execute.assert_not_called()
    session.add.assert_not_called()


@pytest.mark.asyncio
async def test_adjust_creates_budget_and_audits():
    session = _mock_session()
    missing = MagicMock()
    missing.scalar_one_or_none.return_value = None
    session.execute.return_value = missing
    project_id, actor_id = uuid.uuid4(), uuid.uuid4()

    budget = await adjust_budget(session, project_id, "15000", None, actor_id)

    assert isinstance(budget, ProjectBudget)
    assert budget.total_budget == Decimal("15000.00")
    assert budget.currency == "USD"
    assert budget.updated_by == actor_id

    entries = [c.args[0] for c in session.add.call_args_list if isinstance(c.args[0], FinancialAuditLog)]
    assert len(entries) == 1
    assert entries[0].action == "BUDGET_ADJUSTED"
    assert entries[0].amount == Decimal("15000.00")
    assert entries[0].note == "Manual budget adjustment"


@pytest.mark.asyncio
async def test_adjust_updates_existing_budget_in_place():
    session = _mock_session()
    existing = ProjectBudget(
        project_id=uuid.uuid4(), total_budget=Decimal("100.00"), currency="EUR"
    )
    found = MagicMock()
    found.scalar_one_or_none.return_value = existing
    session.execute.return_value = found

    budget = await adjust_budget(session, existing.project_id, 0, "Frozen", uuid.uuid4())

    assert budget is existing
    assert budget.total_budget == Decimal("0.00")
    # Currency is kept once set.
    assert budget.currency == "EUR"
    added = [c.args[0] for c in session.add.call_args_list]
    assert existing not in added
