"""
Two reviewers acting on the same pending request at once: the guarded
UPDATE lets exactly one through.
"""

import asyncio

import pytest

from control_tower.exceptions import Conflict
from control_tower.models.audit_log import FinancialAuditLog
from control_tower.models.disbursement import Disbursement
from control_tower.services.fund_request_service import ApprovalOutcome
from tests.helpers import add_member, fetch_all


@pytest.mark.asyncio
async def test_concurrent_approvals_yield_one_winner(service, session_factory, project_id, owner, member):
    fr = await service.create_fund_request(project_id, member.id, 900, "Payroll", "Contractor week 12")

    results = await asyncio.gather(
        service.approve_fund_request(project_id, fr.id, owner.id),
        service.approve_fund_request(project_id, fr.id, owner.id),
        return_exceptions=True,
    )

    assert sum(isinstance(r, ApprovalOutcome) for r in results) == 1
    assert sum(isinstance(r, Conflict) for r in results) == 1
    assert len(await fetch_all(session_factory, Disbursement)) == 1
    assert len(await fetch_all(session_factory, FinancialAuditLog)) == 1


@pytest.mark.asyncio
async def test_concurrent_approve_and_reject_yield_one_outcome(
    service, session_factory, project_id, owner, member
):
    co_owner = await add_member(session_factory, project_id, "priya", "owner")
    fr = await service.create_fund_request(project_id, member.id, 300, None, "Fuel")

    results = await asyncio.gather(
        service.approve_fund_request(project_id, fr.id, owner.id),
        service.reject_fund_request(project_id, fr.id, co_owner.id),
        return_exceptions=True,
    )

    conflicts = [r for r in results if isinstance(r, Conflict)]
    assert len(conflicts) == 1
    assert len(await fetch_all(session_factory, FinancialAuditLog)) == 1

    [stored] = await service.list_fund_requests(project_id)
    disbursements = await fetch_all(session_factory, Disbursement)
    if stored.fund_request.status == "approved":
        assert len(disbursements) == 1
    else:
        assert stored.fund_request.status == "rejected"
        assert disbursements == []
