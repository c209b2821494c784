"""
Financial facade: the single entry point for the HTTP layer.

Every public coroutine is one unit of work: it opens a session, runs the
component services inside ``session.begin()`` and commits once. Any
exception rolls back every write of that operation, so an approval never
lands without its disbursement and audit entry.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from control_tower.config import settings
from control_tower.database import get_session_factory
from control_tower.exceptions import StorageFailure, ValidationError
from control_tower.models.budget import ProjectBudget
from control_tower.models.disbursement import Disbursement
from control_tower.models.fund_request import FundRequest
from control_tower.services import (
    audit_service,
    budget_service,
    disbursement_service,
    forecast_service,
    fund_request_service,
)
from control_tower.services.money import Amount

logger = structlog.get_logger()


class FinancialService:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                async with session.begin():
                    yield session
            except SQLAlchemyError as e:
                logger.error(
                    "financial_storage_failure",
                    operation=operation,
                    error=str(e),
                    **{k: str(v) for k, v in context.items()},
                )
                raise StorageFailure(f"{operation} could not be completed") from e

    # ---------- budget ----------

    async def get_overview(
        self, project_id: uuid.UUID, now: Optional[datetime] = None
    ) -> budget_service.BudgetOverview:
        async with self._unit_of_work("get_overview", project_id=project_id) as session:
            return await budget_service.get_overview(session, project_id, now=now)

    async def adjust_budget(
        self,
        project_id: uuid.UUID,
        total_budget: Amount,
        reason: Optional[str],
        actor_id: uuid.UUID,
    ) -> ProjectBudget:
        async with self._unit_of_work("adjust_budget", project_id=project_id) as session:
            return await budget_service.adjust_budget(
                session, project_id, total_budget, reason, actor_id
            )

    async def get_forecast(
        self, project_id: uuid.UUID, now: Optional[datetime] = None
    ) -> forecast_service.SpendForecast:
        async with self._unit_of_work("get_forecast", project_id=project_id) as session:
            return await forecast_service.get_forecast(session, project_id, now=now)

    # ---------- fund requests ----------

    async def list_fund_requests(
        self, project_id: uuid.UUID, status: Optional[str] = None
    ) -> list[fund_request_service.FundRequestRow]:
        async with self._unit_of_work("list_fund_requests", project_id=project_id) as session:
            return await fund_request_service.list_fund_requests(session, project_id, status)

    async def create_fund_request(
        self,
        project_id: uuid.UUID,
        requester_id: uuid.UUID,
        amount: Amount,
        category: Optional[str],
        justification: Optional[str],
    ) -> FundRequest:
        async with self._unit_of_work("create_fund_request", project_id=project_id) as session:
            return await fund_request_service.create_fund_request(
                session, project_id, requester_id, amount, category, justification
            )

    async def approve_fund_request(
        self,
        project_id: uuid.UUID,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        adjusted_amount: Optional[Amount] = None,
        note: Optional[str] = None,
    ) -> fund_request_service.ApprovalOutcome:
        async with self._unit_of_work(
            "approve_fund_request", project_id=project_id, request_id=request_id
        ) as session:
            return await fund_request_service.approve_fund_request(
                session, project_id, request_id, approver_id, adjusted_amount, note
            )

    async def reject_fund_request(
        self,
        project_id: uuid.UUID,
        request_id: uuid.UUID,
        approver_id: uuid.UUID,
        note: Optional[str] = None,
    ) -> FundRequest:
        async with self._unit_of_work(
            "reject_fund_request", project_id=project_id, request_id=request_id
        ) as session:
            return await fund_request_service.reject_fund_request(
                session, project_id, request_id, approver_id, note
            )

    # ---------- disbursements ----------

    async def list_disbursements(
        self, project_id: uuid.UUID
    ) -> list[disbursement_service.DisbursementRow]:
        async with self._unit_of_work("list_disbursements", project_id=project_id) as session:
            return await disbursement_service.list_disbursements(session, project_id)

    async def schedule_disbursement(
        self,
        project_id: uuid.UUID,
        actor_id: uuid.UUID,
        amount: Amount,
        category: Optional[str] = None,
        description: Optional[str] = None,
        recipient_id: Optional[uuid.UUID] = None,
    ) -> Disbursement:
        async with self._unit_of_work("schedule_disbursement", project_id=project_id) as session:
            return await disbursement_service.schedule_disbursement(
                session, project_id, actor_id, amount, category, description, recipient_id
            )

    async def update_disbursement_status(
        self,
        project_id: uuid.UUID,
        disbursement_id: uuid.UUID,
        new_status: str,
        actor_id: uuid.UUID,
    ) -> Disbursement:
        async with self._unit_of_work(
            "update_disbursement_status",
            project_id=project_id,
            disbursement_id=disbursement_id,
        ) as session:
            return await disbursement_service.update_disbursement_status(
                session, project_id, disbursement_id, new_status, actor_id
            )

    async def approve_all_pending(
        self, project_id: uuid.UUID, actor_id: uuid.UUID
    ) -> disbursement_service.BatchPayout:
        async with self._unit_of_work("approve_all_pending", project_id=project_id) as session:
            return await disbursement_service.approve_all_pending(session, project_id, actor_id)

    # ---------- audit ----------

    async def get_audit_log(
        self, project_id: uuid.UUID, limit: Optional[int] = None
    ) -> list[tuple]:
        if limit is None:
            limit = settings.AUDIT_LOG_DEFAULT_LIMIT
        elif limit < 1:
            raise ValidationError("limit must be at least 1")
        async with self._unit_of_work("get_audit_log", project_id=project_id) as session:
            return await audit_service.list_audit_log(session, project_id, limit)


def get_financial_service() -> FinancialService:
    """FastAPI dependency: facade bound to the application's session factory."""
    return FinancialService(get_session_factory())
