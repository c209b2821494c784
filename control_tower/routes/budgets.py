import uuid
from dataclasses import asdict

from fastapi import APIRouter, Depends
import structlog

from control_tower.middleware.authorization import require_member, require_owner
from control_tower.models.budget import ProjectBudget
from control_tower.schemas.budget import (
    BudgetAdjust,
    BudgetResponse,
    ForecastResponse,
    OverviewResponse,
)
from control_tower.services.financial_service import (
    FinancialService,
    get_financial_service,
)

logger = structlog.get_logger()
router = APIRouter()


def _to_response(b: ProjectBudget) -> BudgetResponse:
    return BudgetResponse(
        project_id=str(b.project_id),
        total_budget=b.total_budget,
        currency=b.currency,
        updated_by=str(b.updated_by) if b.updated_by else None,
        updated_at=b.updated_at.isoformat() if b.updated_at else "",
    )


@router.get("/overview", response_model=OverviewResponse)
async def get_overview(
    project_id: uuid.UUID,
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    overview = await service.get_overview(project_id)
    return OverviewResponse(**asdict(overview))


@router.put("/budget", response_model=BudgetResponse)
async def adjust_budget(
    project_id: uuid.UUID,
    body: BudgetAdjust,
    current_user: dict = Depends(require_owner),
    service: FinancialService = Depends(get_financial_service),
):
    budget = await service.adjust_budget(
        project_id, body.total_budget, body.reason, current_user["user_id"]
    )
    return _to_response(budget)


@router.get("/forecast", response_model=ForecastResponse)
async def get_forecast(
    project_id: uuid.UUID,
    current_user: dict = Depends(require_member),
    service: FinancialService = Depends(get_financial_service),
):
    forecast = await service.get_forecast(project_id)
    return ForecastResponse(**asdict(forecast))
