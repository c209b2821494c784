from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field


class BudgetAdjust(BaseModel):
    total_budget: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    reason: Optional[str] = Field(None, max_length=1000)


class BudgetResponse(BaseModel):
    project_id: str
    total_budget: Decimal
    currency: str
    updated_by: Optional[str] = None
    updated_at: str

    model_config = {"from_attributes": True}


class PendingRequestsResponse(BaseModel):
    count: int
    total: Decimal


class OverviewResponse(BaseModel):
    currency: str
    total_budget: Decimal
    budget_used: Decimal
    remaining: Decimal
    used_percent: int
    monthly_burn: Decimal
    runway_months: Optional[int] = None
    pending_requests: PendingRequestsResponse


class MonthlyActualResponse(BaseModel):
    month: str
    label: str
    actual: Decimal


class MonthlyForecastResponse(BaseModel):
    month: str
    label: str
    forecast: int


class ForecastResponse(BaseModel):
    actuals: list[MonthlyActualResponse]
    forecast: list[MonthlyForecastResponse]
    avg_monthly_burn: int
