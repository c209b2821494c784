import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from pydantic import BaseModel, Field


class DisbursementCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    category: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    recipient_id: Optional[uuid.UUID] = None


class DisbursementStatusUpdate(BaseModel):
    status: Literal["approved", "paid", "cancelled"]


class DisbursementResponse(BaseModel):
    id: str
    project_id: str
    fund_request_id: Optional[str] = None
    recipient_id: Optional[uuid.UUID] = None
    amount: Decimal
    category: str
    status: str
    description: Optional[str] = None
    created_at: str
    paid_at: Optional[str] = None
    # Enriched fields
    recipient_name: Optional[str] = None

    model_config = {"from_attributes": True}


class BatchPayoutResponse(BaseModel):
    count: int
    paid_at: datetime
    disbursement_ids: list[str]
