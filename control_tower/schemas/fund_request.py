from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from control_tower.schemas.disbursement import DisbursementResponse


class FundRequestCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    category: Optional[str] = Field(None, max_length=100)
    justification: str = Field(..., min_length=1)


class FundRequestApprove(BaseModel):
    adjusted_amount: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    note: Optional[str] = None


class FundRequestReject(BaseModel):
    note: Optional[str] = None


class FundRequestResponse(BaseModel):
    id: str
    project_id: str
    requester_id: str
    amount: Decimal
    category: str
    justification: str
    status: str
    approver_id: Optional[str] = None
    approved_amount: Optional[Decimal] = None
    reviewer_note: Optional[str] = None
    created_at: str
    reviewed_at: Optional[str] = None
    # Enriched fields
    requester_name: Optional[str] = None
    approver_name: Optional[str] = None

    model_config = {"from_attributes": True}


class FundRequestApprovalResponse(BaseModel):
    request: FundRequestResponse
    disbursement: DisbursementResponse
