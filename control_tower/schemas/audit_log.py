from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: str
    project_id: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    action: str
    amount: Decimal
    note: Optional[str] = None
    ref_id: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}
