import enum
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Numeric, DateTime, Text, Uuid, ForeignKey, Index, desc
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.database import Base


class AuditAction(str, enum.Enum):
    BUDGET_ADJUSTED = "BUDGET_ADJUSTED"
    REQUEST_APPROVED = "REQUEST_APPROVED"
    REQUEST_REJECTED = "REQUEST_REJECTED"
    DISBURSEMENT_SCHEDULED = "DISBURSEMENT_SCHEDULED"
    DISBURSEMENT_APPROVED = "DISBURSEMENT_APPROVED"
    DISBURSEMENT_PAID = "DISBURSEMENT_PAID"
    DISBURSEMENT_CANCELLED = "DISBURSEMENT_CANCELLED"
    BATCH_PAYROLL_APPROVED = "BATCH_PAYROLL_APPROVED"


class FinancialAuditLog(Base):
    """Insert-only. Nothing in the service layer updates or deletes these rows."""

    __tablename__ = "financial_audit_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id")
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    note: Mapped[Optional[str]] = mapped_column(Text)
    ref_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_fin_audit_project", "project_id", desc("created_at")),
        Index("idx_fin_audit_ref", "ref_id"),
    )
