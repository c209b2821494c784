import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    String,
    Numeric,
    DateTime,
    Text,
    Uuid,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column

from control_tower.database import Base

DISBURSEMENT_STATUSES = ("scheduled", "approved", "paid", "cancelled")

# Statuses that count against the budget.
COMMITTED_STATUSES = ("approved", "paid")


class Disbursement(Base):
    __tablename__ = "disbursement_ledger"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    project_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    # Manual and batch disbursements carry no fund request.
    fund_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("fund_requests.id")
    )
    recipient_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id")
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    category: Mapped[str] = mapped_column(String(100), default="General")
    status: Mapped[str] = mapped_column(String(20), default="scheduled")
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_disbursement_amount_positive"),
        CheckConstraint(
            "status IN ('scheduled', 'approved', 'paid', 'cancelled')",
            name="chk_disbursement_status",
        ),
        Index("idx_disbursements_project", "project_id", "status"),
        Index("idx_disbursements_paid_at", "project_id", "paid_at"),
    )
