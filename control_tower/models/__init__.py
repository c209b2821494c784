"""Central model registry: import all models so Alembic autodiscover works."""

from control_tower.database import Base  # noqa: F401

from control_tower.models.user import User, ProjectMember  # noqa: F401
from control_tower.models.budget import ProjectBudget  # noqa: F401
from control_tower.models.fund_request import FundRequest  # noqa: F401
from control_tower.models.disbursement import Disbursement  # noqa: F401
from control_tower.models.audit_log import FinancialAuditLog, AuditAction  # noqa: F401
