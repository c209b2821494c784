"""financial control tower schema

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 00:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # users and project_members are owned by the account/project services;
    # created here only when absent so a standalone deployment works.
    bind = op.get_bind()
    existing = set(sa.inspect(bind).get_table_names())

    if 'users' not in existing:
        op.create_table('users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
        )

    if 'project_members' not in existing:
        op.create_table('project_members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('project_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('project_id', 'user_id', name='uq_project_member')
        )
        op.create_index('idx_project_members_user', 'project_members', ['user_id'], unique=False)

    # 1. project_budgets (one row per project)
    op.create_table('project_budgets',
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('total_budget', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('currency', sa.String(length=3), nullable=False),
    sa.Column('updated_by', sa.Uuid(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=False),
    sa.CheckConstraint('total_budget >= 0', name='chk_project_budget_non_negative'),
    sa.ForeignKeyConstraint(['updated_by'], ['users.id'], ),
    sa.PrimaryKeyConstraint('project_id')
    )

    # 2. fund_requests
    op.create_table('fund_requests',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('requester_id', sa.Uuid(), nullable=False),
    sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('category', sa.String(length=100), nullable=False),
    sa.Column('justification', sa.Text(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('approver_id', sa.Uuid(), nullable=True),
    sa.Column('approved_amount', sa.Numeric(precision=14, scale=2), nullable=True),
    sa.Column('reviewer_note', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('reviewed_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('amount > 0', name='chk_fund_request_amount_positive'),
    sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='chk_fund_request_status'),
    sa.ForeignKeyConstraint(['approver_id'], ['users.id'], ),
    sa.ForeignKeyConstraint(['requester_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_fund_requests_project', 'fund_requests', ['project_id', 'status'], unique=False)

    # 3. disbursement_ledger
    op.create_table('disbursement_ledger',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('fund_request_id', sa.Uuid(), nullable=True),
    sa.Column('recipient_id', sa.Uuid(), nullable=True),
    sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('category', sa.String(length=100), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('paid_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('amount > 0', name='chk_disbursement_amount_positive'),
    sa.CheckConstraint("status IN ('scheduled', 'approved', 'paid', 'cancelled')", name='chk_disbursement_status'),
    sa.ForeignKeyConstraint(['fund_request_id'], ['fund_requests.id'], ),
    sa.ForeignKeyConstraint(['recipient_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_disbursements_project', 'disbursement_ledger', ['project_id', 'status'], unique=False)
    op.create_index('idx_disbursements_paid_at', 'disbursement_ledger', ['project_id', 'paid_at'], unique=False)

    # 4. financial_audit_log (insert-only)
    op.create_table('financial_audit_log',
    sa.Column('id', sa.Uuid(), nullable=False),
    sa.Column('project_id', sa.Uuid(), nullable=False),
    sa.Column('actor_id', sa.Uuid(), nullable=True),
    sa.Column('action', sa.String(length=50), nullable=False),
    sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
    sa.Column('note', sa.Text(), nullable=True),
    sa.Column('ref_id', sa.Uuid(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_fin_audit_project', 'financial_audit_log', ['project_id', sa.text('created_at DESC')], unique=False)
    op.create_index('idx_fin_audit_ref', 'financial_audit_log', ['ref_id'], unique=False)

    if bind.dialect.name == 'postgresql':
        # Reject UPDATE/DELETE on the audit trail at the database level too.
        op.execute("""
            CREATE OR REPLACE FUNCTION financial_audit_log_immutable() RETURNS trigger AS $$
            BEGIN
                RAISE EXCEPTION 'financial_audit_log is append-only';
            END;
            $$ LANGUAGE plpgsql;
        """)
        op.execute("""
            CREATE TRIGGER trg_financial_audit_log_immutable
            BEFORE UPDATE OR DELETE ON financial_audit_log
            FOR EACH ROW EXECUTE FUNCTION financial_audit_log_immutable();
        """)


def downgrade() -> None:
    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        op.execute("DROP TRIGGER IF EXISTS trg_financial_audit_log_immutable ON financial_audit_log")
        op.execute("DROP FUNCTION IF EXISTS financial_audit_log_immutable()")
    op.drop_index('idx_fin_audit_ref', table_name='financial_audit_log')
    op.drop_index('idx_fin_audit_project', table_name='financial_audit_log')
    op.drop_table('financial_audit_log')
    op.drop_index('idx_disbursements_paid_at', table_name='disbursement_ledger')
    op.drop_index('idx_disbursements_project', table_name='disbursement_ledger')
    op.drop_table('disbursement_ledger')
    op.drop_index('idx_fund_requests_project', table_name='fund_requests')
    op.drop_table('fund_requests')
    op.drop_table('project_budgets')
