"""Initial schema: crm accounts, contacts, opportunities, leads, cases.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")

    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("industry", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )
    # Not unique: concurrent callers may still race to create the same name.
    op.create_index("ix_crm_accounts_name", "accounts", ["name"], schema="crm")

    op.create_table(
        "contacts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["account_id"], ["crm.accounts.id"], name="fk_contact_account"),
        schema="crm",
    )

    op.create_table(
        "opportunities",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("stage", sa.Text, nullable=False),
        sa.Column("close_date", sa.Date, nullable=False),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "stage IN ('Prospecting','Qualification','Needs Analysis','Value Proposition',"
            "'Id. Decision Makers','Perception Analysis','Proposal/Price Quote',"
            "'Negotiation/Review','Closed Won','Closed Lost')",
            name="ck_opportunity_stage",
        ),
        sa.ForeignKeyConstraint(["account_id"], ["crm.accounts.id"], name="fk_opportunity_account"),
        schema="crm",
    )
    op.create_index("ix_opportunities_account_id", "opportunities", ["account_id"], schema="crm")

    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("first_name", sa.Text, nullable=True),
        sa.Column("last_name", sa.Text, nullable=False),
        sa.Column("company", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        schema="crm",
    )

    op.create_table(
        "cases",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("account_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("subject", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False),
        sa.Column("origin", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "status IN ('New', 'Working', 'Escalated', 'Closed')",
            name="ck_case_status",
        ),
        sa.ForeignKeyConstraint(["account_id"], ["crm.accounts.id"], name="fk_case_account"),
        schema="crm",
    )


def downgrade() -> None:
    op.drop_index("ix_opportunities_account_id", table_name="opportunities", schema="crm")
    op.drop_index("ix_crm_accounts_name", table_name="accounts", schema="crm")
    # Drop in reverse dependency order
    op.drop_table("cases", schema="crm")
    op.drop_table("leads", schema="crm")
    op.drop_table("opportunities", schema="crm")
    op.drop_table("contacts", schema="crm")
    op.drop_table("accounts", schema="crm")
