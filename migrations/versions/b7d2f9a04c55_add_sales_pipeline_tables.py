"""add sales pipeline tables (customers, dealers, projects, quotes, activities, revisions)

Revision ID: b7d2f9a04c55
Revises: a1c4e7f20b31
Create Date: 2026-09-28 09:40:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "b7d2f9a04c55"
down_revision: Union[str, Sequence[str], None] = "a1c4e7f20b31"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:
    op.create_table(
        "sales_customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("company_name", sa.String(length=255), nullable=False),
        sa.Column("factory", sa.String(length=64), nullable=False),
        sa.Column("company_type", sa.String(length=32), nullable=False, server_default="general"),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("contact_title", sa.String(length=255), nullable=True),
        sa.Column("contact_email", sa.String(length=320), nullable=True),
        sa.Column("contact_phone", sa.String(length=64), nullable=True),
        sa.Column("secondary_contact_name", sa.String(length=255), nullable=True),
        sa.Column("secondary_contact_email", sa.String(length=320), nullable=True),
        sa.Column("secondary_contact_phone", sa.String(length=64), nullable=True),
        sa.Column("address_line1", sa.String(length=255), nullable=True),
        sa.Column("address_line2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zip_code", sa.String(length=32), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_sales_customers_company_name", "sales_customers", ["company_name"])
    op.create_index("idx_sales_customers_factory", "sales_customers", ["factory"])
    op.create_index("idx_sales_customers_is_active", "sales_customers", ["is_active"])

    op.create_table(
        "dealers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("branch_code", sa.String(length=64), nullable=True),
        sa.Column("branch_name", sa.String(length=255), nullable=True),
        sa.Column("contact_name", sa.String(length=255), nullable=True),
        sa.Column("contact_email", sa.String(length=320), nullable=True),
        sa.Column("contact_phone", sa.String(length=64), nullable=True),
        sa.Column("address_line1", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("zip_code", sa.String(length=32), nullable=True),
        sa.Column("factory", sa.String(length=64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
    )
    op.create_index("idx_dealers_name", "dealers", ["name"])
    op.create_index("idx_dealers_is_active", "dealers", ["is_active"])

    op.create_table(
        "projects",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("project_number", sa.String(length=64), nullable=True, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("factory", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="Planning"),
        sa.Column("client_name", sa.String(length=255), nullable=True),
        sa.Column("client_contact", sa.String(length=255), nullable=True),
        sa.Column("client_email", sa.String(length=320), nullable=True),
        sa.Column("client_phone", sa.String(length=64), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("state", sa.String(length=64), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("contract_value", sa.Numeric(12, 2), nullable=True),
        sa.Column("source_quote_id", sa.Integer(), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_projects_factory", "projects", ["factory"])
    op.create_index("idx_projects_source_quote_id", "projects", ["source_quote_id"])

    op.create_table(
        "sales_quotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quote_number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("is_latest_version", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="draft"),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("dealer_id", sa.Integer(), nullable=True),
        sa.Column("dealer_branch", sa.String(length=255), nullable=True),
        sa.Column("dealer_contact_name", sa.String(length=255), nullable=True),
        sa.Column("assigned_to_user_id", sa.Integer(), nullable=True),
        sa.Column("project_name", sa.String(length=255), nullable=False),
        sa.Column("project_description", sa.Text(), nullable=True),
        sa.Column("project_location", sa.String(length=255), nullable=True),
        sa.Column("project_city", sa.String(length=128), nullable=True),
        sa.Column("project_state", sa.String(length=64), nullable=True),
        sa.Column("factory", sa.String(length=64), nullable=False),
        sa.Column("product_type", sa.String(length=64), nullable=True),
        sa.Column("product_config", sa.JSON(), nullable=True),
        sa.Column("base_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("options_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("discount_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("payment_terms", sa.String(length=32), nullable=True),
        sa.Column("deposit_required", sa.Numeric(12, 2), nullable=True),
        sa.Column("requested_delivery_date", sa.Date(), nullable=True),
        sa.Column("estimated_production_weeks", sa.Integer(), nullable=True),
        sa.Column("quote_valid_until", sa.Date(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("customer_notes", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("won_date", sa.Date(), nullable=True),
        sa.Column("lost_date", sa.Date(), nullable=True),
        sa.Column("lost_reason", sa.String(length=32), nullable=True),
        sa.Column("competitor_name", sa.String(length=255), nullable=True),
        sa.Column("praxis_quote_number", sa.String(length=64), nullable=True),
        sa.Column("praxis_source_factory", sa.String(length=64), nullable=True),
        sa.Column("building_type", sa.String(length=32), nullable=True),
        sa.Column("building_width", sa.Numeric(8, 2), nullable=True),
        sa.Column("building_length", sa.Numeric(8, 2), nullable=True),
        sa.Column("square_footage", sa.Integer(), nullable=True),
        sa.Column("module_count", sa.Integer(), nullable=True),
        sa.Column("stories", sa.Integer(), nullable=True),
        sa.Column("state_tags", sa.String(length=255), nullable=True),
        sa.Column("climate_zone", sa.Integer(), nullable=True),
        sa.Column("occupancy_type", sa.String(length=16), nullable=True),
        sa.Column("set_type", sa.String(length=32), nullable=True),
        sa.Column("sprinkler_type", sa.String(length=16), nullable=True),
        sa.Column("has_plumbing", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("wui_compliant", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("outlook_percentage", sa.Integer(), nullable=True),
        sa.Column("waiting_on", sa.String(length=255), nullable=True),
        sa.Column("expected_close_timeframe", sa.String(length=64), nullable=True),
        sa.Column("difficulty_rating", sa.Integer(), nullable=True),
        sa.Column("qa_due_date", sa.Date(), nullable=True),
        sa.Column("quote_due_date", sa.Date(), nullable=True),
        sa.Column("promised_delivery_date", sa.Date(), nullable=True),
        sa.Column("pm_flagged", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("pm_flagged_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("pm_flagged_by_user_id", sa.Integer(), nullable=True),
        sa.Column("pm_flagged_reason", sa.Text(), nullable=True),
        sa.Column("handed_off_to_pm", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("handed_off_date", sa.DateTime(timezone=False), nullable=True),
        sa.Column("handed_off_by_user_id", sa.Integer(), nullable=True),
        sa.Column("project_id", sa.Integer(), nullable=True),
        sa.Column("imported_from", sa.String(length=32), nullable=True),
        sa.Column("praxis_synced_at", sa.DateTime(timezone=False), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("last_modified_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(["customer_id"], ["sales_customers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["dealer_id"], ["dealers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["assigned_to_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["pm_flagged_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["handed_off_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["last_modified_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_sales_quotes_status", "sales_quotes", ["status"])
    op.create_index("idx_sales_quotes_factory", "sales_quotes", ["factory"])
    op.create_index("idx_sales_quotes_assigned_to", "sales_quotes", ["assigned_to_user_id"])
    op.create_index("idx_sales_quotes_customer_id", "sales_quotes", ["customer_id"])
    op.create_index("idx_sales_quotes_latest_created", "sales_quotes", ["is_latest_version", "created_at"])

    op.create_table(
        "sales_activities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quote_id", sa.Integer(), nullable=True),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("activity_type", sa.String(length=32), nullable=False),
        sa.Column("subject", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("old_status", sa.String(length=32), nullable=True),
        sa.Column("new_status", sa.String(length=32), nullable=True),
        sa.Column("created_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(["quote_id"], ["sales_quotes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["sales_customers.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_sales_activities_quote_id", "sales_activities", ["quote_id", "created_at"])

    op.create_table(
        "sales_quote_revisions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("quote_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        sa.Column("change_notes", sa.Text(), nullable=True),
        sa.Column("changed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=False), nullable=False, server_default=_NOW),
        sa.ForeignKeyConstraint(["quote_id"], ["sales_quotes.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["changed_by_user_id"], ["users.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_sales_quote_revisions_quote_id", "sales_quote_revisions", ["quote_id", "version"])


def downgrade() -> None:
    op.drop_index("idx_sales_quote_revisions_quote_id", table_name="sales_quote_revisions")
    op.drop_table("sales_quote_revisions")
    op.drop_index("idx_sales_activities_quote_id", table_name="sales_activities")
    op.drop_table("sales_activities")
    for ix in (
        "idx_sales_quotes_latest_created",
        "idx_sales_quotes_customer_id",
        "idx_sales_quotes_assigned_to",
        "idx_sales_quotes_factory",
        "idx_sales_quotes_status",
    ):
        op.drop_index(ix, table_name="sales_quotes")
    op.drop_table("sales_quotes")
    op.drop_index("idx_projects_source_quote_id", table_name="projects")
    op.drop_index("idx_projects_factory", table_name="projects")
    op.drop_table("projects")
    op.drop_index("idx_dealers_is_active", table_name="dealers")
    op.drop_index("idx_dealers_name", table_name="dealers")
    op.drop_table("dealers")
    op.drop_index("idx_sales_customers_is_active", table_name="sales_customers")
    op.drop_index("idx_sales_customers_factory", table_name="sales_customers")
    op.drop_index("idx_sales_customers_company_name", table_name="sales_customers")
    op.drop_table("sales_customers")
