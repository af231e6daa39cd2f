"""create_billing_core_tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-19 00:00:00.000000

Initial schema for the billing core:
  - organizations and displays (the screen quota dimension)
  - plans
  - promotions, plan_promotions and promotion_redemptions
  - admin_audit_logs
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    # 1. Organizations and their screens
    op.create_table(
        "organizations",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("billing_email", sa.String(255), nullable=True),
        sa.Column("country", sa.String(2), nullable=True),
        sa.Column("subscription_tier", sa.String(100), nullable=False, server_default="free"),
        sa.Column("subscription_status", sa.String(20), nullable=False, server_default="trial"),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("screen_quota", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("previous_status", sa.String(20), nullable=True),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("suspension_reason", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_organizations_slug"), "organizations", ["slug"], unique=True)
    op.create_index("idx_org_status", "organizations", ["subscription_status"], unique=False)
    op.create_index("idx_org_tier", "organizations", ["subscription_tier"], unique=False)

    op.create_table(
        "displays",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_displays_organization_id"), "displays", ["organization_id"], unique=False)

    # 2. Plan catalog
    op.create_table(
        "plans",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("screen_quota", sa.Integer(), nullable=False),
        sa.Column("storage_quota_mb", sa.Integer(), nullable=False, server_default="5000"),
        sa.Column("api_rate_limit", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("price_usd_monthly", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_usd_yearly", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_inr_monthly", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_inr_yearly", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("stripe_price_id_monthly", sa.String(100), nullable=True),
        sa.Column("stripe_price_id_yearly", sa.String(100), nullable=True),
        sa.Column("razorpay_plan_id_monthly", sa.String(100), nullable=True),
        sa.Column("razorpay_plan_id_yearly", sa.String(100), nullable=True),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("feature_flags", sa.JSON(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("highlight_text", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plans_slug"), "plans", ["slug"], unique=True)
    op.create_index(
        "idx_plan_active_public_sort", "plans", ["is_active", "is_public", "sort_order"], unique=False
    )

    # 3. Promotions
    op.create_table(
        "promotions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(20), nullable=False),
        sa.Column("discount_value", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=True),
        sa.Column("max_redemptions", sa.Integer(), nullable=True),
        sa.Column("max_per_customer", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("current_redemptions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_purchase_amount", sa.Integer(), nullable=True),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_promotions_code"), "promotions", ["code"], unique=True)

    op.create_table(
        "plan_promotions",
        sa.Column("plan_id", sa.String(36), nullable=False),
        sa.Column("promotion_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("plan_id", "promotion_id"),
    )

    op.create_table(
        "promotion_redemptions",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("promotion_id", sa.String(36), nullable=False),
        sa.Column("organization_id", sa.String(36), nullable=False),
        sa.Column("discount_applied", sa.Float(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["promotion_id"], ["promotions.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_redemption_promotion_org", "promotion_redemptions", ["promotion_id", "organization_id"], unique=False
    )

    # 4. Admin audit trail
    op.create_table(
        "admin_audit_logs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("admin_user_id", sa.String(36), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.String(36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_admin_audit_admin_created", "admin_audit_logs", ["admin_user_id", "created_at"], unique=False
    )
    op.create_index("idx_admin_audit_action_created", "admin_audit_logs", ["action", "created_at"], unique=False)
    op.create_index("idx_admin_audit_target", "admin_audit_logs", ["target_type", "target_id"], unique=False)


def downgrade() -> None:
    # Reverse in dependency order: children before parents
    op.drop_index("idx_admin_audit_target", table_name="admin_audit_logs")
    op.drop_index("idx_admin_audit_action_created", table_name="admin_audit_logs")
    op.drop_index("idx_admin_audit_admin_created", table_name="admin_audit_logs")
    op.drop_table("admin_audit_logs")

    op.drop_index("idx_redemption_promotion_org", table_name="promotion_redemptions")
    op.drop_table("promotion_redemptions")
    op.drop_table("plan_promotions")
    op.drop_index(op.f("ix_promotions_code"), table_name="promotions")
    op.drop_table("promotions")

    op.drop_index("idx_plan_active_public_sort", table_name="plans")
    op.drop_index(op.f("ix_plans_slug"), table_name="plans")
    op.drop_table("plans")

    op.drop_index(op.f("ix_displays_organization_id"), table_name="displays")
    op.drop_table("displays")
    op.drop_index("idx_org_tier", table_name="organizations")
    op.drop_index("idx_org_status", table_name="organizations")
    op.drop_index(op.f("ix_organizations_slug"), table_name="organizations")
    op.drop_table("organizations")
