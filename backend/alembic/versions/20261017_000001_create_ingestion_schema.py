"""Create tenancy and ingestion tables.

Revision ID: 20261017_000001
Revises:
Create Date: 2026-10-17 09:00:00.000000

WHAT:
    workspaces, users, workspace_members, integrations, campaigns, daily_metrics.

NOTE:
    daily_metrics' unique key includes the nullable ad_set_id / ad_id columns.
    PostgreSQL treats NULLs as distinct, so the constraint alone does not stop
    duplicate campaign-level rows; the normalizers look rows up before writing.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261017_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    platform_enum = postgresql.ENUM("google", "meta", name="platformenum")
    role_enum = postgresql.ENUM("Owner", "Admin", "Viewer", name="roleenum")

    op.create_table(
        "workspaces",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "workspace_members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("role", role_enum, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),
    )

    op.create_table(
        "integrations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("platform", platform_enum, nullable=False),
        sa.Column("external_account_id", sa.String(), nullable=False),
        sa.Column("account_name", sa.String(), nullable=True),
        sa.Column("access_token_enc", sa.String(), nullable=False),
        sa.Column("refresh_token_enc", sa.String(), nullable=True),
        sa.Column("token_expires_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("scopes", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("workspace_id", "platform", "external_account_id", name="uq_integration_account"),
    )
    op.create_index("ix_integrations_workspace_id", "integrations", ["workspace_id"])

    op.create_table(
        "campaigns",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("platform", postgresql.ENUM(name="platformenum", create_type=False), nullable=False),
        sa.Column("platform_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("objective", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint("workspace_id", "platform", "platform_id", name="uq_campaign_platform_id"),
    )
    op.create_index("ix_campaigns_workspace_id", "campaigns", ["workspace_id"])

    op.create_table(
        "daily_metrics",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("workspace_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("platform", postgresql.ENUM(name="platformenum", create_type=False), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("campaign_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("ad_set_id", sa.String(), nullable=True),
        sa.Column("ad_id", sa.String(), nullable=True),
        sa.Column("impressions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("spend", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("conversions", sa.Numeric(18, 4), nullable=False, server_default="0"),
        sa.Column("conversion_value", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("ctr", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("cpc", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("cpa", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("roas", sa.Numeric(18, 6), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=True, server_default=sa.func.now()),
        sa.UniqueConstraint(
            "workspace_id", "platform", "date", "campaign_id", "ad_set_id", "ad_id",
            name="uq_daily_metric_key",
        ),
    )
    op.create_index("ix_daily_metrics_workspace_id", "daily_metrics", ["workspace_id"])
    op.create_index("ix_daily_metrics_date", "daily_metrics", ["date"])
    op.create_index("ix_daily_metrics_campaign_id", "daily_metrics", ["campaign_id"])


def downgrade():
    op.drop_index("ix_daily_metrics_campaign_id", table_name="daily_metrics")
    op.drop_index("ix_daily_metrics_date", table_name="daily_metrics")
    op.drop_index("ix_daily_metrics_workspace_id", table_name="daily_metrics")
    op.drop_table("daily_metrics")
    op.drop_index("ix_campaigns_workspace_id", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_index("ix_integrations_workspace_id", table_name="integrations")
    op.drop_table("integrations")
    op.drop_table("workspace_members")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    op.drop_table("workspaces")
    postgresql.ENUM(name="platformenum").drop(op.get_bind(), checkfirst=True)
    postgresql.ENUM(name="roleenum").drop(op.get_bind(), checkfirst=True)
