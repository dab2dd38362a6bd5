"""SQLAlchemy ORM models and enums.

This module defines the ingestion schema using UUID primary keys. Workspaces,
users and memberships are the minimal tenant models the pipeline needs for
ownership checks; integrations, campaigns and daily metrics are what the sync
pipeline reads and writes.

Timestamps are naive UTC (see `utcnow`), matching the `DateTime` columns.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship


# Single Base used by the entire application
Base = declarative_base()


def utcnow() -> datetime:
    """Current time as naive UTC, the convention for every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Enums ---------------------------------------------------------

class PlatformEnum(str, enum.Enum):
    google = "google"
    meta = "meta"


class RoleEnum(str, enum.Enum):
    owner = "Owner"
    admin = "Admin"
    viewer = "Viewer"


def _enum_values(obj):
    return [e.value for e in obj]


# Tenancy -------------------------------------------------------

class Workspace(Base):
    """Tenant boundary grouping users, integrations, campaigns and metrics."""

    __tablename__ = "workspaces"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    members = relationship("WorkspaceMember", back_populates="workspace")
    integrations = relationship("Integration", back_populates="workspace")

    def __str__(self):
        return self.name


class User(Base):
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    memberships = relationship("WorkspaceMember", back_populates="user")

    def __str__(self):
        return self.email


class WorkspaceMember(Base):
    """Access grant of one user to one workspace."""

    __tablename__ = "workspace_members"
    __table_args__ = (UniqueConstraint("workspace_id", "user_id", name="uq_workspace_member"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False)
    role = Column(Enum(RoleEnum, values_callable=_enum_values), nullable=False, default=RoleEnum.viewer)
    created_at = Column(DateTime, default=utcnow)

    workspace = relationship("Workspace", back_populates="members")
    user = relationship("User", back_populates="memberships")


# Ingestion -----------------------------------------------------

class Integration(Base):
    """One OAuth-connected advertiser account.

    Token columns hold `CredentialVault` blobs. Only the OAuth callback upsert and
    the token managers write them. Disconnecting flips `is_active`; rows are never
    deleted so historical metrics keep their linkage.
    """

    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "platform", "external_account_id", name="uq_integration_account"
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    platform = Column(Enum(PlatformEnum, values_callable=_enum_values), nullable=False)
    external_account_id = Column(String, nullable=False)
    account_name = Column(String, nullable=True)
    access_token_enc = Column(String, nullable=False)
    refresh_token_enc = Column(String, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)  # naive UTC
    is_active = Column(Boolean, nullable=False, default=True)
    scopes = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    workspace = relationship("Workspace", back_populates="integrations")

    def __str__(self):
        return f"{self.platform.value if self.platform else '?'}:{self.external_account_id}"


class Campaign(Base):
    """Platform-agnostic campaign keyed by (workspace, platform, platform_id).

    Name, status and objective are overwritten on every sync. Campaigns are
    never deleted; removal shows up as a status change.
    """

    __tablename__ = "campaigns"
    __table_args__ = (
        UniqueConstraint("workspace_id", "platform", "platform_id", name="uq_campaign_platform_id"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    platform = Column(Enum(PlatformEnum, values_callable=_enum_values), nullable=False)
    platform_id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    status = Column(String, nullable=True)
    objective = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    metrics = relationship("DailyMetric", back_populates="campaign")

    def __str__(self):
        return self.name


class DailyMetric(Base):
    """One day of counters for a campaign (ad set / ad reserved, NULL today).

    Derived ratios are computed at write time from the row's own counters.

    NOTE: ad_set_id and ad_id are nullable members of the unique key. NULLs never
    collide in unique indexes, so writers must find-then-create-or-update instead
    of relying on ON CONFLICT.
    """

    __tablename__ = "daily_metrics"
    __table_args__ = (
        UniqueConstraint(
            "workspace_id", "platform", "date", "campaign_id", "ad_set_id", "ad_id",
            name="uq_daily_metric_key",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id"), nullable=False, index=True)
    platform = Column(Enum(PlatformEnum, values_callable=_enum_values), nullable=False)
    date = Column(Date, nullable=False, index=True)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=False, index=True)
    ad_set_id = Column(String, nullable=True)
    ad_id = Column(String, nullable=True)

    impressions = Column(Integer, nullable=False, default=0)
    clicks = Column(Integer, nullable=False, default=0)
    spend = Column(Numeric(18, 6), nullable=False, default=0)
    conversions = Column(Numeric(18, 4), nullable=False, default=0)
    conversion_value = Column(Numeric(18, 6), nullable=False, default=0)

    ctr = Column(Numeric(18, 6), nullable=False, default=0)
    cpc = Column(Numeric(18, 6), nullable=False, default=0)
    cpa = Column(Numeric(18, 6), nullable=False, default=0)
    roas = Column(Numeric(18, 6), nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    campaign = relationship("Campaign", back_populates="metrics")
