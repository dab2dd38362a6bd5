"""Pydantic request/response schemas for the dashboard API.

Payloads are serialized with camelCase aliases (`conversionValue`,
`platformId`) to match the dashboard client; Python code uses snake_case.
"""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import PlatformEnum, RoleEnum


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ErrorResponse(BaseModel):
    error: str = Field(description="Human-readable error message")


class MessageResponse(BaseModel):
    message: str


class AuthorizeUrlResponse(BaseModel):
    url: str = Field(description="Provider consent screen URL to redirect the browser to")


# Integrations --------------------------------------------------

class IntegrationOut(CamelModel):
    id: UUID
    platform: PlatformEnum
    external_account_id: str
    account_name: Optional[str] = None
    is_active: bool
    scopes: List[str] = []
    token_expires_at: Optional[dt.datetime] = None
    created_at: Optional[dt.datetime] = None


class IntegrationListResponse(CamelModel):
    integrations: List[IntegrationOut]


# Workspaces and users ------------------------------------------

class WorkspaceCreate(CamelModel):
    name: str = Field(min_length=1, max_length=200, description="Workspace display name")


class WorkspaceUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)


class WorkspaceOut(CamelModel):
    id: UUID
    name: str
    created_at: Optional[dt.datetime] = None


class WorkspaceIntegrationOut(CamelModel):
    id: UUID
    platform: PlatformEnum
    account_name: Optional[str] = None
    is_active: bool


class WorkspaceSummaryOut(WorkspaceOut):
    role: RoleEnum
    integrations: List[WorkspaceIntegrationOut] = []


class WorkspaceListResponse(CamelModel):
    workspaces: List[WorkspaceSummaryOut]


class WorkspaceMemberOut(CamelModel):
    user_id: UUID
    email: str
    name: str
    role: RoleEnum


class WorkspaceDetailOut(WorkspaceOut):
    role: RoleEnum
    members: List[WorkspaceMemberOut] = []
    integrations: List[IntegrationOut] = []


class UserOut(CamelModel):
    id: UUID
    email: str
    name: str


class UserWorkspaceOut(CamelModel):
    id: UUID
    name: str
    role: RoleEnum


class CurrentUserOut(UserOut):
    workspaces: List[UserWorkspaceOut] = []


# Metrics -------------------------------------------------------

class MetricTotals(CamelModel):
    impressions: int = 0
    clicks: int = 0
    spend: float = 0.0
    conversions: float = 0.0
    conversion_value: float = 0.0
    ctr: float = 0.0
    cpc: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0


class MetricsSummaryOut(MetricTotals):
    pass


class CampaignMetricsOut(MetricTotals):
    id: UUID
    platform_id: str
    name: str
    platform: PlatformEnum
    status: Optional[str] = None
    objective: Optional[str] = None


class CampaignMetricsResponse(CamelModel):
    campaigns: List[CampaignMetricsOut]


class TrendPointOut(CamelModel):
    date: dt.date
    impressions: int
    clicks: int
    spend: float
    conversions: float
    conversion_value: float
    ctr: float
    cpc: float


class TrendsResponse(CamelModel):
    trends: List[TrendPointOut]


# Insights ------------------------------------------------------

class InsightRequest(CamelModel):
    query: str = Field(min_length=1, description="Free-text question about recent performance")


class InsightResponse(CamelModel):
    insight: str
