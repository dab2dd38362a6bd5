"""Dependency providers and settings management."""

import uuid
from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Cookie, Depends, Header, Query, Request
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .errors import AuthError, BadRequestError, PermissionDeniedError
from .models import User, WorkspaceMember
from .security import JWTError, decode_access_token
from .utils.env import load_env_file


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    ENVIRONMENT: str = "development"
    DATABASE_URL: str = "sqlite:///./adpulse.db"
    TOKEN_ENCRYPTION_KEY: str = ""
    JWT_SECRET: str = ""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"
    FRONTEND_URL: str = "http://localhost:3000"

    # Google Ads
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    GOOGLE_REDIRECT_URI: str = "http://localhost:8000/api/oauth/google/callback"
    GOOGLE_DEVELOPER_TOKEN: str = ""
    # Manager (MCC) account id, only needed when accessing client accounts through one
    GOOGLE_LOGIN_CUSTOMER_ID: Optional[str] = None
    GOOGLE_ADS_API_VERSION: str = "v15"

    # Meta
    META_APP_ID: str = ""
    META_APP_SECRET: str = ""
    META_REDIRECT_URI: str = "http://localhost:8000/api/oauth/meta/callback"
    META_API_VERSION: str = "v18.0"

    # Insights
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    INSIGHTS_MAX_TOKENS: int = 1024

    # Sync scheduler
    SYNC_SCHEDULER_ENABLED: bool = True
    SYNC_INTERVAL_HOURS: int = 6
    SYNC_LOOKBACK_DAYS: int = 7
    SYNC_PACING_SECONDS: float = 2.0
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Redis (arq worker)
    REDIS_URL: str = "redis://localhost:6379/0"

    SENTRY_DSN: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True
    )

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.BACKEND_CORS_ORIGINS.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    load_env_file()
    return Settings()  # type: ignore[call-arg]


def get_context(request: Request):
    """Return the `AppContext` built by the application lifespan."""
    return request.app.state.context


def get_token_claims(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    access_token: Optional[str] = Cookie(default=None, alias="access_token"),
) -> Dict[str, Any]:
    """Verify the HS256 JWT from a bearer header or the `access_token` cookie.

    Returns the decoded claims; `sub` is the user id as a UUID string.
    """
    raw = authorization or access_token
    if not raw:
        raise AuthError("Not authenticated")

    token = raw[len("Bearer "):] if raw.startswith("Bearer ") else raw

    settings = request.app.state.context.settings
    try:
        payload = decode_access_token(token, settings.JWT_SECRET)
    except JWTError:
        raise AuthError("Invalid token")

    try:
        payload["sub"] = str(uuid.UUID(str(payload.get("sub"))))
    except ValueError:
        raise AuthError("Invalid token payload")
    return payload


def get_current_user(
    db: Session = Depends(get_db),
    claims: Dict[str, Any] = Depends(get_token_claims),
) -> User:
    """Load the user named by the token's `sub` claim.

    Users are created by `POST /api/auth/sync`; a valid token for an unknown
    user is rejected here.
    """
    user = db.query(User).filter(User.id == uuid.UUID(claims["sub"])).first()
    if not user:
        raise AuthError("User not found")
    return user


def parse_workspace_id(raw: Optional[str]) -> uuid.UUID:
    if not raw:
        raise BadRequestError("Workspace ID required")
    try:
        return uuid.UUID(raw)
    except ValueError:
        raise BadRequestError("Invalid workspace ID")


def require_workspace(
    workspace_query: Optional[str] = Query(default=None, alias="workspaceId"),
    workspace_header: Optional[str] = Header(default=None, alias="X-Workspace-Id"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> uuid.UUID:
    """Resolve the requested workspace and check the caller is a member.

    Raises:
        BadRequestError: no (or malformed) workspace id supplied.
        PermissionDeniedError: caller is not a member of the workspace.
    """
    workspace_id = parse_workspace_id(workspace_query or workspace_header)

    membership = (
        db.query(WorkspaceMember)
        .filter(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.user_id == user.id)
        .first()
    )
    if not membership:
        raise PermissionDeniedError("Access denied to this workspace")
    return workspace_id
