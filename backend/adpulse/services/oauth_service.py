"""OAuth connection flows for Google Ads and Meta.

WHAT:
    - Authorization URL builders carrying the workspace in `state`.
    - Callback completion: exchange the code, discover the advertiser accounts
      the grant can see, and upsert one Integration per account.
    - Listing and soft-disconnecting a workspace's integrations.

WHY:
    Integrations are keyed by (workspace, platform, external account id), so a
    reconnect refreshes the stored tokens in place and reactivates the row
    instead of creating a duplicate.

STATE FORMAT:
    base64( JSON {"workspaceId": "<uuid>"} )

REFERENCES:
    - adpulse/routers/oauth.py
    - adpulse/services/token_service.py (store_integration_tokens)
    - https://developers.google.com/identity/protocols/oauth2/web-server
    - https://developers.facebook.com/docs/facebook-login/guides/advanced/manual-flow
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from adpulse.errors import AuthError, BadRequestError, ConfigurationError, NotFoundError, UpstreamRequestError
from adpulse.models import Integration, PlatformEnum, Workspace, utcnow
from adpulse.services.google_ads_client import GoogleAdsClient
from adpulse.services.meta_ads_client import MetaAdsClient
from adpulse.services.token_service import GOOGLE_TOKEN_URL, StaticTokenSource, store_integration_tokens

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/adwords",
    "https://www.googleapis.com/auth/userinfo.email",
]

META_DIALOG_URL = "https://www.facebook.com/{version}/dialog/oauth"
META_TOKEN_URL = "https://graph.facebook.com/{version}/oauth/access_token"
META_SCOPES = ["ads_read", "ads_management", "business_management"]


# =============================================================================
# STATE
# =============================================================================

def encode_state(workspace_id: UUID) -> str:
    payload = json.dumps({"workspaceId": str(workspace_id)})
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")


def decode_state(state: Optional[str]) -> UUID:
    """Return the workspace id carried in `state`.

    Raises:
        BadRequestError: missing, undecodable, or without a valid workspace id.
    """
    if not state:
        raise BadRequestError("Missing OAuth state")
    try:
        padded = state + "=" * (-len(state) % 4)
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        return UUID(str(payload["workspaceId"]))
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeError):
        raise BadRequestError("Invalid OAuth state")


# =============================================================================
# AUTHORIZE URLS
# =============================================================================

def build_google_authorize_url(settings, workspace_id: UUID) -> str:
    if not settings.GOOGLE_CLIENT_ID or not settings.GOOGLE_CLIENT_SECRET:
        raise ConfigurationError("Google OAuth not configured. Missing CLIENT_ID or CLIENT_SECRET.")
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": " ".join(GOOGLE_SCOPES),
        "access_type": "offline",  # request a refresh token
        "prompt": "consent",  # Google only returns refresh_token on consent
        "state": encode_state(workspace_id),
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def build_meta_authorize_url(settings, workspace_id: UUID) -> str:
    if not settings.META_APP_ID or not settings.META_APP_SECRET:
        raise ConfigurationError("Meta OAuth not configured. Missing APP_ID or APP_SECRET.")
    params = {
        "client_id": settings.META_APP_ID,
        "redirect_uri": settings.META_REDIRECT_URI,
        "scope": ",".join(META_SCOPES),
        "response_type": "code",
        "state": encode_state(workspace_id),
    }
    return f"{META_DIALOG_URL.format(version=settings.META_API_VERSION)}?{urlencode(params)}"


# =============================================================================
# INTEGRATION PERSISTENCE
# =============================================================================

def upsert_integration(
    db: Session,
    vault,
    *,
    workspace_id: UUID,
    platform: PlatformEnum,
    external_account_id: str,
    account_name: Optional[str],
    access_token: str,
    refresh_token: Optional[str] = None,
    expires_at=None,
    scopes: Optional[Sequence[str]] = None,
) -> Integration:
    """Create or refresh the integration for (workspace, platform, account). Caller commits."""
    integration = (
        db.query(Integration)
        .filter(
            Integration.workspace_id == workspace_id,
            Integration.platform == platform,
            Integration.external_account_id == external_account_id,
        )
        .first()
    )
    if integration is None:
        integration = Integration(
            workspace_id=workspace_id,
            platform=platform,
            external_account_id=external_account_id,
        )
        db.add(integration)
        logger.info(f"[OAUTH] Creating {platform.value} integration for account {external_account_id}")
    else:
        logger.info(f"[OAUTH] Updating {platform.value} integration for account {external_account_id}")

    integration.account_name = account_name
    integration.is_active = True
    store_integration_tokens(
        vault,
        integration,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
        scopes=scopes if scopes is not None else [],
    )
    db.flush()
    return integration


def list_integrations(db: Session, workspace_id: UUID) -> List[Integration]:
    return (
        db.query(Integration)
        .filter(Integration.workspace_id == workspace_id, Integration.is_active.is_(True))
        .order_by(Integration.created_at.desc())
        .all()
    )


def disconnect_integration(db: Session, workspace_id: UUID, integration_id: UUID) -> Integration:
    """Soft delete: flip `is_active` so stored metrics stay linked."""
    integration = (
        db.query(Integration)
        .filter(Integration.id == integration_id, Integration.workspace_id == workspace_id)
        .first()
    )
    if not integration:
        raise NotFoundError("Integration not found")
    integration.is_active = False
    db.commit()
    logger.info(f"[OAUTH] Disconnected integration {integration_id} in workspace {workspace_id}")
    return integration


def _require_workspace(db: Session, workspace_id: UUID) -> Workspace:
    workspace = db.query(Workspace).filter(Workspace.id == workspace_id).first()
    if not workspace:
        raise NotFoundError("Workspace not found")
    return workspace


def _post_or_get_json(http: httpx.Client, method: str, url: str, *, data=None, params=None, headers=None, failure: str) -> Dict[str, Any]:
    try:
        response = http.request(method, url, data=data, params=params, headers=headers)
    except httpx.HTTPError as exc:
        raise UpstreamRequestError(f"{failure}: {exc}") from exc
    if not response.is_success:
        logger.error(f"[OAUTH] {failure} (status={response.status_code})")
        raise AuthError(failure)
    try:
        return response.json()
    except ValueError as exc:
        raise AuthError(failure) from exc


# =============================================================================
# GOOGLE CALLBACK
# =============================================================================

def complete_google_oauth(db: Session, context, code: str, state: str) -> List[Integration]:
    """Exchange the code and store one integration per accessible customer.

    Raises:
        BadRequestError: bad state or missing code.
        AuthError: Google rejected the code exchange.
        NotFoundError: workspace gone, or the grant sees no Ads accounts.
    """
    settings = context.settings
    workspace_id = decode_state(state)
    if not code:
        raise BadRequestError("Missing authorization code")
    _require_workspace(db, workspace_id)

    tokens = _post_or_get_json(
        context.http, "POST", GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.GOOGLE_CLIENT_ID,
            "client_secret": settings.GOOGLE_CLIENT_SECRET,
            "redirect_uri": settings.GOOGLE_REDIRECT_URI,
            "grant_type": "authorization_code",
        },
        failure="Failed to exchange Google authorization code",
    )
    access_token = tokens.get("access_token")
    if not access_token:
        raise AuthError("Google token response did not include an access token")
    refresh_token = tokens.get("refresh_token")
    expires_at = utcnow() + timedelta(seconds=int(tokens.get("expires_in") or 3600))
    scopes = (tokens.get("scope") or " ".join(GOOGLE_SCOPES)).split()

    userinfo = _post_or_get_json(
        context.http, "GET", GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        failure="Failed to fetch Google user info",
    )
    owner_label = userinfo.get("email") or userinfo.get("name") or "Google Ads"

    client = GoogleAdsClient(StaticTokenSource(access_token), None, context)
    customer_ids = client.list_accessible_customers()
    if not customer_ids:
        raise NotFoundError("No accessible Google Ads accounts for this login")

    integrations = [
        upsert_integration(
            db, context.vault,
            workspace_id=workspace_id,
            platform=PlatformEnum.google,
            external_account_id=customer_id,
            account_name=f"{owner_label} ({customer_id})",
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            scopes=scopes,
        )
        for customer_id in customer_ids
    ]
    db.commit()
    logger.info(f"[OAUTH] Google connected for workspace {workspace_id}: {len(integrations)} accounts")
    return integrations


# =============================================================================
# META CALLBACK
# =============================================================================

def complete_meta_oauth(db: Session, context, code: str, state: str) -> List[Integration]:
    """Exchange the code and store one integration per ad account.

    Account ids are stored without the `act_` prefix. Meta returns no refresh
    token or usable expiry for this flow.
    """
    settings = context.settings
    workspace_id = decode_state(state)
    if not code:
        raise BadRequestError("Missing authorization code")
    _require_workspace(db, workspace_id)

    tokens = _post_or_get_json(
        context.http, "GET", META_TOKEN_URL.format(version=settings.META_API_VERSION),
        params={
            "client_id": settings.META_APP_ID,
            "client_secret": settings.META_APP_SECRET,
            "redirect_uri": settings.META_REDIRECT_URI,
            "code": code,
        },
        failure="Failed to exchange Meta authorization code",
    )
    access_token = tokens.get("access_token")
    if not access_token:
        raise AuthError("Meta token response did not include an access token")

    client = MetaAdsClient(StaticTokenSource(access_token), None, context)
    accounts = client.get_ad_accounts()
    if not accounts:
        raise NotFoundError("No Meta ad accounts for this login")

    integrations = []
    for account in accounts:
        account_id = str(account.get("id", ""))
        if account_id.startswith("act_"):
            account_id = account_id[len("act_"):]
        integrations.append(upsert_integration(
            db, context.vault,
            workspace_id=workspace_id,
            platform=PlatformEnum.meta,
            external_account_id=account_id,
            account_name=account.get("name") or account_id,
            access_token=access_token,
            scopes=META_SCOPES,
        ))
    db.commit()
    logger.info(f"[OAUTH] Meta connected for workspace {workspace_id}: {len(integrations)} accounts")
    return integrations
