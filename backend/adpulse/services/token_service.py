"""Token lifecycle for connected advertiser accounts.

WHAT:
    - `store_integration_tokens`: encrypt and attach tokens to an Integration.
    - `TokenManager` subclasses: hand out a currently valid access token for an
      integration (`get_valid_access_token`), refreshing Google tokens when they
      are about to expire.
    - `StaticTokenSource`: same contract over a raw token, for OAuth callbacks
      that call the platform before an Integration row exists.

WHY:
    Platform clients ask for a token before every logical request. Managers
    short-circuit when nothing needs refreshing, so that is cheap.

REFERENCES:
    - adpulse/security.py (CredentialVault)
    - adpulse/services/platform_client.py (consumer)
    - https://developers.google.com/identity/protocols/oauth2/web-server#offline
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence
from uuid import UUID

import httpx
from sqlalchemy.orm import Session

from adpulse.errors import AuthError, NotFoundError, UpstreamRequestError
from adpulse.models import Integration, PlatformEnum, utcnow

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
REFRESH_THRESHOLD = timedelta(minutes=5)
DEFAULT_EXPIRES_IN_SECONDS = 3600


def store_integration_tokens(
    vault,
    integration: Integration,
    *,
    access_token: str,
    refresh_token: Optional[str] = None,
    expires_at: Optional[datetime] = None,
    scopes: Optional[Sequence[str]] = None,
) -> Integration:
    """Encrypt and set token columns on an integration (caller commits).

    A missing refresh token keeps the stored one: Google only returns it on the
    first consent, and Meta never does.
    """
    label = f"{integration.platform.value}:{integration.external_account_id}"
    integration.access_token_enc = vault.encrypt(access_token, context=f"{label}:access")
    if refresh_token:
        integration.refresh_token_enc = vault.encrypt(refresh_token, context=f"{label}:refresh")
    integration.token_expires_at = expires_at
    if scopes is not None:
        integration.scopes = list(scopes)
    logger.info(f"[TOKEN_SERVICE] Stored encrypted tokens for {label}")
    return integration


class StaticTokenSource:
    """Token source over an already-known access token."""

    def __init__(self, access_token: str):
        self._access_token = access_token

    def get_valid_access_token(self, integration_id=None) -> str:  # noqa: ARG002
        return self._access_token


class TokenManager:
    """Base token manager: load, verify platform, decrypt."""

    platform: PlatformEnum

    def __init__(self, db: Session, context, *, now: Callable[[], datetime] = utcnow):
        self._db = db
        self._context = context
        self._vault = context.vault
        self._now = now

    def get_valid_access_token(self, integration_id: UUID) -> str:
        integration = self._load_integration(integration_id)
        return self._decrypt_access_token(integration)

    def _load_integration(self, integration_id: UUID) -> Integration:
        integration = self._db.query(Integration).filter(Integration.id == integration_id).first()
        if not integration or integration.platform != self.platform:
            raise NotFoundError(f"{self.platform.value.capitalize()} integration not found")
        return integration

    def _decrypt_access_token(self, integration: Integration) -> str:
        return self._vault.decrypt(integration.access_token_enc, context=f"{integration}:access")


class GoogleTokenManager(TokenManager):
    """Google access tokens live about an hour; refresh within 5 minutes of expiry."""

    platform = PlatformEnum.google

    def needs_refresh(self, expires_at: Optional[datetime]) -> bool:
        if expires_at is None:
            return True
        return expires_at - self._now() < REFRESH_THRESHOLD

    def get_valid_access_token(self, integration_id: UUID) -> str:
        integration = self._load_integration(integration_id)
        access_token = self._decrypt_access_token(integration)

        if integration.refresh_token_enc and self.needs_refresh(integration.token_expires_at):
            refresh_token = self._vault.decrypt(
                integration.refresh_token_enc, context=f"{integration}:refresh"
            )
            return self._refresh(integration, refresh_token)

        return access_token

    def _refresh(self, integration: Integration, refresh_token: str) -> str:
        """Run the refresh-token grant and persist the new token.

        Raises:
            AuthError: Google rejected the grant (revoked or expired consent).
            UpstreamRequestError: the token endpoint could not be reached.
        """
        settings = self._context.settings
        logger.info(f"[GOOGLE_TOKEN] Refreshing access token for {integration}")
        try:
            response = self._context.http.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": settings.GOOGLE_CLIENT_ID,
                    "client_secret": settings.GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
        except httpx.HTTPError as exc:
            raise UpstreamRequestError(f"Google token endpoint unreachable: {exc}") from exc

        if not response.is_success:
            logger.error(
                f"[GOOGLE_TOKEN] Refresh rejected for {integration} (status={response.status_code})"
            )
            raise AuthError("Failed to refresh Google access token")

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN_SECONDS)
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError("Malformed Google token response") from exc

        integration.access_token_enc = self._vault.encrypt(access_token, context=f"{integration}:access")
        integration.token_expires_at = self._now() + timedelta(seconds=expires_in)
        self._db.commit()

        logger.info(f"[GOOGLE_TOKEN] Token refreshed for {integration} (expires_in={expires_in}s)")
        return access_token


class MetaTokenManager(TokenManager):
    """Meta issues long-lived tokens; decrypt and return as stored.

    Exchanging a long-lived token for a new one before it expires is not
    implemented. An expired token surfaces as an upstream 401 from the Graph API
    and the integration has to be reconnected.
    """

    platform = PlatformEnum.meta
