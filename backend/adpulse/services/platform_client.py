"""Shared HTTP plumbing for advertiser API clients.

WHAT:
    `PlatformClient.request()` obtains a valid token, sends one authenticated
    request through the shared httpx client, and retries up to 3 attempts with
    1s then 2s of backoff before re-raising the last error.

WHY:
    Google and Meta differ only in where the token goes (header vs query
    string) and how the URL is built; subclasses override `_prepare`.

    Every failure is retried, including 4xx responses that will never succeed.
    Callers pay up to 3 seconds of extra latency on permanent errors such as a
    revoked token or a malformed query.

REFERENCES:
    - adpulse/services/google_ads_client.py
    - adpulse/services/meta_ads_client.py
    - adpulse/services/token_service.py (token sources)
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from adpulse.errors import UpstreamRequestError

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3
_BODY_EXCERPT = 500


class PlatformClient:
    """Authenticated, retrying access to one advertiser API.

    Args:
        token_source: anything exposing `get_valid_access_token(integration_id)`.
        integration_id: integration whose token is used (None for static tokens).
        context: `AppContext` providing settings, the httpx client and sleep.
    """

    log_tag = "PLATFORM"

    def __init__(self, token_source, integration_id, context, *, sleep: Optional[Callable[[float], None]] = None):
        self._token_source = token_source
        self._integration_id = integration_id
        self._settings = context.settings
        self._http: httpx.Client = context.http
        self._sleep = sleep or getattr(context, "sleep", time.sleep)

    # --- Subclass hooks ------------------------------------------------
    def _prepare(
        self,
        access_token: str,
        endpoint: str,
        params: Dict[str, Any],
    ) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
        """Return (url, headers, params) for one request."""
        raise NotImplementedError

    # --- Core ----------------------------------------------------------
    def request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        method: str = "GET",
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send one logical request and return the decoded JSON body.

        Raises:
            UpstreamRequestError: after the last attempt failed.
            AuthError / NotFoundError: from the token source, not retried.
        """
        access_token = self._token_source.get_valid_access_token(self._integration_id)
        url, headers, query = self._prepare(access_token, endpoint, dict(params or {}))

        last_error: Optional[UpstreamRequestError] = None
        for attempt in range(MAX_ATTEMPTS):
            try:
                return self._send(method, url, headers, query, json_body)
            except UpstreamRequestError as exc:
                last_error = exc
                logger.warning(
                    f"[{self.log_tag}] {method} {endpoint} failed "
                    f"(attempt {attempt + 1}/{MAX_ATTEMPTS}): {exc.message}"
                )
                if attempt < MAX_ATTEMPTS - 1:
                    self._sleep(2 ** attempt)

        logger.error(f"[{self.log_tag}] {method} {endpoint} failed after {MAX_ATTEMPTS} attempts")
        raise last_error

    def _send(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        params: Dict[str, Any],
        json_body: Optional[Dict[str, Any]],
    ) -> Any:
        try:
            response = self._http.request(method, url, headers=headers, params=params or None, json=json_body)
        except httpx.HTTPError as exc:
            raise UpstreamRequestError(f"{self.log_tag} request error: {exc}") from exc

        if not response.is_success:
            raise UpstreamRequestError(
                f"{self.log_tag} API returned {response.status_code}",
                upstream_status=response.status_code,
                body=response.text[:_BODY_EXCERPT],
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamRequestError(
                f"{self.log_tag} API returned a non-JSON body",
                upstream_status=response.status_code,
                body=response.text[:_BODY_EXCERPT],
            ) from exc
