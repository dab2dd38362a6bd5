"""Error taxonomy shared by the ingestion pipeline and the HTTP layer.

WHAT:
    One base class (`AppError`) carrying a caller-visible message and an HTTP
    status code, plus the concrete failure kinds raised across the codebase.

WHY:
    - Routers render every `AppError` as `{"error": message}` with its status code
      (see `adpulse.main._register_exception_handlers`).
    - The sync scheduler catches these per integration and keeps going.

REFERENCES:
    - adpulse/main.py (exception handlers)
    - adpulse/services/sync_scheduler.py (per-integration boundary)
    - adpulse/services/normalizer.py (OrphanRowWarning row boundary)
"""

from typing import Optional


class AppError(Exception):
    """Base error with an HTTP-friendly status code."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ConfigurationError(AppError):
    """Missing or malformed secrets/settings. Fatal at startup."""

    status_code = 500


class NotFoundError(AppError):
    status_code = 404


class BadRequestError(AppError):
    status_code = 400


class PermissionDeniedError(AppError):
    status_code = 403


class AuthError(AppError):
    """Provider rejected a token refresh or code exchange.

    The integration most likely needs to be reconnected by the user.
    """

    status_code = 401


class IntegrityError(AppError):
    """Encrypted blob failed authentication (tampered data or wrong key)."""

    status_code = 500


class UpstreamRequestError(AppError):
    """HTTP failure talking to an advertiser API.

    Attributes:
        upstream_status: status code returned by the provider, None on transport errors.
        body: truncated response body for logs.
    """

    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body


class OrphanRowWarning(Exception):
    """A metric row references a campaign that is not stored for the workspace."""

    def __init__(self, platform: str, campaign_id: str, metric_date):
        super().__init__(
            f"No {platform} campaign {campaign_id} for metric row dated {metric_date}"
        )
        self.platform = platform
        self.campaign_id = campaign_id
        self.metric_date = metric_date
