"""Tests for token managers: refresh window, persistence and failures."""

from datetime import timedelta

import httpx
import pytest

from adpulse.errors import AuthError, NotFoundError, UpstreamRequestError
from adpulse.models import Integration, PlatformEnum
from adpulse.services.token_service import (
    GOOGLE_TOKEN_URL,
    GoogleTokenManager,
    MetaTokenManager,
    StaticTokenSource,
    store_integration_tokens,
)


def _refreshed(upstream, token="fresh-token", expires_in=3599):
    upstream.add("POST", GOOGLE_TOKEN_URL, json={"access_token": token, "expires_in": expires_in})


def test_google_token_refreshed_when_expiring_within_five_minutes(
    test_db_session, context, upstream, test_workspace, make_integration
):
    integration = make_integration(
        test_workspace, refresh_token="refresh-token", expires_in=timedelta(minutes=4)
    )
    _refreshed(upstream)

    token = GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)

    assert token == "fresh-token"
    calls = upstream.calls("POST", GOOGLE_TOKEN_URL)
    assert len(calls) == 1
    body = calls[0].content.decode()
    assert "grant_type=refresh_token" in body
    assert "refresh_token=refresh-token" in body

    test_db_session.expire_all()
    stored = test_db_session.get(Integration, integration.id)
    assert context.vault.decrypt(stored.access_token_enc) == "fresh-token"
    assert context.vault.decrypt(stored.refresh_token_enc) == "refresh-token"


def test_google_token_not_refreshed_when_ten_minutes_left(
    test_db_session, context, upstream, test_workspace, make_integration
):
    integration = make_integration(
        test_workspace, refresh_token="refresh-token", expires_in=timedelta(minutes=10)
    )

    token = GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)

    assert token == "access-token"
    assert upstream.requests == []


def test_google_refresh_sets_new_expiry(test_db_session, context, upstream, test_workspace, make_integration):
    integration = make_integration(test_workspace, refresh_token="r", expires_in=None)
    _refreshed(upstream, expires_in=1800)
    manager = GoogleTokenManager(test_db_session, context)

    manager.get_valid_access_token(integration.id)

    test_db_session.expire_all()
    stored = test_db_session.get(Integration, integration.id)
    assert not manager.needs_refresh(stored.token_expires_at)
    assert stored.token_expires_at - manager._now() > timedelta(minutes=25)


def test_google_refresh_rejected_raises_auth_error(
    test_db_session, context, upstream, test_workspace, make_integration
):
    integration = make_integration(test_workspace, refresh_token="revoked", expires_in=timedelta(0))
    upstream.add("POST", GOOGLE_TOKEN_URL, status=400, json={"error": "invalid_grant"})

    with pytest.raises(AuthError):
        GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)

    test_db_session.expire_all()
    stored = test_db_session.get(Integration, integration.id)
    assert context.vault.decrypt(stored.access_token_enc) == "access-token"


def test_google_refresh_transport_error_raises_upstream_error(
    test_db_session, context, upstream, test_workspace, make_integration
):
    integration = make_integration(test_workspace, refresh_token="r", expires_in=timedelta(0))

    def _boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.add("POST", GOOGLE_TOKEN_URL, handler=_boom)

    with pytest.raises(UpstreamRequestError):
        GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)


def test_expired_google_token_without_refresh_token_is_returned_as_is(
    test_db_session, context, upstream, test_workspace, make_integration
):
    integration = make_integration(test_workspace, refresh_token=None, expires_in=timedelta(0))

    token = GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)

    assert token == "access-token"
    assert upstream.requests == []


def test_missing_integration_raises_not_found(test_db_session, context):
    from uuid import uuid4

    with pytest.raises(NotFoundError):
        GoogleTokenManager(test_db_session, context).get_valid_access_token(uuid4())


def test_platform_mismatch_raises_not_found(test_db_session, context, test_workspace, make_integration):
    integration = make_integration(test_workspace, platform=PlatformEnum.meta, external_account_id="555")

    with pytest.raises(NotFoundError):
        GoogleTokenManager(test_db_session, context).get_valid_access_token(integration.id)


def test_meta_token_returned_as_stored(test_db_session, context, upstream, test_workspace, make_integration):
    integration = make_integration(
        test_workspace, platform=PlatformEnum.meta, external_account_id="555",
        access_token="meta-long-lived", expires_in=timedelta(0),
    )

    token = MetaTokenManager(test_db_session, context).get_valid_access_token(integration.id)

    assert token == "meta-long-lived"
    assert upstream.requests == []


def test_store_tokens_keeps_existing_refresh_token(vault):
    integration = Integration(platform=PlatformEnum.google, external_account_id="1")
    store_integration_tokens(vault, integration, access_token="a1", refresh_token="r1", scopes=["x"])
    store_integration_tokens(vault, integration, access_token="a2")

    assert vault.decrypt(integration.access_token_enc) == "a2"
    assert vault.decrypt(integration.refresh_token_enc) == "r1"
    assert integration.scopes == ["x"]


def test_static_token_source():
    assert StaticTokenSource("abc").get_valid_access_token(None) == "abc"
