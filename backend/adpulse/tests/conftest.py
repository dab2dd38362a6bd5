"""Pytest configuration for adpulse tests

WHAT: Shared fixtures for service, pipeline and HTTP endpoint tests
WHY: One in-memory database, one fake upstream (httpx.MockTransport) and one
     recording sleep, all threaded through a real `AppContext`.
REFERENCES:
    - adpulse/context.py: AppContext / build_context
    - adpulse/main.py: create_app
"""

import os
import sys
from datetime import timedelta
from pathlib import Path
from typing import Generator
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

# Ensure backend is in path
BACKEND_ROOT = Path(__file__).resolve().parents[2]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# 32 bytes, hex encoded
TEST_ENCRYPTION_KEY = "000102030405060708090a0b0c0d0e0f101112131415161718191a1b1c1d1e1f"
TEST_JWT_SECRET = "test-jwt-secret"

os.environ.setdefault("TOKEN_ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SYNC_SCHEDULER_ENABLED", "false")


# ============================================================================
# Fake upstream (Google / Meta / OpenAI-free HTTP)
# ============================================================================

class FakeUpstream:
    """Routes outbound httpx requests to canned responses.

    Routes match on method plus scheme://host/path (query string ignored).
    Each route holds a queue; the last response repeats once the queue drains.
    A callable response receives the request and returns an `httpx.Response`.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, url, status=200, json=None, handler=None):
        self.routes.setdefault((method.upper(), url), []).append((status, json, handler))
        return self

    def calls(self, method, url):
        return [r for r in self.requests if r.method == method.upper() and _route_url(r) == url]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, _route_url(request)))
        if not queue:
            return httpx.Response(404, json={"error": "no fake route"})
        status, payload, handler = queue.pop(0) if len(queue) > 1 else queue[0]
        if handler is not None:
            return handler(request)
        return httpx.Response(status, json=payload)


def _route_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """In-memory SQLite shared by every session (StaticPool = one connection)."""
    from adpulse.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_db_engine):
    from adpulse.database import make_session_factory

    return make_session_factory(test_db_engine)


@pytest.fixture
def test_db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.rollback()
    session.close()


# ============================================================================
# Context Fixtures
# ============================================================================

@pytest.fixture
def settings():
    from adpulse.deps import Settings

    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL="sqlite://",
        TOKEN_ENCRYPTION_KEY=TEST_ENCRYPTION_KEY,
        JWT_SECRET=TEST_JWT_SECRET,
        FRONTEND_URL="http://dashboard.test",
        GOOGLE_CLIENT_ID="google-client-id",
        GOOGLE_CLIENT_SECRET="google-client-secret",
        GOOGLE_REDIRECT_URI="http://api.test/api/oauth/google/callback",
        GOOGLE_DEVELOPER_TOKEN="dev-token",
        META_APP_ID="meta-app-id",
        META_APP_SECRET="meta-app-secret",
        META_REDIRECT_URI="http://api.test/api/oauth/meta/callback",
        OPENAI_API_KEY=None,
        SYNC_SCHEDULER_ENABLED=False,
        SENTRY_DSN=None,
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def context(settings, session_factory, upstream, sleep_recorder):
    from adpulse.context import build_context

    http = httpx.Client(transport=httpx.MockTransport(upstream))
    ctx = build_context(settings, session_factory=session_factory, http=http, sleep=sleep_recorder)
    yield ctx
    http.close()


@pytest.fixture
def vault(context):
    return context.vault


# ============================================================================
# Model Fixtures
# ============================================================================

@pytest.fixture
def test_workspace(test_db_session):
    from adpulse.models import Workspace

    workspace = Workspace(id=uuid4(), name="Test Workspace")
    test_db_session.add(workspace)
    test_db_session.commit()
    return workspace


@pytest.fixture
def test_workspace_b(test_db_session):
    """Second workspace (for isolation tests)."""
    from adpulse.models import Workspace

    workspace = Workspace(id=uuid4(), name="Test Workspace B")
    test_db_session.add(workspace)
    test_db_session.commit()
    return workspace


@pytest.fixture
def test_user(test_db_session, test_workspace):
    from adpulse.models import RoleEnum, User, WorkspaceMember

    user = User(id=uuid4(), email="owner@example.com", name="Owner")
    test_db_session.add(user)
    test_db_session.add(
        WorkspaceMember(workspace_id=test_workspace.id, user_id=user.id, role=RoleEnum.owner)
    )
    test_db_session.commit()
    return user


@pytest.fixture
def make_integration(test_db_session, vault):
    """Factory for integrations with encrypted tokens."""
    from adpulse.models import Integration, PlatformEnum

    def _make(
        workspace,
        platform=PlatformEnum.google,
        external_account_id="1234567890",
        access_token="access-token",
        refresh_token=None,
        expires_in=timedelta(hours=1),
        is_active=True,
    ):
        from adpulse.models import utcnow

        integration = Integration(
            id=uuid4(),
            workspace_id=workspace.id,
            platform=platform,
            external_account_id=external_account_id,
            account_name=f"Account {external_account_id}",
            access_token_enc=vault.encrypt(access_token),
            refresh_token_enc=vault.encrypt(refresh_token) if refresh_token else None,
            token_expires_at=utcnow() + expires_in if expires_in is not None else None,
            is_active=is_active,
            scopes=[],
        )
        test_db_session.add(integration)
        test_db_session.commit()
        return integration

    return _make


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(context):
    from adpulse.main import create_app

    return create_app(context=context)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def auth_headers(test_user, test_workspace):
    """Bearer token for `test_user` plus the workspace header."""
    from adpulse.security import create_access_token

    token = create_access_token(str(test_user.id), TEST_JWT_SECRET)
    return {
        "Authorization": f"Bearer {token}",
        "X-Workspace-Id": str(test_workspace.id),
    }
