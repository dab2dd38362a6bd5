"""Application context threaded through every pipeline component.

WHAT:
    `AppContext` bundles the immutable settings, the credential vault, the DB
    session factory, the shared outbound HTTP client and the sleep function.

WHY:
    Components take the context in their constructor instead of reading
    environment variables or module globals, so tests swap in an in-memory
    database, an `httpx.MockTransport` and a recording sleep.

REFERENCES:
    - adpulse/main.py (lifespan builds and closes it)
    - adpulse/workers/arq_worker.py (worker startup builds its own)
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx
from sqlalchemy.orm import sessionmaker

from .database import create_db_engine, make_session_factory
from .deps import Settings
from .security import CredentialVault

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppContext:
    settings: Settings
    vault: CredentialVault
    session_factory: sessionmaker
    http: httpx.Client
    sleep: Callable[[float], None] = field(default=time.sleep)

    def close(self) -> None:
        self.http.close()
        bind = self.session_factory.kw.get("bind")
        if bind is not None:
            bind.dispose()


def build_context(
    settings: Settings,
    *,
    session_factory: Optional[sessionmaker] = None,
    http: Optional[httpx.Client] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> AppContext:
    """Build the context once per process.

    Raises:
        ConfigurationError: TOKEN_ENCRYPTION_KEY missing or not 32 bytes.
    """
    vault = CredentialVault(settings.TOKEN_ENCRYPTION_KEY)

    if session_factory is None:
        session_factory = make_session_factory(create_db_engine(settings.DATABASE_URL))

    if http is None:
        http = httpx.Client(timeout=settings.HTTP_TIMEOUT_SECONDS)

    logger.info(f"[CONTEXT] Application context ready (environment={settings.ENVIRONMENT})")
    return AppContext(
        settings=settings,
        vault=vault,
        session_factory=session_factory,
        http=http,
        sleep=sleep,
    )
