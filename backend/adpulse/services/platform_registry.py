"""Platform adapter registry.

WHAT:
    Maps a `PlatformEnum` to the four classes that make up its ingestion
    pipeline: token manager, API client, fetcher and normalizer.

WHY:
    The scheduler, the arq worker and the app wiring only ever call
    `get_adapter(platform)`. Supporting a new platform means writing those four
    classes and one `register_adapter(...)` call below.

REFERENCES:
    - adpulse/services/sync_scheduler.py
    - adpulse/workers/arq_worker.py
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Type
from uuid import UUID

from sqlalchemy.orm import Session

from adpulse.errors import ConfigurationError
from adpulse.models import PlatformEnum
from adpulse.services.google_ads_client import GoogleAdsClient
from adpulse.services.google_fetcher import GoogleFetcher
from adpulse.services.meta_ads_client import MetaAdsClient
from adpulse.services.meta_fetcher import MetaFetcher
from adpulse.services.normalizer import GoogleNormalizer, MetaNormalizer, Normalizer
from adpulse.services.platform_client import PlatformClient
from adpulse.services.platform_data import Fetcher
from adpulse.services.token_service import GoogleTokenManager, MetaTokenManager, TokenManager


@dataclass(frozen=True)
class PlatformAdapter:
    platform: PlatformEnum
    token_manager_cls: Type[TokenManager]
    client_cls: Type[PlatformClient]
    fetcher_cls: Type[Fetcher]
    normalizer_cls: Type[Normalizer]

    def build_token_manager(self, db: Session, context) -> TokenManager:
        return self.token_manager_cls(db, context)

    def build_client(self, token_source, integration_id, context) -> PlatformClient:
        return self.client_cls(token_source, integration_id, context)

    def build_fetcher(self, db: Session, context) -> Fetcher:
        token_manager = self.build_token_manager(db, context)

        def client_factory(integration_id: UUID) -> PlatformClient:
            return self.build_client(token_manager, integration_id, context)

        return self.fetcher_cls(client_factory)

    def build_normalizer(self, db: Session) -> Normalizer:
        return self.normalizer_cls(db)


_ADAPTERS: Dict[PlatformEnum, PlatformAdapter] = {}


def register_adapter(adapter: PlatformAdapter) -> None:
    _ADAPTERS[adapter.platform] = adapter


def get_adapter(platform: PlatformEnum) -> PlatformAdapter:
    try:
        return _ADAPTERS[PlatformEnum(platform)]
    except (KeyError, ValueError):
        raise ConfigurationError(f"No ingestion adapter registered for platform {platform!r}")


def registered_platforms() -> List[PlatformEnum]:
    return list(_ADAPTERS)


register_adapter(PlatformAdapter(
    platform=PlatformEnum.google,
    token_manager_cls=GoogleTokenManager,
    client_cls=GoogleAdsClient,
    fetcher_cls=GoogleFetcher,
    normalizer_cls=GoogleNormalizer,
))

register_adapter(PlatformAdapter(
    platform=PlatformEnum.meta,
    token_manager_cls=MetaTokenManager,
    client_cls=MetaAdsClient,
    fetcher_cls=MetaFetcher,
    normalizer_cls=MetaNormalizer,
))
