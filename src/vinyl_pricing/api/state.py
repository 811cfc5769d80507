"""
Component wiring shared by the API and the admin console.

Each app builds its own Components and keeps them on ``app.state``; nothing
here is a module-level singleton.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import sessionmaker

from ..catalog.releases import ReleaseCatalog
from ..config.settings import Settings, get_settings
from ..db.session import build_session_factory
from ..engine.pricing_engine import PricingEngine
from ..market.discogs import DiscogsClient
from ..market.ebay import EbayClient
from ..market.resolver import MarketStatResolver
from ..market.sources import MarketDataProvider, SnapshotPriceSource
from ..policy.cache import PolicyCache
from ..policy.store import PolicyStore
from ..services.policy_service import PolicyService


@dataclass
class Components:
    settings: Settings
    session_factory: sessionmaker
    catalog: ReleaseCatalog
    policy_store: PolicyStore
    policy_cache: PolicyCache
    policy_service: PolicyService
    resolver: MarketStatResolver
    engine: PricingEngine


def default_providers(settings: Settings) -> list[MarketDataProvider]:
    return [
        DiscogsClient(
            api_url=settings.discogs_api_url,
            token=settings.discogs_token,
            user_agent=settings.discogs_user_agent,
            timeout=settings.provider_timeout_seconds,
            max_retries=settings.provider_max_retries,
        ),
        EbayClient(
            client_id=settings.ebay_client_id,
            client_secret=settings.ebay_client_secret,
            api_url=settings.ebay_api_url,
            timeout=settings.provider_timeout_seconds,
            max_retries=settings.provider_max_retries,
        ),
    ]


def build_components(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    providers: Optional[list[MarketDataProvider]] = None,
) -> Components:
    """Wire store, cache, resolver and engine for one application instance."""
    settings = settings or get_settings()
    session_factory = session_factory or build_session_factory(settings)
    defaults = settings.defaults

    catalog = ReleaseCatalog(session_factory)
    store = PolicyStore(session_factory, defaults=defaults, audit_limit=settings.history_audit_limit)
    cache = PolicyCache(store, ttl_seconds=settings.policy_cache_ttl_seconds, defaults=defaults)
    resolver = MarketStatResolver(
        SnapshotPriceSource(catalog),
        providers if providers is not None else default_providers(settings),
    )

    return Components(
        settings=settings,
        session_factory=session_factory,
        catalog=catalog,
        policy_store=store,
        policy_cache=cache,
        policy_service=PolicyService(store, cache),
        resolver=resolver,
        engine=PricingEngine(catalog, cache, resolver, defaults=defaults),
    )
