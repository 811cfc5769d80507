"""
Shared fixtures: in-memory database, seeded release, fake market providers.
"""
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'src'))

from vinyl_pricing.catalog.releases import ReleaseCatalog
from vinyl_pricing.config.settings import DEFAULT_CONDITION_CURVE, PricingDefaults
from vinyl_pricing.db.models import MarketSnapshotRecord, ReleaseRecord
from vinyl_pricing.db.session import init_db, make_engine, make_session_factory
from vinyl_pricing.engine.pricing_engine import PricingEngine
from vinyl_pricing.market.resolver import MarketStatResolver
from vinyl_pricing.market.sources import MarketDataProvider, SnapshotPriceSource
from vinyl_pricing.policy.cache import PolicyCache
from vinyl_pricing.policy.store import PolicyStore
from vinyl_pricing.services.policy_service import PolicyService

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeProvider(MarketDataProvider):
    """Returns canned stats, or raises, and counts calls."""

    def __init__(self, name, stats=None, error=None):
        self.name = name
        self.stats = stats
        self.error = error
        self.calls = 0

    def get_price_statistics(self, release):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return dict(self.stats or {})


def policy_definition(name="Test Policy", **overrides):
    """A valid policy payload in the camelCase admin format."""
    definition = {
        'name': name,
        'buyFormula': {
            'buyPercentage': 0.55,
            'weights': {'media': 0.6, 'sleeve': 0.4},
            'roundIncrement': 0.25,
            'floor': 5,
            'ceiling': 500,
        },
        'sellFormula': {
            'sellPercentage': 1.25,
            'weights': {'media': 0.6, 'sleeve': 0.4},
            'roundIncrement': 0.25,
            'floor': 10,
            'ceiling': 999.99,
            'minProfitMargin': 0.30,
        },
        'conditionCurve': dict(DEFAULT_CONDITION_CURVE),
        'offerExpiryDays': 30,
    }
    definition.update(overrides)
    return definition


@pytest.fixture
def defaults():
    return PricingDefaults()


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite:///:memory:")
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def release(session_factory):
    """A release with no snapshot."""
    with session_factory() as session, session.begin():
        session.add(ReleaseRecord(
            id='rel-1',
            artist='Miles Davis',
            title='Kind of Blue',
            catalog_number='CL 1355',
            discogs_id=1234567,
        ))
    return ReleaseCatalog(session_factory).get_release('rel-1')


@pytest.fixture
def add_snapshot(session_factory):
    """Factory inserting a market snapshot for a release."""
    def _add(release_id='rel-1', low=None, median=None, high=None, source='DISCOGS', age_days=0):
        with session_factory() as session, session.begin():
            session.add(MarketSnapshotRecord(
                release_id=release_id,
                source=source,
                stat_low=low,
                stat_median=median,
                stat_high=high,
                sample_size=10,
                fetched_at=NOW - timedelta(days=age_days),
            ))
    return _add


@pytest.fixture
def catalog(session_factory):
    return ReleaseCatalog(session_factory)


@pytest.fixture
def store(session_factory, defaults):
    return PolicyStore(session_factory, defaults=defaults)


@pytest.fixture
def policy_cache(store, defaults):
    return PolicyCache(store, defaults=defaults)


@pytest.fixture
def policy_service(store, policy_cache):
    return PolicyService(store, policy_cache)


@pytest.fixture
def providers():
    return {
        'DISCOGS': FakeProvider('DISCOGS', {'low': 100.0, 'median': 140.0, 'high': 200.0}),
        'EBAY': FakeProvider('EBAY', {'low': 90.0, 'median': 160.0, 'high': 220.0}),
    }


@pytest.fixture
def resolver(catalog, providers):
    return MarketStatResolver(SnapshotPriceSource(catalog), list(providers.values()))


@pytest.fixture
def pricing_engine(catalog, policy_cache, resolver, defaults):
    return PricingEngine(catalog, policy_cache, resolver, defaults=defaults, clock=lambda: NOW)
