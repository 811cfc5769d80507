"""
Tests for the market-stat resolution chain.
"""
import pytest

from conftest import FakeProvider
from vinyl_pricing.errors import ProviderError, ValidationError
from vinyl_pricing.market.resolver import MarketStatResolver
from vinyl_pricing.market.sources import HybridPriceSource, SnapshotPriceSource, usable


@pytest.mark.parametrize("value,expected", [
    (12.5, 12.5),
    ('7', 7.0),
    (0, None),
    (-3, None),
    (None, None),
    ('n/a', None),
    (float('inf'), None),
    (float('nan'), None),
    (True, None),
])
def test_usable(value, expected):
    assert usable(value) == expected


def test_snapshot_wins_over_providers(resolver, release, add_snapshot, providers):
    add_snapshot(median=150)

    resolved = resolver.resolve_detailed(release, 'median', 'HYBRID')

    assert resolved.value == pytest.approx(150)
    assert resolved.source == 'SNAPSHOT'
    assert providers['DISCOGS'].calls == 0
    assert providers['EBAY'].calls == 0


def test_newest_snapshot_is_used(resolver, release, add_snapshot):
    add_snapshot(median=120, age_days=10)
    add_snapshot(median=130, age_days=1)
    add_snapshot(median=110, age_days=40)

    assert resolver.resolve(release) == pytest.approx(130)


@pytest.mark.parametrize("statistic,snapshot,expected", [
    ('low', {'low': None, 'median': 40, 'high': 60}, 40),
    ('low', {'low': None, 'median': None, 'high': 60}, 60),
    ('median', {'low': 20, 'median': None, 'high': 60}, 20),
    ('median', {'low': None, 'median': None, 'high': 60}, 60),
    ('high', {'low': 20, 'median': 40, 'high': None}, 40),
    ('high', {'low': 20, 'median': None, 'high': None}, 20),
])
def test_snapshot_fallback_chain(catalog, release, add_snapshot, statistic, snapshot, expected):
    add_snapshot(**snapshot)
    source = SnapshotPriceSource(catalog)
    assert source.get_stat(release, statistic) == pytest.approx(expected)


def test_zero_snapshot_value_counts_as_missing(catalog, release, add_snapshot):
    add_snapshot(low=25, median=0, high=-1)
    assert SnapshotPriceSource(catalog).get_stat(release, 'median') == pytest.approx(25)


def test_empty_snapshot_falls_through_to_provider(resolver, release, add_snapshot):
    add_snapshot()
    resolved = resolver.resolve_detailed(release, 'median', 'DISCOGS')

    assert resolved.value == pytest.approx(140)
    assert resolved.source == 'DISCOGS'


@pytest.mark.parametrize("source,expected", [('DISCOGS', 140), ('ebay', 160)])
def test_single_provider(resolver, release, providers, source, expected):
    assert resolver.resolve(release, 'median', source) == pytest.approx(expected)


def test_single_provider_only_calls_that_provider(resolver, release, providers):
    resolver.resolve(release, 'high', 'EBAY')
    assert providers['EBAY'].calls == 1
    assert providers['DISCOGS'].calls == 0


def test_hybrid_averages_providers(resolver, release):
    resolved = resolver.resolve_detailed(release, 'median', 'HYBRID')

    assert resolved.value == pytest.approx(150)
    assert resolved.source == 'HYBRID'
    assert resolver.resolve(release, 'low', 'HYBRID') == pytest.approx(95)


def test_hybrid_uses_the_survivor_when_one_fails(catalog, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [
        FakeProvider('DISCOGS', error=ProviderError('Discogs down')),
        FakeProvider('EBAY', {'median': 160.0}),
    ])
    assert resolver.resolve(release, 'median', 'HYBRID') == pytest.approx(160)


def test_hybrid_ignores_missing_statistic(catalog, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [
        FakeProvider('DISCOGS', {'median': None}),
        FakeProvider('EBAY', {'median': 80.0}),
    ])
    assert resolver.resolve(release, 'median', 'HYBRID') == pytest.approx(80)


def test_all_providers_fail(catalog, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [
        FakeProvider('DISCOGS', error=ProviderError('Discogs down')),
        FakeProvider('EBAY', error=RuntimeError('boom')),
    ])
    assert resolver.resolve_detailed(release, 'median', 'HYBRID') is None


def test_unconfigured_source_has_no_data(catalog, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [FakeProvider('DISCOGS', {'median': 10.0})])
    assert resolver.resolve(release, 'median', 'EBAY') is None


def test_no_snapshot_source(release):
    resolver = MarketStatResolver(None, [FakeProvider('EBAY', {'high': 70.0})])
    assert resolver.resolve(release, 'high', 'EBAY') == pytest.approx(70)
    assert [s.name for s in resolver.chain_for('EBAY')] == ['EBAY']


def test_chain_for_hybrid(resolver):
    chain = resolver.chain_for('HYBRID')
    assert [s.name for s in chain] == ['SNAPSHOT', 'HYBRID']
    assert isinstance(chain[1], HybridPriceSource)
    assert [s.name for s in chain[1].sources] == ['DISCOGS', 'EBAY']


def test_invalid_statistic(resolver, release):
    with pytest.raises(ValidationError) as exc:
        resolver.resolve(release, 'mean', 'HYBRID')
    assert exc.value.code == 'invalid_market_statistic'


def test_invalid_source(resolver, release):
    with pytest.raises(ValidationError) as exc:
        resolver.resolve(release, 'median', 'AMAZON')
    assert exc.value.code == 'invalid_market_source'
