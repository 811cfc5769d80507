"""
End-to-end tests for the pricing engine: release lookup, policy scope,
market resolution and the calculator together.
"""
from datetime import timedelta

import pytest

from conftest import NOW, FakeProvider, policy_definition
from vinyl_pricing.engine.pricing_engine import PricingEngine
from vinyl_pricing.errors import InternalError, NotFoundError, ValidationError
from vinyl_pricing.market.resolver import MarketStatResolver
from vinyl_pricing.market.sources import SnapshotPriceSource


@pytest.fixture
def snapshot_150(release, add_snapshot):
    add_snapshot(low=120, median=150, high=190)
    return release


def test_scenario_a_buy_with_defaults(pricing_engine, snapshot_150, providers):
    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM')

    assert result.price == pytest.approx(82.50)
    assert result.policy_used == 'default'
    assert result.policy_version is None
    assert result.breakdown.market_stat == pytest.approx(150)
    assert result.breakdown.market_source == 'SNAPSHOT'
    assert result.breakdown.market_statistic == 'median'
    assert result.offer_expires_at == NOW + timedelta(days=30)
    assert providers['DISCOGS'].calls == 0


def test_scenario_c_sell_with_defaults(pricing_engine, snapshot_150):
    result = pricing_engine.calculate_sell_price('rel-1', 'NM', 'NM', cost_basis=50)

    assert result.price == pytest.approx(187.5)
    assert result.margin_percent == pytest.approx(275.0)
    assert result.offer_expires_at is None
    assert result.breakdown.min_margin_applied is False


def test_buy_reads_buyer_policy(pricing_engine, policy_service, snapshot_150):
    definition = policy_definition(offerExpiryDays=14)
    definition['buyFormula']['buyPercentage'] = 0.6
    saved = policy_service.save_policy('BUYER', definition)

    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM')

    assert result.price == pytest.approx(90.0)
    assert result.policy_used == saved.id
    assert result.policy_version == 1
    assert result.offer_expires_at == NOW + timedelta(days=14)


def test_sell_reads_seller_policy(pricing_engine, policy_service, snapshot_150):
    definition = policy_definition()
    definition['sellFormula']['sellPercentage'] = 1.5
    policy_service.save_policy('SELLER', definition)

    assert pricing_engine.calculate_sell_price('rel-1', 'NM', 'NM', 50).price == pytest.approx(225.0)
    # The buyer scope still has no policy
    assert pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM').policy_used == 'default'


def test_rollback_is_visible_to_next_calculation(pricing_engine, policy_service, snapshot_150):
    first = policy_definition()
    first['buyFormula']['buyPercentage'] = 0.5
    second = policy_definition()
    second['buyFormula']['buyPercentage'] = 0.7
    policy_service.save_policy('BUYER', first)
    policy_service.save_policy('BUYER', second)
    assert pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM').price == pytest.approx(105.0)

    policy_service.rollback_policy('BUYER', 1)
    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM')
    assert result.price == pytest.approx(75.0)
    assert result.policy_version == 3


def test_formula_override(pricing_engine, snapshot_150):
    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', formula_override={'buyPercentage': 0.4})
    assert result.price == pytest.approx(60.0)


def test_legacy_style_override(pricing_engine, snapshot_150):
    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', formula_override={'percentage': 0.4, 'buyCeiling': 50})
    assert result.price == pytest.approx(50.0)
    assert result.breakdown.ceiling_applied


def test_invalid_override(pricing_engine, snapshot_150):
    with pytest.raises(ValidationError) as exc:
        pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', formula_override={'floor': 'cheap'})
    assert exc.value.code == 'invalid_formula'


def test_explicit_source_and_statistic(pricing_engine, release):
    assert pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', market_source='DISCOGS').price == pytest.approx(77.0)

    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', market_statistic='high')
    assert result.breakdown.market_stat == pytest.approx(210.0)
    assert result.breakdown.market_source == 'HYBRID'
    assert result.price == pytest.approx(115.5)


def test_policy_market_defaults_and_precedence(pricing_engine, policy_service, release):
    definition = policy_definition()
    definition['buyFormula'].update({'marketSource': 'EBAY', 'priceStatistic': 'low'})
    policy_service.save_policy('BUYER', definition)

    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM')
    assert result.breakdown.market_source == 'EBAY'
    assert result.price == pytest.approx(49.5)

    # An explicit argument beats the policy default
    result = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM', market_source='DISCOGS')
    assert result.breakdown.market_source == 'DISCOGS'
    assert result.price == pytest.approx(55.0)


def test_release_not_found(pricing_engine):
    with pytest.raises(NotFoundError) as exc:
        pricing_engine.calculate_buy_price('missing', 'NM', 'NM')
    assert exc.value.code == 'release_not_found'


def test_no_market_data(catalog, policy_cache, defaults, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [FakeProvider('DISCOGS', {})])
    engine = PricingEngine(catalog, policy_cache, resolver, defaults=defaults, clock=lambda: NOW)

    with pytest.raises(NotFoundError) as exc:
        engine.calculate_buy_price('rel-1', 'NM', 'NM')
    assert exc.value.code == 'market_data_unavailable'


def test_validation_precedes_lookups(pricing_engine, providers):
    with pytest.raises(ValidationError) as exc:
        pricing_engine.calculate_buy_price('missing', 'EXCELLENT', 'NM')
    assert exc.value.code == 'invalid_condition'

    with pytest.raises(ValidationError) as exc:
        pricing_engine.calculate_sell_price('missing', 'NM', 'NM', cost_basis=None)
    assert exc.value.code == 'invalid_cost_basis'

    with pytest.raises(ValidationError):
        pricing_engine.calculate_buy_price('missing', 'NM', 'NM', market_source='AMAZON')

    assert providers['DISCOGS'].calls == 0
    assert providers['EBAY'].calls == 0


def test_unexpected_failure_is_internal_error(catalog, policy_cache, resolver, defaults, snapshot_150):
    class ExplodingCalculator:
        def calculate(self, *args, **kwargs):
            raise RuntimeError("boom")

    engine = PricingEngine(catalog, policy_cache, resolver, defaults=defaults, calculator=ExplodingCalculator())
    with pytest.raises(InternalError) as exc:
        engine.calculate_buy_price('rel-1', 'NM', 'NM')
    assert exc.value.status_code == 500


def test_result_dict(pricing_engine, snapshot_150):
    data = pricing_engine.calculate_buy_price('rel-1', 'NM', 'NM').to_dict()

    assert data['price'] == pytest.approx(82.5)
    assert data['offerExpiresAt'] == (NOW + timedelta(days=30)).isoformat()
    assert data['breakdown']['marketSource'] == 'SNAPSHOT'
    assert data['breakdown']['marketStat'] == pytest.approx(150)


def test_markdown_scenario_e(pricing_engine):
    result = pricing_engine.calculate_markdown(100, NOW - timedelta(days=35), 50)

    assert result.new_price == pytest.approx(90.0)
    assert result.discount_percent == pytest.approx(10.0)
    assert result.days_listed == 35


@pytest.mark.parametrize("cost_basis", [float('nan'), float('inf')])
def test_non_finite_cost_basis_rejected(pricing_engine, snapshot_150, cost_basis):
    with pytest.raises(ValidationError) as exc:
        pricing_engine.calculate_sell_price('rel-1', 'NM', 'NM', cost_basis)
    assert exc.value.code == 'invalid_cost_basis'


def test_infinite_provider_stat_is_unavailable(catalog, policy_cache, defaults, release):
    resolver = MarketStatResolver(SnapshotPriceSource(catalog), [FakeProvider('DISCOGS', {'median': float('inf')})])
    engine = PricingEngine(catalog, policy_cache, resolver, defaults=defaults, clock=lambda: NOW)

    with pytest.raises(NotFoundError):
        engine.calculate_buy_price('rel-1', 'NM', 'NM', market_source='DISCOGS')
