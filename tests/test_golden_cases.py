"""
Golden test cases for price calculator regression testing.
These tests capture the expected behavior of the buy/sell formula with the
engine defaults and should fail if pricing logic changes unexpectedly.
"""
import csv
import os

import pytest

from vinyl_pricing.config.settings import PricingDefaults
from vinyl_pricing.engine.calculator import PriceCalculator
from vinyl_pricing.engine.models import Direction
from vinyl_pricing.policy.migration import default_formula


@pytest.fixture(scope="module")
def calculator():
    return PriceCalculator()


def load_golden_cases():
    """Load golden test cases from CSV."""
    cases_path = os.path.join(os.path.dirname(__file__), 'golden_cases.csv')
    with open(cases_path, 'r', newline='', encoding='utf-8') as f:
        return list(csv.DictReader(f))


def _flag(value):
    return None if value == '' else value == 'true'


@pytest.mark.parametrize("case", load_golden_cases(), ids=lambda c: c['case_id'])
def test_golden_case(calculator, case):
    """Test that pricing matches expected golden case."""
    direction = Direction(case['direction'])
    formula = default_formula(direction, PricingDefaults())
    cost_basis = float(case['cost_basis']) if case['cost_basis'] else None

    result = calculator.calculate(
        float(case['market_stat']),
        case['media'],
        case['sleeve'],
        direction,
        formula,
        cost_basis=cost_basis,
    )

    expected_price = float(case['expected_price'])
    assert result.price == pytest.approx(expected_price), \
        f"Price mismatch for {case['case_id']}: expected ${expected_price:.2f}, got ${result.price:.2f}"
    assert result.breakdown.final == pytest.approx(expected_price)
    assert result.breakdown.floor_applied is _flag(case['floor_applied'])
    assert result.breakdown.ceiling_applied is _flag(case['ceiling_applied'])

    if direction is Direction.SELL:
        assert result.margin_percent == pytest.approx(float(case['expected_margin']))
        assert result.breakdown.min_margin_applied is _flag(case['min_margin_applied'])
    else:
        assert result.margin_percent is None
        assert result.breakdown.min_margin_applied is None


def test_scenario_d_breakdown(calculator):
    """Margin floor replaces a rounded price that falls under cost plus margin."""
    formula = default_formula(Direction.SELL, PricingDefaults())
    result = calculator.calculate(40, 'POOR', 'POOR', Direction.SELL, formula, cost_basis=50)

    assert result.breakdown.base == pytest.approx(50.0)
    assert result.breakdown.adjusted == pytest.approx(5.0)
    assert result.breakdown.min_acceptable_price == pytest.approx(65.0)
    assert result.price == pytest.approx(65.0)


def test_trace_lists_steps_in_order(calculator):
    formula = default_formula(Direction.SELL, PricingDefaults())
    result = calculator.calculate(150, 'NM', 'NM', Direction.SELL, formula, cost_basis=50)

    steps = [t.step for t in result.trace]
    assert steps == ['Base', 'Condition', 'Rounding', 'Margin Floor', 'Floor/Ceiling']
    assert "→ Base:" in result.get_trace_text()
