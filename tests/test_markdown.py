"""
Tests for the markdown scheduler.
"""
from datetime import datetime, timedelta, timezone

import pytest

from vinyl_pricing.engine.markdown import MarkdownScheduler
from vinyl_pricing.errors import ValidationError

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def scheduler():
    return MarkdownScheduler(clock=lambda: NOW)


def listed(days, hours=0):
    return NOW - timedelta(days=days, hours=hours)


def test_scenario_e(scheduler):
    result = scheduler.calculate_markdown(100, listed(35), 50)

    assert result.days_listed == 35
    assert result.discount_percent == pytest.approx(10.0)
    assert result.new_price == pytest.approx(90.0)
    assert result.original_price == pytest.approx(100.0)
    assert result.margin_protected is True


@pytest.mark.parametrize("days,discount", [
    (0, 0.0),
    (29, 0.0),
    (30, 10.0),
    (59, 10.0),
    (60, 20.0),
    (365, 20.0),
])
def test_largest_reached_threshold_wins(scheduler, days, discount):
    assert scheduler.calculate_markdown(100, listed(days), 0).discount_percent == pytest.approx(discount)


def test_partial_days_are_floored(scheduler):
    assert scheduler.calculate_markdown(100, listed(29, hours=23), 0).days_listed == 29


def test_discount_monotonic_and_price_never_increases(scheduler):
    schedule = {7: 0.05, 14: 0.15, 30: 0.3}
    previous = -1.0
    for days in range(0, 45):
        result = scheduler.calculate_markdown(80, listed(days), 0, schedule)
        assert result.discount_percent >= previous
        assert result.new_price <= 80
        previous = result.discount_percent


def test_custom_schedule_with_string_keys(scheduler):
    result = scheduler.calculate_markdown(100, listed(10), 0, {"7": 0.25})
    assert result.new_price == pytest.approx(75.0)


def test_margin_flag_is_informational(scheduler):
    result = scheduler.calculate_markdown(60, listed(90), 55)

    # 20% off 60 is below cost; the price is not clamped
    assert result.new_price == pytest.approx(48.0)
    assert result.margin_protected is False


def test_naive_listed_at_is_utc(scheduler):
    naive = (NOW - timedelta(days=31)).replace(tzinfo=None)
    assert scheduler.calculate_markdown(100, naive, 0).days_listed == 31


def test_result_dict(scheduler):
    data = scheduler.calculate_markdown(100, listed(35), 50).to_dict()
    assert data == {
        'newPrice': 90.0,
        'discountPercent': 10.0,
        'daysListed': 35,
        'originalPrice': 100.0,
        'marginProtected': True,
    }


@pytest.mark.parametrize("price", [0, -1, None, float('nan'), float('inf')])
def test_invalid_current_price(scheduler, price):
    with pytest.raises(ValidationError):
        scheduler.calculate_markdown(price, listed(35), 0)


def test_invalid_listed_at(scheduler):
    with pytest.raises(ValidationError):
        scheduler.calculate_markdown(100, "2025-01-01", 0)


@pytest.mark.parametrize("schedule", [{30: 1.5}, {-1: 0.1}, {"soon": 0.1}])
def test_invalid_schedule(scheduler, schedule):
    with pytest.raises(ValidationError):
        scheduler.calculate_markdown(100, listed(35), 0, schedule)


def test_empty_schedule_means_no_markdown(scheduler):
    result = scheduler.calculate_markdown(100, listed(90), 50, {})

    assert result.discount_percent == 0.0
    assert result.new_price == pytest.approx(100.0)


def test_scheduler_built_with_empty_schedule():
    scheduler = MarkdownScheduler(schedule={}, clock=lambda: NOW)
    assert scheduler.calculate_markdown(100, listed(90), 0).discount_percent == 0.0
