"""
Price Calculator - the core buy/sell formula.

Resolution order (fixed, so results are reproducible):
1. base = market stat × percentage
2. condition curve, weighted between media and sleeve
3. round half-up to the round increment
4. SELL only: raise to the minimum profit margin
5. clamp to floor / ceiling
"""
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..errors import NotFoundError, ValidationError
from .models import (
    ConditionGrade,
    ConditionWeights,
    Direction,
    FormulaConfig,
    PriceBreakdown,
    PriceResult,
)

logger = logging.getLogger(__name__)

VALID_CONDITIONS = [g.value for g in ConditionGrade]


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def to_cents(value: float) -> float:
    """Round a money amount to 2 decimals, half-up."""
    return float(_dec(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def validate_condition(condition) -> str:
    """Return the grade's canonical name or raise ValidationError."""
    if isinstance(condition, ConditionGrade):
        return condition.value
    if isinstance(condition, str) and condition in VALID_CONDITIONS:
        return condition
    raise ValidationError(
        f"Invalid condition: {condition}. Must be one of: {', '.join(VALID_CONDITIONS)}",
        code='invalid_condition',
    )


def validate_cost_basis(cost_basis) -> float:
    if cost_basis is None or isinstance(cost_basis, bool):
        raise ValidationError('Valid cost basis is required for sell price calculation', code='invalid_cost_basis')
    try:
        value = float(cost_basis)
    except (TypeError, ValueError):
        raise ValidationError('Valid cost basis is required for sell price calculation', code='invalid_cost_basis')
    if not math.isfinite(value):
        raise ValidationError('Cost basis must be a finite number', code='invalid_cost_basis')
    if value < 0:
        raise ValidationError('Cost basis must not be negative', code='invalid_cost_basis')
    return value


def apply_condition_curve(
    base_price: float,
    media_condition: str,
    sleeve_condition: str,
    curve: dict[str, float],
    weights: ConditionWeights,
) -> float:
    """
    Weighted combination of media and sleeve condition.

    Media and sleeve each scale their own share of the base price; a grade
    missing from the curve counts as 1.0.
    """
    media_multiplier = curve.get(media_condition, 1.0)
    sleeve_multiplier = curve.get(sleeve_condition, 1.0)
    media_adjustment = base_price * media_multiplier * weights.media
    sleeve_adjustment = base_price * sleeve_multiplier * weights.sleeve
    return media_adjustment + sleeve_adjustment


def round_to_increment(price: float, increment: float = 0.25) -> float:
    """Round to the nearest increment, half-up. Non-positive increments disable rounding."""
    if increment is None or increment <= 0:
        return price
    step = _dec(increment)
    count = (_dec(price) / step).quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    return float(count * step)


def apply_floor_and_ceiling(price: float, floor: float, ceiling: float) -> float:
    """Clamp price into [floor, ceiling]."""
    if price < floor:
        return floor
    if price > ceiling:
        return ceiling
    return price


def calculate_profit_margin(sell_price: float, cost_basis: float) -> float:
    """Margin as a percentage of cost; 0 when there is no cost."""
    if cost_basis <= 0:
        return 0.0
    return (sell_price - cost_basis) / cost_basis * 100


def validate_minimum_margin(sell_price: float, cost_basis: float, min_margin: float = 0.3) -> bool:
    """True if the sell price meets the minimum margin (a fraction, e.g. 0.30)."""
    return calculate_profit_margin(sell_price, cost_basis) >= min_margin * 100


class PriceCalculator:
    """Deterministic buy/sell price calculation from a market statistic."""

    def calculate(
        self,
        market_stat: Optional[float],
        media_condition,
        sleeve_condition,
        direction: Direction,
        formula: FormulaConfig,
        cost_basis: Optional[float] = None,
        policy_used: str = 'default',
    ) -> PriceResult:
        # Validation happens before any arithmetic
        media = validate_condition(media_condition)
        sleeve = validate_condition(sleeve_condition)
        direction = Direction(direction)
        if direction is Direction.SELL:
            cost_basis = validate_cost_basis(cost_basis)

        if market_stat is None:
            raise NotFoundError('Market data not available for pricing', code='market_data_unavailable')
        if not math.isfinite(market_stat) or market_stat <= 0:
            raise ValidationError('Market statistic must be positive', code='invalid_market_stat')

        curve = formula.condition_curve
        weights = formula.weights

        base = market_stat * formula.percentage
        adjusted = apply_condition_curve(base, media, sleeve, curve, weights)
        rounded = round_to_increment(adjusted, formula.round_increment)

        min_acceptable = None
        if direction is Direction.SELL:
            min_acceptable = cost_basis * (1 + formula.min_profit_margin)
            if rounded < min_acceptable:
                rounded = min_acceptable

        final = apply_floor_and_ceiling(rounded, formula.floor, formula.ceiling)

        breakdown = PriceBreakdown(
            base=to_cents(base),
            adjusted=to_cents(adjusted),
            rounded=to_cents(rounded),
            final=to_cents(final),
            floor_applied=final == formula.floor,
            ceiling_applied=final == formula.ceiling,
            media_condition=media,
            sleeve_condition=sleeve,
            media_adjustment=to_cents(base * curve.get(media, 1.0) * weights.media),
            sleeve_adjustment=to_cents(base * curve.get(sleeve, 1.0) * weights.sleeve),
        )

        result = PriceResult(
            direction=direction,
            price=to_cents(final),
            breakdown=breakdown,
            policy_used=policy_used,
        )
        result.add_trace("Base", f"{market_stat} × {formula.percentage}", f"${base:.2f}")
        result.add_trace(
            "Condition",
            f"media {media} × {weights.media}, sleeve {sleeve} × {weights.sleeve}",
            f"${adjusted:.2f}",
        )
        result.add_trace("Rounding", f"nearest {formula.round_increment}", f"${rounded:.2f}")

        if direction is Direction.SELL:
            breakdown.min_margin_applied = final == min_acceptable
            breakdown.min_acceptable_price = to_cents(min_acceptable)
            breakdown.cost_basis = to_cents(cost_basis)
            result.margin_percent = to_cents(calculate_profit_margin(final, cost_basis))
            result.add_trace(
                "Margin Floor",
                f"cost {cost_basis} × (1 + {formula.min_profit_margin})",
                f"${min_acceptable:.2f}",
            )

        result.add_trace("Floor/Ceiling", f"[{formula.floor}, {formula.ceiling}]", f"${final:.2f}")

        logger.debug(
            "%s price calculated: stat=%s media=%s sleeve=%s final=%.2f policy=%s",
            direction.value,
            market_stat,
            media,
            sleeve,
            final,
            policy_used,
        )
        return result
