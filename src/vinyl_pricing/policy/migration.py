"""
Formula schema migration.

Stored formula blobs come in two generations:

    legacy:  {"percentage": 0.55, "mediaWeight": 0.6, "sleeveWeight": 0.4, "buyFloor": 5}
    current: {"buyPercentage": 0.55, "weights": {"media": 0.6, "sleeve": 0.4}, "floor": 5}

Everything downstream works on a resolved FormulaConfig, so the precedence
rules live here and nowhere else.
"""
from typing import Any, Optional

from ..config.settings import PricingDefaults
from ..engine.models import ConditionWeights, Direction, FormulaConfig, MarketSource, MarketStatistic
from ..errors import ValidationError

# Keys a formula blob may carry, both generations
FORMULA_KEYS = (
    'percentage', 'buyPercentage', 'sellPercentage',
    'weights', 'mediaWeight', 'sleeveWeight',
    'roundIncrement', 'floor', 'ceiling',
    'buyFloor', 'buyCeiling', 'sellFloor', 'sellCeiling',
    'minProfitMargin', 'conditionCurve', 'priceStatistic', 'marketSource',
)


def _prefix(direction: Direction) -> str:
    return 'buy' if direction is Direction.BUY else 'sell'


def _number(raw: dict, key: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"Formula field '{key}' must be a number", code='invalid_formula')
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Formula field '{key}' must be a number", code='invalid_formula')


def _first(*values):
    for value in values:
        if value is not None:
            return value
    return None


def default_formula(
    direction: Direction,
    defaults: PricingDefaults,
    condition_curve: Optional[dict[str, float]] = None,
) -> FormulaConfig:
    """Engine defaults for one direction."""
    direction = Direction(direction)
    is_buy = direction is Direction.BUY
    return FormulaConfig(
        percentage=defaults.buy_percentage if is_buy else defaults.sell_percentage,
        condition_curve=dict(condition_curve or defaults.condition_curve),
        weights=ConditionWeights(media=defaults.media_weight, sleeve=defaults.sleeve_weight),
        round_increment=defaults.round_increment,
        floor=defaults.buy_floor if is_buy else defaults.sell_floor,
        ceiling=defaults.buy_ceiling if is_buy else defaults.sell_ceiling,
        min_profit_margin=defaults.min_profit_margin,
    )


def resolve_formula(raw: Optional[dict], direction: Direction, fallback: FormulaConfig) -> FormulaConfig:
    """
    Resolve a blob of either generation on top of ``fallback``.

    Keys present in ``raw`` win; anything else is taken from ``fallback``.
    """
    if raw is None:
        return fallback
    if not isinstance(raw, dict):
        raise ValidationError('Formula must be an object', code='invalid_formula')

    direction = Direction(direction)
    prefix = _prefix(direction)

    percentage = _first(_number(raw, f'{prefix}Percentage'), _number(raw, 'percentage'), fallback.percentage)

    media = _number(raw, 'mediaWeight')
    sleeve = _number(raw, 'sleeveWeight')
    weights_obj = raw.get('weights')
    if weights_obj is not None:
        if not isinstance(weights_obj, dict):
            raise ValidationError("Formula field 'weights' must be an object", code='invalid_formula')
        media = _first(_number(weights_obj, 'media'), media)
        sleeve = _first(_number(weights_obj, 'sleeve'), sleeve)
    weights = ConditionWeights(
        media=_first(media, fallback.weights.media),
        sleeve=_first(sleeve, fallback.weights.sleeve),
    )

    floor = _first(_number(raw, 'floor'), _number(raw, f'{prefix}Floor'), fallback.floor)
    ceiling = _first(_number(raw, 'ceiling'), _number(raw, f'{prefix}Ceiling'), fallback.ceiling)

    curve = raw.get('conditionCurve')
    if curve is not None:
        if not isinstance(curve, dict):
            raise ValidationError("Formula field 'conditionCurve' must be an object", code='invalid_formula')
        try:
            curve = {grade: float(multiplier) for grade, multiplier in curve.items()}
        except (TypeError, ValueError):
            raise ValidationError("Condition curve multipliers must be numbers", code='invalid_formula')

    statistic = raw.get('priceStatistic')
    if statistic is not None:
        try:
            statistic = MarketStatistic(str(statistic).lower()).value
        except ValueError:
            raise ValidationError(f"Unknown price statistic: {statistic}", code='invalid_formula')

    source = raw.get('marketSource')
    if source is not None:
        try:
            source = MarketSource(str(source).upper()).value
        except ValueError:
            raise ValidationError(f"Unknown market source: {source}", code='invalid_formula')

    return FormulaConfig(
        percentage=percentage,
        condition_curve=curve if curve is not None else dict(fallback.condition_curve),
        weights=weights,
        round_increment=_first(_number(raw, 'roundIncrement'), fallback.round_increment),
        floor=floor,
        ceiling=ceiling,
        min_profit_margin=_first(_number(raw, 'minProfitMargin'), fallback.min_profit_margin),
        price_statistic=_first(statistic, fallback.price_statistic),
        market_source=_first(source, fallback.market_source),
    )


def migrate_formula(
    raw: Optional[dict],
    direction: Direction,
    policy_curve: Optional[dict[str, float]],
    defaults: PricingDefaults,
) -> FormulaConfig:
    """
    Normalize a stored formula blob into a FormulaConfig.

    Curve precedence: formula ``conditionCurve``, then the policy curve,
    then the default curve.
    """
    return resolve_formula(raw, direction, default_formula(direction, defaults, policy_curve))


def canonical_formula(raw: Optional[dict], direction: Direction, defaults: PricingDefaults) -> dict[str, Any]:
    """
    Rewrite a blob of either generation as a fully-populated current-style blob.

    A formula-scoped ``conditionCurve`` is kept only when the blob had one, so
    the policy-level curve still applies to formulas that never overrode it.
    """
    direction = Direction(direction)
    prefix = _prefix(direction)
    formula = migrate_formula(raw, direction, None, defaults)

    blob: dict[str, Any] = {
        f'{prefix}Percentage': formula.percentage,
        'weights': {'media': formula.weights.media, 'sleeve': formula.weights.sleeve},
        'roundIncrement': formula.round_increment,
        'floor': formula.floor,
        'ceiling': formula.ceiling,
        'minProfitMargin': formula.min_profit_margin,
    }
    if raw and raw.get('conditionCurve') is not None:
        blob['conditionCurve'] = dict(formula.condition_curve)
    if formula.price_statistic:
        blob['priceStatistic'] = formula.price_statistic
    if formula.market_source:
        blob['marketSource'] = formula.market_source
    return blob
