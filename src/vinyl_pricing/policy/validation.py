"""
Write-time validation of policy definitions.

Curves are checked for full grade coverage here, so a saved policy never
relies on the calculator's 1.0 fallback for a missing grade.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config.settings import PricingDefaults
from ..engine.models import ConditionGrade, Direction
from ..errors import ValidationError
from .migration import migrate_formula

GRADES = [g.value for g in ConditionGrade]


@dataclass
class PolicyDefinition:
    """Admin-supplied content of a policy version."""
    name: Optional[str]
    buy_formula: Optional[dict]
    sell_formula: Optional[dict]
    condition_curve: Optional[dict]
    min_offer: Optional[float] = None
    max_offer: Optional[float] = None
    offer_expiry_days: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'PolicyDefinition':
        """Create from the camelCase payload used by the API and admin console."""
        return cls(
            name=data.get('name'),
            buy_formula=data.get('buyFormula'),
            sell_formula=data.get('sellFormula'),
            condition_curve=data.get('conditionCurve'),
            min_offer=data.get('minOffer'),
            max_offer=data.get('maxOffer'),
            offer_expiry_days=data.get('offerExpiryDays'),
        )


@dataclass
class ValidationResult:
    """Result of policy validation."""
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def error(self, message: str):
        self.errors.append(message)
        self.valid = False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_curve(result: ValidationResult, curve: Any, label: str):
    if not isinstance(curve, dict):
        result.error(f"{label} must be an object of grade -> multiplier")
        return

    unknown = sorted(set(curve) - set(GRADES))
    if unknown:
        result.error(f"{label} has unknown grades: {', '.join(unknown)}")

    missing = [g for g in GRADES if g not in curve]
    if missing:
        result.error(f"{label} is missing grades: {', '.join(missing)}")

    for grade in GRADES:
        if grade in curve and (not _is_number(curve[grade]) or curve[grade] < 0):
            result.error(f"{label} multiplier for {grade} must be a non-negative number")


def _check_formula(result: ValidationResult, raw: Any, direction: Direction, defaults: PricingDefaults):
    label = 'buyFormula' if direction is Direction.BUY else 'sellFormula'
    if not isinstance(raw, dict):
        result.error(f"{label} must be an object")
        return

    if raw.get('conditionCurve') is not None:
        error_count = len(result.errors)
        _check_curve(result, raw['conditionCurve'], f"{label}.conditionCurve")
        if len(result.errors) > error_count:
            return

    try:
        formula = migrate_formula(raw, direction, None, defaults)
    except ValidationError as e:
        result.error(f"{label}: {e.message}")
        return

    if formula.percentage <= 0:
        result.error(f"{label} percentage must be greater than 0")
    if formula.weights.media < 0 or formula.weights.sleeve < 0:
        result.error(f"{label} weights must be non-negative")
    elif not math.isclose(formula.weights.media + formula.weights.sleeve, 1.0, abs_tol=1e-9):
        result.warnings.append(
            f"{label} weights sum to {formula.weights.media + formula.weights.sleeve:g}, not 1.0"
        )
    if formula.round_increment < 0:
        result.error(f"{label} roundIncrement must be >= 0")
    if formula.floor < 0:
        result.error(f"{label} floor must be >= 0")
    if formula.floor > formula.ceiling:
        result.error(f"{label} floor ({formula.floor}) must not exceed ceiling ({formula.ceiling})")
    if formula.min_profit_margin < 0:
        result.error(f"{label} minProfitMargin must be >= 0")


def validate_definition(definition: PolicyDefinition, defaults: PricingDefaults) -> ValidationResult:
    """Validate a policy definition before it is stored."""
    result = ValidationResult(valid=True)

    # Required fields
    if not isinstance(definition.name, str) or not definition.name.strip():
        result.error("Name is required")
    for label, value in (
        ('buyFormula', definition.buy_formula),
        ('sellFormula', definition.sell_formula),
        ('conditionCurve', definition.condition_curve),
    ):
        if value is None:
            result.error(f"{label} is required")

    if definition.condition_curve is not None:
        _check_curve(result, definition.condition_curve, 'conditionCurve')
    if definition.buy_formula is not None:
        _check_formula(result, definition.buy_formula, Direction.BUY, defaults)
    if definition.sell_formula is not None:
        _check_formula(result, definition.sell_formula, Direction.SELL, defaults)

    days = definition.offer_expiry_days
    if days is not None and (not isinstance(days, int) or isinstance(days, bool) or days <= 0):
        result.error("offerExpiryDays must be a positive integer")

    for label, value in (('minOffer', definition.min_offer), ('maxOffer', definition.max_offer)):
        if value is not None and (not _is_number(value) or value < 0):
            result.error(f"{label} must be a non-negative number")
    if _is_number(definition.min_offer) and _is_number(definition.max_offer):
        if definition.min_offer > definition.max_offer:
            result.error("minOffer must not exceed maxOffer")

    return result
