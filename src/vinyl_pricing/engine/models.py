"""
Data models for the pricing engine.

Uses dataclasses for structured, type-safe data representation.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


def utc_now() -> datetime:
    """Timezone-aware current time; the default clock everywhere."""
    return datetime.now(timezone.utc)


class ConditionGrade(str, Enum):
    """Goldmine-style grades, ordered best to worst."""
    MINT = 'MINT'
    NM = 'NM'
    VG_PLUS = 'VG_PLUS'
    VG = 'VG'
    VG_MINUS = 'VG_MINUS'
    G = 'G'
    FAIR = 'FAIR'
    POOR = 'POOR'


class Direction(str, Enum):
    BUY = 'BUY'
    SELL = 'SELL'


class PolicyScope(str, Enum):
    BUYER = 'BUYER'
    SELLER = 'SELLER'


class MarketSource(str, Enum):
    DISCOGS = 'DISCOGS'
    EBAY = 'EBAY'
    HYBRID = 'HYBRID'


class MarketStatistic(str, Enum):
    LOW = 'low'
    MEDIAN = 'median'
    HIGH = 'high'


class ChangeType(str, Enum):
    UPDATE = 'UPDATE'
    ROLLBACK = 'ROLLBACK'


@dataclass(frozen=True)
class ConditionWeights:
    """Share of the base price driven by media vs. sleeve condition."""
    media: float = 0.6
    sleeve: float = 0.4


@dataclass(frozen=True)
class FormulaConfig:
    """Fully-resolved formula for one direction; no optional pricing inputs."""
    percentage: float
    condition_curve: dict[str, float]
    weights: ConditionWeights
    round_increment: float
    floor: float
    ceiling: float
    min_profit_margin: float = 0.0

    # Per-policy defaults for market resolution (None = engine default)
    price_statistic: Optional[str] = None
    market_source: Optional[str] = None


@dataclass
class TraceStep:
    """A single step in the price calculation trace."""
    step: str
    description: str
    value: Optional[str] = None


@dataclass
class PriceBreakdown:
    """Intermediate values of one calculation, in computation order."""
    base: float
    adjusted: float
    rounded: float
    final: float
    floor_applied: bool
    ceiling_applied: bool
    media_condition: str
    sleeve_condition: str
    media_adjustment: float
    sleeve_adjustment: float

    # SELL only
    min_margin_applied: Optional[bool] = None
    min_acceptable_price: Optional[float] = None
    cost_basis: Optional[float] = None

    # Filled in by the engine when the stat came from a resolver
    market_stat: Optional[float] = None
    market_source: Optional[str] = None
    market_statistic: Optional[str] = None

    def to_dict(self, include_sell: bool = True) -> dict:
        out = {
            'base': self.base,
            'adjusted': self.adjusted,
            'rounded': self.rounded,
            'final': self.final,
            'floorApplied': self.floor_applied,
            'ceilingApplied': self.ceiling_applied,
            'mediaCondition': self.media_condition,
            'sleeveCondition': self.sleeve_condition,
            'mediaAdjustment': self.media_adjustment,
            'sleeveAdjustment': self.sleeve_adjustment,
            'marketStat': self.market_stat,
            'marketSource': self.market_source,
            'marketStatistic': self.market_statistic,
        }
        if include_sell:
            out['minMarginApplied'] = self.min_margin_applied
            out['minAcceptablePrice'] = self.min_acceptable_price
            out['costBasis'] = self.cost_basis
        return out


@dataclass
class PriceResult:
    """Complete result of a buy or sell calculation."""
    direction: Direction
    price: float
    breakdown: PriceBreakdown
    policy_used: str = 'default'
    margin_percent: Optional[float] = None
    policy_version: Optional[int] = None
    offer_expires_at: Optional[datetime] = None
    trace: list[TraceStep] = field(default_factory=list)

    def add_trace(self, step: str, description: str, value: str = None):
        """Add a step to the trace."""
        self.trace.append(TraceStep(step=step, description=description, value=value))

    def get_trace_text(self) -> str:
        """Get human-readable trace as formatted text."""
        lines = []
        for t in self.trace:
            if t.value:
                lines.append(f"→ {t.step}: {t.description} = {t.value}")
            else:
                lines.append(f"→ {t.step}: {t.description}")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        out = {
            'price': self.price,
            'breakdown': self.breakdown.to_dict(include_sell=self.direction is Direction.SELL),
            'policyUsed': self.policy_used,
        }
        if self.direction is Direction.SELL:
            out['marginPercent'] = self.margin_percent
        if self.policy_version is not None:
            out['policyVersion'] = self.policy_version
        if self.offer_expires_at is not None:
            out['offerExpiresAt'] = self.offer_expires_at.isoformat()
        return out


@dataclass
class MarkdownResult:
    """Outcome of a time-based markdown check."""
    new_price: float
    discount_percent: float
    days_listed: int
    original_price: float
    margin_protected: bool

    def to_dict(self) -> dict:
        return {
            'newPrice': self.new_price,
            'discountPercent': self.discount_percent,
            'daysListed': self.days_listed,
            'originalPrice': self.original_price,
            'marginProtected': self.margin_protected,
        }
