"""
Pricing Engine - buy offers, sell prices and markdowns for a release.

Resolution order for a price request:
1. Validate conditions (and cost basis for SELL)
2. Look up the release
3. Read the active policy for the direction's scope (BUY -> BUYER, SELL -> SELLER)
4. Apply any per-request formula override
5. Resolve the market statistic (snapshot, then external sources)
6. Run the calculator
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from ..catalog.releases import ReleaseCatalog
from ..config.settings import PricingDefaults
from ..errors import InternalError, NotFoundError, PricingError
from ..market.resolver import MarketStatResolver, parse_source, parse_statistic
from ..policy.cache import ActivePolicy, PolicyCache
from ..policy.migration import resolve_formula
from .calculator import PriceCalculator, to_cents, validate_condition, validate_cost_basis
from .markdown import MarkdownScheduler
from .models import Direction, MarkdownResult, PolicyScope, PriceResult, utc_now

logger = logging.getLogger(__name__)

SCOPE_FOR_DIRECTION = {
    Direction.BUY: PolicyScope.BUYER,
    Direction.SELL: PolicyScope.SELLER,
}


class PricingEngine:
    """Facade over catalog, policy cache, market resolver and calculator."""

    def __init__(
        self,
        catalog: ReleaseCatalog,
        policy_cache: PolicyCache,
        resolver: MarketStatResolver,
        defaults: Optional[PricingDefaults] = None,
        calculator: Optional[PriceCalculator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.policy_cache = policy_cache
        self.resolver = resolver
        self.defaults = defaults or PricingDefaults()
        self.calculator = calculator or PriceCalculator()
        self.clock = clock
        self.markdown_scheduler = MarkdownScheduler(schedule=self.defaults.markdown_schedule, clock=clock)

    def calculate_buy_price(
        self,
        release_id: str,
        media_condition,
        sleeve_condition,
        market_source: Optional[str] = None,
        market_statistic: Optional[str] = None,
        formula_override: Optional[dict] = None,
    ) -> PriceResult:
        """Acquisition offer for a release in the given condition."""
        return self._calculate(
            Direction.BUY, release_id, media_condition, sleeve_condition,
            None, market_source, market_statistic, formula_override,
        )

    def calculate_sell_price(
        self,
        release_id: str,
        media_condition,
        sleeve_condition,
        cost_basis: float,
        market_source: Optional[str] = None,
        market_statistic: Optional[str] = None,
        formula_override: Optional[dict] = None,
    ) -> PriceResult:
        """Listing price for a release, never below the minimum margin over cost."""
        return self._calculate(
            Direction.SELL, release_id, media_condition, sleeve_condition,
            cost_basis, market_source, market_statistic, formula_override,
        )

    def calculate_markdown(
        self,
        current_price: float,
        listed_at: datetime,
        cost_basis: float,
        schedule: Optional[dict] = None,
    ) -> MarkdownResult:
        try:
            return self.markdown_scheduler.calculate_markdown(current_price, listed_at, cost_basis, schedule)
        except PricingError:
            raise
        except Exception as e:
            logger.exception("Markdown calculation failed")
            raise InternalError('Failed to calculate markdown') from e

    def _calculate(
        self,
        direction: Direction,
        release_id: str,
        media_condition,
        sleeve_condition,
        cost_basis,
        market_source,
        market_statistic,
        formula_override,
    ) -> PriceResult:
        try:
            # Validation happens before any lookup or external call
            media = validate_condition(media_condition)
            sleeve = validate_condition(sleeve_condition)
            if direction is Direction.SELL:
                cost_basis = validate_cost_basis(cost_basis)
            if market_source is not None:
                market_source = parse_source(market_source)
            if market_statistic is not None:
                market_statistic = parse_statistic(market_statistic)

            release = self.catalog.get_release(release_id)
            policy = self.policy_cache.get(SCOPE_FOR_DIRECTION[direction])
            formula = resolve_formula(formula_override, direction, policy.formula_for(direction))

            source = market_source or formula.market_source or self.defaults.market_source
            statistic = market_statistic or formula.price_statistic or self.defaults.market_statistic

            resolved = self.resolver.resolve_detailed(release, statistic, source)
            if resolved is None:
                raise NotFoundError('Market data not available for pricing', code='market_data_unavailable')

            result = self.calculator.calculate(
                resolved.value,
                media,
                sleeve,
                direction,
                formula,
                cost_basis=cost_basis,
                policy_used=policy.policy_used,
            )
        except PricingError:
            raise
        except Exception as e:
            logger.exception("%s price calculation failed for release %s", direction.value, release_id)
            raise InternalError(f"Failed to calculate {direction.value.lower()} price") from e

        result.breakdown.market_stat = to_cents(resolved.value)
        result.breakdown.market_source = resolved.source
        result.breakdown.market_statistic = resolved.statistic
        result.policy_version = policy.version
        if direction is Direction.BUY:
            result.offer_expires_at = self._offer_expiry(policy)

        logger.info(
            "%s price for release %s: %.2f (policy %s, %s %s)",
            direction.value, release.id, result.price, policy.policy_used, resolved.source, resolved.statistic,
        )
        return result

    def _offer_expiry(self, policy: ActivePolicy) -> datetime:
        return self.clock() + timedelta(days=policy.offer_expiry_days)
