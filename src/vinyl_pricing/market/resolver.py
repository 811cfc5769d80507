"""
Market Stat Resolver - picks one numeric market statistic for a release.

Chain: stored snapshot first, then the external source(s) named by the
source preference. The first non-null value wins and the source that
produced it is logged.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..catalog.releases import Release
from ..engine.models import MarketSource, MarketStatistic
from ..errors import ValidationError
from .sources import (
    HybridPriceSource,
    MarketDataProvider,
    PriceSource,
    ProviderPriceSource,
    SnapshotPriceSource,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedStat:
    value: float
    source: str
    statistic: str


def parse_statistic(statistic) -> str:
    try:
        return MarketStatistic(str(statistic).lower()).value
    except ValueError:
        raise ValidationError(
            f"Invalid market statistic: {statistic}. Must be one of: low, median, high",
            code='invalid_market_statistic',
        )


def parse_source(source) -> str:
    try:
        return MarketSource(str(source).upper()).value
    except ValueError:
        raise ValidationError(
            f"Invalid market source: {source}. Must be one of: DISCOGS, EBAY, HYBRID",
            code='invalid_market_source',
        )


class MarketStatResolver:
    """Ordered PriceSource chain per source preference."""

    def __init__(self, snapshot_source: Optional[SnapshotPriceSource], providers: list[MarketDataProvider]):
        self.snapshot_source = snapshot_source
        self.provider_sources = {p.name: ProviderPriceSource(p) for p in providers}

    def chain_for(self, source: str) -> list[PriceSource]:
        chain: list[PriceSource] = []
        if self.snapshot_source is not None:
            chain.append(self.snapshot_source)

        if source == MarketSource.HYBRID.value:
            providers = [
                self.provider_sources[name]
                for name in (MarketSource.DISCOGS.value, MarketSource.EBAY.value)
                if name in self.provider_sources
            ]
            if providers:
                chain.append(HybridPriceSource(providers))
        elif source in self.provider_sources:
            chain.append(self.provider_sources[source])
        return chain

    def resolve_detailed(
        self,
        release: Release,
        statistic: str = 'median',
        source: str = 'HYBRID',
    ) -> Optional[ResolvedStat]:
        statistic = parse_statistic(statistic)
        source = parse_source(source)

        for price_source in self.chain_for(source):
            value = price_source.get_stat(release, statistic)
            if value is not None:
                logger.info(
                    "Market stat for release %s resolved from %s: %s=%.2f",
                    release.id, price_source.name, statistic, value,
                )
                return ResolvedStat(value=value, source=price_source.name, statistic=statistic)

        logger.info("No market data for release %s (%s, %s)", release.id, source, statistic)
        return None

    def resolve(self, release: Release, statistic: str = 'median', source: str = 'HYBRID') -> Optional[float]:
        """The statistic's value, or None when no source has market data."""
        resolved = self.resolve_detailed(release, statistic, source)
        return resolved.value if resolved else None
