"""Market-statistic resolution: snapshot first, then external providers."""
from .resolver import MarketStatResolver, ResolvedStat
from .sources import (
    HybridPriceSource,
    MarketDataProvider,
    PriceSource,
    ProviderPriceSource,
    SnapshotPriceSource,
)

__all__ = [
    'MarketStatResolver',
    'ResolvedStat',
    'HybridPriceSource',
    'MarketDataProvider',
    'PriceSource',
    'ProviderPriceSource',
    'SnapshotPriceSource',
]
