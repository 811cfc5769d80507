"""
Price sources - interchangeable strategies that each try to produce one
market statistic for a release.

A source returns None when it has nothing usable; it never raises for a
provider failure.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from ..catalog.releases import Release, ReleaseCatalog

logger = logging.getLogger(__name__)

# In-snapshot fallback when the requested statistic is missing
SNAPSHOT_FALLBACKS = {
    'low': ('low', 'median', 'high'),
    'median': ('median', 'low', 'high'),
    'high': ('high', 'median', 'low'),
}


def usable(value) -> Optional[float]:
    """A positive number, or None. Zero and negatives count as missing."""
    if value is None or isinstance(value, bool):
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) and value > 0 else None


class MarketDataProvider:
    """An external marketplace returning {low, median, high} for a release."""

    name = 'provider'

    def get_price_statistics(self, release: Release) -> dict[str, Optional[float]]:
        raise NotImplementedError


class PriceSource:
    """One step in the market-stat resolution chain."""

    name = 'source'

    def get_stat(self, release: Release, statistic: str) -> Optional[float]:
        raise NotImplementedError


class SnapshotPriceSource(PriceSource):
    """Latest stored snapshot, with the in-snapshot fallback chain."""

    name = 'SNAPSHOT'

    def __init__(self, catalog: ReleaseCatalog):
        self.catalog = catalog

    def get_stat(self, release: Release, statistic: str) -> Optional[float]:
        snapshot = self.catalog.latest_snapshot(release.id)
        if snapshot is None:
            return None
        for candidate in SNAPSHOT_FALLBACKS[statistic]:
            value = usable(snapshot.stat(candidate))
            if value is not None:
                if candidate != statistic:
                    logger.debug("Snapshot for %s has no %s, using %s", release.id, statistic, candidate)
                return value
        return None


class ProviderPriceSource(PriceSource):
    """A single external provider; errors are logged and mean 'unavailable'."""

    def __init__(self, provider: MarketDataProvider):
        self.provider = provider
        self.name = provider.name

    def get_stat(self, release: Release, statistic: str) -> Optional[float]:
        try:
            stats = self.provider.get_price_statistics(release)
        except Exception as e:
            logger.warning("%s price lookup failed for release %s: %s", self.name, release.id, e)
            return None
        return usable((stats or {}).get(statistic))


class HybridPriceSource(PriceSource):
    """Queries several providers concurrently and averages what comes back."""

    name = 'HYBRID'

    def __init__(self, sources: Sequence[ProviderPriceSource]):
        self.sources = list(sources)

    def get_stat(self, release: Release, statistic: str) -> Optional[float]:
        if not self.sources:
            return None
        with ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix='market') as pool:
            futures = [pool.submit(s.get_stat, release, statistic) for s in self.sources]
            values = [f.result() for f in futures]

        present = [v for v in values if v is not None]
        if not present:
            return None
        return sum(present) / len(present)
