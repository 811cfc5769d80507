"""
Discogs market-data provider.

Reads the price block of ``/releases/{id}/stats`` and maps
lowest/median/highest onto low/median/high.
"""
import logging
import math
import time
from typing import Any, Callable, Optional

import requests

from ..catalog.releases import Release
from ..errors import ProviderError
from .http import get_with_retry
from .sources import MarketDataProvider

logger = logging.getLogger(__name__)


def _price(value: Any) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if math.isfinite(price) and price > 0 else None


class DiscogsClient(MarketDataProvider):
    """Thin wrapper around the Discogs API with retry and backoff."""

    name = 'DISCOGS'

    def __init__(
        self,
        api_url: str = 'https://api.discogs.com',
        token: str = '',
        user_agent: str = 'VinylPricing/1.0',
        timeout: float = 15.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_url = api_url.rstrip('/')
        self.token = (token or '').strip()
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()
        self.sleep = sleep
        if not self.token:
            logger.warning("Discogs token is empty; unauthenticated requests may be rate-limited.")

    def _headers(self) -> dict[str, str]:
        headers = {'User-Agent': self.user_agent}
        if self.token:
            headers['Authorization'] = f"Discogs token={self.token}"
        return headers

    def get_price_statistics(self, release: Release) -> dict[str, Optional[float]]:
        if not release.discogs_id:
            raise ProviderError(f"Release {release.id} has no Discogs id")

        resp = get_with_retry(
            self.session,
            f"{self.api_url}/releases/{release.discogs_id}/stats",
            provider=self.name,
            headers=self._headers(),
            timeout=self.timeout,
            max_retries=self.max_retries,
            sleep=self.sleep,
        )

        if resp.status_code == 404:
            logger.debug("Price stats not available for Discogs release %s", release.discogs_id)
            return {'low': None, 'median': None, 'high': None}
        if not resp.ok:
            raise ProviderError(f"Discogs stats request failed with status {resp.status_code}")

        try:
            payload = resp.json()
        except ValueError:
            raise ProviderError('Discogs stats response was not JSON')

        prices = payload.get('prices') or {}
        return {
            'low': _price(prices.get('lowest')),
            'median': _price(prices.get('median')),
            'high': _price(prices.get('highest')),
        }
