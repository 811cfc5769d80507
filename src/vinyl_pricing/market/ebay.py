"""
eBay market-data provider.

Searches the Browse API item summaries for the release and derives
low/median/high from the listed prices. Only the browse.readonly scope is
requested; sold-listing data needs approval eBay rarely grants.
"""
import base64
import logging
import threading
import time
from typing import Any, Callable, Optional

import pandas as pd
import requests

from ..catalog.releases import Release
from ..errors import ProviderError
from .http import get_with_retry
from .sources import MarketDataProvider

logger = logging.getLogger(__name__)

EBAY_CATEGORY_VINYL = "176985"  # Vinyl Records
OAUTH_SCOPE = (
    "https://api.ebay.com/oauth/api_scope "
    "https://api.ebay.com/oauth/api_scope/buy.browse.readonly"
)
SEARCH_LIMIT = 50


def price_statistics(prices: list[Any]) -> dict[str, Optional[float]]:
    """low/median/high of the usable prices, rounded to cents."""
    series = pd.to_numeric(pd.Series(prices, dtype=object), errors='coerce').dropna()
    series = series[series > 0]
    if series.empty:
        return {'low': None, 'median': None, 'high': None, 'sample_size': 0}
    return {
        'low': round(float(series.min()), 2),
        'median': round(float(series.median()), 2),
        'high': round(float(series.max()), 2),
        'sample_size': int(series.size),
    }


class EbayClient(MarketDataProvider):
    """Browse API client using the client-credentials OAuth flow."""

    name = 'EBAY'

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        api_url: str = 'https://api.ebay.com',
        timeout: float = 15.0,
        max_retries: int = 3,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = session or requests.Session()
        self.clock = clock
        self.sleep = sleep

        self._token: Optional[str] = None
        self._token_expiry = 0.0
        self._token_lock = threading.Lock()

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _get_token(self) -> str:
        if not self.configured:
            raise ProviderError('EBAY_CLIENT_ID / EBAY_CLIENT_SECRET not set; eBay disabled')

        with self._token_lock:
            now = self.clock()
            # Reuse a token unless it is within a minute of expiring
            if self._token and now < self._token_expiry - 60:
                return self._token

            auth = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode()).decode('ascii')
            try:
                resp = self.session.post(
                    f"{self.api_url}/identity/v1/oauth2/token",
                    headers={
                        'Authorization': f"Basic {auth}",
                        'Content-Type': 'application/x-www-form-urlencoded',
                    },
                    data={'grant_type': 'client_credentials', 'scope': OAUTH_SCOPE},
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as e:
                raise ProviderError(f"eBay OAuth request failed: {e}")

            if not resp.ok:
                raise ProviderError(f"eBay OAuth token request failed with status {resp.status_code}")
            try:
                payload = resp.json()
            except ValueError:
                raise ProviderError('eBay OAuth token response was not JSON')

            token = payload.get('access_token')
            if not token:
                raise ProviderError('eBay OAuth token missing in response')

            self._token = token
            self._token_expiry = now + float(payload.get('expires_in', 3600))
            logger.info("Obtained new eBay OAuth token (expires_in=%s)", payload.get('expires_in', 3600))
            return token

    def search_prices(self, keywords: str) -> list[float]:
        """Listed prices for a keyword search in the vinyl category."""
        token = self._get_token()
        resp = get_with_retry(
            self.session,
            f"{self.api_url}/buy/browse/v1/item_summary/search",
            provider=self.name,
            headers={
                'Authorization': f"Bearer {token}",
                'Content-Type': 'application/json',
                'X-EBAY-C-MARKETPLACE-ID': 'EBAY_US',
            },
            params={'q': keywords, 'category_ids': EBAY_CATEGORY_VINYL, 'limit': str(SEARCH_LIMIT)},
            timeout=self.timeout,
            max_retries=self.max_retries,
            sleep=self.sleep,
        )

        # eBay answers 400 for some empty searches
        if resp.status_code == 400:
            logger.debug("No eBay listings found for %r", keywords)
            return []
        if not resp.ok:
            raise ProviderError(f"eBay search failed with status {resp.status_code}")
        try:
            payload = resp.json()
        except ValueError:
            raise ProviderError('eBay search response was not JSON')

        prices = []
        for item in payload.get('itemSummaries') or []:
            value = (item.get('price') or {}).get('value')
            if value is not None:
                prices.append(value)
        return prices

    def get_price_statistics(self, release: Release) -> dict[str, Optional[float]]:
        keywords = release.search_keywords
        if not keywords:
            raise ProviderError(f"Release {release.id} has no searchable text")
        return price_statistics(self.search_prices(keywords))
