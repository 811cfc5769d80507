"""
Shared GET-with-retry for market-data providers.
"""
import logging
import time
from typing import Any, Callable, Optional

import requests

from ..errors import ProviderError

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 10.0


def get_with_retry(
    session: requests.Session,
    url: str,
    *,
    provider: str,
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, Any]] = None,
    timeout: float = 15.0,
    max_retries: int = 3,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    """
    GET with exponential backoff on connection errors, 429 and 5xx.

    Any other status is returned for the caller to inspect. Raises
    ProviderError once retries are exhausted.
    """
    backoff = 1.0
    last_problem = ''

    for attempt in range(1, max_retries + 1):
        try:
            resp = session.get(url, headers=headers, params=params or {}, timeout=timeout)
        except requests.exceptions.RequestException as e:
            last_problem = str(e)
            logger.warning("%s GET failed (attempt %d/%d) %s: %s", provider, attempt, max_retries, url, e)
        else:
            if resp.status_code == 429:
                last_problem = 'rate limited'
                logger.warning("%s rate limit hit on %s (attempt %d/%d)", provider, url, attempt, max_retries)
            elif 500 <= resp.status_code < 600:
                last_problem = f"server error {resp.status_code}"
                logger.warning(
                    "%s server error %s on %s (attempt %d/%d)",
                    provider, resp.status_code, url, attempt, max_retries,
                )
            else:
                return resp

        if attempt < max_retries:
            sleep(backoff)
            backoff = min(backoff * 2, MAX_BACKOFF_SECONDS)

    raise ProviderError(f"{provider} request failed after {max_retries} attempts: {last_problem}")
