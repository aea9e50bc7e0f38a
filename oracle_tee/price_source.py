"""
External Price Source
=====================

Fetches the authoritative USD price of a coin on a given day.

The lookup is the only I/O a resolution request performs. The whole exchange
(connect, headers and body) is bounded by one deadline, and any failure
(network error, timeout, non-2xx, missing market data) surfaces as
``UpstreamUnavailable``. It never guesses a price.
There is no retry loop here; retries belong to whoever calls the oracle.
"""

import asyncio
import logging
from typing import Dict, Optional

import httpx

from delphi_canonical.constants import COINGECKO_IDS
from delphi_canonical.errors import InvalidPrice, UpstreamUnavailable
from delphi_canonical.pricing import usd_to_fixed_point

logger = logging.getLogger(__name__)

DEFAULT_COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_TIMEOUT_SECONDS = 10.0


class PriceSource:
    """Interface for historical price lookups."""

    async def fetch_price(self, coin: str, date: str) -> int:
        """
        Return the 1e9-scaled USD price of ``coin`` on ``date`` (DD-MM-YYYY).

        Raises:
            UpstreamUnavailable: If no authoritative price can be obtained
        """
        raise NotImplementedError


class CoinGeckoPriceSource(PriceSource):
    """
    CoinGecko ``/coins/{id}/history`` client.

    Args:
        api_key: Demo API key sent as ``x-cg-demo-api-key`` (optional)
        base_url: API root, overridable for mirrors and tests
        timeout: Deadline in seconds for the whole exchange, body included
        coin_ids: Canonical symbol -> CoinGecko id overrides
        transport: Optional httpx transport (tests use ``httpx.MockTransport``)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_COINGECKO_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        coin_ids: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.coin_ids = dict(COINGECKO_IDS if coin_ids is None else coin_ids)
        self._transport = transport

    def coin_id(self, coin: str) -> str:
        return self.coin_ids.get(coin, coin)

    async def fetch_price(self, coin: str, date: str) -> int:
        url = f"{self.base_url}/coins/{self.coin_id(coin)}/history"
        headers = {"Accept": "application/json"}
        if self.api_key and self.api_key.strip():
            headers["x-cg-demo-api-key"] = self.api_key

        try:
            # httpx timeouts are per phase; a trickling body would never trip them
            data = await asyncio.wait_for(self._get_json(url, date, headers), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"⚠️ Price lookup timed out after {self.timeout}s: {coin} {date}")
            raise UpstreamUnavailable(f"Price source timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"⚠️ Price source returned HTTP {status}: {coin} {date}")
            raise UpstreamUnavailable(f"Price source returned HTTP {status}") from e
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ Price source unreachable: {e}")
            raise UpstreamUnavailable(f"Price source unreachable: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable("Price source returned a non-JSON body") from e

        return self._extract_usd_price(data, coin, date)

    async def _get_json(self, url: str, date: str, headers: Dict[str, str]):
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(
                url,
                params={"date": date, "localization": "false"},
                headers=headers,
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _extract_usd_price(data, coin: str, date: str) -> int:
        market_data = data.get("market_data") if isinstance(data, dict) else None
        if not isinstance(market_data, dict):
            raise UpstreamUnavailable(f"No market data available for {coin} on {date}")

        current_price = market_data.get("current_price")
        usd = current_price.get("usd") if isinstance(current_price, dict) else None
        if usd is None:
            raise UpstreamUnavailable(f"No USD price available for {coin} on {date}")

        try:
            return usd_to_fixed_point(usd)
        except InvalidPrice as e:
            raise UpstreamUnavailable(f"Price source returned an unusable price: {e.reason}") from e
