"""Financial Modeling Prep client for composite reference data.

Endpoints used:
- ETF holdings (constituents with weights)
- Symbol changes (composite renames)
- Delisted companies (composite delistings)

API Documentation: https://site.financialmodelingprep.com/developer/docs

Usage:
    from basalt.config import settings
    from basalt.clients.fmp import FMPClient

    async with FMPClient(settings.fmp_api_key) as client:
        holdings = await client.get_etf_holdings("SPY")
"""

from typing import Any

from basalt.clients.base import BaseAsyncClient


class FMPClient(BaseAsyncClient):
    """Async client for Financial Modeling Prep.

    Args:
        api_key: FMP API key (from settings.fmp_api_key)
        rate_limit: Max requests per second (default: 10)
    """

    def __init__(self, api_key: str, rate_limit: int = 10) -> None:
        super().__init__(
            base_url="https://financialmodelingprep.com/stable",
            headers={},  # FMP authenticates with a query parameter
            rate_limit=rate_limit,
        )
        self.api_key = api_key

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        params = dict(params or {})
        params["apikey"] = self.api_key
        return await super()._request(method, endpoint, params)

    async def _get_list(self, endpoint: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        result = await self.get(endpoint, params=params)
        return result if isinstance(result, list) else []

    async def get_etf_holdings(self, symbol: str) -> list[dict[str, Any]]:
        """Get current ETF holdings.

        Args:
            symbol: ETF symbol (e.g. SPY, QQQ)

        Returns:
            List of holdings. Each has: symbol, asset, name, sharesNumber,
            weightPercentage, marketValue, updatedAt.
        """
        return await self._get_list("/etf/holdings", {"symbol": symbol.upper()})

    async def get_symbol_changes(self, limit: int = 1000) -> list[dict[str, Any]]:
        """Get ticker changes.

        Returns:
            List of changes. Each has: date, companyName, oldSymbol, newSymbol.
        """
        return await self._get_list("/symbol-change", {"limit": limit})

    async def get_delisted_companies(
        self,
        page: int = 0,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Get delisted companies (one page).

        Returns:
            List of delistings. Each has: symbol, companyName, exchange,
            ipoDate, delistedDate.
        """
        return await self._get_list("/delisted-companies", {"page": page, "limit": limit})
