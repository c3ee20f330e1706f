"""Live constituent source backed by FMP ETF holdings."""

import logging
from datetime import datetime
from typing import Any

from basalt.clients.fmp import FMPClient
from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity

logger = logging.getLogger(__name__)


def _parse_updated_at(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", ""))
    except ValueError:
        return None


def parse_holdings(
    holdings: list[dict[str, Any]],
    as_of: datetime,
) -> list[ConstituentRecord]:
    """Turn FMP holdings into constituent records.

    Weights are converted from percent to fractions. Each record is stamped
    with its ``updatedAt`` capped at ``as_of``. When an asset is listed more
    than once the heaviest entry wins.

    Args:
        holdings: Raw ``/etf/holdings`` payload
        as_of: Evaluation time

    Returns:
        Records sorted by weight descending.
    """
    best: dict[str, ConstituentRecord] = {}
    skipped = 0
    for holding in holdings:
        asset = (holding.get("asset") or "").strip().upper()
        if not asset:
            skipped += 1
            continue
        try:
            weight = float(holding.get("weightPercentage") or 0.0) / 100.0
        except (TypeError, ValueError):
            skipped += 1
            continue

        updated = _parse_updated_at(holding.get("updatedAt"))
        record = ConstituentRecord(
            symbol=asset,
            weight=weight,
            time=min(updated, as_of) if updated else as_of,
            name=holding.get("name"),
            shares_held=holding.get("sharesNumber"),
            market_value=holding.get("marketValue"),
        )
        existing = best.get(asset)
        if existing is None or record.weight > existing.weight:
            best[asset] = record

    if skipped:
        logger.debug("Skipped %d malformed holdings", skipped)
    return sorted(best.values(), key=lambda r: r.weight, reverse=True)


class FMPConstituentSource:
    """Fetches the composite's current holdings from FMP.

    FMP only serves current holdings, so this source suits live runs and
    snapshot collection, not historical replays.

    Args:
        client: FMP client inside its ``async with`` block
    """

    def __init__(self, client: FMPClient) -> None:
        self.client = client

    async def fetch(
        self,
        composite: CompositeIdentity,
        as_of: datetime,
    ) -> list[ConstituentRecord]:
        ticker = composite.ticker_at(as_of)
        holdings = await self.client.get_etf_holdings(ticker)
        records = parse_holdings(holdings, as_of)
        logger.info("%s: %d constituents from FMP", ticker, len(records))
        return records
