"""Composite Events — Renames and delistings of the composite itself.

Events come either from FMP (symbol-change and delisted-companies
endpoints) or are built directly, and are replayed in time order by the
runner before each evaluation.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal

from basalt.clients.base import DataProviderError
from basalt.clients.fmp import FMPClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True, order=True)
class CompositeEvent:
    """A rename or delisting of a composite.

    ``ticker`` is the ticker before the event; ``new_ticker`` is set for
    mappings only.
    """

    effective: datetime
    kind: Literal["mapping", "delisting"]
    ticker: str
    new_ticker: str | None = None

    @classmethod
    def mapping(cls, ticker: str, new_ticker: str, effective: datetime) -> "CompositeEvent":
        return cls(effective, "mapping", ticker.upper(), new_ticker.upper())

    @classmethod
    def delisting(cls, ticker: str, effective: datetime) -> "CompositeEvent":
        return cls(effective, "delisting", ticker.upper())


def _parse_date(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        d = date.fromisoformat(str(value)[:10])
    except ValueError:
        return None
    return datetime(d.year, d.month, d.day)


def parse_symbol_changes(
    changes: list[dict[str, Any]],
    ticker: str,
) -> list[CompositeEvent]:
    """Follow the rename chain starting at ``ticker``.

    Args:
        changes: Raw ``/symbol-change`` payload
        ticker: Ticker the composite was first listed under

    Returns:
        Mapping events in time order.
    """
    parsed = []
    for entry in changes:
        when = _parse_date(entry.get("date"))
        old = (entry.get("oldSymbol") or "").upper()
        new = (entry.get("newSymbol") or "").upper()
        if when and old and new and old != new:
            parsed.append((when, old, new))
    parsed.sort()

    events: list[CompositeEvent] = []
    current = ticker.upper()
    for when, old, new in parsed:
        if old == current:
            events.append(CompositeEvent.mapping(old, new, when))
            current = new
    return events


def parse_delistings(
    entries: list[dict[str, Any]],
    tickers: set[str] | frozenset[str],
) -> list[CompositeEvent]:
    """Delisting events for any of ``tickers``."""
    wanted = {t.upper() for t in tickers}
    events = []
    for entry in entries:
        symbol = (entry.get("symbol") or "").upper()
        when = _parse_date(entry.get("delistedDate"))
        if symbol in wanted and when:
            events.append(CompositeEvent.delisting(symbol, when))
    return sorted(events)


async def fetch_composite_events(
    fmp: FMPClient,
    ticker: str,
    delisting_pages: int = 1,
) -> list[CompositeEvent]:
    """Fetch renames and delistings for the composite listed as ``ticker``.

    A provider failure for one kind of event is logged and that kind is
    skipped; the other kind is still returned.

    Returns:
        All events in time order.
    """
    try:
        changes = await fmp.get_symbol_changes()
    except DataProviderError as e:
        logger.warning("Failed to fetch symbol changes: %s", e)
        changes = []
    mappings = parse_symbol_changes(changes, ticker)

    tickers = {ticker.upper(), *(e.new_ticker for e in mappings if e.new_ticker)}
    delistings: list[CompositeEvent] = []
    for page in range(delisting_pages):
        try:
            entries = await fmp.get_delisted_companies(page=page)
        except DataProviderError as e:
            logger.warning("Failed to fetch delisted companies (page %d): %s", page, e)
            break
        delistings.extend(parse_delistings(entries, tickers))

    events = sorted(mappings + delistings)
    logger.info(
        "%s: %d composite events (mappings=%d, delistings=%d)",
        ticker, len(events), len(mappings), len(delistings),
    )
    return events
