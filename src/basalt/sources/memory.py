"""In-memory constituent source for replays and tests."""

from collections.abc import Iterable
from datetime import datetime

from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity


class InMemoryConstituentSource:
    """Serves snapshots added with ``add_snapshot``.

    Snapshots are filed under a ticker; a fetch looks at every ticker the
    composite has used and serves the latest snapshot at or before ``as_of``
    whose records are all stamped at or before it.

    Usage:
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 4), records)
        records = await source.fetch(spy, datetime(2021, 1, 5))
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, list[tuple[datetime, tuple[ConstituentRecord, ...]]]] = {}
        self.fetch_count = 0

    def add_snapshot(
        self,
        ticker: str,
        when: datetime,
        records: Iterable[ConstituentRecord],
    ) -> None:
        snapshots = self._snapshots.setdefault(ticker.upper(), [])
        snapshots.append((when, tuple(records)))
        snapshots.sort(key=lambda s: s[0])

    async def fetch(
        self,
        composite: CompositeIdentity,
        as_of: datetime,
    ) -> list[ConstituentRecord]:
        self.fetch_count += 1
        candidates = [
            (when, records)
            for ticker in composite.aliases
            for when, records in self._snapshots.get(ticker, [])
            if when <= as_of
        ]
        # Newest first; a snapshot stamped after as_of was not taken yet
        for _, records in sorted(candidates, key=lambda s: s[0], reverse=True):
            if all(r.time <= as_of for r in records):
                return list(records)
        return []
