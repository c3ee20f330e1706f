"""Constituent source backed by the Parquet snapshot store."""

import logging
from datetime import datetime

from basalt.cache.constituent_store import ConstituentStore
from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity

logger = logging.getLogger(__name__)


class ParquetConstituentSource:
    """Replays stored snapshots.

    Args:
        store: Snapshot store
        source: Provider tag the snapshots were written under (default: fmp)
    """

    def __init__(self, store: ConstituentStore, source: str = "fmp") -> None:
        self.store = store
        self.source = source

    async def fetch(
        self,
        composite: CompositeIdentity,
        as_of: datetime,
    ) -> list[ConstituentRecord]:
        records = await self.store.read_as_of(composite.aliases, self.source, as_of)
        if not records:
            logger.debug("%s: no stored snapshot on or before %s", composite, as_of)
        return records
