"""Constituent data source protocol."""

from datetime import datetime
from typing import Protocol

from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity


class ConstituentDataSource(Protocol):
    """Supplies a composite's constituent snapshot as of a time.

    Implementations may return an empty list and must never return records
    stamped after ``as_of``.
    """

    async def fetch(
        self,
        composite: CompositeIdentity,
        as_of: datetime,
    ) -> list[ConstituentRecord]: ...
