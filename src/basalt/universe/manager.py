"""Universe Manager — Registry of constituents universes.

One ``ConstituentsUniverse`` per composite, keyed by the composite's
immutable identifier. Lookups by ticker accept any ticker the composite has
ever traded under, so snapshots filed under a pre-rename ticker still reach
the same universe.

Usage:
    manager = UniverseManager(lifecycle=InMemoryLifecycleManager())
    identity, universe = manager.create_universe(
        CompositeIdentity.create("SPY"),
        EvaluationSettings(resolution="daily"),
        selection_filter=top_by_weight(100),
    )
    universe.evaluate(as_of, records)
    manager.notify_delisted("SPY", as_of)
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from basalt.config import EvaluationSettings
from basalt.universe.delisting import DelistingMonitor
from basalt.universe.engine import ConstituentsUniverseEngine
from basalt.universe.filters import SelectionFilter
from basalt.universe.lifecycle import InMemoryLifecycleManager, SecurityLifecycleManager
from basalt.universe.records import NO_CHANGES, SelectionChanges
from basalt.universe.symbols import (
    CompositeIdentity,
    CompositeSymbolResolver,
    SecurityIdentifier,
    UniverseIdentity,
)

if TYPE_CHECKING:
    from basalt.sources.base import ConstituentDataSource

logger = logging.getLogger(__name__)


class ConstituentsUniverse:
    """Handle tying an engine to its lifecycle manager and delisting monitor.

    Changes from each evaluation are forwarded synchronously; evaluating
    again from inside that dispatch is refused.
    """

    def __init__(
        self,
        engine: ConstituentsUniverseEngine,
        lifecycle: SecurityLifecycleManager,
    ) -> None:
        self.engine = engine
        self.lifecycle = lifecycle
        self.monitor = DelistingMonitor(engine, lifecycle)
        self._dispatching = False

    @property
    def identity(self) -> UniverseIdentity:
        return self.engine.identity

    @property
    def composite(self) -> CompositeIdentity:
        return self.engine.composite

    @property
    def membership(self) -> frozenset[str]:
        return self.engine.membership

    @property
    def is_delisted(self) -> bool:
        return self.monitor.is_delisted

    def evaluate(self, as_of: datetime, records: Iterable) -> SelectionChanges:
        """Evaluate a snapshot and forward the resulting changes."""
        self._guard_reentry()
        changes = self.engine.evaluate(as_of, records)
        if not changes.is_empty:
            self._dispatching = True
            try:
                self.lifecycle.apply(changes.added, changes.removed)
            finally:
                self._dispatching = False
        return changes

    async def refresh(
        self,
        source: "ConstituentDataSource",
        as_of: datetime,
    ) -> SelectionChanges:
        """Fetch the snapshot at ``as_of`` from ``source`` and evaluate it.

        The source is not consulted once the composite is delisted or when
        ``as_of`` is stale.
        """
        if self.is_delisted or self.engine.is_stale(as_of):
            logger.debug("%s: no refresh at %s", self.composite, as_of)
            return NO_CHANGES
        records = await source.fetch(self.composite, as_of)
        return self.evaluate(as_of, records)

    def notify_delisted(self, as_of: datetime) -> SelectionChanges:
        self._guard_reentry()
        self._dispatching = True
        try:
            return self.monitor.notify_delisted(as_of)
        finally:
            self._dispatching = False

    def rename(self, ticker: str, effective: datetime) -> None:
        """Record that the composite trades as ``ticker`` from ``effective``."""
        before = self.engine.composite.ticker_at(effective)
        self.engine.composite = self.engine.composite.mapped(ticker, effective)
        logger.info(
            "%s mapped to %s effective %s (universe %s unchanged)",
            before, ticker.upper(), effective.isoformat(), self.identity,
        )

    def _guard_reentry(self) -> None:
        if self._dispatching:
            raise RuntimeError(
                f"Re-entrant evaluation of {self.composite} during lifecycle dispatch"
            )


class UniverseManager:
    """Creates, looks up and tears down constituents universes.

    Args:
        lifecycle: Shared lifecycle manager (default: in-memory)
        resolver: Universe identity resolver
    """

    def __init__(
        self,
        lifecycle: SecurityLifecycleManager | None = None,
        resolver: CompositeSymbolResolver | None = None,
    ) -> None:
        self.lifecycle = lifecycle if lifecycle is not None else InMemoryLifecycleManager()
        self.resolver = resolver or CompositeSymbolResolver()
        self._universes: dict[SecurityIdentifier, ConstituentsUniverse] = {}

    def __len__(self) -> int:
        return len(self._universes)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return self.get(item) is not None
        if isinstance(item, CompositeIdentity):
            return item.sid in self._universes
        return False

    @property
    def universes(self) -> list[ConstituentsUniverse]:
        return list(self._universes.values())

    def create_universe(
        self,
        composite: CompositeIdentity,
        settings: EvaluationSettings | None = None,
        selection_filter: SelectionFilter | None = None,
    ) -> tuple[UniverseIdentity, ConstituentsUniverse]:
        """Create the universe driven by ``composite``.

        Raises:
            ValueError: A universe already exists for this composite
        """
        if composite.sid in self._universes:
            raise ValueError(f"Universe for {composite} already exists")

        engine = ConstituentsUniverseEngine(
            composite,
            selection_filter=selection_filter,
            settings=settings,
            resolver=self.resolver,
        )
        universe = ConstituentsUniverse(engine, self.lifecycle)
        self._universes[composite.sid] = universe
        logger.info("Created universe %s for %s", universe.identity, composite)
        return universe.identity, universe

    def get(self, ticker: str) -> ConstituentsUniverse | None:
        """Find the universe whose composite has ever traded as ``ticker``."""
        ticker = ticker.upper()
        for universe in self._universes.values():
            if ticker in universe.composite.aliases:
                return universe
        return None

    def _require(self, composite: CompositeIdentity | str) -> ConstituentsUniverse:
        if isinstance(composite, CompositeIdentity):
            universe = self._universes.get(composite.sid)
        else:
            universe = self.get(composite)
        if universe is None:
            raise KeyError(f"No universe for composite {composite}")
        return universe

    def evaluate(
        self,
        composite: CompositeIdentity | str,
        as_of: datetime,
        records: Iterable,
    ) -> SelectionChanges:
        """Route a snapshot to its universe and evaluate it."""
        return self._require(composite).evaluate(as_of, records)

    def map_composite(
        self,
        composite: CompositeIdentity | str,
        ticker: str,
        effective: datetime,
    ) -> None:
        self._require(composite).rename(ticker, effective)

    def notify_delisted(
        self,
        composite: CompositeIdentity | str,
        as_of: datetime,
    ) -> SelectionChanges:
        """Tear down the universe of a delisted composite.

        Unknown composites are ignored, so repeated signals are harmless.
        """
        if isinstance(composite, CompositeIdentity):
            universe = self._universes.get(composite.sid)
        else:
            universe = self.get(composite)
        if universe is None:
            logger.debug("No universe for delisted composite %s", composite)
            return NO_CHANGES

        changes = universe.notify_delisted(as_of)
        del self._universes[universe.composite.sid]
        return changes
