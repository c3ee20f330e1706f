"""Delisting Monitor — Tears a universe down when its composite delists.

State machine: ACTIVE -> DELISTED (terminal).

On the transition the monitor forces a final, empty selection on the engine,
forwards the removals, and then reports the universe itself as removed.
Further delisting signals are ignored.
"""

import logging
from datetime import datetime
from enum import Enum

from basalt.universe.engine import ConstituentsUniverseEngine
from basalt.universe.lifecycle import SecurityLifecycleManager
from basalt.universe.records import NO_CHANGES, SelectionChanges

logger = logging.getLogger(__name__)


class CompositeStatus(str, Enum):
    ACTIVE = "active"
    DELISTED = "delisted"


class DelistingMonitor:
    """Watches one composite's listing status.

    Args:
        engine: Engine of the universe derived from the composite
        lifecycle: Receives the final removals and the universe removal
    """

    def __init__(
        self,
        engine: ConstituentsUniverseEngine,
        lifecycle: SecurityLifecycleManager,
    ) -> None:
        self.engine = engine
        self.lifecycle = lifecycle
        self.status = CompositeStatus.ACTIVE
        self.delisted_at: datetime | None = None

    @property
    def is_delisted(self) -> bool:
        return self.status is CompositeStatus.DELISTED

    def notify_delisted(self, as_of: datetime) -> SelectionChanges:
        """Handle a delisting signal at ``as_of``.

        Returns:
            The final removals, or no changes if already delisted.
        """
        if self.is_delisted:
            logger.debug(
                "%s already delisted at %s, ignoring signal at %s",
                self.engine.composite, self.delisted_at, as_of,
            )
            return NO_CHANGES

        self.status = CompositeStatus.DELISTED
        self.delisted_at = as_of
        changes = self.engine.deselect_all(as_of)

        logger.info(
            "%s delisted at %s: removing %d members and universe %s",
            self.engine.composite, as_of.isoformat(),
            len(changes.removed), self.engine.identity,
        )
        self.lifecycle.apply(changes.added, changes.removed)
        self.lifecycle.remove_universe(self.engine.identity)
        return changes
