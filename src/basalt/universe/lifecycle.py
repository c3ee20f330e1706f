"""Security lifecycle — where selection changes are sent.

Subscribing to data for added symbols and tearing down removed ones happens
outside this package. ``SecurityLifecycleManager`` is the seam;
``InMemoryLifecycleManager`` keeps the resulting state and an ordered event
log, which is enough for replays and tests.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Literal, Protocol

from basalt.universe.symbols import UniverseIdentity

logger = logging.getLogger(__name__)


class SecurityLifecycleManager(Protocol):
    """Receives lifecycle diffs for a universe."""

    def apply(self, added: frozenset[str], removed: frozenset[str]) -> None:
        """Subscribe ``added``, then tear down ``removed``."""
        ...

    def remove_universe(self, identity: UniverseIdentity) -> None:
        """The universe itself no longer exists."""
        ...


@dataclass(frozen=True)
class LifecycleEvent:
    """One add/remove notification, for a symbol or a whole universe."""

    action: Literal["added", "removed", "universe_removed"]
    target: str


@dataclass
class InMemoryLifecycleManager:
    """Tracks active securities and every lifecycle event in order.

    Several universes may share one manager. ``holders`` counts how many of
    them hold each symbol; a symbol stays active until the last one removes it.
    """

    active: set[str] = field(default_factory=set)
    holders: Counter[str] = field(default_factory=Counter)
    events: list[LifecycleEvent] = field(default_factory=list)

    def apply(self, added: frozenset[str], removed: frozenset[str]) -> None:
        # Additions before removals
        for symbol in sorted(added):
            self.holders[symbol] += 1
            self.active.add(symbol)
            self.events.append(LifecycleEvent("added", symbol))
        for symbol in sorted(removed):
            self.holders[symbol] -= 1
            if self.holders[symbol] <= 0:
                del self.holders[symbol]
                self.active.discard(symbol)
            self.events.append(LifecycleEvent("removed", symbol))
        logger.debug(
            "Applied +%d / -%d, %d active", len(added), len(removed), len(self.active),
        )

    def remove_universe(self, identity: UniverseIdentity) -> None:
        self.events.append(LifecycleEvent("universe_removed", str(identity)))
        logger.info("Universe removed: %s", identity)

    def events_for(
        self,
        action: Literal["added", "removed", "universe_removed"],
    ) -> list[str]:
        return [e.target for e in self.events if e.action == action]
