"""Record types flowing through a constituents universe.

The engine only needs a ``symbol`` from each record (see ``HasSymbol``), so
alternative constituent schemas can be selected over with the same engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol, TypeVar


class HasSymbol(Protocol):
    """Minimal capability the engine requires of a record."""

    @property
    def symbol(self) -> str: ...

    @property
    def time(self) -> datetime: ...


RecordT = TypeVar("RecordT", bound=HasSymbol)


@dataclass(frozen=True)
class ConstituentRecord:
    """One holding of a composite as of ``time``."""

    symbol: str
    weight: float
    time: datetime
    name: str | None = None
    shares_held: float | None = None
    market_value: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "symbol", self.symbol.upper())

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "weight": self.weight,
            "time": self.time,
            "name": self.name,
            "shares_held": self.shares_held,
            "market_value": self.market_value,
        }


@dataclass(frozen=True)
class SelectionChanges:
    """Add/remove diff produced by one evaluation."""

    added: frozenset[str] = frozenset()
    removed: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed

    def apply_to(self, membership: frozenset[str] | set[str]) -> frozenset[str]:
        """Apply additions, then removals, to ``membership``."""
        return (frozenset(membership) | self.added) - self.removed

    def to_dict(self) -> dict[str, list[str]]:
        return {"added": sorted(self.added), "removed": sorted(self.removed)}


NO_CHANGES = SelectionChanges()


@dataclass(frozen=True)
class SelectionEvaluation:
    """Audit record of one successful selection cycle."""

    time: datetime
    records: tuple[Any, ...]
    selected: frozenset[str]
    changes: SelectionChanges = field(default=NO_CHANGES)

    @property
    def record_count(self) -> int:
        return len(self.records)

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time.isoformat(),
            "record_count": self.record_count,
            "selected": sorted(self.selected),
            **self.changes.to_dict(),
        }
