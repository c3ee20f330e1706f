"""Selection filters — choose which constituents become universe members.

A filter receives the snapshot as an immutable tuple of records and answers
with the symbols to keep. It can answer in three ways:

- return an iterable of symbols (the common case)
- return a ``FilterResult``: ``FilterResult.ok(symbols)`` or
  ``FilterResult.fail(reason)``
- raise ``SelectionError`` or ``ValueError`` to reject the snapshot

The engine folds all of them into one contract via ``run_filter``.

Usage:
    selector = compose(
        require_constituent("AAPL"),
        selector=top_by_weight(50),
    )
    engine = ConstituentsUniverseEngine(composite, selection_filter=selector)
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from basalt.universe.errors import SelectionError
from basalt.universe.records import ConstituentRecord, HasSymbol


@dataclass(frozen=True)
class FilterResult:
    """Explicit outcome of a filter run."""

    symbols: frozenset[str] = frozenset()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @classmethod
    def ok(cls, symbols: Iterable[str]) -> "FilterResult":
        return cls(symbols=frozenset(s.upper() for s in symbols))

    @classmethod
    def fail(cls, reason: str) -> "FilterResult":
        return cls(error=reason)


SelectionFilter = Callable[[Sequence[Any]], Union[Iterable[str], FilterResult]]

# Validators inspect the snapshot and return a failure reason, or None.
SnapshotValidator = Callable[[Sequence[ConstituentRecord]], str | None]


def select_all(records: Sequence[HasSymbol]) -> list[str]:
    """Default filter: every record's symbol."""
    return [r.symbol for r in records]


def run_filter(
    selection_filter: SelectionFilter,
    records: Sequence[Any],
) -> FilterResult:
    """Run ``selection_filter`` and normalise its answer.

    Returns:
        FilterResult with upper-cased, de-duplicated symbols, or a failed
        result if the filter rejected the snapshot.
    """
    try:
        output = selection_filter(records)
    except (SelectionError, ValueError) as e:
        return FilterResult.fail(str(e) or type(e).__name__)

    if isinstance(output, FilterResult):
        if output.failed:
            return output
        return FilterResult.ok(output.symbols)
    if output is None:
        return FilterResult.fail("Filter returned None")
    return FilterResult.ok(output)


def top_by_weight(n: int) -> SelectionFilter:
    """Select the ``n`` heaviest constituents.

    Ties keep snapshot order.
    """
    if n < 1:
        raise ValueError(f"n ({n}) must be >= 1")

    def _filter(records: Sequence[ConstituentRecord]) -> list[str]:
        ranked = sorted(records, key=lambda r: r.weight, reverse=True)
        return [r.symbol for r in ranked[:n]]

    return _filter


def min_weight(threshold: float) -> SelectionFilter:
    """Select constituents with ``weight >= threshold``."""

    def _filter(records: Sequence[ConstituentRecord]) -> list[str]:
        return [r.symbol for r in records if r.weight >= threshold]

    return _filter


def require_constituent(symbol: str, nonzero_weight: bool = True) -> SnapshotValidator:
    """Validator: ``symbol`` must be in the snapshot (with weight != 0)."""
    symbol = symbol.upper()

    def _validate(records: Sequence[ConstituentRecord]) -> str | None:
        if not records:
            return "Constituents snapshot is empty"
        matches = [r for r in records if r.symbol == symbol]
        if not matches:
            return f"{symbol} is not in the constituents snapshot"
        if nonzero_weight and matches[0].weight == 0:
            return f"{symbol} weight is expected to be non-zero"
        return None

    return _validate


def compose(
    *validators: SnapshotValidator,
    selector: SelectionFilter = select_all,
) -> SelectionFilter:
    """Run ``validators`` in order, then ``selector``.

    The first validator that reports a problem fails the whole filter.
    """

    def _filter(records: Sequence[ConstituentRecord]) -> FilterResult:
        for validate in validators:
            reason = validate(records)
            if reason is not None:
                return FilterResult.fail(reason)
        return run_filter(selector, records)

    return _filter
