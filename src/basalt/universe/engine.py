"""Constituents Universe Engine — One selection cycle per evaluation.

Each call to ``evaluate``:
1. Skips stale (non-increasing) times and anything after delisting
2. Rejects snapshots holding look-ahead or duplicate records
3. Runs the selection filter over an immutable view of the snapshot
4. Diffs the result against the previous membership
5. Commits membership and evaluation time together, or not at all

The engine never talks to data sources or lifecycle managers itself; see
``basalt.universe.manager.ConstituentsUniverse`` for the wiring.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Generic

from basalt.config import EvaluationSettings
from basalt.universe.errors import (
    CausalityViolation,
    DuplicateConstituentError,
    SelectionError,
)
from basalt.universe.filters import SelectionFilter, run_filter, select_all
from basalt.universe.records import (
    NO_CHANGES,
    RecordT,
    SelectionChanges,
    SelectionEvaluation,
)
from basalt.universe.symbols import (
    CompositeIdentity,
    CompositeSymbolResolver,
    UniverseIdentity,
)

logger = logging.getLogger(__name__)


class ConstituentsUniverseEngine(Generic[RecordT]):
    """Selection, diff and commit for one composite's universe.

    Generic over the record type: any record exposing ``symbol`` and
    ``time`` can be selected over.

    Usage:
        engine = ConstituentsUniverseEngine(spy, selection_filter=top_by_weight(50))
        changes = engine.evaluate(datetime(2021, 1, 4), records)
        lifecycle.apply(changes.added, changes.removed)
    """

    def __init__(
        self,
        composite: CompositeIdentity,
        selection_filter: SelectionFilter | None = None,
        settings: EvaluationSettings | None = None,
        resolver: CompositeSymbolResolver | None = None,
    ) -> None:
        self.composite = composite
        self.settings = settings or EvaluationSettings()
        self.identity: UniverseIdentity = (resolver or CompositeSymbolResolver()).resolve(composite)
        self._filter: SelectionFilter = selection_filter or select_all
        self._membership: frozenset[str] = frozenset()
        self._last_time: datetime | None = None
        self._last_evaluation: SelectionEvaluation | None = None
        self._delisted_at: datetime | None = None

    @property
    def membership(self) -> frozenset[str]:
        """Symbols selected by the last successful cycle."""
        return self._membership

    @property
    def last_evaluated_time(self) -> datetime | None:
        return self._last_time

    @property
    def last_evaluation(self) -> SelectionEvaluation | None:
        return self._last_evaluation

    @property
    def delisted_at(self) -> datetime | None:
        return self._delisted_at

    @property
    def is_delisted(self) -> bool:
        return self._delisted_at is not None

    def is_stale(self, as_of: datetime) -> bool:
        """True if ``as_of`` does not move past the last evaluation."""
        return self._last_time is not None and as_of <= self._last_time

    def evaluate(
        self,
        as_of: datetime,
        records: Iterable[RecordT],
    ) -> SelectionChanges:
        """Run one selection cycle at ``as_of``.

        Args:
            as_of: Evaluation time; must be later than the previous one
            records: Complete constituent snapshot

        Returns:
            SelectionChanges with the symbols to add and remove. Empty for
            stale or post-delisting requests.

        Raises:
            CausalityViolation: A record is timestamped after ``as_of``
            DuplicateConstituentError: A symbol appears twice in the snapshot
            SelectionError: The filter (or the snapshot size gate) rejected
                the snapshot; membership is unchanged
        """
        if self.is_delisted:
            logger.debug(
                "%s: delisted at %s, skipping evaluation at %s",
                self.composite, self._delisted_at, as_of,
            )
            return NO_CHANGES

        if self.is_stale(as_of):
            logger.debug(
                "%s: stale evaluation at %s (last %s), skipping",
                self.composite, as_of, self._last_time,
            )
            return NO_CHANGES

        snapshot = tuple(records)
        self._check_snapshot(as_of, snapshot)

        ticker = self.composite.ticker_at(as_of)
        minimum = self.settings.min_constituents
        if minimum and snapshot and len(snapshot) < minimum:
            raise self._abort(
                as_of,
                f"Expected {minimum} or more constituents, found {len(snapshot)}",
            )

        result = run_filter(self._filter, snapshot)
        if result.failed:
            raise self._abort(as_of, result.error or "Selection filter failed")

        logger.debug(
            "%s @ %s: %d records -> %d selected",
            ticker, as_of.isoformat(), len(snapshot), len(result.symbols),
        )
        return self._commit(as_of, snapshot, result.symbols)

    def deselect_all(self, as_of: datetime) -> SelectionChanges:
        """Force a final cycle that selects nothing and stop evaluating.

        Used on delisting. Idempotent: a second call returns no changes.
        """
        if self.is_delisted:
            return NO_CHANGES
        when = as_of if self._last_time is None else max(as_of, self._last_time)
        changes = self._commit(when, (), frozenset())
        self._delisted_at = as_of
        return changes

    def _check_snapshot(self, as_of: datetime, snapshot: tuple[RecordT, ...]) -> None:
        seen: set[str] = set()
        for record in snapshot:
            if record.time > as_of:
                raise CausalityViolation(record.symbol, record.time, as_of)
            if record.symbol in seen:
                raise DuplicateConstituentError(record.symbol, as_of)
            seen.add(record.symbol)

    def _abort(self, as_of: datetime, reason: str) -> SelectionError:
        ticker = self.composite.ticker_at(as_of)
        logger.warning(
            "%s @ %s: selection aborted, membership unchanged (%s)",
            ticker, as_of.isoformat(), reason,
        )
        return SelectionError(reason, composite=ticker, time=as_of)

    def _commit(
        self,
        as_of: datetime,
        snapshot: tuple[RecordT, ...],
        selected: frozenset[str],
    ) -> SelectionChanges:
        changes = SelectionChanges(
            added=selected - self._membership,
            removed=self._membership - selected,
        )
        self._membership = selected
        self._last_time = as_of
        self._last_evaluation = SelectionEvaluation(
            time=as_of,
            records=snapshot,
            selected=selected,
            changes=changes,
        )
        if not changes.is_empty:
            logger.info(
                "%s @ %s: +%d / -%d (members=%d)",
                self.composite.ticker_at(as_of), as_of.isoformat(),
                len(changes.added), len(changes.removed), len(selected),
            )
        return changes
