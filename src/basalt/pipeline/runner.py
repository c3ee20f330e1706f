"""Universe Runner — Drives a constituents universe through time.

For each evaluation time:
  1. Replay this composite's events effective at or before it (renames,
     delisting); events for other tickers are ignored
  2. Skip the universe entirely once its composite is delisted
  3. Fetch the snapshot from the data source and evaluate it
  4. Record the evaluation, or a diagnostic if the cycle was aborted

Usage:
    runner = UniverseRunner(manager, source)
    report = await runner.replay(
        CompositeIdentity.create("SPY"),
        start=datetime(2021, 1, 1),
        end=datetime(2021, 3, 31),
        settings=EvaluationSettings(resolution="monthly"),
    )
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from basalt.config import EvaluationSettings
from basalt.sources.base import ConstituentDataSource
from basalt.universe.errors import SelectionError
from basalt.universe.events import CompositeEvent
from basalt.universe.filters import SelectionFilter
from basalt.universe.manager import ConstituentsUniverse, UniverseManager
from basalt.universe.records import SelectionEvaluation
from basalt.universe.schedule import evaluation_times
from basalt.universe.symbols import CompositeIdentity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionDiagnostic:
    """An aborted selection cycle."""

    composite: str
    time: datetime
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"composite": self.composite, "time": self.time.isoformat(), "reason": self.reason}


@dataclass
class RunReport:
    """Outcome of one run over a universe."""

    composite: str
    universe: str
    evaluations: list[SelectionEvaluation] = field(default_factory=list)
    diagnostics: list[SelectionDiagnostic] = field(default_factory=list)
    delisted_at: datetime | None = None
    skipped: int = 0
    membership: frozenset[str] = frozenset()

    @property
    def evaluation_count(self) -> int:
        return len(self.evaluations)

    def to_dict(self) -> dict[str, Any]:
        return {
            "composite": self.composite,
            "universe": self.universe,
            "evaluations": [e.to_dict() for e in self.evaluations],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "delisted_at": self.delisted_at.isoformat() if self.delisted_at else None,
            "skipped": self.skipped,
            "membership": sorted(self.membership),
        }


class UniverseRunner:
    """Replays evaluation times against universes held by a manager.

    Args:
        manager: Registry owning the universes
        source: Where snapshots come from
        fail_on_selection_error: Re-raise SelectionError instead of
            recording a diagnostic and moving on
    """

    def __init__(
        self,
        manager: UniverseManager,
        source: ConstituentDataSource,
        fail_on_selection_error: bool = False,
    ) -> None:
        self.manager = manager
        self.source = source
        self.fail_on_selection_error = fail_on_selection_error

    async def run(
        self,
        universe: ConstituentsUniverse,
        times: Iterable[datetime],
        events: Sequence[CompositeEvent] = (),
    ) -> RunReport:
        """Evaluate ``universe`` at each of ``times``.

        Raises:
            SelectionError: Only when fail_on_selection_error is set
        """
        report = RunReport(
            composite=universe.composite.ticker,
            universe=str(universe.identity),
        )
        # Renames first on a shared date so a delisting under the new ticker matches
        pending = sorted(events, key=lambda e: (e.effective, e.kind != "mapping"))

        for as_of in times:
            while pending and pending[0].effective <= as_of:
                event = pending.pop(0)
                # Aliases grow as earlier renames are applied
                if event.ticker not in universe.composite.aliases:
                    logger.debug("%s: ignoring event for %s", universe.composite, event.ticker)
                    continue
                self._apply_event(universe, event)

            if universe.is_delisted:
                report.skipped += 1
                continue

            try:
                await universe.refresh(self.source, as_of)
            except SelectionError as e:
                report.diagnostics.append(SelectionDiagnostic(
                    composite=e.composite or universe.composite.ticker_at(as_of),
                    time=e.time or as_of,
                    reason=e.reason,
                ))
                if self.fail_on_selection_error:
                    raise
                continue

            evaluation = universe.engine.last_evaluation
            if evaluation is not None and evaluation.time == as_of:
                report.evaluations.append(evaluation)

        report.composite = universe.composite.ticker
        report.delisted_at = universe.monitor.delisted_at
        report.membership = universe.membership
        logger.info(
            "%s: %d evaluations, %d aborted, %d skipped after delisting",
            report.composite, report.evaluation_count,
            len(report.diagnostics), report.skipped,
        )
        return report

    async def replay(
        self,
        composite: CompositeIdentity,
        start: datetime,
        end: datetime,
        settings: EvaluationSettings | None = None,
        selection_filter: SelectionFilter | None = None,
        events: Sequence[CompositeEvent] = (),
    ) -> RunReport:
        """Create a universe for ``composite`` and run it over [start, end]."""
        settings = settings or EvaluationSettings()
        _, universe = self.manager.create_universe(composite, settings, selection_filter)
        times = evaluation_times(start, end, settings.resolution)
        return await self.run(universe, times, events)

    def _apply_event(self, universe: ConstituentsUniverse, event: CompositeEvent) -> None:
        if event.kind == "mapping" and event.new_ticker:
            universe.rename(event.new_ticker, event.effective)
        elif event.kind == "delisting":
            if universe.composite in self.manager:
                self.manager.notify_delisted(universe.composite, event.effective)
            else:
                universe.notify_delisted(event.effective)
