"""Tests for UniverseRunner — end-to-end universe replays."""

from datetime import datetime

import pytest

from basalt.config import EvaluationSettings
from basalt.pipeline.runner import RunReport, UniverseRunner
from basalt.sources.memory import InMemoryConstituentSource
from basalt.universe.errors import SelectionError
from basalt.universe.events import CompositeEvent
from basalt.universe.filters import compose, require_constituent, select_all
from basalt.universe.lifecycle import InMemoryLifecycleManager
from basalt.universe.manager import UniverseManager
from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity, resolve_universe_identity

NASDAQ_SAMPLE = [
    "AAPL", "MSFT", "AMZN", "NVDA", "GOOGL", "GOOG", "META", "TSLA", "AVGO", "PEP",
    "COST", "CSCO", "ADBE", "NFLX", "CMCSA", "TXN", "QCOM", "INTC", "AMGN", "HON",
    "INTU", "SBUX", "AMD", "GILD", "MDLZ", "BKNG", "ADP", "ISRG", "MU", "REGN",
]


def _records(symbols: list[str], when: datetime) -> list[ConstituentRecord]:
    weight = 1.0 / len(symbols)
    return [ConstituentRecord(s, weight, when) for s in symbols]


@pytest.fixture
def lifecycle() -> InMemoryLifecycleManager:
    return InMemoryLifecycleManager()


@pytest.fixture
def manager(lifecycle) -> UniverseManager:
    return UniverseManager(lifecycle=lifecycle)


class TestMonthlyCadence:
    """Mapped composite evaluated once per month."""

    @pytest.mark.asyncio
    async def test_three_monthly_evaluations(self, manager) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("QQQ", datetime(2020, 12, 31), _records(NASDAQ_SAMPLE, datetime(2020, 12, 31)))
        calls: list[int] = []

        def counting_filter(records):
            calls.append(len(records))
            return select_all(records)

        runner = UniverseRunner(manager, source)
        report = await runner.replay(
            CompositeIdentity.create("QQQ"),
            start=datetime(2021, 1, 1),
            end=datetime(2021, 3, 31),
            settings=EvaluationSettings(resolution="monthly"),
            selection_filter=counting_filter,
        )

        assert len(calls) == 3
        assert all(n >= 25 for n in calls)
        assert report.evaluation_count == 3
        assert [e.time.month for e in report.evaluations] == [1, 2, 3]
        assert all(e.record_count >= 25 for e in report.evaluations)
        assert report.membership == frozenset(NASDAQ_SAMPLE)

    @pytest.mark.asyncio
    async def test_empty_source_evaluates_to_empty(self, manager) -> None:
        runner = UniverseRunner(manager, InMemoryConstituentSource())
        report = await runner.replay(
            CompositeIdentity.create("QQQ"),
            start=datetime(2021, 1, 1),
            end=datetime(2021, 2, 28),
            settings=EvaluationSettings(resolution="monthly", min_constituents=25),
        )
        assert report.evaluation_count == 2
        assert report.diagnostics == []
        assert report.membership == frozenset()


class TestDelistingTeardown:
    """Composite delisted mid-run."""

    DELISTED = datetime(2021, 1, 20)

    @pytest.fixture
    def source(self) -> InMemoryConstituentSource:
        source = InMemoryConstituentSource()
        source.add_snapshot(
            "GDVD", datetime(2021, 1, 4),
            _records(["AAPL", "MSFT", "JNJ", "PG"], datetime(2021, 1, 4)),
        )
        return source

    async def _run(self, manager, source) -> RunReport:
        runner = UniverseRunner(manager, source)
        return await runner.replay(
            CompositeIdentity.create("GDVD"),
            start=datetime(2021, 1, 4),
            end=datetime(2021, 1, 29),
            settings=EvaluationSettings(resolution="daily"),
            events=[CompositeEvent.delisting("GDVD", self.DELISTED)],
        )

    @pytest.mark.asyncio
    async def test_no_evaluations_after_delisting(self, manager, source) -> None:
        report = await self._run(manager, source)

        assert all(e.time < self.DELISTED for e in report.evaluations)
        # Business days 2021-01-04 .. 2021-01-19
        assert source.fetch_count == 12
        assert report.skipped == 8
        assert report.delisted_at == self.DELISTED

    @pytest.mark.asyncio
    async def test_universe_torn_down(self, manager, lifecycle, source) -> None:
        report = await self._run(manager, source)

        identity = resolve_universe_identity(CompositeIdentity.create("GDVD"))
        assert report.membership == frozenset()
        assert lifecycle.active == set()
        assert lifecycle.events_for("universe_removed") == [str(identity)]
        assert lifecycle.events[-1].action == "universe_removed"
        assert "GDVD" not in manager

    @pytest.mark.asyncio
    async def test_no_additions_after_delisting(self, manager, lifecycle, source) -> None:
        await self._run(manager, source)
        first_removal = next(
            i for i, e in enumerate(lifecycle.events) if e.action == "removed"
        )
        assert all(e.action != "added" for e in lifecycle.events[first_removal:])


class TestRenameDuringRun:
    """Snapshots filed under both tickers feed one universe."""

    @pytest.mark.asyncio
    async def test_rename_keeps_universe(self, manager, lifecycle) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("QQQQ", datetime(2011, 3, 1), _records(["AAPL", "MSFT"], datetime(2011, 3, 1)))
        source.add_snapshot("QQQ", datetime(2011, 4, 1), _records(["AAPL", "GOOG"], datetime(2011, 4, 1)))
        qqqq = CompositeIdentity.create("QQQQ")

        runner = UniverseRunner(manager, source)
        report = await runner.replay(
            qqqq,
            start=datetime(2011, 3, 1),
            end=datetime(2011, 5, 31),
            settings=EvaluationSettings(resolution="monthly"),
            events=[CompositeEvent.mapping("QQQQ", "QQQ", datetime(2011, 3, 23))],
        )

        assert report.composite == "QQQ"
        assert report.universe == str(resolve_universe_identity(qqqq))
        assert report.evaluation_count == 3
        assert report.membership == {"AAPL", "GOOG"}
        assert lifecycle.events_for("removed") == ["MSFT"]
        assert len(manager) == 1

    @pytest.mark.asyncio
    async def test_delisting_under_new_ticker_same_day(self, manager, lifecycle) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("QQQQ", datetime(2011, 3, 1), _records(["AAPL"], datetime(2011, 3, 1)))

        report = await UniverseRunner(manager, source).replay(
            CompositeIdentity.create("QQQQ"),
            start=datetime(2011, 3, 1),
            end=datetime(2011, 5, 31),
            settings=EvaluationSettings(resolution="monthly"),
            events=[
                CompositeEvent.delisting("QQQ", datetime(2011, 4, 1)),
                CompositeEvent.mapping("QQQQ", "QQQ", datetime(2011, 4, 1)),
            ],
        )

        assert report.composite == "QQQ"
        assert report.delisted_at == datetime(2011, 4, 1)
        assert report.evaluation_count == 1


class TestForeignEvents:
    """Events for other composites leave the running universe alone."""

    @pytest.mark.asyncio
    async def test_other_composites_events_ignored(self, manager, lifecycle) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("QQQ", datetime(2021, 1, 4), _records(NASDAQ_SAMPLE, datetime(2021, 1, 4)))

        report = await UniverseRunner(manager, source).replay(
            CompositeIdentity.create("QQQ"),
            start=datetime(2021, 1, 4),
            end=datetime(2021, 1, 8),
            settings=EvaluationSettings(resolution="daily"),
            events=[
                CompositeEvent.delisting("GDVD", datetime(2021, 1, 5)),
                CompositeEvent.mapping("SPY", "SPYX", datetime(2021, 1, 6)),
            ],
        )

        assert report.delisted_at is None
        assert report.skipped == 0
        assert report.evaluation_count == 5
        assert report.composite == "QQQ"
        assert report.membership == frozenset(NASDAQ_SAMPLE)
        assert lifecycle.events_for("universe_removed") == []
        assert "QQQ" in manager


class TestSelectionErrors:
    """Aborted cycles become diagnostics."""

    @pytest.fixture
    def source(self) -> InMemoryConstituentSource:
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 1), _records(["AAPL", "MSFT"], datetime(2021, 1, 1)))
        source.add_snapshot("SPY", datetime(2021, 2, 1), _records(["MSFT", "XOM"], datetime(2021, 2, 1)))
        source.add_snapshot("SPY", datetime(2021, 3, 1), _records(["AAPL", "XOM"], datetime(2021, 3, 1)))
        return source

    @pytest.mark.asyncio
    async def test_diagnostic_recorded_and_membership_kept(self, manager, source) -> None:
        runner = UniverseRunner(manager, source)
        report = await runner.replay(
            CompositeIdentity.create("SPY"),
            start=datetime(2021, 1, 1),
            end=datetime(2021, 3, 31),
            settings=EvaluationSettings(resolution="monthly"),
            selection_filter=compose(require_constituent("AAPL")),
        )

        assert report.evaluation_count == 2
        assert len(report.diagnostics) == 1
        diagnostic = report.diagnostics[0]
        assert diagnostic.time == datetime(2021, 2, 1)
        assert "AAPL" in diagnostic.reason
        assert report.membership == {"AAPL", "XOM"}

    @pytest.mark.asyncio
    async def test_fail_on_selection_error(self, manager, source) -> None:
        runner = UniverseRunner(manager, source, fail_on_selection_error=True)
        with pytest.raises(SelectionError):
            await runner.replay(
                CompositeIdentity.create("SPY"),
                start=datetime(2021, 1, 1),
                end=datetime(2021, 3, 31),
                settings=EvaluationSettings(resolution="monthly"),
                selection_filter=compose(require_constituent("AAPL")),
            )

    @pytest.mark.asyncio
    async def test_report_to_dict(self, manager, source) -> None:
        runner = UniverseRunner(manager, source)
        report = await runner.replay(
            CompositeIdentity.create("SPY"),
            start=datetime(2021, 1, 1),
            end=datetime(2021, 1, 31),
            settings=EvaluationSettings(resolution="monthly"),
        )
        data = report.to_dict()
        assert data["composite"] == "SPY"
        assert data["membership"] == ["AAPL", "MSFT"]
        assert data["delisted_at"] is None
        assert len(data["evaluations"]) == 1
