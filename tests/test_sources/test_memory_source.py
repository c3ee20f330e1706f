"""Tests for InMemoryConstituentSource."""

from datetime import datetime

import pytest

from basalt.sources.memory import InMemoryConstituentSource
from basalt.universe.records import ConstituentRecord
from basalt.universe.symbols import CompositeIdentity


def _records(symbols: list[str], when: datetime) -> list[ConstituentRecord]:
    return [ConstituentRecord(s, 0.1, when) for s in symbols]


class TestInMemoryConstituentSource:
    @pytest.mark.asyncio
    async def test_latest_snapshot_at_or_before(self) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 5), _records(["MSFT"], datetime(2021, 1, 5)))
        source.add_snapshot("SPY", datetime(2021, 1, 4), _records(["AAPL"], datetime(2021, 1, 4)))
        spy = CompositeIdentity.create("SPY")

        assert [r.symbol for r in await source.fetch(spy, datetime(2021, 1, 4, 12))] == ["AAPL"]
        assert [r.symbol for r in await source.fetch(spy, datetime(2021, 1, 5))] == ["MSFT"]
        assert source.fetch_count == 2

    @pytest.mark.asyncio
    async def test_nothing_before_first_snapshot(self) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 4), _records(["AAPL"], datetime(2021, 1, 4)))
        assert await source.fetch(CompositeIdentity.create("SPY"), datetime(2021, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_snapshot_stamped_later_falls_back(self) -> None:
        """A same-day snapshot taken after as_of yields the previous one whole."""
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 4), _records(["AAPL", "MSFT"], datetime(2021, 1, 4, 15, 30)))
        source.add_snapshot("SPY", datetime(2021, 1, 5), _records(["AAPL"], datetime(2021, 1, 5, 15, 30)))

        records = await source.fetch(CompositeIdentity.create("SPY"), datetime(2021, 1, 5, 15, 30))
        assert [r.symbol for r in records] == ["AAPL"]

        records = await source.fetch(CompositeIdentity.create("SPY"), datetime(2021, 1, 5, 9, 30))
        assert [r.symbol for r in records] == ["AAPL", "MSFT"]

    @pytest.mark.asyncio
    async def test_partially_future_snapshot_not_trimmed(self) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("SPY", datetime(2021, 1, 4), [
            ConstituentRecord("AAPL", 0.1, datetime(2021, 1, 4)),
            ConstituentRecord("TSLA", 0.1, datetime(2021, 1, 8)),
        ])
        assert await source.fetch(CompositeIdentity.create("SPY"), datetime(2021, 1, 5)) == []

    @pytest.mark.asyncio
    async def test_snapshots_under_old_ticker(self) -> None:
        source = InMemoryConstituentSource()
        source.add_snapshot("qqqq", datetime(2011, 3, 1), _records(["AAPL"], datetime(2011, 3, 1)))
        qqq = CompositeIdentity.create("QQQQ").mapped("QQQ", datetime(2011, 3, 23))
        records = await source.fetch(qqq, datetime(2011, 4, 1))
        assert [r.symbol for r in records] == ["AAPL"]
