"""Tests for ConstituentStore — immutable daily snapshots per composite."""

from datetime import date, datetime
from pathlib import Path

import pytest

from basalt.cache import ConstituentStore
from basalt.cache.constituent_store import SNAPSHOT_COLUMNS, frame_to_records, records_to_frame
from basalt.universe.records import ConstituentRecord


@pytest.fixture
def store(tmp_path: Path) -> ConstituentStore:
    """Create a temporary ConstituentStore for testing."""
    return ConstituentStore(base_path=tmp_path / "data")


def _records(when: datetime) -> list[ConstituentRecord]:
    return [
        ConstituentRecord("AAPL", 0.065, when, name="APPLE INC", shares_held=1.7e8, market_value=2.2e10),
        ConstituentRecord("MSFT", 0.055, when),
    ]


class TestFrameConversion:
    def test_columns(self) -> None:
        frame = records_to_frame(_records(datetime(2021, 1, 4)))
        assert list(frame.columns) == SNAPSHOT_COLUMNS
        assert len(frame) == 2

    def test_missing_optionals_become_none(self) -> None:
        records = frame_to_records(records_to_frame(_records(datetime(2021, 1, 4))))
        assert records[1].name is None
        assert records[1].shares_held is None
        assert records[0].name == "APPLE INC"


class TestConstituentStoreBasics:
    """Test basic read/write operations."""

    @pytest.mark.asyncio
    async def test_cold_start_empty_store(self, store: ConstituentStore) -> None:
        assert await store.read("SPY", "fmp", date(2021, 1, 4)) is None
        assert await store.list_dates("SPY", "fmp") == []

    @pytest.mark.asyncio
    async def test_write_and_read(self, store: ConstituentStore) -> None:
        when = datetime(2021, 1, 4)
        file_path = await store.write("spy", "fmp", when.date(), _records(when))

        assert file_path.exists()
        assert "SPY" in file_path.parts
        assert file_path.name == "fmp_2021-01-04.parquet"

        records = await store.read("SPY", "fmp", when.date())
        assert records is not None
        assert [r.symbol for r in records] == ["AAPL", "MSFT"]
        assert records[0].weight == pytest.approx(0.065)
        assert records[0].time == when

    @pytest.mark.asyncio
    async def test_immutable_without_overwrite(self, store: ConstituentStore) -> None:
        when = datetime(2021, 1, 4)
        await store.write("SPY", "fmp", when.date(), _records(when))
        with pytest.raises(FileExistsError):
            await store.write("SPY", "fmp", when.date(), _records(when))
        await store.write("SPY", "fmp", when.date(), _records(when)[:1], overwrite=True)
        assert len(await store.read("SPY", "fmp", when.date()) or []) == 1

    @pytest.mark.asyncio
    async def test_empty_snapshot_rejected(self, store: ConstituentStore) -> None:
        with pytest.raises(ValueError):
            await store.write("SPY", "fmp", date(2021, 1, 4), [])

    @pytest.mark.asyncio
    async def test_list_dates_sorted(self, store: ConstituentStore) -> None:
        for day in (5, 4, 6):
            when = datetime(2021, 1, day)
            await store.write("SPY", "fmp", when.date(), _records(when))
        await store.write("SPY", "other", date(2021, 1, 7), _records(datetime(2021, 1, 7)))
        assert await store.list_dates("SPY", "fmp") == [
            date(2021, 1, 4), date(2021, 1, 5), date(2021, 1, 6),
        ]


class TestReadAsOf:
    """Point-in-time lookups across a composite's tickers."""

    @pytest.mark.asyncio
    async def test_latest_on_or_before(self, store: ConstituentStore) -> None:
        for day in (4, 6):
            when = datetime(2021, 1, day)
            await store.write("SPY", "fmp", when.date(), _records(when)[: day - 3])

        records = await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 5, 16))
        assert len(records) == 1
        assert records[0].time == datetime(2021, 1, 4)

    @pytest.mark.asyncio
    async def test_nothing_before(self, store: ConstituentStore) -> None:
        await store.write("SPY", "fmp", date(2021, 1, 4), _records(datetime(2021, 1, 4)))
        assert await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_later_same_day_snapshot_not_leaked(self, store: ConstituentStore) -> None:
        """A same-day snapshot stamped later than as_of is not leaked."""
        when = datetime(2021, 1, 4, 16)
        await store.write("SPY", "fmp", when.date(), _records(when))
        assert await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 4, 9, 30)) == []

    @pytest.mark.asyncio
    async def test_falls_back_to_previous_day_at_midnight(self, store: ConstituentStore) -> None:
        """A snapshot taken at 15:30 is not yet known at midnight that day."""
        await store.write("SPY", "fmp", date(2021, 1, 4), _records(datetime(2021, 1, 4, 15, 30)))
        await store.write("SPY", "fmp", date(2021, 1, 5), _records(datetime(2021, 1, 5, 15, 30))[:1])

        midnight = await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 5))
        assert [r.symbol for r in midnight] == ["AAPL", "MSFT"]
        assert all(r.time == datetime(2021, 1, 4, 15, 30) for r in midnight)

        after_close = await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 5, 16))
        assert [r.symbol for r in after_close] == ["AAPL"]

    @pytest.mark.asyncio
    async def test_chosen_snapshot_returned_whole(self, store: ConstituentStore) -> None:
        """A snapshot with any record after as_of is skipped, never trimmed."""
        await store.write("SPY", "fmp", date(2021, 1, 4), [
            ConstituentRecord("AAPL", 0.06, datetime(2021, 1, 4)),
            ConstituentRecord("TSLA", 0.01, datetime(2021, 1, 4, 18)),
        ])
        assert await store.read_as_of(["SPY"], "fmp", datetime(2021, 1, 4, 12)) == []

    @pytest.mark.asyncio
    async def test_searches_all_aliases(self, store: ConstituentStore) -> None:
        await store.write("QQQQ", "fmp", date(2011, 3, 1), _records(datetime(2011, 3, 1)))
        await store.write("QQQ", "fmp", date(2011, 4, 1), _records(datetime(2011, 4, 1))[:1])

        march = await store.read_as_of(["QQQQ", "QQQ"], "fmp", datetime(2011, 3, 15))
        april = await store.read_as_of(["QQQQ", "QQQ"], "fmp", datetime(2011, 4, 15))
        assert len(march) == 2
        assert len(april) == 1
