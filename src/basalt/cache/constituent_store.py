"""Parquet store of constituent snapshots, one file per composite per day.

Storage structure:
    data/{composite}/constituents/{source}_{date}.parquet

Example:
    data/SPY/constituents/fmp_2021-01-04.parquet

Files are immutable: a day's snapshot is written once and never overwritten
unless asked to. All I/O runs through asyncio.to_thread.
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from pathlib import Path

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from basalt.universe.records import ConstituentRecord

logger = logging.getLogger(__name__)

SNAPSHOT_COLUMNS = ["symbol", "weight", "time", "name", "shares_held", "market_value"]


def records_to_frame(records: Iterable[ConstituentRecord]) -> pd.DataFrame:
    """Convert records into a snapshot DataFrame."""
    return pd.DataFrame([r.to_dict() for r in records], columns=SNAPSHOT_COLUMNS)


def _optional(value: object) -> object:
    return None if pd.isna(value) else value


def frame_to_records(frame: pd.DataFrame) -> list[ConstituentRecord]:
    """Convert a snapshot DataFrame back into records."""
    records: list[ConstituentRecord] = []
    for row in frame.itertuples(index=False):
        shares = _optional(getattr(row, "shares_held", None))
        value = _optional(getattr(row, "market_value", None))
        records.append(ConstituentRecord(
            symbol=str(row.symbol),
            weight=float(row.weight),
            time=pd.Timestamp(row.time).to_pydatetime(),
            name=_optional(getattr(row, "name", None)),
            shares_held=None if shares is None else float(shares),
            market_value=None if value is None else float(value),
        ))
    return records


class ConstituentStore:
    """Async Parquet store for constituent snapshots.

    Args:
        base_path: Root directory. Defaults to 'data/'.
    """

    def __init__(self, base_path: str | Path = "data") -> None:
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _snapshot_dir(self, ticker: str) -> Path:
        return self.base_path / ticker.upper() / "constituents"

    def _get_file_path(self, ticker: str, source: str, dt: date) -> Path:
        return self._snapshot_dir(ticker) / f"{source}_{dt.isoformat()}.parquet"

    async def write(
        self,
        ticker: str,
        source: str,
        dt: date,
        records: Sequence[ConstituentRecord],
        overwrite: bool = False,
    ) -> Path:
        """Write one day's snapshot.

        Raises:
            FileExistsError: If the snapshot exists and overwrite=False
            ValueError: If records is empty
        """
        if not records:
            raise ValueError("Cannot write an empty constituents snapshot")

        file_path = self._get_file_path(ticker, source, dt)
        if file_path.exists() and not overwrite:
            raise FileExistsError(
                f"Snapshot already exists: {file_path}. "
                "Use overwrite=True to replace it."
            )
        file_path.parent.mkdir(parents=True, exist_ok=True)
        frame = records_to_frame(records)

        def _write() -> None:
            table = pa.Table.from_pandas(frame, preserve_index=False)
            pq.write_table(table, file_path, compression="snappy")

        await asyncio.to_thread(_write)
        logger.debug("Wrote %d constituents to %s", len(records), file_path)
        return file_path

    async def read(
        self,
        ticker: str,
        source: str,
        dt: date,
    ) -> list[ConstituentRecord] | None:
        """Read one day's snapshot, or None if there is none."""
        file_path = self._get_file_path(ticker, source, dt)
        if not file_path.exists():
            return None

        def _read() -> pd.DataFrame:
            return pq.read_table(file_path).to_pandas()

        frame = await asyncio.to_thread(_read)
        return frame_to_records(frame)

    async def list_dates(self, ticker: str, source: str) -> list[date]:
        """Sorted snapshot dates for a ticker/source."""
        snapshot_dir = self._snapshot_dir(ticker)
        if not snapshot_dir.exists():
            return []

        def _list() -> list[date]:
            dates = []
            for file_path in snapshot_dir.glob(f"{source}_*.parquet"):
                try:
                    date_str = file_path.stem.rsplit("_", 1)[1]
                    dates.append(datetime.strptime(date_str, "%Y-%m-%d").date())
                except (ValueError, IndexError):
                    continue
            return sorted(dates)

        return await asyncio.to_thread(_list)

    async def read_as_of(
        self,
        tickers: Iterable[str],
        source: str,
        as_of: datetime,
    ) -> list[ConstituentRecord]:
        """Latest snapshot known at ``as_of`` across ``tickers``.

        ``tickers`` are the aliases of one composite, so snapshots filed
        before and after a rename are searched together. A snapshot holding
        any record stamped after ``as_of`` was not yet taken at that time and
        is passed over for the next older one.

        Returns:
            Records of the chosen snapshot, or an empty list.
        """
        candidates: list[tuple[date, str]] = []
        for ticker in tickers:
            for dt in await self.list_dates(ticker, source):
                if dt <= as_of.date():
                    candidates.append((dt, ticker))

        for dt, ticker in sorted(candidates, reverse=True):
            records = await self.read(ticker, source, dt)
            if not records:
                continue
            if max(r.time for r in records) > as_of:
                logger.debug(
                    "%s %s snapshot %s stamped after %s, trying an older one",
                    ticker, source, dt, as_of,
                )
                continue
            return records
        return []
