"""Evaluation cadence helpers."""

from datetime import datetime

import pandas as pd

# pandas offset aliases per resolution
_FREQUENCIES = {
    "hourly": "h",
    "daily": "B",
    "monthly": "MS",
}


def evaluation_times(
    start: datetime,
    end: datetime,
    resolution: str,
) -> list[datetime]:
    """Strictly increasing evaluation times in ``[start, end]``.

    Daily means business days; monthly means the first calendar day of each
    month.

    Raises:
        ValueError: Unknown resolution, or end before start
    """
    freq = _FREQUENCIES.get(resolution.lower())
    if freq is None:
        raise ValueError(f"Unknown resolution '{resolution}', expected one of {sorted(_FREQUENCIES)}")
    if end < start:
        raise ValueError(f"end ({end}) is before start ({start})")
    index = pd.date_range(start=start, end=end, freq=freq)
    return [ts.to_pydatetime() for ts in index]
