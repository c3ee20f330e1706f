"""Exceptions raised by universe selection."""

from datetime import datetime


class SelectionError(Exception):
    """A selection cycle was aborted; membership is unchanged.

    Raised when the user filter rejects a snapshot, or when the snapshot
    fails a sanity gate. Carries the composite and evaluation time so the
    harness can report a single diagnostic event.
    """

    def __init__(
        self,
        message: str,
        composite: str | None = None,
        time: datetime | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = message
        self.composite = composite
        self.time = time

    def __str__(self) -> str:
        if self.composite is None or self.time is None:
            return self.reason
        return f"{self.composite} @ {self.time.isoformat()}: {self.reason}"


class CausalityViolation(ValueError):
    """A record is timestamped after the evaluation time."""

    def __init__(self, symbol: str, record_time: datetime, as_of: datetime) -> None:
        super().__init__(
            f"Record for {symbol} at {record_time.isoformat()} "
            f"is ahead of evaluation time {as_of.isoformat()}"
        )
        self.symbol = symbol
        self.record_time = record_time
        self.as_of = as_of


class DuplicateConstituentError(ValueError):
    """A snapshot carries more than one record for the same symbol."""

    def __init__(self, symbol: str, as_of: datetime) -> None:
        super().__init__(
            f"Duplicate constituent record for {symbol} in snapshot at {as_of.isoformat()}"
        )
        self.symbol = symbol
        self.as_of = as_of
