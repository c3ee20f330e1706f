"""Command-line interface for BASALT.

Usage:
    basalt select SPY --start 2021-01-01 --end 2021-03-31 --resolution monthly
    basalt select QQQ --start 2011-01-01 --end 2011-04-04 --require AAPL --format json
    basalt select GDVD --start 2020-12-01 --end 2021-01-31 --fetch-events
    basalt snapshot SPY
    basalt version
"""

import argparse
import asyncio
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from datetime import date as date_type
from datetime import datetime
from pathlib import Path
from typing import Optional

from basalt import __version__
from basalt.cache import ConstituentStore
from basalt.clients.fmp import FMPClient
from basalt.config import EvaluationSettings, settings
from basalt.pipeline.runner import RunReport, UniverseRunner
from basalt.sources.fmp import FMPConstituentSource
from basalt.sources.parquet import ParquetConstituentSource
from basalt.universe.events import CompositeEvent, fetch_composite_events
from basalt.universe.filters import (
    SelectionFilter,
    compose,
    min_weight,
    require_constituent,
    select_all,
    top_by_weight,
)
from basalt.universe.manager import UniverseManager
from basalt.universe.symbols import CompositeIdentity, SecurityType

logger = logging.getLogger(__name__)

_executor = ThreadPoolExecutor(max_workers=1)


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="basalt",
        description="BASALT — Constituent-driven universe selection",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  basalt select SPY --start 2021-01-01 --end 2021-03-31 --resolution monthly
  basalt select GDVD --start 2020-12-01 --end 2021-01-31 --delisted 2021-01-20
  basalt snapshot SPY
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    select_parser = subparsers.add_parser(
        "select",
        help="Replay a composite's universe from stored snapshots",
        description="Evaluate a constituents universe over a date range",
    )
    select_parser.add_argument("ticker", type=str, help="Composite ticker (e.g., SPY, QQQ)")
    select_parser.add_argument("--start", type=str, required=True, help="First date (YYYY-MM-DD)")
    select_parser.add_argument("--end", type=str, required=True, help="Last date (YYYY-MM-DD)")
    select_parser.add_argument(
        "--resolution",
        type=str,
        choices=["hourly", "daily", "monthly"],
        default=None,
        help=f"Evaluation cadence (default: {settings.resolution})",
    )
    select_parser.add_argument(
        "--security-type",
        type=str,
        choices=[t.value for t in SecurityType],
        default=SecurityType.ETF.value,
        help="Composite security type (default: etf)",
    )
    select_parser.add_argument("--market", type=str, default=None, help="Composite market")
    select_parser.add_argument("--top", type=int, default=None, help="Keep the N heaviest constituents")
    select_parser.add_argument(
        "--min-weight", type=float, default=None, help="Keep constituents with weight >= W",
    )
    select_parser.add_argument(
        "--require",
        action="append",
        default=[],
        metavar="SYMBOL",
        help="Abort a cycle unless SYMBOL is present with non-zero weight (repeatable)",
    )
    select_parser.add_argument(
        "--min-constituents", type=int, default=None, help="Reject smaller non-empty snapshots",
    )
    select_parser.add_argument(
        "--rename",
        action="append",
        default=[],
        metavar="YYYY-MM-DD=TICKER",
        help="Composite rename effective on a date (repeatable)",
    )
    select_parser.add_argument("--delisted", type=str, default=None, help="Composite delisting date")
    select_parser.add_argument(
        "--fetch-events",
        action="store_true",
        help="Also load the composite's renames and delistings from FMP",
    )
    select_parser.add_argument(
        "--source-tag", type=str, default="fmp", help="Snapshot provider tag (default: fmp)",
    )
    select_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=Path(settings.cache_dir),
        help=f"Snapshot directory (default: ./{settings.cache_dir})",
    )
    select_parser.add_argument(
        "--format",
        type=str,
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)",
    )
    select_parser.add_argument(
        "--strict",
        action="store_true",
        help="Stop at the first aborted selection cycle",
    )

    snapshot_parser = subparsers.add_parser(
        "snapshot",
        help="Fetch live holdings from FMP and store them",
    )
    snapshot_parser.add_argument("ticker", type=str, help="Composite ticker")
    snapshot_parser.add_argument(
        "--cache-dir", type=Path, default=Path(settings.cache_dir), help="Snapshot directory",
    )
    snapshot_parser.add_argument(
        "--overwrite", action="store_true", help="Replace today's snapshot if present",
    )

    subparsers.add_parser("version", help="Show version information")

    return parser


def _run_async(coro):
    """Run an async coroutine from synchronous CLI context."""
    def _target():
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    future = _executor.submit(_target)
    return future.result()


def _parse_day(value: str) -> datetime:
    d = date_type.fromisoformat(value)
    return datetime(d.year, d.month, d.day)


def build_filter(args: argparse.Namespace) -> SelectionFilter:
    """Build the selection filter from CLI options."""
    if args.top is not None:
        selector = top_by_weight(args.top)
    elif args.min_weight is not None:
        selector = min_weight(args.min_weight)
    else:
        selector = select_all
    validators = [require_constituent(symbol) for symbol in args.require]
    return compose(*validators, selector=selector)


def build_events(args: argparse.Namespace) -> list[CompositeEvent]:
    """Build composite events from --rename and --delisted."""
    events = []
    current = args.ticker.upper()
    for rename in sorted(args.rename):
        day, _, new_ticker = rename.partition("=")
        if not new_ticker:
            raise ValueError(f"Invalid --rename '{rename}', expected YYYY-MM-DD=TICKER")
        events.append(CompositeEvent.mapping(current, new_ticker, _parse_day(day)))
        current = new_ticker.upper()
    if args.delisted:
        events.append(CompositeEvent.delisting(current, _parse_day(args.delisted)))
    return events


async def _fetch_events(ticker: str) -> list[CompositeEvent]:
    async with FMPClient(settings.fmp_api_key, rate_limit=settings.fmp_rate_limit) as fmp:
        return await fetch_composite_events(fmp, ticker)


def format_report(report: RunReport) -> str:
    """Human-readable run summary."""
    lines = [
        f"Universe {report.universe}",
        f"Composite {report.composite}: {report.evaluation_count} evaluations",
    ]
    for evaluation in report.evaluations:
        changes = evaluation.changes
        lines.append(
            f"  {evaluation.time:%Y-%m-%d %H:%M}  records={evaluation.record_count:<4} "
            f"selected={len(evaluation.selected):<4} "
            f"+{len(changes.added)} -{len(changes.removed)}"
        )
    for diagnostic in report.diagnostics:
        lines.append(f"  {diagnostic.time:%Y-%m-%d %H:%M}  ABORTED: {diagnostic.reason}")
    if report.delisted_at:
        lines.append(
            f"Delisted {report.delisted_at:%Y-%m-%d}; {report.skipped} evaluations skipped"
        )
    lines.append(f"Members: {len(report.membership)}")
    return "\n".join(lines)


def cmd_select(args: argparse.Namespace) -> int:
    """Execute the select command."""
    if args.fetch_events and not settings.fmp_api_key:
        print("Error: FMP_API_KEY is not set", file=sys.stderr)
        return 1
    try:
        start = _parse_day(args.start)
        end = _parse_day(args.end)
        market = args.market or settings.market
        composite = CompositeIdentity.create(args.ticker, SecurityType(args.security_type), market)
        evaluation = EvaluationSettings(
            resolution=args.resolution or settings.resolution,
            min_constituents=(
                args.min_constituents
                if args.min_constituents is not None
                else settings.min_constituents
            ),
        )

        events = build_events(args)
        if args.fetch_events:
            events += _run_async(_fetch_events(args.ticker))

        source = ParquetConstituentSource(ConstituentStore(args.cache_dir), source=args.source_tag)
        runner = UniverseRunner(
            UniverseManager(),
            source,
            fail_on_selection_error=args.strict or settings.fail_on_selection_error,
        )
        report = _run_async(runner.replay(
            composite,
            start=start,
            end=end,
            settings=evaluation,
            selection_filter=build_filter(args),
            events=events,
        ))

        if args.format == "json":
            print(json.dumps(report.to_dict(), indent=2))
        else:
            print(format_report(report))
        return 0

    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        return 130
    except Exception as e:
        logger.error("Selection failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def _snapshot(ticker: str, cache_dir: Path, overwrite: bool) -> Path:
    composite = CompositeIdentity.create(ticker, SecurityType.ETF, settings.market)
    as_of = datetime.now().replace(microsecond=0)
    async with FMPClient(settings.fmp_api_key, rate_limit=settings.fmp_rate_limit) as fmp:
        records = await FMPConstituentSource(fmp).fetch(composite, as_of)
    store = ConstituentStore(cache_dir)
    return await store.write(composite.ticker, "fmp", as_of.date(), records, overwrite=overwrite)


def cmd_snapshot(args: argparse.Namespace) -> int:
    """Execute the snapshot command."""
    if not settings.fmp_api_key:
        print("Error: FMP_API_KEY is not set", file=sys.stderr)
        return 1
    try:
        path = _run_async(_snapshot(args.ticker, args.cache_dir, args.overwrite))
        print(f"Stored {path}")
        return 0
    except Exception as e:
        logger.error("Snapshot failed: %s", e, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def cmd_version(args: argparse.Namespace) -> int:
    """Execute the version command."""
    print(f"BASALT v{__version__}")
    print("Constituent-driven universe selection")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command == "select":
        return cmd_select(args)
    elif args.command == "snapshot":
        return cmd_snapshot(args)
    elif args.command == "version":
        return cmd_version(args)
    else:
        parser.print_help()
        return 0


def cli_entry() -> None:
    """Console script entry point for setuptools."""
    sys.exit(main())


if __name__ == "__main__":
    cli_entry()
