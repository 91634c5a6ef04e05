"""URL Sentry entry point.

Run:
  python -m urlsentry.main serve
  python -m urlsentry.main scan example.com
  python -m urlsentry.main bulk domains.csv --output results.csv
  python -m urlsentry.main history --export history.csv
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass
from pathlib import Path

from .config import Config, load_config, validate_config
from .constants import DOMAINS_TABLE
from .dashboard import DashboardConfig, DashboardServer
from .errors import ScanError
from .history import HistoryRecorder, bulk_results_csv
from .scanner import LocalScorerTrigger, ScanRunner, WebhookTrigger, parse_domains_csv
from .scanner.progress import ProgressUpdate
from .scanner.submission import ScoringTrigger
from .store import LocalStore, SupabaseRealtime, SupabaseStore
from .store.base import ChangeFeed, RecordStore
from .store.supabase import connect_supabase

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr),
    ],
)
logger = logging.getLogger(__name__)


@dataclass
class Backend:
    """Store, change feed and scoring trigger wired for one process.

    ``table`` is the table the store publishes changes for, so the runner
    subscribes to the same name the feed reports.
    """

    store: RecordStore
    feed: ChangeFeed
    trigger: ScoringTrigger
    table: str = DOMAINS_TABLE

    async def close(self) -> None:
        await self.trigger.close()
        if self.feed is not self.store:
            await self.feed.close()
        await self.store.close()


async def build_backend(config: Config) -> Backend:
    if config.backend == "supabase":
        client = await connect_supabase(config.supabase_url, config.supabase_key)
        store = SupabaseStore(client, table=config.supabase_table)
        feed = SupabaseRealtime(client)
        trigger = WebhookTrigger(config.webhook_url, timeout_seconds=config.webhook_timeout)
        logger.info("Using Supabase backend at %s", config.supabase_url)
        return Backend(store=store, feed=feed, trigger=trigger, table=config.supabase_table)

    store = LocalStore(config.database_path)
    await store.connect()
    trigger = LocalScorerTrigger(
        store,
        delay=config.local_scorer_delay,
        suspicious_tlds=config.suspicious_tlds,
        checks=config.completion_threshold,
    )
    logger.info("Using local backend at %s", config.database_path)
    return Backend(store=store, feed=store, trigger=trigger, table=store.table)


def build_history(config: Config) -> HistoryRecorder:
    return HistoryRecorder(config.history_path, limit=config.history_limit)


def build_runner(config: Config, backend: Backend, history: HistoryRecorder | None) -> ScanRunner:
    return ScanRunner(
        backend.store,
        backend.feed,
        backend.trigger,
        history=history,
        table=backend.table,
        idle_timeout=config.scan_idle_timeout,
        max_duration=config.scan_max_duration,
        threshold=config.completion_threshold,
        max_csv_bytes=config.max_csv_bytes,
    )


def _print_progress(update: ProgressUpdate) -> None:
    print(
        f"\r{update.percent:5.1f}%  {update.completed_domains}/{update.total_domains} complete",
        end="",
        file=sys.stderr,
        flush=True,
    )


async def run_server(config: Config) -> None:
    backend = await build_backend(config)
    history = build_history(config)
    runner = build_runner(config, backend, history)
    server = DashboardServer(
        config=DashboardConfig(
            enabled=True,
            host=config.dashboard_host,
            port=config.dashboard_port,
            max_csv_bytes=config.max_csv_bytes,
        ),
        runner=runner,
        store=backend.store,
        history=history,
    )

    stop_event = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            # Windows event loop does not support add_signal_handler.
            pass

    await server.start()
    try:
        await stop_event.wait()
    finally:
        await server.stop()
        await backend.close()


async def run_scan(config: Config, url: str) -> int:
    try:
        ScanRunner.validate_url(url)
    except ScanError as exc:
        print(f"Scan failed ({exc.kind}): {exc.message}", file=sys.stderr)
        return 1

    backend = await build_backend(config)
    try:
        runner = build_runner(config, backend, build_history(config))
        result = await runner.scan_url(url, on_progress=_print_progress)
    except ScanError as exc:
        print(f"\nScan failed ({exc.kind}): {exc.message}", file=sys.stderr)
        return 1
    finally:
        await backend.close()
    print(file=sys.stderr)
    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def run_bulk(config: Config, path: Path, output: Path | None) -> int:
    try:
        content = path.read_bytes()
    except OSError as exc:
        print(f"Cannot read {path}: {exc}", file=sys.stderr)
        return 1
    try:
        parse_domains_csv(content, max_bytes=config.max_csv_bytes)
    except ScanError as exc:
        print(f"Bulk scan failed ({exc.kind}): {exc.message}", file=sys.stderr)
        return 1

    backend = await build_backend(config)
    try:
        runner = build_runner(config, backend, build_history(config))
        result = await runner.scan_csv(content, on_progress=_print_progress)
    except ScanError as exc:
        print(f"\nBulk scan failed ({exc.kind}): {exc.message}", file=sys.stderr)
        return 1
    finally:
        await backend.close()

    print(file=sys.stderr)
    if output:
        output.write_text(bulk_results_csv(result), encoding="utf-8")
        print(f"Wrote {result.total_scanned} result(s) to {output}", file=sys.stderr)
    else:
        print(json.dumps(result.to_dict(), indent=2))
    return 0


def run_history(config: Config, *, export: Path | None, clear: bool) -> int:
    history = build_history(config)
    if export:
        export.write_text(history.export_csv(), encoding="utf-8")
        print(f"Exported {len(history)} history item(s) to {export}", file=sys.stderr)
    if clear:
        history.clear()
    if not export and not clear:
        print(json.dumps([item.to_dict() for item in history.items()], indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="urlsentry", description="Spam-scan URLs via a scoring backend.")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Run the dashboard and JSON API (default)")

    scan = sub.add_parser("scan", help="Scan a single URL")
    scan.add_argument("url")

    bulk = sub.add_parser("bulk", help="Scan every domain in a CSV file")
    bulk.add_argument("file", type=Path)
    bulk.add_argument("--output", "-o", type=Path, help="Write per-domain results as CSV")

    hist = sub.add_parser("history", help="Show, export or clear scan history")
    hist.add_argument("--export", type=Path, help="Write history as CSV")
    hist.add_argument("--clear", action="store_true", help="Delete all history entries")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point."""
    args = build_parser().parse_args(argv)
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        return 2

    command = args.command or "serve"
    if command == "scan":
        return asyncio.run(run_scan(config, args.url))
    if command == "bulk":
        return asyncio.run(run_bulk(config, args.file, args.output))
    if command == "history":
        return run_history(config, export=args.export, clear=args.clear)

    asyncio.run(run_server(config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
