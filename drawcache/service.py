from __future__ import annotations

import argparse
import asyncio
import logging
import pathlib
import sys
from typing import Dict, List, Optional, Sequence

from .backup import BackupManager
from .config import SyncSettings, load_config
from .datasource import CaixaDataSource, CaixaDataSourceConfig
from .errors import DrawCacheError
from .fetcher import BatchFetcher
from .gaps import GapAnalyzer
from .orchestrator import SyncOrchestrator
from .store import build_store
from .types import SyncReport
from .variants import resolve_variants

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(verbose: bool, log_file: Optional[str] = None, level: str = "INFO") -> None:
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        pathlib.Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=resolved, format=LOG_FORMAT, handlers=handlers, force=True)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def build_datasource(settings: SyncSettings) -> CaixaDataSource:
    feed = settings.feed
    return CaixaDataSource(
        CaixaDataSourceConfig(
            timeout_seconds=feed.timeout_seconds,
            retry_attempts=feed.retry_attempts,
            retry_base_delay=feed.retry_base_delay,
            user_agent=feed.user_agent,
        )
    )


def build_orchestrator(
    settings: SyncSettings, lottery_ids: Optional[Sequence[str]] = None
) -> SyncOrchestrator:
    variants = resolve_variants(lottery_ids or settings.lotteries, base_url=settings.feed.base_url)
    source = build_datasource(settings)
    return SyncOrchestrator(
        variants,
        source=source,
        store=build_store(settings.store, timeout_seconds=settings.feed.timeout_seconds),
        fetcher=BatchFetcher(
            source,
            batch_size=settings.fetch.batch_size,
            batch_delay=settings.fetch.batch_delay_seconds,
        ),
        gap_analyzer=GapAnalyzer(window_size=settings.fetch.window_size),
        backups=BackupManager(settings.backup.backup_dir, keep=settings.backup.keep),
        logger=logging.getLogger("drawcache.sync"),
    )


def print_report(reports: Dict[str, SyncReport]) -> None:
    print("=" * 50)
    print("SYNC REPORT")
    print("=" * 50)
    total_new = 0
    for lottery_id, report in reports.items():
        if report.success:
            total_new += report.new_draws
            suffix = " (up to date)" if report.up_to_date else ""
            print(
                f"{lottery_id.upper()}: {report.total_draws} draws total "
                f"(+{report.new_draws} new){suffix}"
            )
            if report.failures:
                failed = ", ".join(str(f.contest) for f in report.failures)
                print(f"  {len(report.failures)} contests still missing: {failed}")
        else:
            print(f"{lottery_id.upper()}: FAILED - {report.error}")
    print(f"Total new draws: {total_new}")


async def run(args: argparse.Namespace) -> int:
    settings = load_config(args.env_file)
    configure_logging(args.verbose, settings.log_file, settings.log_level)
    logger = logging.getLogger("drawcache.service")

    orchestrator = build_orchestrator(settings, args.lotteries)
    try:
        if args.restore is not None:
            snapshot = pathlib.Path(args.restore) if args.restore else None
            if snapshot is not None and len(orchestrator.variants) != 1:
                logger.error("Restoring a specific snapshot requires exactly one lottery id.")
                return 2
            for variant in orchestrator.variants:
                restored = orchestrator.restore(variant.id, snapshot)
                logger.info("%s restored from %s", variant.name, restored)
            return 0

        if args.status:
            for variant in orchestrator.variants:
                status = await orchestrator.status(variant.id)
                print(status.to_dict())
            return 0

        if args.loop:
            await orchestrator.run_forever(settings.poll_interval_seconds, full=args.full)
            return 0

        reports = await orchestrator.sync_all(full=args.full)
        print_report(reports)
        return 0 if all(report.success for report in reports.values()) else 1
    finally:
        await orchestrator.close()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Incremental lottery draw cache synchronizer")
    parser.add_argument(
        "lotteries", nargs="*", help="Lottery ids to sync (default: every configured lottery)."
    )
    parser.add_argument("--env-file", type=str, default=None, help="Path to .env file")
    parser.add_argument(
        "--full", action="store_true", help="Fetch every missing contest since contest 1."
    )
    parser.add_argument(
        "--status", action="store_true", help="Compare local caches with the feed and exit."
    )
    parser.add_argument(
        "--restore",
        nargs="?",
        const="",
        default=None,
        metavar="SNAPSHOT",
        help="Restore the newest backup (or the given snapshot file) and exit.",
    )
    parser.add_argument(
        "--loop", action="store_true", help="Keep syncing every poll interval."
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging (default INFO)."
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        print("Sync stopped by user.")
        return 130
    except DrawCacheError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
