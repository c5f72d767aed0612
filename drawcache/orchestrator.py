from __future__ import annotations

import asyncio
import datetime as dt
import logging
import pathlib
import threading
from typing import Callable, Dict, Iterable, List, Optional

from .backup import BackupManager
from .datasource import ResultDataSource
from .errors import (
    BackupError,
    CacheLoadError,
    DrawCacheError,
    FetchError,
    LatestLookupError,
    PersistError,
    SyncInProgressError,
    UnknownLotteryError,
    ValidationError,
)
from .fetcher import BatchFetcher
from .gaps import GapAnalyzer, contest_ranges
from .merge import merge
from .store import CacheStore
from .types import (
    DrawRecord,
    LotteryCollection,
    LotteryVariant,
    SyncReport,
    SyncState,
    VariantStatus,
)


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def iso_timestamp(moment: dt.datetime) -> str:
    return moment.astimezone(dt.timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class SyncOrchestrator:
    """Runs incremental synchronization cycles for a fixed set of lotteries.

    One cycle loads the local collection, asks the feed for its latest
    contest, downloads only the missing contests, merges them in and
    persists the result after taking a backup. Nothing is written before the
    fetch and merge phases are complete, so an interrupted cycle leaves the
    store exactly as it was.
    """

    def __init__(
        self,
        variants: Iterable[LotteryVariant],
        source: ResultDataSource,
        store: CacheStore,
        fetcher: Optional[BatchFetcher] = None,
        gap_analyzer: Optional[GapAnalyzer] = None,
        backups: Optional[BackupManager] = None,
        clock: Callable[[], dt.datetime] = utc_now,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._variants: Dict[str, LotteryVariant] = {v.id: v for v in variants}
        if not self._variants:
            raise ValueError("SyncOrchestrator needs at least one lottery variant")
        self._locks: Dict[str, threading.Lock] = {
            lottery_id: threading.Lock() for lottery_id in self._variants
        }
        self._source = source
        self._store = store
        self._fetcher = fetcher or BatchFetcher(source)
        self._gaps = gap_analyzer or GapAnalyzer()
        self._backups = backups
        self._clock = clock
        self._logger = logger or logging.getLogger("drawcache.sync")

    @property
    def variants(self) -> List[LotteryVariant]:
        return list(self._variants.values())

    @property
    def store(self) -> CacheStore:
        return self._store

    def variant(self, lottery_id: str) -> LotteryVariant:
        try:
            return self._variants[lottery_id.strip().lower()]
        except KeyError as exc:
            supported = ", ".join(self._variants)
            raise UnknownLotteryError(
                f"Lottery '{lottery_id}' is not configured. Use: {supported}"
            ) from exc

    def load(self, lottery_id: str) -> LotteryCollection:
        """Read-only view of what is currently persisted."""
        return self._store.load(self.variant(lottery_id))

    async def sync(self, lottery_id: str, full: bool = False) -> SyncReport:
        variant = self.variant(lottery_id)
        lock = self._locks[variant.id]
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(f"A sync for {variant.name} is already running")
        try:
            return await self._run_cycle(variant, full)
        finally:
            lock.release()

    async def sync_all(self, full: bool = False) -> Dict[str, SyncReport]:
        self._logger.info("Starting sync for %s lotteries", len(self._variants))
        reports: Dict[str, SyncReport] = {}
        for variant in self._variants.values():
            try:
                reports[variant.id] = await self.sync(variant.id, full=full)
            except SyncInProgressError as exc:
                self._logger.warning("%s", exc)
                reports[variant.id] = self._rejected(variant, str(exc))
            except Exception as exc:
                self._logger.exception("Sync for %s crashed: %s", variant.name, exc)
                reports[variant.id] = self._rejected(variant, str(exc))
        return reports

    async def status(self, lottery_id: str) -> VariantStatus:
        variant = self.variant(lottery_id)
        collection = await asyncio.to_thread(self._store.load, variant)
        base = dict(
            lottery_id=variant.id,
            total_draws=len(collection),
            first_contest=collection.first_contest,
            last_contest=collection.last_contest,
            last_update=collection.metadata.last_update,
        )
        try:
            latest = await self._resolve_latest(variant)
        except LatestLookupError as exc:
            return VariantStatus(remote_error=str(exc), **base)
        missing = self._gaps.analyze(collection.contest_numbers(), latest)
        return VariantStatus(remote_latest=latest, missing=len(missing), **base)

    def restore(self, lottery_id: str, snapshot: Optional[pathlib.Path] = None) -> pathlib.Path:
        variant = self.variant(lottery_id)
        if self._backups is None:
            raise BackupError("No backup directory configured")
        lock = self._locks[variant.id]
        if not lock.acquire(blocking=False):
            raise SyncInProgressError(f"A sync for {variant.name} is already running")
        try:
            return self._backups.restore(variant, self._store, snapshot)
        finally:
            lock.release()

    async def run_forever(self, interval_seconds: int, full: bool = False) -> None:
        self._logger.info("Sync loop started; interval=%ss", interval_seconds)
        while True:
            try:
                await self.sync_all(full=full)
            except Exception as exc:
                self._logger.exception("Sync iteration failed: %s", exc)
            await asyncio.sleep(interval_seconds)

    async def close(self) -> None:
        await self._source.close()

    async def _run_cycle(self, variant: LotteryVariant, full: bool) -> SyncReport:
        report = SyncReport(
            lottery_id=variant.id,
            state=SyncState.IDLE,
            collection=LotteryCollection.empty(variant),
            states=[SyncState.IDLE],
        )
        self._logger.info("Starting sync for %s%s", variant.name, " (full)" if full else "")

        self._enter(report, SyncState.LOADING_LOCAL)
        try:
            current = await asyncio.to_thread(self._store.load, variant)
        except CacheLoadError as exc:
            return self._fail(report, exc)
        report.collection = current
        self._logger.info("%s: %s draws in local cache", variant.name, len(current))

        self._enter(report, SyncState.RESOLVING_REMOTE_LATEST)
        try:
            latest = await self._resolve_latest(variant)
        except LatestLookupError as exc:
            return self._fail(report, exc)
        report.remote_latest = latest
        self._logger.info("Latest %s contest: %s", variant.name, latest)

        self._enter(report, SyncState.ANALYZING_GAPS)
        missing = self._gaps.analyze(current.contest_numbers(), latest, full=full)
        report.missing = len(missing)
        if not missing:
            self._enter(report, SyncState.UP_TO_DATE)
            self._logger.info(
                "%s is up to date (latest: %s)", variant.name, current.last_contest
            )
            report.success = True
            report.up_to_date = True
            self._enter(report, SyncState.DONE)
            return report
        self._logger.info(
            "%s: %s contests missing: %s",
            variant.name,
            len(missing),
            ", ".join(contest_ranges(missing)),
        )

        self._enter(report, SyncState.FETCHING)
        fetched = await self._fetcher.fetch(variant, missing)
        report.failures = list(fetched.failures)
        if not fetched.records:
            self._logger.warning(
                "%s: no valid contest fetched; cache left untouched", variant.name
            )
            report.success = True
            self._enter(report, SyncState.DONE)
            return report

        self._enter(report, SyncState.MERGING)
        updated = self._merge(current, fetched.records)

        self._enter(report, SyncState.BACKING_UP)
        if self._backups is not None:
            try:
                snapshot = await asyncio.to_thread(self._backups.snapshot, variant, self._store)
            except BackupError as exc:
                self._logger.warning("Backup for %s failed, continuing: %s", variant.name, exc)
            else:
                report.backup_path = str(snapshot) if snapshot is not None else None

        self._enter(report, SyncState.PERSISTING)
        try:
            await asyncio.to_thread(self._store.save, variant, updated)
        except PersistError as exc:
            return self._fail(report, exc)

        report.collection = updated
        report.new_draws = len(updated) - len(current)
        report.success = True
        report.up_to_date = not report.failures
        self._enter(report, SyncState.DONE)
        self._logger.info(
            "%s sync completed: %s total draws (%s new, %s failed)",
            variant.name,
            len(updated),
            report.new_draws,
            len(report.failures),
        )
        return report

    async def _resolve_latest(self, variant: LotteryVariant) -> int:
        try:
            return await self._source.fetch_latest_contest(variant)
        except (FetchError, ValidationError) as exc:
            raise LatestLookupError(
                f"Cannot determine latest {variant.name} contest: {exc}"
            ) from exc

    def _merge(self, current: LotteryCollection, incoming: List[DrawRecord]) -> LotteryCollection:
        draws = merge(current.draws, incoming)
        return current.replace_draws(draws, last_update=iso_timestamp(self._clock()))

    def _enter(self, report: SyncReport, state: SyncState) -> None:
        self._logger.debug("%s: %s -> %s", report.lottery_id, report.state.value, state.value)
        report.state = state
        report.states.append(state)

    def _fail(self, report: SyncReport, exc: DrawCacheError) -> SyncReport:
        self._logger.error(
            "Sync for %s failed while %s: %s", report.lottery_id, report.state.value, exc
        )
        report.error = str(exc)
        report.success = False
        report.up_to_date = False
        self._enter(report, SyncState.FAILED)
        return report

    def _rejected(self, variant: LotteryVariant, error: str) -> SyncReport:
        return SyncReport(
            lottery_id=variant.id,
            state=SyncState.FAILED,
            collection=LotteryCollection.empty(variant),
            error=error,
            states=[SyncState.FAILED],
        )
