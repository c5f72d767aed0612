from __future__ import annotations

import datetime as dt
import logging
import pathlib
import re
from typing import List, Optional

from .errors import BackupError, DrawCacheError
from .store import CacheStore, decode_collection
from .store.filesystem import atomic_write
from .types import LotteryVariant

_SNAPSHOT_RE = re.compile(r"^\d{8}T\d{12}Z\.json$")


def _timestamp(now: Optional[dt.datetime] = None) -> str:
    moment = now or dt.datetime.now(dt.timezone.utc)
    return moment.strftime("%Y%m%dT%H%M%S%fZ")


class BackupManager:
    """Timestamped copies of each persisted collection, newest ``keep`` retained."""

    def __init__(
        self,
        backup_dir: str,
        keep: int = 7,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if keep < 1:
            raise ValueError(f"keep must be >= 1, got {keep}")
        self._backup_dir = pathlib.Path(backup_dir)
        self._keep = keep
        self._logger = logger or logging.getLogger("drawcache.backup")

    def directory_for(self, variant: LotteryVariant) -> pathlib.Path:
        return self._backup_dir / variant.id

    def list_snapshots(self, variant: LotteryVariant) -> List[pathlib.Path]:
        """Snapshots for ``variant``, oldest first."""
        directory = self.directory_for(variant)
        if not directory.is_dir():
            return []
        return sorted(p for p in directory.iterdir() if _SNAPSHOT_RE.match(p.name))

    def snapshot(
        self, variant: LotteryVariant, store: CacheStore, now: Optional[dt.datetime] = None
    ) -> Optional[pathlib.Path]:
        try:
            raw = store.read_raw(variant)
        except DrawCacheError as exc:
            raise BackupError(f"Cannot read {variant.name} cache for backup: {exc}") from exc
        if raw is None:
            self._logger.debug("Nothing persisted yet for %s; no snapshot taken.", variant.name)
            return None

        target = self.directory_for(variant) / f"{_timestamp(now)}.json"
        try:
            atomic_write(target, raw)
        except OSError as exc:
            raise BackupError(f"Failed to write snapshot {target}: {exc}") from exc
        self._logger.info("Backup created: %s", target)

        self.prune(variant)
        return target

    def prune(self, variant: LotteryVariant) -> List[pathlib.Path]:
        snapshots = self.list_snapshots(variant)
        stale = snapshots[: max(0, len(snapshots) - self._keep)]
        for path in stale:
            try:
                path.unlink()
            except OSError as exc:
                raise BackupError(f"Failed to remove old snapshot {path}: {exc}") from exc
            self._logger.info("Removed old backup: %s", path.name)
        return stale

    def restore(
        self,
        variant: LotteryVariant,
        store: CacheStore,
        snapshot: Optional[pathlib.Path] = None,
    ) -> pathlib.Path:
        """Write ``snapshot`` (default: the newest one) back through ``store``."""
        if snapshot is None:
            snapshots = self.list_snapshots(variant)
            if not snapshots:
                raise BackupError(f"No snapshots available for {variant.name}")
            snapshot = snapshots[-1]
        try:
            raw = pathlib.Path(snapshot).read_bytes()
        except OSError as exc:
            raise BackupError(f"Cannot read snapshot {snapshot}: {exc}") from exc

        # Validates the snapshot before it replaces the live document.
        try:
            decode_collection(variant, raw, str(snapshot))
        except DrawCacheError as exc:
            raise BackupError(f"Snapshot {snapshot} is not a valid collection: {exc}") from exc
        store.write_raw(variant, raw)
        self._logger.info("Restored %s from %s", variant.name, snapshot)
        return pathlib.Path(snapshot)
