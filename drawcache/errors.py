from __future__ import annotations

from typing import Optional


class DrawCacheError(Exception):
    """Base class for every error raised by drawcache."""


class FetchError(DrawCacheError, RuntimeError):
    """The remote feed could not deliver a payload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Network failure, timeout, throttling or 5xx. Worth retrying."""


class ContestNotFoundError(FetchError):
    """The feed answered 404 for the requested contest."""


class ValidationError(DrawCacheError, ValueError):
    """A payload arrived but does not describe a valid draw for the variant."""


class LatestLookupError(DrawCacheError):
    """The remote frontier (latest contest number) could not be determined."""


class CacheLoadError(DrawCacheError):
    """A persisted collection exists but cannot be read back."""


class PersistError(DrawCacheError):
    """Writing a collection to its store failed."""


class BackupError(DrawCacheError):
    """Creating, pruning or restoring a snapshot failed."""


class SyncInProgressError(DrawCacheError):
    """A cycle for the same lottery is already running."""


class UnknownLotteryError(DrawCacheError, KeyError):
    """The requested lottery id is not configured."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "unknown lottery"
