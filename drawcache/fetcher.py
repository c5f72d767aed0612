from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from .datasource import ResultDataSource
from .errors import ContestNotFoundError, FetchError, TransientFetchError, ValidationError
from .types import DrawRecord, FetchFailure, LotteryVariant

Sleep = Callable[[float], Awaitable[None]]


@dataclass
class BatchResult:
    records: List[DrawRecord] = field(default_factory=list)
    failures: List[FetchFailure] = field(default_factory=list)
    batches: List[List[int]] = field(default_factory=list)


def partition(contests: Sequence[int], batch_size: int) -> List[List[int]]:
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(contests[i : i + batch_size]) for i in range(0, len(contests), batch_size)]


def _failure_kind(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return "validation"
    if isinstance(exc, ContestNotFoundError):
        return "not_found"
    if isinstance(exc, TransientFetchError):
        return "transient"
    return "rejected"


class BatchFetcher:
    """Download contests in fixed-size concurrent batches separated by a delay."""

    def __init__(
        self,
        source: ResultDataSource,
        batch_size: int = 5,
        batch_delay: float = 1.0,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self._source = source
        self._batch_size = batch_size
        self._batch_delay = max(0.0, batch_delay)
        self._sleep = sleep
        self._logger = logger or logging.getLogger("drawcache.fetcher")

    async def fetch(self, variant: LotteryVariant, contests: Sequence[int]) -> BatchResult:
        result = BatchResult(batches=partition(contests, self._batch_size))
        total = len(result.batches)
        semaphore = asyncio.Semaphore(self._batch_size)

        for index, batch in enumerate(result.batches, start=1):
            if index > 1 and self._batch_delay:
                await self._sleep(self._batch_delay)
            self._logger.info(
                "Fetching %s batch %s/%s: contests %s to %s",
                variant.name,
                index,
                total,
                batch[0],
                batch[-1],
            )
            outcomes = await asyncio.gather(
                *(self._fetch_one(semaphore, variant, contest) for contest in batch)
            )
            for outcome in outcomes:
                if isinstance(outcome, FetchFailure):
                    result.failures.append(outcome)
                else:
                    result.records.append(outcome)

        if result.failures:
            self._logger.warning(
                "%s: %s of %s contests could not be fetched",
                variant.name,
                len(result.failures),
                len(contests),
            )
        return result

    async def _fetch_one(
        self, semaphore: asyncio.Semaphore, variant: LotteryVariant, contest: int
    ) -> Union[DrawRecord, FetchFailure]:
        async with semaphore:
            try:
                return await self._source.fetch_contest(variant, contest)
            except (FetchError, ValidationError) as exc:
                self._logger.warning("Failed to fetch %s contest %s: %s", variant.name, contest, exc)
                return FetchFailure(contest=contest, kind=_failure_kind(exc), reason=str(exc))
