from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Set

from drawcache.datasource.base import ResultDataSource
from drawcache.errors import TransientFetchError, ValidationError
from drawcache.types import CollectionMetadata, DrawRecord, LotteryCollection, LotteryVariant
from drawcache.variants import get_variant

LOTOFACIL = get_variant("lotofacil")
MEGASENA = get_variant("megasena")


def make_numbers(variant: LotteryVariant, contest: int, offset: int = 0) -> tuple:
    span = variant.max_number - variant.min_number + 1
    return tuple(
        sorted((contest + offset + i) % span + variant.min_number for i in range(variant.numbers_count))
    )


def make_record(variant: LotteryVariant, contest: int, offset: int = 0) -> DrawRecord:
    return DrawRecord(
        contest=contest,
        draw_date="01/01/2024",
        numbers=make_numbers(variant, contest, offset),
        accumulated=contest % 2 == 0,
        next_estimate=1500000.0,
        next_date="03/01/2024",
    )


def make_collection(variant: LotteryVariant, contests: Iterable[int]) -> LotteryCollection:
    draws = tuple(make_record(variant, n) for n in sorted(contests))
    return LotteryCollection(
        metadata=CollectionMetadata(
            lottery_type=variant.id,
            last_update="2024-01-01T00:00:00.000Z",
            total_draws=len(draws),
        ),
        draws=draws,
    )


def make_payload(variant: LotteryVariant, contest: int, numbers: Optional[List] = None) -> dict:
    if numbers is None:
        numbers = [f"{n:02d}" for n in make_numbers(variant, contest)]
    return {
        "numero": contest,
        "dataApuracao": "01/01/2024",
        "listaDezenas": numbers,
        "acumulado": False,
        "valorEstimadoProximoConcurso": 1500000.0,
        "dataProximoConcurso": "03/01/2024",
    }


class FakeDataSource(ResultDataSource):
    """Serves generated draws up to ``latest``; selected contests misbehave."""

    def __init__(
        self,
        latest: int,
        invalid: Iterable[int] = (),
        unavailable: Iterable[int] = (),
        latest_error: Optional[Exception] = None,
    ) -> None:
        self.latest = latest
        self.invalid: Set[int] = set(invalid)
        self.unavailable: Set[int] = set(unavailable)
        self.latest_error = latest_error
        self.requested: List[int] = []
        self.latest_calls = 0
        self.closed = False
        self.latest_gate: Optional[asyncio.Event] = None

    async def fetch_latest(self, variant: LotteryVariant) -> DrawRecord:
        self.latest_calls += 1
        if self.latest_gate is not None:
            await self.latest_gate.wait()
        if self.latest_error is not None:
            raise self.latest_error
        return make_record(variant, self.latest)

    async def fetch_contest(self, variant: LotteryVariant, contest: int) -> DrawRecord:
        self.requested.append(contest)
        await asyncio.sleep(0)
        if contest in self.unavailable:
            raise TransientFetchError(f"HTTP 503 for contest {contest}", status_code=503)
        if contest in self.invalid:
            raise ValidationError(
                f"Contest {contest}: expected {variant.numbers_count} numbers, "
                f"got {variant.numbers_count - 1}"
            )
        return make_record(variant, contest)

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    def __init__(self, events: Optional[List] = None) -> None:
        self.delays: List[float] = []
        self.events = events

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.events is not None:
            self.events.append(("sleep", delay))


def contests_of(collection: LotteryCollection) -> List[int]:
    return [draw.contest for draw in collection.draws]

