from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, List, Mapping, Optional, Sequence, Tuple

FORMAT_VERSION = "1.0"


@dataclass(frozen=True)
class LotteryVariant:
    """Static description of one lottery game and where its draws live."""

    id: str
    name: str
    numbers_count: int
    min_number: int
    max_number: int
    api_url: str
    cache_file: str
    active: bool = True

    def contest_url(self, contest: Optional[int] = None) -> str:
        if contest is None:
            return self.api_url
        return f"{self.api_url.rstrip('/')}/{contest}"

    def with_base_url(self, base_url: str) -> "LotteryVariant":
        return replace(self, api_url=f"{base_url.rstrip('/')}/{self.id}")


@dataclass(frozen=True)
class DrawRecord:
    """One validated draw. Numbers are always stored ascending."""

    contest: int
    draw_date: str
    numbers: Tuple[int, ...]
    accumulated: bool = False
    next_estimate: float = 0
    next_date: Optional[str] = None

    def to_document(self) -> dict[str, Any]:
        return {
            "concurso": self.contest,
            "data": self.draw_date,
            "numeros": list(self.numbers),
            "acumulado": self.accumulated,
            "valorEstimadoProximoConcurso": self.next_estimate,
            "dataProximoConcurso": self.next_date,
        }

    @classmethod
    def from_document(cls, item: Mapping[str, Any]) -> "DrawRecord":
        return cls(
            contest=int(item["concurso"]),
            draw_date=str(item.get("data") or ""),
            numbers=tuple(sorted(int(n) for n in item["numeros"])),
            accumulated=bool(item.get("acumulado", False)),
            next_estimate=item.get("valorEstimadoProximoConcurso") or 0,
            next_date=item.get("dataProximoConcurso"),
        )


@dataclass(frozen=True)
class CollectionMetadata:
    lottery_type: str
    last_update: Optional[str] = None
    total_draws: int = 0
    version: str = FORMAT_VERSION

    def to_document(self) -> dict[str, Any]:
        return {
            "lastUpdate": self.last_update,
            "totalDraws": self.total_draws,
            "lotteryType": self.lottery_type,
            "version": self.version,
        }


@dataclass(frozen=True)
class LotteryCollection:
    """Persisted state of one variant: metadata plus ascending, unique draws."""

    metadata: CollectionMetadata
    draws: Tuple[DrawRecord, ...] = ()

    @classmethod
    def empty(cls, variant: LotteryVariant) -> "LotteryCollection":
        return cls(metadata=CollectionMetadata(lottery_type=variant.id))

    def contest_numbers(self) -> set[int]:
        return {draw.contest for draw in self.draws}

    @property
    def first_contest(self) -> Optional[int]:
        return self.draws[0].contest if self.draws else None

    @property
    def last_contest(self) -> Optional[int]:
        return self.draws[-1].contest if self.draws else None

    def __len__(self) -> int:
        return len(self.draws)

    def replace_draws(self, draws: Sequence[DrawRecord], last_update: str) -> "LotteryCollection":
        metadata = replace(self.metadata, last_update=last_update, total_draws=len(draws))
        return LotteryCollection(metadata=metadata, draws=tuple(draws))

    def since(self, contest: int) -> Tuple[DrawRecord, ...]:
        return tuple(draw for draw in self.draws if draw.contest > contest)


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING_LOCAL = "loading_local"
    RESOLVING_REMOTE_LATEST = "resolving_remote_latest"
    ANALYZING_GAPS = "analyzing_gaps"
    UP_TO_DATE = "up_to_date"
    FETCHING = "fetching"
    MERGING = "merging"
    BACKING_UP = "backing_up"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class FetchFailure:
    contest: int
    kind: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"contest": self.contest, "kind": self.kind, "reason": self.reason}


@dataclass
class SyncReport:
    lottery_id: str
    state: SyncState
    collection: LotteryCollection
    success: bool = False
    up_to_date: bool = False
    new_draws: int = 0
    remote_latest: Optional[int] = None
    missing: int = 0
    failures: List[FetchFailure] = field(default_factory=list)
    error: Optional[str] = None
    backup_path: Optional[str] = None
    states: List[SyncState] = field(default_factory=list)

    @property
    def total_draws(self) -> int:
        return len(self.collection)

    @property
    def latest_contest(self) -> Optional[int]:
        return self.collection.last_contest

    def to_dict(self) -> dict[str, Any]:
        return {
            "lottery_id": self.lottery_id,
            "state": self.state.value,
            "success": self.success,
            "up_to_date": self.up_to_date,
            "total_draws": self.total_draws,
            "new_draws": self.new_draws,
            "latest_contest": self.latest_contest,
            "remote_latest": self.remote_latest,
            "missing": self.missing,
            "failures": [failure.to_dict() for failure in self.failures],
            "error": self.error,
            "backup_path": self.backup_path,
            "states": [state.value for state in self.states],
        }


@dataclass(frozen=True)
class VariantStatus:
    lottery_id: str
    total_draws: int
    first_contest: Optional[int]
    last_contest: Optional[int]
    last_update: Optional[str]
    remote_latest: Optional[int] = None
    missing: Optional[int] = None
    remote_error: Optional[str] = None

    @property
    def is_up_to_date(self) -> Optional[bool]:
        if self.missing is None:
            return None
        return self.missing == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "lottery_id": self.lottery_id,
            "total_draws": self.total_draws,
            "first_contest": self.first_contest,
            "last_contest": self.last_contest,
            "last_update": self.last_update,
            "remote_latest": self.remote_latest,
            "missing": self.missing,
            "is_up_to_date": self.is_up_to_date,
            "remote_error": self.remote_error,
        }
