from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Mapping, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator
from pydantic import ValidationError as PayloadShapeError

from ..errors import (
    ContestNotFoundError,
    FetchError,
    TransientFetchError,
    ValidationError,
)
from ..types import DrawRecord, LotteryVariant
from .base import ResultDataSource

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class CaixaDataSourceConfig:
    """Transport knobs for the Caixa results feed."""

    timeout_seconds: float = 15
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    user_agent: str = "drawcache/1.0"


class CaixaContestHeader(BaseModel):
    """Only the contest number; enough to locate the feed frontier."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    numero: PositiveInt


class CaixaDrawPayload(CaixaContestHeader):
    """Shape of one contest as published by the portal de loterias API."""

    data_apuracao: Optional[str] = Field(None, alias="dataApuracao")
    data_realizacao: Optional[str] = Field(None, alias="dataRealizacao")
    lista_dezenas: Optional[List[Any]] = Field(None, alias="listaDezenas")
    dezenas_ordem_sorteio: Optional[List[Any]] = Field(None, alias="dezenasSorteadasOrdemSorteio")
    acumulado: Optional[bool] = False
    valor_estimado: Optional[float] = Field(None, alias="valorEstimadoProximoConcurso")
    data_proximo: Optional[str] = Field(None, alias="dataProximoConcurso")

    @field_validator("data_apuracao", "data_realizacao", "data_proximo", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip() == "":
            return None
        return value

    @field_validator("valor_estimado", mode="before")
    @classmethod
    def lenient_estimate(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if "," in text:
            # Brazilian formatting: 1.500.000,00
            text = text.replace(".", "").replace(",", ".")
        try:
            return float(text)
        except ValueError:
            return None

    @property
    def draw_date(self) -> Optional[str]:
        return self.data_apuracao or self.data_realizacao

    @property
    def raw_numbers(self) -> List[Any]:
        # listaDezenas is sorted, the other field is in drawing order; first non-empty wins.
        return self.lista_dezenas or self.dezenas_ordem_sorteio or []


def _coerce_number(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"boolean is not a number: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return int(str(value).strip())


def normalize_payload(
    variant: LotteryVariant,
    payload: Any,
    expected_contest: Optional[int] = None,
) -> DrawRecord:
    """Validate a feed payload against ``variant`` and build a `DrawRecord`."""
    if not isinstance(payload, Mapping):
        raise ValidationError(f"{variant.name}: payload is not an object")
    try:
        parsed = CaixaDrawPayload.model_validate(payload)
    except PayloadShapeError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
        raise ValidationError(f"{variant.name}: malformed payload ({fields})") from exc

    contest = parsed.numero
    if expected_contest is not None and contest != expected_contest:
        raise ValidationError(
            f"{variant.name}: asked for contest {expected_contest}, feed returned {contest}"
        )
    if parsed.draw_date is None:
        raise ValidationError(f"Contest {contest}: missing draw date")

    raw = parsed.raw_numbers
    if not raw:
        raise ValidationError(f"Contest {contest}: missing drawn numbers")
    try:
        numbers = [_coerce_number(value) for value in raw]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Contest {contest}: non-numeric drawn number") from exc

    if len(numbers) < variant.numbers_count:
        raise ValidationError(
            f"Contest {contest}: expected {variant.numbers_count} numbers, got {len(numbers)}"
        )
    numbers = numbers[: variant.numbers_count]

    out_of_range = [n for n in numbers if not variant.min_number <= n <= variant.max_number]
    if out_of_range:
        raise ValidationError(
            f"Contest {contest}: numbers {out_of_range} outside "
            f"{variant.min_number}..{variant.max_number}"
        )
    if len(set(numbers)) != len(numbers):
        raise ValidationError(f"Contest {contest}: duplicated drawn numbers {numbers}")

    return DrawRecord(
        contest=contest,
        draw_date=parsed.draw_date,
        numbers=tuple(sorted(numbers)),
        accumulated=bool(parsed.acumulado),
        next_estimate=parsed.valor_estimado or 0,
        next_date=parsed.data_proximo,
    )


class CaixaDataSource(ResultDataSource):
    """Fetch draws from the Caixa JSON API with retry and backoff."""

    def __init__(
        self,
        config: Optional[CaixaDataSourceConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Sleep = asyncio.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._config = config or CaixaDataSourceConfig()
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Accept": "application/json", "User-Agent": self._config.user_agent}
        )
        self._sleep = sleep
        self._logger = logger or logging.getLogger("drawcache.datasource")

    async def fetch_latest(self, variant: LotteryVariant) -> DrawRecord:
        payload = await self._request(variant.contest_url())
        return normalize_payload(variant, payload)

    async def fetch_latest_contest(self, variant: LotteryVariant) -> int:
        payload = await self._request(variant.contest_url())
        try:
            return CaixaContestHeader.model_validate(payload).numero
        except PayloadShapeError as exc:
            raise ValidationError(f"{variant.name}: latest payload has no contest number") from exc

    async def fetch_contest(self, variant: LotteryVariant, contest: int) -> DrawRecord:
        payload = await self._request(variant.contest_url(contest))
        return normalize_payload(variant, payload, expected_contest=contest)

    async def close(self) -> None:
        self._session.close()

    async def _request(self, url: str) -> Mapping[str, Any]:
        attempts = max(1, self._config.retry_attempts)
        for attempt in range(1, attempts):
            try:
                return await asyncio.to_thread(self._get_json, url)
            except TransientFetchError as exc:
                delay = self._config.retry_base_delay * (2 ** (attempt - 1))
                self._logger.warning(
                    "Attempt %s/%s for %s failed: %s; retrying in %.1fs",
                    attempt,
                    attempts,
                    url,
                    exc,
                    delay,
                )
                await self._sleep(delay)
        # Last attempt: errors propagate to the caller.
        return await asyncio.to_thread(self._get_json, url)

    def _get_json(self, url: str) -> Mapping[str, Any]:
        try:
            resp = self._session.get(url, timeout=self._config.timeout_seconds)
        except requests.Timeout as exc:
            raise TransientFetchError(f"Timed out fetching {url}") from exc
        except requests.RequestException as exc:
            raise TransientFetchError(f"Network error fetching {url}: {exc}") from exc

        status = resp.status_code
        if status == 404:
            raise ContestNotFoundError(f"HTTP 404 for {url}", status_code=status)
        if status == 429 or status >= 500:
            raise TransientFetchError(f"HTTP {status} for {url}", status_code=status)
        if status >= 400:
            raise FetchError(f"HTTP {status} for {url}", status_code=status)

        try:
            data = resp.json()
        except ValueError as exc:
            raise TransientFetchError(f"Non-JSON body from {url}") from exc
        if not isinstance(data, Mapping):
            raise TransientFetchError(f"Unexpected payload type from {url}")
        return data
