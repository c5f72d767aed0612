from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .errors import UnknownLotteryError
from .types import LotteryVariant

CAIXA_API_URL = "https://servicebus2.caixa.gov.br/portaldeloterias/api"


def _variant(
    lottery_id: str,
    name: str,
    numbers_count: int,
    min_number: int,
    max_number: int,
    active: bool = True,
) -> LotteryVariant:
    return LotteryVariant(
        id=lottery_id,
        name=name,
        numbers_count=numbers_count,
        min_number=min_number,
        max_number=max_number,
        api_url=f"{CAIXA_API_URL}/{lottery_id}",
        cache_file=f"{lottery_id}.json",
        active=active,
    )


LOTTERY_CATALOG: Dict[str, LotteryVariant] = {
    v.id: v
    for v in (
        _variant("lotofacil", "Lotofácil", 15, 1, 25),
        _variant("megasena", "Mega-Sena", 6, 1, 60),
        _variant("quina", "Quina", 5, 1, 80, active=False),
        _variant("lotomania", "Lotomania", 20, 0, 99, active=False),
    )
}


def get_variant(lottery_id: str) -> LotteryVariant:
    try:
        return LOTTERY_CATALOG[lottery_id.strip().lower()]
    except KeyError as exc:
        supported = ", ".join(sorted(LOTTERY_CATALOG))
        raise UnknownLotteryError(
            f"Lottery '{lottery_id}' not supported. Use: {supported}"
        ) from exc


def resolve_variants(
    lottery_ids: Optional[Iterable[str]] = None, base_url: Optional[str] = None
) -> List[LotteryVariant]:
    """Pick variants by id (or every active one) and point them at ``base_url``."""
    if lottery_ids:
        variants = [get_variant(lottery_id) for lottery_id in lottery_ids]
    else:
        variants = [v for v in LOTTERY_CATALOG.values() if v.active]
    if base_url:
        variants = [v.with_base_url(base_url) for v in variants]
    return variants
