from __future__ import annotations

import abc
import json
from dataclasses import replace
from typing import Any, Dict, Optional

from ..errors import CacheLoadError
from ..merge import merge
from ..types import CollectionMetadata, DrawRecord, FORMAT_VERSION, LotteryCollection, LotteryVariant


def encode_collection(variant: LotteryVariant, collection: LotteryCollection) -> bytes:
    """Serialize to the persisted document format, draws ascending by contest."""
    draws = sorted(collection.draws, key=lambda d: d.contest)
    metadata = replace(collection.metadata, lottery_type=variant.id, total_draws=len(draws))
    document: Dict[str, Any] = {
        "metadata": metadata.to_document(),
        "draws": [draw.to_document() for draw in draws],
    }
    return (json.dumps(document, ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def decode_collection(variant: LotteryVariant, raw: bytes, source: str = "") -> LotteryCollection:
    where = source or variant.cache_file
    try:
        document = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CacheLoadError(f"Cache for {variant.name} at {where} is not valid JSON") from exc
    if not isinstance(document, dict):
        raise CacheLoadError(f"Cache for {variant.name} at {where} is not a JSON object")

    metadata = document.get("metadata") or {}
    if not isinstance(metadata, dict):
        raise CacheLoadError(f"Cache for {variant.name} at {where} has malformed metadata")
    try:
        records = [DrawRecord.from_document(item) for item in document.get("draws") or []]
    except (KeyError, TypeError, ValueError) as exc:
        raise CacheLoadError(f"Cache for {variant.name} at {where} has a malformed draw") from exc

    # Hand-edited or legacy files may be unsorted or carry duplicates.
    draws = merge([], records)
    return LotteryCollection(
        metadata=CollectionMetadata(
            lottery_type=variant.id,
            last_update=metadata.get("lastUpdate"),
            total_draws=len(draws),
            version=str(metadata.get("version") or FORMAT_VERSION),
        ),
        draws=draws,
    )


class CacheStore(abc.ABC):
    """Durable home for one collection per lottery variant."""

    def load(self, variant: LotteryVariant) -> LotteryCollection:
        raw = self.read_raw(variant)
        if raw is None:
            return LotteryCollection.empty(variant)
        return decode_collection(variant, raw, self.describe(variant))

    def save(self, variant: LotteryVariant, collection: LotteryCollection) -> None:
        self.write_raw(variant, encode_collection(variant, collection))

    @abc.abstractmethod
    def read_raw(self, variant: LotteryVariant) -> Optional[bytes]:
        """Return the persisted document bytes, or None when nothing was stored yet."""

    @abc.abstractmethod
    def write_raw(self, variant: LotteryVariant, data: bytes) -> None:
        """Replace the persisted document atomically. Raises `PersistError`."""

    @abc.abstractmethod
    def describe(self, variant: LotteryVariant) -> str:
        """Human readable location, for logs."""
