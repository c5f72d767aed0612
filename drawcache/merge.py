from __future__ import annotations

from typing import Dict, Iterable, Tuple

from .types import DrawRecord


def merge(existing: Iterable[DrawRecord], incoming: Iterable[DrawRecord]) -> Tuple[DrawRecord, ...]:
    """Combine two draw lists into one ascending, duplicate-free tuple.

    When a contest number appears more than once, the first record seen wins:
    ``existing`` is consumed before ``incoming``, so a stored draw is never
    replaced by a refetched one.
    """
    by_contest: Dict[int, DrawRecord] = {}
    for draw in existing:
        by_contest.setdefault(draw.contest, draw)
    for draw in incoming:
        by_contest.setdefault(draw.contest, draw)
    return tuple(by_contest[contest] for contest in sorted(by_contest))
