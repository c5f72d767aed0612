from __future__ import annotations

from typing import AbstractSet, Iterable, List

DEFAULT_WINDOW_SIZE = 1000


def find_missing_contests(
    existing: AbstractSet[int],
    remote_latest: int,
    window_size: int = DEFAULT_WINDOW_SIZE,
    full: bool = False,
) -> List[int]:
    """Contest numbers to download, ascending.

    An empty cache is backfilled with the last ``window_size`` contests only.
    Otherwise every hole between the lowest and highest contest held is
    returned together with every contest published after the highest one.
    ``full`` widens the search to the whole history starting at contest 1.
    """
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size}")
    if remote_latest < 1:
        return []

    if full:
        return [n for n in range(1, remote_latest + 1) if n not in existing]

    if not existing:
        start = max(1, remote_latest - window_size + 1)
        return list(range(start, remote_latest + 1))

    lowest, highest = min(existing), max(existing)
    holes = [n for n in range(lowest, highest + 1) if n not in existing]
    trailing = list(range(highest + 1, remote_latest + 1))
    return holes + trailing


def contest_ranges(contests: Iterable[int]) -> List[str]:
    """Collapse contest numbers into readable ranges: [1, 2, 3, 7] -> ["1-3", "7"]."""
    ordered = sorted(set(contests))
    if not ordered:
        return []
    ranges: List[str] = []
    start = end = ordered[0]
    for n in ordered[1:]:
        if n == end + 1:
            end = n
            continue
        ranges.append(str(start) if start == end else f"{start}-{end}")
        start = end = n
    ranges.append(str(start) if start == end else f"{start}-{end}")
    return ranges


class GapAnalyzer:
    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        if window_size < 1:
            raise ValueError(f"window_size must be >= 1, got {window_size}")
        self._window_size = window_size

    @property
    def window_size(self) -> int:
        return self._window_size

    def analyze(self, existing: AbstractSet[int], remote_latest: int, full: bool = False) -> List[int]:
        return find_missing_contests(existing, remote_latest, self._window_size, full=full)
