from __future__ import annotations

import abc

from ..types import DrawRecord, LotteryVariant


class ResultDataSource(abc.ABC):
    """Abstract draw-results provider."""

    @abc.abstractmethod
    async def fetch_latest(self, variant: LotteryVariant) -> DrawRecord:
        """Return the most recent draw published for ``variant``.

        Implementations raise `FetchError` when the feed cannot be reached
        and `ValidationError` when the payload is not a valid draw.
        """

    async def fetch_latest_contest(self, variant: LotteryVariant) -> int:
        """Return the newest contest number published for ``variant``.

        Only the number matters here, so a latest contest whose draw is still
        incomplete does not hide the frontier. Connectors that can read the
        number without validating the whole draw override this.
        """
        return (await self.fetch_latest(variant)).contest

    @abc.abstractmethod
    async def fetch_contest(self, variant: LotteryVariant, contest: int) -> DrawRecord:
        """Return one specific contest, with the same error contract as `fetch_latest`."""

    async def close(self) -> None:
        """Optional hook for connectors that require cleanup."""
        return None
