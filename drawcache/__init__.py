"""Incremental, append-only cache of lottery draw results."""

from .orchestrator import SyncOrchestrator
from .types import DrawRecord, LotteryCollection, LotteryVariant, SyncReport, SyncState

__all__ = [
    "DrawRecord",
    "LotteryCollection",
    "LotteryVariant",
    "SyncOrchestrator",
    "SyncReport",
    "SyncState",
]
