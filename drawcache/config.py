from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from dotenv import load_dotenv

from .variants import CAIXA_API_URL

STORE_BACKENDS = ("filesystem", "remote")


def _int_from_env(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {key} must be an integer, got {value!r}") from exc


def _float_from_env(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise RuntimeError(f"Environment variable {key} must be a number, got {value!r}") from exc


def _list_from_env(key: str) -> Tuple[str, ...]:
    value = os.getenv(key, "")
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class FeedSettings:
    base_url: str = CAIXA_API_URL
    timeout_seconds: float = 15
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    user_agent: str = "drawcache/1.0"


@dataclass(frozen=True)
class FetchSettings:
    batch_size: int = 5
    batch_delay_seconds: float = 1.0
    window_size: int = 1000


@dataclass(frozen=True)
class StoreSettings:
    backend: str = "filesystem"
    data_dir: str = "public/data"
    remote_url: str = ""
    remote_token: Optional[str] = None


@dataclass(frozen=True)
class BackupSettings:
    backup_dir: str = "backups"
    keep: int = 7


@dataclass(frozen=True)
class SyncSettings:
    lotteries: Tuple[str, ...] = ()
    poll_interval_seconds: int = 86400
    log_level: str = "INFO"
    log_file: Optional[str] = None
    feed: FeedSettings = field(default_factory=FeedSettings)
    fetch: FetchSettings = field(default_factory=FetchSettings)
    store: StoreSettings = field(default_factory=StoreSettings)
    backup: BackupSettings = field(default_factory=BackupSettings)


def load_from_environment() -> SyncSettings:
    feed = FeedSettings(
        base_url=os.getenv("DRAWCACHE_FEED__BASE_URL", CAIXA_API_URL),
        timeout_seconds=_float_from_env("DRAWCACHE_FEED__TIMEOUT_SECONDS", 15),
        retry_attempts=_int_from_env("DRAWCACHE_FEED__RETRY_ATTEMPTS", 3),
        retry_base_delay=_float_from_env("DRAWCACHE_FEED__RETRY_BASE_DELAY", 1.0),
        user_agent=os.getenv("DRAWCACHE_FEED__USER_AGENT", "drawcache/1.0"),
    )

    fetch = FetchSettings(
        batch_size=_int_from_env("DRAWCACHE_BATCH_SIZE", 5),
        batch_delay_seconds=_float_from_env("DRAWCACHE_BATCH_DELAY_SECONDS", 1.0),
        window_size=_int_from_env("DRAWCACHE_WINDOW_SIZE", 1000),
    )

    backend = os.getenv("DRAWCACHE_STORE", "filesystem").strip().lower()
    if backend not in STORE_BACKENDS:
        raise RuntimeError(
            f"Unknown DRAWCACHE_STORE backend {backend!r}; expected one of {STORE_BACKENDS}"
        )
    store = StoreSettings(
        backend=backend,
        data_dir=os.getenv("DRAWCACHE_DATA_DIR", "public/data"),
        remote_url=os.getenv("DRAWCACHE_REMOTE_STORE__URL", ""),
        remote_token=os.getenv("DRAWCACHE_REMOTE_STORE__TOKEN") or None,
    )
    if backend == "remote" and not store.remote_url:
        raise RuntimeError("DRAWCACHE_REMOTE_STORE__URL is required for the remote store.")

    backup = BackupSettings(
        backup_dir=os.getenv("DRAWCACHE_BACKUP_DIR", "backups"),
        keep=_int_from_env("DRAWCACHE_KEEP_BACKUPS", 7),
    )

    return SyncSettings(
        lotteries=_list_from_env("DRAWCACHE_LOTTERIES"),
        poll_interval_seconds=_int_from_env("DRAWCACHE_POLL_INTERVAL_SECONDS", 86400),
        log_level=os.getenv("DRAWCACHE_LOG_LEVEL", "INFO").upper(),
        log_file=os.getenv("DRAWCACHE_LOG_FILE") or None,
        feed=feed,
        fetch=fetch,
        store=store,
        backup=backup,
    )


@lru_cache(maxsize=1)
def load_config(dotenv_path: Optional[str] = None) -> SyncSettings:
    if dotenv_path:
        load_dotenv(dotenv_path)
    else:
        default_path = pathlib.Path(".env")
        if default_path.exists():
            load_dotenv(default_path)
    return load_from_environment()
