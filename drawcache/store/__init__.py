from __future__ import annotations

from ..config import StoreSettings
from .base import CacheStore, decode_collection, encode_collection
from .filesystem import FilesystemCacheStore
from .remote import RemoteDocumentCacheStore


def build_store(settings: StoreSettings, timeout_seconds: float = 15) -> CacheStore:
    if settings.backend == "filesystem":
        return FilesystemCacheStore(settings.data_dir)
    if settings.backend == "remote":
        return RemoteDocumentCacheStore(
            settings.remote_url,
            token=settings.remote_token,
            timeout_seconds=timeout_seconds,
        )
    raise RuntimeError(f"Unknown store backend: {settings.backend}")


__all__ = [
    "CacheStore",
    "FilesystemCacheStore",
    "RemoteDocumentCacheStore",
    "build_store",
    "decode_collection",
    "encode_collection",
]
