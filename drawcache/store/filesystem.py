from __future__ import annotations

import os
import pathlib
import tempfile
from typing import Optional

from ..errors import CacheLoadError, PersistError
from ..types import LotteryVariant
from .base import CacheStore


def atomic_write(path: pathlib.Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a synced temp file in the same directory."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{path.stem}_", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
        tmp_path = None
    finally:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)


class FilesystemCacheStore(CacheStore):
    """Keeps ``<data_dir>/<variant.cache_file>`` documents on local disk."""

    def __init__(self, data_dir: str) -> None:
        self._data_dir = pathlib.Path(data_dir)

    def path_for(self, variant: LotteryVariant) -> pathlib.Path:
        return self._data_dir / variant.cache_file

    def describe(self, variant: LotteryVariant) -> str:
        return str(self.path_for(variant))

    def read_raw(self, variant: LotteryVariant) -> Optional[bytes]:
        path = self.path_for(variant)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CacheLoadError(f"Cannot read {path}: {exc}") from exc

    def write_raw(self, variant: LotteryVariant, data: bytes) -> None:
        path = self.path_for(variant)
        try:
            atomic_write(path, data)
        except OSError as exc:
            raise PersistError(f"Failed to write {path}: {exc}") from exc
