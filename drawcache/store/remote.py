from __future__ import annotations

from typing import Optional

import requests

from ..errors import CacheLoadError, PersistError
from ..types import LotteryVariant
from .base import CacheStore


class RemoteDocumentCacheStore(CacheStore):
    """Collections published as static JSON documents behind an HTTP endpoint.

    Reads are plain GETs of ``<base_url>/<variant.cache_file>``; a 404 means
    the document was never published. Writes replace the whole document with
    a single PUT, so a failed upload leaves the previous version in place.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout_seconds: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        if not base_url:
            raise ValueError("RemoteDocumentCacheStore requires a base URL")
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def url_for(self, variant: LotteryVariant) -> str:
        return f"{self._base_url}/{variant.cache_file}"

    def describe(self, variant: LotteryVariant) -> str:
        return self.url_for(variant)

    def read_raw(self, variant: LotteryVariant) -> Optional[bytes]:
        url = self.url_for(variant)
        try:
            resp = self._session.get(url, timeout=self._timeout)
        except requests.RequestException as exc:
            raise CacheLoadError(f"Cannot reach {url}: {exc}") from exc
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise CacheLoadError(f"HTTP {resp.status_code} reading {url}")
        return resp.content

    def write_raw(self, variant: LotteryVariant, data: bytes) -> None:
        url = self.url_for(variant)
        try:
            resp = self._session.put(
                url,
                data=data,
                headers={"Content-Type": "application/json; charset=utf-8"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise PersistError(f"Upload to {url} failed: {exc}") from exc
        if not resp.ok:
            raise PersistError(f"HTTP {resp.status_code} writing {url}")
