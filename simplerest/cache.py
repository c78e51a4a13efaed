"""Response Cache - In-memory store of successful GET response bodies."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, MutableMapping

from simplerest.encoding import form_encode

logger = logging.getLogger(__name__)

_HEADER_SEPARATOR = "\n"


def cache_key(url: str, headers: Mapping[str, str] | None = None) -> str:
    """Build the cache key for a request.

    Without extra headers the key is the URL itself. With headers, the URL is
    followed by a newline and the headers form-encoded in name order, so the
    same header set always produces the same key regardless of how the mapping
    was built. A URL cannot contain a newline, so header-bearing keys never
    collide with plain URLs.
    """
    if not headers:
        return url
    return url + _HEADER_SEPARATOR + form_encode(dict(sorted(headers.items())))


class ResponseCache:
    """Thread-safe mapping from cache key to response body.

    Entries are never evicted individually; clear() drops everything. A
    disabled cache stores nothing and every lookup misses.

    Args:
        store: Backing mapping. A caller-supplied mapping lets several clients
            share entries or lets the caller inspect them. Defaults to a new dict.
        enabled: Whether responses are stored at all.
    """

    def __init__(
        self,
        store: MutableMapping[str, str] | None = None,
        enabled: bool = True,
    ) -> None:
        self._store: MutableMapping[str, str] = store if store is not None else {}
        self._enabled = enabled
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get(self, key: str) -> str | None:
        if not self._enabled:
            return None
        with self._lock:
            return self._store.get(key)

    def put(self, key: str, body: str) -> None:
        if not self._enabled:
            return
        with self._lock:
            self._store[key] = body
        logger.debug(f"Cached {len(body)} chars for {key}")

    def clear(self) -> None:
        if not self._enabled:
            return
        with self._lock:
            self._store.clear()
        logger.debug("Response cache cleared")

    def __contains__(self, key: object) -> bool:
        if not self._enabled:
            return False
        with self._lock:
            return key in self._store

    def __len__(self) -> int:
        if not self._enabled:
            return 0
        with self._lock:
            return len(self._store)
