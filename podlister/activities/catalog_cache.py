"""Time-bounded in-memory cache of the Printify blueprint catalog.

One snapshot per credential scope (a digest of the API token, so tokens
never sit in memory as dict keys or show up in logs). Invalidation is lazy:
a snapshot older than the freshness window is refetched on the next read,
there is no background refresh.

Refresh replaces the scope's snapshot with a new immutable object in a
single assignment, so readers see either the old catalog or the new one,
never a mix. A failed refresh raises CatalogUnavailable and leaves the
previous snapshot where it was; it is not served as a fallback. An empty
catalog is returned to the caller but never stored.
"""

from __future__ import annotations

import asyncio
import hashlib
import time
from collections.abc import Awaitable, Callable, Sequence

import structlog

from podlister.errors import CatalogUnavailable
from podlister.models.contracts import CatalogEntry, CatalogSnapshot

logger = structlog.get_logger()

CatalogFetcher = Callable[[str], Awaitable[Sequence[CatalogEntry]]]


def credential_scope(api_key: str) -> str:
    return hashlib.sha256(api_key.encode()).hexdigest()[:20]


class CatalogCache:
    def __init__(
        self,
        fetch: CatalogFetcher,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
        max_scopes: int | None = None,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_seconds
        self._clock = clock
        self._max_scopes = max_scopes
        self._snapshots: dict[str, CatalogSnapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def _fresh(self, scope: str) -> CatalogSnapshot | None:
        snapshot = self._snapshots.get(scope)
        if snapshot is not None and self._clock() - snapshot.fetched_at < self._ttl:
            return snapshot
        return None

    def peek(self, api_key: str) -> CatalogSnapshot | None:
        """Return the stored snapshot for a credential, fresh or not, without fetching."""
        return self._snapshots.get(credential_scope(api_key))

    async def get(self, api_key: str) -> CatalogSnapshot:
        scope = credential_scope(api_key)
        if (snapshot := self._fresh(scope)) is not None:
            logger.debug("catalog_cache_hit", scope=scope, entries=len(snapshot.entries))
            return snapshot

        lock = self._locks.setdefault(scope, asyncio.Lock())
        async with lock:
            # Another request may have refreshed while we waited.
            if (snapshot := self._fresh(scope)) is not None:
                return snapshot

            logger.info("catalog_cache_miss", scope=scope)
            try:
                entries = await self._fetch(api_key)
            except Exception as exc:
                self._forget_lock(scope)
                logger.error(
                    "catalog_fetch_failed",
                    scope=scope,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise CatalogUnavailable(
                    "Failed to fetch Printify catalog. Check API Key."
                ) from exc

            snapshot = CatalogSnapshot(entries=tuple(entries), fetched_at=self._clock())
            if not snapshot.entries:
                # Served once, never stored: the next request fetches again.
                self._forget_lock(scope)
                logger.warning("catalog_empty", scope=scope)
                return snapshot
            self._store(scope, snapshot)
            logger.info("catalog_cached", scope=scope, entries=len(snapshot.entries))
            return snapshot

    def _store(self, scope: str, snapshot: CatalogSnapshot) -> None:
        if (
            self._max_scopes is not None
            and scope not in self._snapshots
            and len(self._snapshots) >= self._max_scopes
        ):
            oldest = min(self._snapshots, key=lambda s: self._snapshots[s].fetched_at)
            del self._snapshots[oldest]
            self._locks.pop(oldest, None)
            logger.info("catalog_scope_evicted", scope=oldest)
        self._snapshots[scope] = snapshot

    def _forget_lock(self, scope: str) -> None:
        if scope not in self._snapshots:
            self._locks.pop(scope, None)

    def invalidate(self, api_key: str | None = None) -> None:
        """Drop one credential's snapshot, or every snapshot when called bare."""
        if api_key is None:
            self._snapshots.clear()
            self._locks.clear()
            return
        scope = credential_scope(api_key)
        self._snapshots.pop(scope, None)
        self._locks.pop(scope, None)

    def __len__(self) -> int:
        return len(self._snapshots)
