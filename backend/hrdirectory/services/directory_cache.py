"""Directory cache: point lookups, full-directory snapshot and named-list trees.

Entries go stale ``ttl`` after they were fetched (an entry exactly ``ttl`` old
is already stale). Staleness is evaluated lazily on read.

Two read policies are supported:

- ``EAGER``: when the last full refresh is older than ``ttl``, a read first
  runs a full refresh, then serves from the cache whatever the entry's age.
- ``POINT``: reads never trigger a full refresh; a stale entry is re-fetched
  on its own and served stale only if that re-fetch fails.

Once a full refresh has completed, the loaded set is authoritative for
membership: a key missing from it reads as ``None`` without a network call,
under both policies, until the cache is cleared.

Full refreshes, named-list fetches and point fetches for the same key are
single-flight: concurrent callers await the one in-flight ``asyncio.Task``.
A clear detaches in-flight fetches, so later callers start their own while
the old ones finish and drop their results. A refresh requested after a
clear waits for the detached one before going to the network.

Snapshot writes happen once per operation (a refresh, a lookup or a batch of
lookups, a clear) and run in a worker thread.

The cache is bound to the event loop that first uses it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Protocol, TypeVar

from hrdirectory.core.config import Settings
from hrdirectory.models.cache import CacheEntry, CacheSnapshot, CacheStats
from hrdirectory.models.credentials import DirectoryCredentials
from hrdirectory.models.employee import EnrichedEmployeeRecord, RawEmployeeRecord, normalize_identity
from hrdirectory.models.named_list import NamedList
from hrdirectory.services.directory_client import DirectoryClient
from hrdirectory.services.enrichment import DEPARTMENTS, SITES, WORK_TITLES, EnrichmentContext
from hrdirectory.services.named_list_resolver import find_named_list
from hrdirectory.services.snapshot_store import JsonSnapshotStore

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(hours=24)

T = TypeVar("T")


class RefreshPolicy(str, Enum):
    EAGER = "eager"
    POINT = "point"


class SnapshotStore(Protocol):
    def load(self) -> CacheSnapshot | None: ...

    def save(self, snapshot: CacheSnapshot) -> None: ...


class DirectorySource(Protocol):
    async def fetch_employee(self, credentials: DirectoryCredentials, identity: str) -> RawEmployeeRecord | None: ...

    async def fetch_all_employees(self, credentials: DirectoryCredentials) -> list[RawEmployeeRecord]: ...

    async def fetch_named_list(self, credentials: DirectoryCredentials, category: str) -> NamedList | None: ...

    async def fetch_named_lists(self, credentials: DirectoryCredentials) -> list[NamedList]: ...

    async def check_connection(self, credentials: DirectoryCredentials) -> bool: ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _NamedListEntry:
    named_list: NamedList
    fetched_at: datetime


class DirectoryCache:
    def __init__(
        self,
        client: DirectorySource,
        store: SnapshotStore | None = None,
        *,
        credentials: DirectoryCredentials | None = None,
        ttl: timedelta = DEFAULT_TTL,
        policy: RefreshPolicy = RefreshPolicy.EAGER,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.client = client
        self.store = store
        self.ttl = ttl
        self.policy = policy
        self._clock = clock
        self._credentials = credentials

        self._entries: dict[str, CacheEntry] = {}
        self._named_lists: dict[str, _NamedListEntry] = {}
        self._full_load_completed = False
        self._last_full_refresh = self._stale_marker()
        self._generation = 0
        self._dirty = False

        self._persist_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[bool] | None = None
        self._refresh_generation = 0
        self._point_tasks: dict[str, asyncio.Task[EnrichedEmployeeRecord | None]] = {}
        self._named_list_tasks: dict[str, asyncio.Task[NamedList | None]] = {}

    @classmethod
    def from_settings(cls, settings: Settings) -> DirectoryCache:
        return cls(
            DirectoryClient.from_settings(settings),
            JsonSnapshotStore(settings.CACHE_SNAPSHOT_PATH),
            credentials=settings.credentials(),
            ttl=timedelta(hours=settings.CACHE_TTL_HOURS),
            policy=RefreshPolicy(settings.CACHE_REFRESH_POLICY),
        )

    @property
    def credentials(self) -> DirectoryCredentials | None:
        return self._credentials

    @property
    def full_load_completed(self) -> bool:
        return self._full_load_completed

    @property
    def last_full_refresh(self) -> datetime:
        return self._last_full_refresh

    def __len__(self) -> int:
        return len(self._entries)

    # -- lifecycle ----------------------------------------------------------

    def load(self) -> None:
        """Hydrate from the persisted snapshot. Call before serving reads."""
        if self.store is None:
            return
        snapshot = self.store.load()
        if snapshot is None:
            return

        entries: dict[str, CacheEntry] = {}
        for key, entry in snapshot.entries.items():
            if key.strip():
                entries[key.strip().lower()] = entry
        self._entries = entries
        self._last_full_refresh = snapshot.last_full_refresh
        logger.info(
            "Loaded %d cached employees (last full refresh %s)",
            len(entries),
            self._last_full_refresh.isoformat(),
        )

    async def update_credentials(self, credentials: DirectoryCredentials | None) -> None:
        if credentials == self._credentials:
            return
        self._credentials = credentials
        logger.info("Directory credentials changed, clearing cache")
        await self.clear_cache()

    async def clear_cache(self) -> None:
        # Bumping the generation makes in-flight fetches drop their results.
        self._generation += 1
        self._point_tasks = {}
        self._named_list_tasks = {}
        self._entries = {}
        self._named_lists = {}
        self._full_load_completed = False
        self._last_full_refresh = self._stale_marker()
        self._dirty = True
        await self.flush()

    async def flush(self) -> None:
        """Write the snapshot if anything changed since the last write."""
        if self.store is None:
            return
        async with self._persist_lock:
            if not self._dirty:
                return
            snapshot = self.snapshot()
            self._dirty = False
            try:
                await asyncio.to_thread(self.store.save, snapshot)
            except OSError:
                self._dirty = True
                logger.exception("Failed to persist directory cache snapshot")

    async def close(self) -> None:
        await self.flush()

    def snapshot(self) -> CacheSnapshot:
        return CacheSnapshot(entries=dict(self._entries), last_full_refresh=self._last_full_refresh)

    def stats(self) -> CacheStats:
        return CacheStats(
            entries=len(self._entries),
            named_lists=sorted(self._named_lists),
            full_load_completed=self._full_load_completed,
            last_full_refresh=self._last_full_refresh,
            full_refresh_due=self.full_refresh_due(),
            policy=self.policy.value,
        )

    async def check_connection(self) -> bool:
        if self._credentials is None:
            return False
        return await self.client.check_connection(self._credentials)

    # -- freshness ----------------------------------------------------------

    def is_fresh(self, fetched_at: datetime) -> bool:
        return self._clock() - fetched_at < self.ttl

    def full_refresh_due(self) -> bool:
        return not self.is_fresh(self._last_full_refresh)

    def _stale_marker(self) -> datetime:
        return self._clock() - self.ttl - timedelta(days=1)

    # -- reads --------------------------------------------------------------

    async def get_employee(self, identity: str) -> EnrichedEmployeeRecord | None:
        record = await self._lookup(normalize_identity(identity))
        await self.flush()
        return record

    async def get_employees(self, identities: Iterable[str]) -> dict[str, EnrichedEmployeeRecord | None]:
        keys = list(dict.fromkeys(normalize_identity(identity) for identity in identities))
        records = await asyncio.gather(*(self._lookup(key) for key in keys))
        await self.flush()
        return dict(zip(keys, records))

    async def _lookup(self, key: str) -> EnrichedEmployeeRecord | None:
        if self.policy is RefreshPolicy.EAGER and self.full_refresh_due():
            await self.refresh_all()

        entry = self._entries.get(key)
        if entry is not None:
            if self.policy is RefreshPolicy.EAGER or self.is_fresh(entry.fetched_at):
                return entry.record.model_copy(deep=True)
            refreshed = await self._point_fetch(key)
            if refreshed is not None:
                return refreshed
            current = self._entries.get(key)
            return current.record.model_copy(deep=True) if current is not None else None

        if self._full_load_completed:
            logger.debug("%s not in loaded directory", key)
            return None

        return await self._point_fetch(key)

    def cached_employees(self) -> list[EnrichedEmployeeRecord]:
        return [self._entries[key].record.model_copy(deep=True) for key in sorted(self._entries)]

    async def get_named_list(self, category: str) -> NamedList | None:
        key = category.strip().lower()
        cached = self._named_lists.get(key)
        if cached is not None and self.is_fresh(cached.fetched_at):
            return cached.named_list

        generation = self._generation
        named_list = await self._single_flight(
            self._named_list_tasks, key, lambda: self._fetch_named_list(key, generation)
        )
        if named_list is not None:
            return named_list

        # Serve the previous tree if the re-fetch failed and nothing cleared it.
        current = self._named_lists.get(key)
        return current.named_list if current is not None else None

    # -- writes -------------------------------------------------------------

    async def refresh_all(self) -> bool:
        """Reload the whole directory. Concurrent callers share one refresh."""
        task = self._refresh_task
        if task is None or task.done() or self._refresh_generation != self._generation:
            previous = task if task is not None and not task.done() else None
            task = asyncio.create_task(self._run_full_refresh(self._generation, previous))
            self._refresh_task = task
            self._refresh_generation = self._generation
        return await asyncio.shield(task)

    async def _run_full_refresh(self, generation: int, previous: asyncio.Task[bool] | None = None) -> bool:
        if previous is not None:
            # A refresh detached by a clear is still talking to the directory.
            await asyncio.wait({previous})

        credentials = self._credentials
        if credentials is None:
            logger.warning("Directory credentials missing — skipping full refresh")
            return False

        try:
            logger.info("Refreshing full directory cache")
            raws = await self.client.fetch_all_employees(credentials)
            if not raws:
                logger.warning("Full directory refresh returned no employees; keeping %d cached", len(self._entries))
                return False

            await self._prime_named_lists(generation)
            context = await self._enrichment_context()
            if generation != self._generation:
                logger.info("Directory cache cleared during refresh — discarding %d employees", len(raws))
                return False

            now = self._clock()
            entries: dict[str, CacheEntry] = {}
            for raw in raws:
                entries[normalize_identity(raw.email)] = CacheEntry(record=context.build(raw), fetched_at=now)
        except Exception:
            logger.exception("Full directory refresh failed")
            return False

        self._entries = entries
        self._full_load_completed = True
        self._last_full_refresh = now
        self._dirty = True
        await self.flush()
        logger.info("Directory cache refreshed with %d employees", len(entries))
        return True

    async def _point_fetch(self, key: str) -> EnrichedEmployeeRecord | None:
        generation = self._generation
        record = await self._single_flight(self._point_tasks, key, lambda: self._fetch_and_store(key, generation))
        return record.model_copy(deep=True) if record is not None else None

    async def _fetch_and_store(self, key: str, generation: int) -> EnrichedEmployeeRecord | None:
        credentials = self._credentials
        if credentials is None:
            logger.warning("Directory credentials missing — cannot look up %s", key)
            return None

        raw = await self.client.fetch_employee(credentials, key)
        if raw is None:
            return None

        context = await self._enrichment_context()
        if generation != self._generation:
            logger.info("Directory cache cleared while fetching %s — discarding result", key)
            return None

        record = context.build(raw)
        self._entries[key] = CacheEntry(record=record, fetched_at=self._clock())
        self._dirty = True
        return record

    async def _fetch_named_list(self, key: str, generation: int) -> NamedList | None:
        credentials = self._credentials
        if credentials is None:
            return None

        named_list = await self.client.fetch_named_list(credentials, key)
        if named_list is None or generation != self._generation:
            return None

        self._named_lists[key] = _NamedListEntry(named_list=named_list, fetched_at=self._clock())
        logger.debug("Cached named list '%s' (%d top-level items)", key, len(named_list.items))
        return named_list

    async def _prime_named_lists(self, generation: int) -> None:
        """Fetch every named list in one request when the enrichment categories need reloading."""
        categories = (DEPARTMENTS, WORK_TITLES, SITES)
        if all(self._named_list_is_fresh(category) for category in categories):
            return
        credentials = self._credentials
        if credentials is None:
            return

        named_lists = await self.client.fetch_named_lists(credentials)
        if not named_lists or generation != self._generation:
            return

        now = self._clock()
        for category in categories:
            named_list = find_named_list(named_lists, category)
            if named_list is not None:
                self._named_lists[category] = _NamedListEntry(named_list=named_list, fetched_at=now)
        logger.debug("Primed named lists from %d lists", len(named_lists))

    def _named_list_is_fresh(self, key: str) -> bool:
        cached = self._named_lists.get(key)
        return cached is not None and self.is_fresh(cached.fetched_at)

    async def _enrichment_context(self) -> EnrichmentContext:
        departments, titles, sites = await asyncio.gather(
            self.get_named_list(DEPARTMENTS),
            self.get_named_list(WORK_TITLES),
            self.get_named_list(SITES),
        )
        return EnrichmentContext(departments=departments, titles=titles, sites=sites)

    @staticmethod
    async def _single_flight(
        tasks: dict[str, asyncio.Task[T]],
        key: str,
        factory: Callable[[], Awaitable[T]],
    ) -> T:
        task = tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            tasks[key] = task

            def _forget(done: asyncio.Task[T], key: str = key) -> None:
                if tasks.get(key) is done:
                    del tasks[key]

            task.add_done_callback(_forget)
        return await asyncio.shield(task)
