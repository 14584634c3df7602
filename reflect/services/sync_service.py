"""
reflect.services.sync_service — Optimistic Sync Coordinator
=============================================================

Reconciles locally proposed snapshots with the remote store.

Flow per commit::

    commit(previous, proposed)
      ├─ cache.set(proposed)                    (synchronous, optimistic)
      └─ queue.put(batch)                       → PENDING
              │
        single worker (FIFO, one write in flight)
              ├─ store.write_profile            (always)
              ├─ store.upsert_entries           (changed dates only)
              ├─ store.write_slices             (changed slices only)
              ├─ ok   → COMMITTED, optional refetch
              └─ fail → ROLLED_BACK, cache.restore(previous) + one warning

A rollback is version-guarded: if a newer snapshot was proposed after the
failed one, the cache is left alone and the failed batch's dirty dates and
slices are folded into the next write instead. The failed batch's own
previous state is remembered so that a later failure still rolls back to
the last state the store accepted.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass

from reflect.database.engine import run_db
from reflect.engine.cache import SnapshotCache
from reflect.engine.events import Notification, NotificationKind, Notifier, emit
from reflect.engine.snapshot import Entry, Snapshot
from reflect.services.store import RemoteStore

logger = logging.getLogger(__name__)

SYNC_ERROR_TITLE = "Error al guardar cambios"
RECENT_BATCHES = 100


class SyncState(enum.StrEnum):
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True)
class SyncBatch:
    """One queued commit and its outcome."""

    seq: int
    version: int
    previous: Snapshot
    proposed: Snapshot
    entries: dict[str, Entry]
    slices: tuple[str, ...]
    state: SyncState = SyncState.PENDING
    error: str | None = None


# ---------------------------------------------------------------------------
# Diffing
# ---------------------------------------------------------------------------
def diff_entries(
    previous: Mapping[str, Entry], proposed: Mapping[str, Entry]
) -> dict[str, Entry]:
    """Entries of *proposed* that are new or structurally different.

    Deletions are not reported; entries are never removed remotely.
    """
    return {key: entry for key, entry in proposed.items() if previous.get(key) != entry}


def diff_slices(previous: Snapshot, proposed: Snapshot) -> tuple[str, ...]:
    """Names of the non-profile, non-entry slices that changed."""
    changed: list[str] = []
    if previous.quests != proposed.quests:
        changed.append("quests")
    if previous.achievements != proposed.achievements:
        changed.append("achievements")
    if previous.notes != proposed.notes:
        changed.append("notes")
    if (
        previous.config != proposed.config
        or previous.bosses != proposed.bosses
        or previous.events != proposed.events
    ):
        changed.append("document")
    return tuple(changed)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------
class SyncCoordinator:
    """Single writer between the snapshot cache and a :class:`RemoteStore`.

    Must be driven from a running event loop; store calls are shipped to
    a worker thread with :func:`run_db`.
    """

    def __init__(
        self,
        store: RemoteStore,
        cache: SnapshotCache,
        user_id: str,
        *,
        notifier: Notifier | None = None,
        refetch_after_commit: bool = True,
    ) -> None:
        self.store = store
        self.cache = cache
        self.user_id = user_id
        self.notifier = notifier
        self.refetch_after_commit = refetch_after_commit

        self._seq = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue[SyncBatch] | None = None
        self._worker: asyncio.Task | None = None
        # Dirty state of failed batches whose rollback was superseded
        self._carry_entries: set[str] = set()
        self._carry_slices: set[str] = set()
        # Last state known to match the store while superseded failures are pending
        self._rollback_base: Snapshot | None = None
        self.recent: deque[SyncBatch] = deque(maxlen=RECENT_BATCHES)

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def refresh(self) -> Snapshot:
        """Read the remote snapshot and make it the cached one."""
        snapshot = await run_db(self.store.read, self.user_id)
        self.cache.set(snapshot)
        return snapshot

    def commit(self, previous: Snapshot, proposed: Snapshot) -> SyncBatch:
        """Publish *proposed* immediately and queue its remote write."""
        version = self.cache.set(proposed)
        self._seq += 1
        batch = SyncBatch(
            seq=self._seq,
            version=version,
            previous=previous,
            proposed=proposed,
            entries=diff_entries(previous.entries, proposed.entries),
            slices=diff_slices(previous, proposed),
        )
        self.recent.append(batch)
        self._ensure_worker()
        self._queue.put_nowait(batch)
        logger.debug(
            "Queued sync #%d (v%d): %d entries, slices=%s",
            batch.seq, version, len(batch.entries), batch.slices,
        )
        return batch

    async def flush(self) -> None:
        """Wait until every queued batch has been written or rolled back."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        """Drain the queue and stop the worker."""
        await self.flush()
        worker, self._worker = self._worker, None
        if worker is None:
            return
        worker.cancel()
        if self._loop is asyncio.get_running_loop():
            with contextlib.suppress(asyncio.CancelledError):
                await worker

    @property
    def pending(self) -> int:
        return sum(1 for b in self.recent if b.state is SyncState.PENDING)

    # -------------------------------------------------------------------
    # Worker
    # -------------------------------------------------------------------
    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._worker is None or self._worker.done() or self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = loop.create_task(self._drain(self._queue), name="reflect-sync")

    async def _drain(self, queue: asyncio.Queue[SyncBatch]) -> None:
        while True:
            batch = await queue.get()
            try:
                await self._write(batch)
            except Exception:
                logger.exception("Sync worker error on batch #%d", batch.seq)
            finally:
                queue.task_done()

    async def _write(self, batch: SyncBatch) -> None:
        entries = dict(batch.entries)
        for key in self._carry_entries:
            if key in batch.proposed.entries:
                entries.setdefault(key, batch.proposed.entries[key])
        slices = tuple(dict.fromkeys(batch.slices + tuple(sorted(self._carry_slices))))

        try:
            await run_db(self.store.write_profile, self.user_id, batch.proposed.user)
            if entries:
                await run_db(self.store.upsert_entries, self.user_id, entries)
            if slices:
                await run_db(self.store.write_slices, self.user_id, batch.proposed, slices)
        except Exception as exc:
            self._roll_back(batch, exc)
            return

        self._carry_entries.clear()
        self._carry_slices.clear()
        self._rollback_base = None
        batch.state = SyncState.COMMITTED
        logger.info("Sync #%d committed (%d entries)", batch.seq, len(entries))

        if self.refetch_after_commit:
            try:
                fresh = await run_db(self.store.read, self.user_id)
            except Exception:
                logger.exception("Refetch after sync #%d failed", batch.seq)
                return
            self.cache.restore(fresh, expected_version=batch.version)

    def _roll_back(self, batch: SyncBatch, exc: Exception) -> None:
        batch.state = SyncState.ROLLED_BACK
        batch.error = str(exc)
        logger.exception("Sync #%d failed; rolling back", batch.seq, exc_info=exc)

        base = self._rollback_base if self._rollback_base is not None else batch.previous
        if self.cache.restore(base, expected_version=batch.version):
            self._rollback_base = None
            self._carry_entries.clear()
            self._carry_slices.clear()
        else:
            # A newer proposal already builds on this one; write it next time
            self._rollback_base = base
            self._carry_entries.update(batch.entries)
            self._carry_slices.update(batch.slices)

        emit(self.notifier, Notification(
            NotificationKind.SYNC_ERROR,
            SYNC_ERROR_TITLE,
            description=batch.error,
            metadata={"seq": batch.seq},
        ))
