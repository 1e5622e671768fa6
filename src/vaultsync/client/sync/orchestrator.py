"""Sync orchestration with batching and debouncing.

This module provides:
- SyncOrchestrator: Single authority for all outbound sync activity

Architecture:
    Vault events are filtered by path (and any tags the event carries) and
    collected in a PendingQueue. Every queue mutation triggers a Debouncer
    which eventually drains the queue:

        VaultEvent -> ExclusionFilter -> PendingQueue -> Debouncer -> drain()

    A drain re-reads each changed note, applies the full exclusion check
    with the parsed tags, skips notes whose fingerprint is unchanged and
    uploads the rest in batches. Full sync re-scans the whole vault and also
    deletes anything the tracker remembers that no longer qualifies.

    At most one run is in flight. Automatic triggers arriving during a run
    stay queued and are drained once it finishes; manual full syncs are
    rejected with SyncInProgressError.

Failure semantics:
    A network or persistence error aborts the rest of the run and is
    reported as an error status. Any other exception is reported the same
    way and then re-raised. Drained paths are not re-queued; the next
    change or full sync picks them up again through fingerprint comparison.
    Per-note errors in a batch response leave that note untracked.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from vaultsync.client.api import APIError, ExclusionsUpdateResult
from vaultsync.client.sync.debounce import DEFAULT_DELAY, Debouncer
from vaultsync.client.sync.queue import PendingQueue
from vaultsync.client.sync.status import StatusBroadcaster
from vaultsync.client.sync.types import (
    ItemError,
    NoteNotFoundError,
    StatusCallback,
    SyncError,
    SyncInProgressError,
    SyncRunResult,
    VaultEvent,
    VaultEventKind,
    is_note_path,
)
from vaultsync.core.types import (
    ExclusionRules,
    NoteMetadata,
    SyncDiff,
    SyncPhase,
    SyncStatus,
)

if TYPE_CHECKING:
    from vaultsync.client.api import RemoteClient
    from vaultsync.client.sync.exclusions import ExclusionFilter
    from vaultsync.client.sync.scanner import VaultScanner
    from vaultsync.client.sync.tracker import ChangeTracker

logger = logging.getLogger(__name__)

# Server accepts 100 notes per batch; smaller batches bound retry cost
BATCH_SIZE = 50


def generate_batch_id() -> str:
    """Unique batch id: epoch milliseconds plus a random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


class SyncOrchestrator:
    """Coordinates incremental and full sync runs."""

    def __init__(
        self,
        client: RemoteClient,
        scanner: VaultScanner,
        tracker: ChangeTracker,
        exclusions: ExclusionFilter,
        vault_name: str | None = None,
        batch_size: int = BATCH_SIZE,
        debounce_delay: float = DEFAULT_DELAY,
        status_callbacks: list[StatusCallback] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: API client used for uploads and deletions.
            scanner: Source of note paths and contents.
            tracker: Owner of the last acknowledged server state.
            exclusions: Filter applied before anything leaves the client.
            vault_name: Vault name sent with each batch.
            batch_size: Maximum notes per upload request.
            debounce_delay: Quiet period before a queued change is drained.
            status_callbacks: Initial status observers.
        """
        if not 1 <= batch_size <= 100:
            raise ValueError("batch_size must be between 1 and 100")
        self._client = client
        self._scanner = scanner
        self._tracker = tracker
        self._filter = exclusions
        self._vault_name = vault_name
        self._batch_size = batch_size

        self._queue = PendingQueue()
        self._debouncer = Debouncer(self.drain, delay=debounce_delay)
        self._status = StatusBroadcaster(status_callbacks)
        self._syncing = False

    # === State ===

    @property
    def is_syncing(self) -> bool:
        """Check if a sync run is in progress."""
        return self._syncing

    @property
    def queue(self) -> PendingQueue:
        return self._queue

    @property
    def debouncer(self) -> Debouncer:
        return self._debouncer

    @property
    def status(self) -> SyncStatus:
        """Latest emitted status."""
        return self._status.latest

    def add_status_observer(self, callback: StatusCallback) -> None:
        self._status.add_observer(callback)

    def update_exclusions(self, rules: ExclusionRules) -> None:
        """Replace the active rules for subsequent checks."""
        self._filter.update_rules(rules)

    # === Event intake ===

    def handle_event(self, event: VaultEvent) -> None:
        """React to a change notification from the vault."""
        logger.debug("Vault event: %s %s", event.kind.value, event.path)
        if event.kind in (VaultEventKind.CREATED, VaultEventKind.MODIFIED):
            self.queue_change(event.path, event.tags)
        elif event.kind == VaultEventKind.DELETED:
            self.queue_delete(event.path)
        elif event.kind == VaultEventKind.RENAMED and event.old_path is not None:
            self.queue_rename(event.old_path, event.path, event.tags)

    def queue_change(self, path: str, tags: Iterable[str] = ()) -> bool:
        """Queue a created or modified note.

        Returns:
            True if the path was queued, False if ignored or excluded.
        """
        if not is_note_path(path):
            return False
        if self._filter.should_exclude(path, tags):
            logger.debug("Skipping excluded file: %s", path)
            return False
        self._queue.add_change(path)
        self._debouncer.trigger()
        return True

    def queue_delete(self, path: str) -> bool:
        if not is_note_path(path):
            return False
        self._queue.add_delete(path)
        self._debouncer.trigger()
        return True

    def queue_rename(self, old_path: str, new_path: str, tags: Iterable[str] = ()) -> None:
        """Queue a rename as delete(old) plus change(new) if new is eligible."""
        old_is_note = is_note_path(old_path)
        new_is_note = is_note_path(new_path)
        if not old_is_note:
            if new_is_note:
                self.queue_change(new_path, tags)
            return

        include_new = new_is_note and not self._filter.should_exclude(new_path, tags)
        if new_is_note and not include_new:
            logger.debug("Renamed note moved into exclusions: %s", new_path)
        self._queue.add_rename(old_path, new_path, include_new)
        self._debouncer.trigger()

    # === Sync runs ===

    async def drain(self) -> SyncRunResult | None:
        """Sync the queued changes.

        Returns:
            The run result, or None if nothing was pending or a run is
            already in progress (the queue is then kept for later).
        """
        if self._syncing:
            logger.debug("Sync already in progress, keeping queue for later")
            return None

        drained = self._queue.drain()
        if not drained:
            return None

        self._syncing = True
        result = SyncRunResult(full=False, diff=SyncDiff(drained.changed, drained.deleted))
        logger.info(
            f"Syncing changes: {len(drained.changed)} changed, "
            f"{len(drained.deleted)} deleted"
        )
        self._emit(SyncPhase.SYNCING, pending=len(drained), synced=0)

        try:
            notes: list[NoteMetadata] = []
            for path in drained.changed:
                note = await self._read(path, result)
                if note is None:
                    continue
                if self._filter.should_exclude_note(note):
                    logger.debug("Skipping excluded note: %s", path)
                    result.skipped.append(path)
                elif not self._tracker.has_changed(path, note.content_hash):
                    logger.debug("Unchanged since last sync: %s", path)
                    result.skipped.append(path)
                else:
                    notes.append(note)

            await self._upload_batched(notes, result)
            await self._delete(drained.deleted, result)
            self._tracker.mark_synced_now()
        except (APIError, SyncError) as e:
            self._fail(result, e, "Sync changes failed")
        except Exception as e:
            self._fail(result, e, "Sync changes failed")
            raise
        else:
            self._emit(SyncPhase.IDLE, message=self._summary(result))
        finally:
            self._finish()

        return result

    async def flush(self) -> SyncRunResult | None:
        """Drain the queue now instead of waiting for the debounce window."""
        self._debouncer.cancel()
        return await self.drain()

    async def full_sync(self) -> SyncRunResult:
        """Reconcile the whole vault with the server.

        Raises:
            SyncInProgressError: If another run is in flight.
        """
        if self._syncing:
            raise SyncInProgressError()

        self._syncing = True
        result = SyncRunResult(full=True)
        logger.info("Starting full sync")
        self._emit(SyncPhase.SYNCING, pending=0, synced=0)

        try:
            all_paths = self._scanner.list_paths()
            candidates = self._filter.filter_paths(all_paths)
            logger.debug(
                f"Found {len(all_paths)} notes, {len(candidates)} after folder exclusions"
            )
            eligible = set(candidates)
            result.skipped.extend(p for p in all_paths if p not in eligible)

            notes: list[NoteMetadata] = []
            unreadable: set[str] = set()
            for path in candidates:
                note = await self._read(path, result)
                if note is None:
                    unreadable.add(path)
                elif self._filter.should_exclude_note(note):
                    result.skipped.append(path)
                else:
                    notes.append(note)
            logger.debug(f"{len(notes)} notes after tag exclusions")

            diff = self._tracker.compute_diff({n.path: n.content_hash for n in notes})
            # A read failure is not proof of deletion
            deleted = [p for p in diff.deleted if p not in unreadable]
            result.diff = SyncDiff(changed=diff.changed, deleted=deleted)

            changed = set(diff.changed)
            await self._upload_batched([n for n in notes if n.path in changed], result)
            await self._delete(deleted, result)
            self._tracker.mark_synced_now()
        except (APIError, SyncError) as e:
            self._fail(result, e, "Full sync failed")
        except Exception as e:
            self._fail(result, e, "Full sync failed")
            raise
        else:
            logger.info(
                f"Full sync complete: {len(result.uploaded)} uploaded, "
                f"{len(result.deleted)} deleted, {len(result.errors)} errors"
            )
            self._emit(SyncPhase.IDLE, message=self._summary(result))
        finally:
            self._finish()

        return result

    async def force_resync(self) -> SyncRunResult:
        """Forget all tracked state and run a full sync.

        Raises:
            SyncInProgressError: If another run is in flight.
        """
        if self._syncing:
            raise SyncInProgressError()
        self._tracker.reset()
        return await self.full_sync()

    async def _read(self, path: str, result: SyncRunResult) -> NoteMetadata | None:
        try:
            return await self._scanner.read_note(path)
        except NoteNotFoundError:
            logger.debug("Note vanished before sync: %s", path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {path}: {e}")
            result.errors.append(ItemError(path=path, error=str(e)))
        return None

    async def _upload_batched(self, notes: list[NoteMetadata], result: SyncRunResult) -> None:
        """Upload notes in sequential batches, updating the tracker per batch."""
        total = len(notes)
        if not total:
            return
        total_batches = (total + self._batch_size - 1) // self._batch_size
        synced = 0

        for start in range(0, total, self._batch_size):
            batch = notes[start:start + self._batch_size]
            batch_num = start // self._batch_size + 1
            is_last = start + self._batch_size >= total
            logger.debug(f"Syncing batch {batch_num}/{total_batches}, {len(batch)} notes")

            response = await self._client.sync_notes(
                batch_id=generate_batch_id(),
                notes=[note.to_payload() for note in batch],
                is_final_batch=is_last,
                vault_name=self._vault_name,
            )
            result.batches += 1

            failed = response.failed_paths
            for error in response.errors:
                logger.error(f"Error syncing {error.path}: {error.error}")
                result.errors.append(ItemError(path=error.path, error=error.error))

            acknowledged = {n.path: n.content_hash for n in batch if n.path not in failed}
            self._tracker.record_hashes(acknowledged)
            result.uploaded.extend(acknowledged)

            synced += len(batch)
            self._emit(SyncPhase.SYNCING, pending=total, synced=synced)

    async def _delete(self, paths: list[str], result: SyncRunResult) -> None:
        if not paths:
            return
        logger.debug(f"Deleting {len(paths)} notes from server")
        await self._client.delete_notes(paths)
        self._tracker.remove_hashes(paths)
        result.deleted.extend(paths)

    # === Exclusions ===

    async def refresh_exclusions(self) -> ExclusionRules:
        """Fetch exclusion rules from the server and apply them."""
        rules = await self._client.get_exclusions()
        self._filter.update_rules(rules)
        self._tracker.set_exclusions(rules)
        return rules

    async def push_exclusions(self, rules: ExclusionRules) -> ExclusionsUpdateResult:
        """Replace the server's exclusion rules.

        Notes the server removed as a consequence are dropped from the tracker.
        """
        response = await self._client.update_exclusions(rules)
        self._filter.update_rules(rules)
        self._tracker.set_exclusions(rules)
        if response.deleted_paths:
            self._tracker.remove_hashes(response.deleted_paths)
        logger.info(
            f"Exclusions updated, server removed {response.deleted_count} notes"
        )
        return response

    # === Startup ===

    async def startup_check(self) -> SyncDiff:
        """Queue changes made while the client was not running.

        Does nothing before the first successful sync; a full sync is
        required to establish tracked state.
        """
        try:
            await self.refresh_exclusions()
        except APIError as e:
            logger.warning(f"Could not refresh exclusions, using cached rules: {e}")
            self._filter.update_rules(self._tracker.exclusions)

        if self._tracker.last_sync_time is None:
            logger.info("No previous sync found, skipping startup check")
            return SyncDiff()

        hashes: dict[str, str] = {}
        candidates = self._filter.filter_paths(self._scanner.list_paths())
        for path in candidates:
            try:
                hashes[path] = await self._scanner.fingerprint(path)
            except NoteNotFoundError:
                continue

        diff = self._tracker.compute_diff(hashes)
        logger.info(f"Startup: {len(diff.changed)} changed, {len(diff.deleted)} deleted")

        for path in diff.changed:
            self._queue.add_change(path)
        for path in diff.deleted:
            self._queue.add_delete(path)
        if not diff.is_empty:
            self._debouncer.trigger()
        return diff

    async def aclose(self) -> None:
        """Cancel any pending drain and wait for a running one."""
        self._debouncer.cancel()
        await self._debouncer.wait_idle()

    # === Helpers ===

    def _emit(
        self,
        state: SyncPhase,
        pending: int | None = None,
        synced: int | None = None,
        message: str | None = None,
    ) -> None:
        self._status.emit(
            SyncStatus(state=state, pending_count=pending, synced_count=synced, message=message)
        )

    def _fail(self, result: SyncRunResult, error: Exception, context: str) -> None:
        result.failed = str(error)
        logger.error(f"{context}: {error}")
        self._emit(SyncPhase.ERROR, message=str(error))

    def _finish(self) -> None:
        self._syncing = False
        # Changes queued during the run are drained on the next window
        if self._queue:
            self._debouncer.trigger()

    @staticmethod
    def _summary(result: SyncRunResult) -> str:
        message = f"{len(result.uploaded)} uploaded, {len(result.deleted)} deleted"
        if result.errors:
            message += f", {len(result.errors)} errors"
        return message
