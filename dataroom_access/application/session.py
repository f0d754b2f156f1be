"""Editing session for one (dataroom, group) pair.

The session owns the current tree value, serializes edits, feeds their diffs
into the change batcher and hands quiescent batches to the persistence
gateway.
"""

import threading
from typing import Any, ContextManager, Dict, Iterable, List, Mapping, Optional

from dataroom_access.application.notifications import (
    FAILURE_DESCRIPTION,
    FAILURE_TITLE,
    SUCCESS_DESCRIPTION,
    SUCCESS_TITLE,
    LogNotifier,
    Notifier,
)
from dataroom_access.core.config import Settings, get_settings
from dataroom_access.core.exceptions import PersistenceFailedError
from dataroom_access.core.permissions.batcher import ChangeBatch, ChangeBatcher
from dataroom_access.core.permissions.builder import (
    OverrideInput,
    RecordInput,
    TreeBuilder,
)
from dataroom_access.core.permissions.models import (
    PendingChange,
    PermissionDiff,
    RequestedFlags,
)
from dataroom_access.core.permissions.propagation import PropagationEngine
from dataroom_access.core.permissions.tree import PermissionTree
from dataroom_access.infrastructure.clock import Clock
from dataroom_access.infrastructure.logging import bound_context, get_logger
from dataroom_access.infrastructure.persistence import PersistenceGateway

logger = get_logger(__name__)


class PermissionEditingSession:
    """Single-writer editing session for a viewer group's permissions"""

    def __init__(
        self,
        dataroom_id: str,
        group_id: str,
        gateway: PersistenceGateway,
        notifier: Optional[Notifier] = None,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
        builder: Optional[TreeBuilder] = None,
        engine: Optional[PropagationEngine] = None,
    ):
        self.settings = settings or get_settings()
        self.dataroom_id = dataroom_id
        self.group_id = group_id
        self.gateway = gateway
        self.notifier = notifier or LogNotifier()
        self.builder = builder or TreeBuilder()
        self.engine = engine or PropagationEngine()
        self.batcher = ChangeBatcher(
            quiescence_seconds=self.settings.quiescence_seconds,
            clock=clock,
        )

        self._tree = PermissionTree({}, (), {})
        self._edit_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._stop_flusher = threading.Event()
        self._flusher: Optional[threading.Thread] = None
        self._closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def tree(self) -> PermissionTree:
        return self._tree

    @property
    def pending(self) -> Mapping[str, PendingChange]:
        return self.batcher.pending

    @property
    def pending_count(self) -> int:
        return len(self.batcher)

    def load(
        self,
        records: Iterable[RecordInput],
        overrides: Iterable[OverrideInput] = (),
    ) -> PermissionTree:
        """Rebuild the tree from scratch from source records and overrides"""
        tree = self.builder.build(records, overrides)
        with self._edit_lock:
            self._tree = tree
        return tree

    def log_context(self) -> ContextManager[None]:
        """Tag log events emitted inside the block with this session's ids"""
        return bound_context(dataroom_id=self.dataroom_id, group_id=self.group_id)

    def apply(self, item_id: str, flags: RequestedFlags) -> PermissionDiff:
        """Apply one edit and queue its changes.

        Raises:
            ItemNotFoundError: if ``item_id`` is not in the current tree.
        """
        self._check_open()
        with self._edit_lock, self.log_context():
            result = self.engine.apply_edit(self._tree, item_id, flags)
            self._tree = result.tree
            if not result.diff.is_empty:
                self.batcher.merge(result.diff)
        return result.diff

    def update_permissions(self, item_id: str, toggles: Iterable[str]) -> PermissionDiff:
        """Apply the combined state of an item's view/download toggles"""
        return self.apply(item_id, RequestedFlags.from_toggles(toggles))

    def poll(self) -> Optional[ChangeBatch]:
        """Flush when the quiescence window has passed"""
        if not self.batcher.should_flush():
            return None
        return self.flush()

    def flush(self) -> ChangeBatch:
        """Send every pending change to the gateway now.

        A failed batch is reported through the notifier and not re-queued.
        Errors other than ``PersistenceFailedError`` raised by the gateway
        are wrapped in one.

        Raises:
            PersistenceFailedError: if the gateway did not store the batch.
        """
        with self._flush_lock, self.log_context():
            batch = self.batcher.flush()
            if batch.is_empty:
                return batch

            try:
                self.gateway.save(self.dataroom_id, self.group_id, batch)
            except PersistenceFailedError as e:
                self._report_failure(batch, e)
                raise
            except Exception as e:
                error = PersistenceFailedError(
                    str(e) or type(e).__name__, item_count=len(batch)
                )
                self._report_failure(batch, error)
                raise error from e

            logger.info("batch_flushed", items=len(batch))
            self.notifier.success(SUCCESS_TITLE, SUCCESS_DESCRIPTION)
            return batch

    def _report_failure(self, batch: ChangeBatch, error: PersistenceFailedError) -> None:
        logger.error(
            "batch_flush_failed",
            items=len(batch),
            reason=error.reason,
            status_code=error.status_code,
        )
        self.notifier.failure(FAILURE_TITLE, FAILURE_DESCRIPTION)

    def start_auto_flush(self, interval: Optional[float] = None) -> None:
        """Poll for quiescent batches on a background thread"""
        self._check_open()
        if self._flusher is not None and self._flusher.is_alive():
            return
        interval = interval or self.settings.flush_poll_interval_seconds
        self._stop_flusher.clear()
        self._flusher = threading.Thread(
            target=self._run_flusher,
            args=(interval,),
            name=f"permission-flusher-{self.group_id}",
            daemon=True,
        )
        self._flusher.start()

    def stop_auto_flush(self, timeout: Optional[float] = None) -> None:
        self._stop_flusher.set()
        if self._flusher is not None:
            self._flusher.join(timeout)
            self._flusher = None

    def _run_flusher(self, interval: float) -> None:
        while not self._stop_flusher.wait(interval):
            try:
                self.poll()
            except PersistenceFailedError:
                # Already logged and surfaced through the notifier
                continue
            except Exception:
                with self.log_context():
                    logger.exception("auto_flush_failed")

    def close(self) -> Optional[ChangeBatch]:
        """End the session, applying the teardown policy to pending changes.

        Returns the flushed batch when pending changes were flushed.
        """
        if self._closed:
            return None
        self.stop_auto_flush()
        self._closed = True

        if not len(self.batcher):
            return None

        if not self.settings.flush_on_teardown:
            dropped = self.batcher.clear()
            with self.log_context():
                logger.warning("pending_changes_dropped", items=dropped)
            return None

        try:
            return self.flush()
        except PersistenceFailedError:
            return None

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Editing session is closed")

    def snapshot(self) -> List[Dict[str, Any]]:
        """Nested view of the current tree"""
        return self._tree.to_list()
