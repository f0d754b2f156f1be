"""Debounced accumulation of permission changes"""

from threading import Lock
from types import MappingProxyType
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from dataroom_access.core.permissions.models import PendingChange, PermissionDiff
from dataroom_access.infrastructure.clock import Clock, MonotonicClock
from dataroom_access.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ChangeBatch(BaseModel):
    """Immutable set of changes handed to the persistence endpoint"""

    model_config = ConfigDict(frozen=True)

    changes: Mapping[str, PendingChange] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def to_payload(self, dataroom_id: str, group_id: str) -> Dict[str, object]:
        """Request body accepted by the group permissions endpoint"""
        return {
            "dataroomId": dataroom_id,
            "groupId": group_id,
            "permissions": {
                item_id: change.to_payload() for item_id, change in self.changes.items()
            },
        }


class ChangeBatcher:
    """Merges edit diffs per item id and decides when to flush them.

    Every merge resets the quiescence timer. ``flush`` swaps the pending map
    for a fresh one under the lock, so merges that race with a flush land in
    either the returned batch or the next one.
    """

    def __init__(
        self,
        quiescence_seconds: float = 2.0,
        clock: Optional[Clock] = None,
    ):
        if quiescence_seconds <= 0:
            raise ValueError("quiescence_seconds must be greater than zero")
        self.quiescence_seconds = quiescence_seconds
        self.clock = clock or MonotonicClock()
        self._pending: Dict[str, PendingChange] = {}
        self._last_merge: Optional[float] = None
        self._lock = Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def pending(self) -> Mapping[str, PendingChange]:
        """Read-only snapshot of the pending map"""
        with self._lock:
            return MappingProxyType(dict(self._pending))

    def merge(self, diff: PermissionDiff) -> int:
        """Queue the persisted part of ``diff``; last write per item wins.

        Entries whose view/download did not change are skipped. Returns the
        number of entries queued.
        """
        accepted = 0
        with self._lock:
            for entry in diff:
                if not entry.persisted_changed:
                    continue
                self._pending[entry.item_id] = PendingChange(
                    item_id=entry.item_id,
                    view=entry.view,
                    download=entry.download,
                    item_type=entry.item_type,
                )
                accepted += 1
            self._last_merge = self.clock.now()
            pending_count = len(self._pending)

        logger.debug("changes_merged", accepted=accepted, pending=pending_count)
        return accepted

    def reset_timer(self) -> None:
        with self._lock:
            self._last_merge = self.clock.now()

    def seconds_until_flush(self) -> Optional[float]:
        """Remaining quiescence time, or None when nothing is pending"""
        with self._lock:
            if not self._pending or self._last_merge is None:
                return None
            elapsed = self.clock.now() - self._last_merge
        return max(0.0, self.quiescence_seconds - elapsed)

    def should_flush(self) -> bool:
        remaining = self.seconds_until_flush()
        return remaining is not None and remaining <= 0.0

    def flush(self) -> ChangeBatch:
        """Take every pending change and start a new pending map"""
        with self._lock:
            drained, self._pending = self._pending, {}
            self._last_merge = None

        batch = ChangeBatch(changes=drained)
        if drained:
            logger.info("changes_drained", items=len(batch))
        return batch

    def clear(self) -> int:
        """Drop every pending change. Returns how many were dropped."""
        with self._lock:
            dropped = len(self._pending)
            self._pending = {}
            self._last_merge = None
        return dropped
