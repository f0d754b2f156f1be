"""Permission tree building, propagation and change batching"""

from dataroom_access.core.permissions.batcher import ChangeBatch, ChangeBatcher
from dataroom_access.core.permissions.builder import TreeBuilder
from dataroom_access.core.permissions.models import (
    DiffEntry,
    ItemType,
    PendingChange,
    PermissionDiff,
    PermissionOverride,
    PermissionState,
    RequestedFlags,
    SourceRecord,
)
from dataroom_access.core.permissions.propagation import EditResult, PropagationEngine
from dataroom_access.core.permissions.tree import Item, PermissionTree

__all__ = [
    "ChangeBatch",
    "ChangeBatcher",
    "DiffEntry",
    "EditResult",
    "Item",
    "ItemType",
    "PendingChange",
    "PermissionDiff",
    "PermissionOverride",
    "PermissionState",
    "PermissionTree",
    "PropagationEngine",
    "RequestedFlags",
    "SourceRecord",
    "TreeBuilder",
]
