"""Permission propagation engine.

An edit runs in two phases over a mutable copy of the tree's state arena:

* the downward phase sets the target and overwrites every descendant with the
  target's new view value;
* the upward phase re-aggregates every ancestor, nearest first, from its
  already-updated children.

Only nodes touched by either phase are compared against the pre-edit tree, so
the resulting diff contains exactly the nodes whose state changed.
"""

from dataclasses import dataclass
from typing import Dict, List, MutableMapping

from dataroom_access.core.exceptions import ItemNotFoundError
from dataroom_access.core.permissions.models import (
    DiffEntry,
    PermissionDiff,
    PermissionState,
    RequestedFlags,
)
from dataroom_access.core.permissions.tree import PermissionTree
from dataroom_access.infrastructure.logging import get_logger

logger = get_logger(__name__)

StateArena = MutableMapping[str, PermissionState]


def normalize(previous: PermissionState, requested: RequestedFlags) -> RequestedFlags:
    """Apply the view/download coupling rules to a toggle request.

    Revoking view revokes a previously granted download; asking for download
    without view grants view.
    """
    if not requested.view and previous.download:
        return RequestedFlags(view=False, download=False)
    if requested.download and not requested.view:
        return RequestedFlags(view=True, download=True)
    return requested


def propagate_down(
    tree: PermissionTree,
    states: StateArena,
    target_id: str,
    flags: RequestedFlags,
) -> List[str]:
    """Set the target and overwrite its subtree. Returns touched ids."""
    states[target_id] = PermissionState(view=flags.view, download=flags.download)
    touched = [target_id]

    if not tree.item(target_id).is_folder:
        return touched

    for descendant_id in tree.descendants(target_id):
        previous = states[descendant_id]
        # A descendant keeps its own download grant only while it stays viewable
        states[descendant_id] = PermissionState(
            view=flags.view,
            partial_view=False,
            download=previous.download and flags.view,
        )
        touched.append(descendant_id)
    return touched


def propagate_up(
    tree: PermissionTree,
    states: StateArena,
    target_id: str,
) -> List[str]:
    """Re-aggregate the ancestor chain from children. Returns touched ids.

    An ancestor's view is derived from its children only; an explicit folder
    grant from the override list is not re-asserted here.
    """
    touched = []
    for ancestor_id in tree.ancestors(target_id):
        child_views = [states[child_id].view for child_id in tree.children(ancestor_id)]
        some_viewable = any(child_views)
        states[ancestor_id] = PermissionState(
            view=some_viewable,
            partial_view=some_viewable and not all(child_views),
            download=states[ancestor_id].download and some_viewable,
        )
        touched.append(ancestor_id)
    return touched


def collect_diff(
    before: PermissionTree,
    states: Dict[str, PermissionState],
    touched: List[str],
) -> PermissionDiff:
    entries = {}
    for item_id in touched:
        previous = before.state(item_id)
        current = states[item_id]
        if previous != current:
            entries[item_id] = DiffEntry(
                item_id=item_id,
                item_type=before.item(item_id).item_type,
                before=previous,
                after=current,
            )
    return PermissionDiff(entries=entries)


@dataclass(frozen=True)
class EditResult:
    """Outcome of one edit: the next tree value and what changed"""

    tree: PermissionTree
    diff: PermissionDiff


class PropagationEngine:
    """Applies single-item edits to a permission tree"""

    def __init__(self, verify: bool = True):
        self.verify = verify

    def apply_edit(
        self,
        tree: PermissionTree,
        target_id: str,
        requested: RequestedFlags,
    ) -> EditResult:
        """Apply ``requested`` to ``target_id`` and propagate it.

        Raises:
            ItemNotFoundError: if the target is not part of ``tree``. The
                tree is left unchanged.
            pydantic.ValidationError: if propagation builds a state with
                download but not view (checked by ``PermissionState``).
            InvariantViolationError: if the resulting tree breaks the
                per-node invariants.
        """
        if target_id not in tree:
            logger.warning("edit_target_not_found", item_id=target_id)
            raise ItemNotFoundError(target_id)

        flags = normalize(tree.state(target_id), requested)
        states = tree.states()

        touched = propagate_down(tree, states, target_id, flags)
        touched.extend(propagate_up(tree, states, target_id))

        new_tree = tree.with_states(states)
        if self.verify:
            new_tree.check_invariants()

        diff = collect_diff(tree, states, touched)
        logger.info(
            "permissions_edited",
            item_id=target_id,
            requested_view=requested.view,
            requested_download=requested.download,
            view=flags.view,
            download=flags.download,
            changed=len(diff),
        )
        return EditResult(tree=new_tree, diff=diff)
