"""Flat arena representation of a dataroom permission tree"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from dataroom_access.core.exceptions import InvariantViolationError, ItemNotFoundError
from dataroom_access.core.permissions.models import ItemType, PermissionState


@dataclass(frozen=True)
class Item:
    """Structural part of a tree node; permission state lives in the tree"""

    id: str
    name: str
    item_type: ItemType
    parent_id: Optional[str] = None
    document_id: Optional[str] = None
    children: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_folder(self) -> bool:
        return self.item_type == ItemType.DATAROOM_FOLDER


class PermissionTree:
    """Immutable tree value.

    Items are stored in an arena keyed by id with parent/children as id
    references. Structure is shared between tree values; only the state map
    differs from one edit to the next.
    """

    def __init__(
        self,
        items: Mapping[str, Item],
        roots: Tuple[str, ...],
        states: Mapping[str, PermissionState],
    ):
        self._items = dict(items)
        self._roots = tuple(roots)
        self._states = dict(states)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    @property
    def roots(self) -> Tuple[str, ...]:
        return self._roots

    def item(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise ItemNotFoundError(item_id) from None

    def state(self, item_id: str) -> PermissionState:
        if item_id not in self._states:
            raise ItemNotFoundError(item_id)
        return self._states[item_id]

    def states(self) -> Dict[str, PermissionState]:
        """Copy of the state arena, safe to mutate"""
        return dict(self._states)

    def children(self, item_id: str) -> Tuple[str, ...]:
        return self.item(item_id).children

    def ancestors(self, item_id: str) -> List[str]:
        """Ancestor ids ordered from nearest to farthest"""
        result = []
        parent_id = self.item(item_id).parent_id
        while parent_id is not None:
            result.append(parent_id)
            parent_id = self._items[parent_id].parent_id
        return result

    def descendants(self, item_id: str) -> List[str]:
        """Descendant ids in display (pre-) order"""
        result: List[str] = []
        stack = list(reversed(self.item(item_id).children))
        while stack:
            current = stack.pop()
            result.append(current)
            stack.extend(reversed(self._items[current].children))
        return result

    def walk(self) -> Iterator[Tuple[Item, int]]:
        """Yield every item with its depth in display order"""
        stack = [(root, 0) for root in reversed(self._roots)]
        while stack:
            item_id, depth = stack.pop()
            item = self._items[item_id]
            yield item, depth
            stack.extend((child, depth + 1) for child in reversed(item.children))

    def with_states(self, states: Mapping[str, PermissionState]) -> "PermissionTree":
        """New tree value sharing this structure with a replaced state map"""
        missing = set(self._items) - set(states)
        if missing:
            raise ValueError(f"States missing for items: {sorted(missing)}")
        return PermissionTree(self._items, self._roots, states)

    def check_invariants(self) -> None:
        """Assert the per-node invariants that must hold after every edit.

        ``PermissionState`` already rejects download without view when it is
        validated, so that branch here only catches states created with
        ``model_construct`` or otherwise bypassing validation.
        """
        for item_id, item in self._items.items():
            state = self._states[item_id]
            if state.download and not state.view:
                raise InvariantViolationError(item_id, "download without view")
            if not item.is_folder and state.partial_view:
                raise InvariantViolationError(item_id, "partial view on a document")

    def to_dict(self, item_id: str) -> Dict[str, Any]:
        item = self.item(item_id)
        data: Dict[str, Any] = {
            "id": item.id,
            "name": item.name,
            "itemType": item.item_type.value,
            "permissions": self._states[item_id].to_dict(),
        }
        if item.document_id is not None:
            data["documentId"] = item.document_id
        if item.is_folder:
            data["subItems"] = [self.to_dict(child) for child in item.children]
        return data

    def to_list(self) -> List[Dict[str, Any]]:
        """Nested representation of the whole tree"""
        return [self.to_dict(root) for root in self._roots]
