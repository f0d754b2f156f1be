"""Build a permission tree from flat source records and sparse overrides"""

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from dataroom_access.core.exceptions import MalformedInputError
from dataroom_access.core.permissions.models import (
    ItemType,
    PermissionOverride,
    PermissionState,
    SourceRecord,
)
from dataroom_access.core.permissions.tree import Item, PermissionTree
from dataroom_access.infrastructure.logging import get_logger

logger = get_logger(__name__)

RecordInput = Union[SourceRecord, Mapping[str, Any]]
OverrideInput = Union[PermissionOverride, Mapping[str, Any]]


class TreeBuilder:
    """Converts source records into a rooted tree with initial permission state.

    Folders are records without an attached document. Children of a folder are
    its sub-folders, then the documents pointing at it, then the documents
    nested in its ``documents`` array, each group in input order. Records
    without a parent hang off an implicit root.
    """

    def build(
        self,
        records: Iterable[RecordInput],
        overrides: Iterable[OverrideInput] = (),
    ) -> PermissionTree:
        parsed = self._parse_records(records)
        grants = self._index_overrides(overrides)

        items, roots = self._link(parsed)
        states = self._compute_states(items, roots, grants)

        tree = PermissionTree(items, roots, states)
        logger.info(
            "tree_built",
            items=len(items),
            roots=len(roots),
            folders=sum(1 for item in items.values() if item.is_folder),
            overrides=len(grants),
        )
        return tree

    def _parse_records(self, records: Iterable[RecordInput]) -> List[SourceRecord]:
        parsed = []
        errors = []
        for index, record in enumerate(records):
            if isinstance(record, SourceRecord):
                parsed.append(record)
                continue
            try:
                parsed.append(SourceRecord.model_validate(record))
            except ValidationError as e:
                errors.append(f"record {index}: {e.errors()[0]['msg']}")
        if errors:
            raise MalformedInputError(errors)
        return parsed

    def _index_overrides(
        self, overrides: Iterable[OverrideInput]
    ) -> Dict[str, Tuple[bool, bool]]:
        grants: Dict[str, Tuple[bool, bool]] = {}
        for override in overrides:
            if not isinstance(override, PermissionOverride):
                try:
                    override = PermissionOverride.model_validate(override)
                except ValidationError as e:
                    raise MalformedInputError(
                        [f"override: {e.errors()[0]['msg']}"]
                    ) from e

            view, download = override.can_view, override.can_download
            if download and not view:
                logger.warning(
                    "override_download_without_view",
                    item_id=override.item_id,
                )
                view = True
            grants[override.item_id] = (view, download)
        return grants

    def _link(
        self, records: List[SourceRecord]
    ) -> Tuple[Dict[str, Item], Tuple[str, ...]]:
        errors: List[str] = []
        by_id: Dict[str, SourceRecord] = {}
        nested_parent: Dict[str, str] = {}

        for record in records:
            if record.id in by_id or record.id in nested_parent:
                errors.append(f"duplicate item id '{record.id}'")
                continue
            by_id[record.id] = record
            for nested in record.documents:
                if nested.document is None:
                    errors.append(f"document '{nested.id}' has no document reference")
                if nested.id in by_id or nested.id in nested_parent:
                    errors.append(f"duplicate item id '{nested.id}'")
                nested_parent[nested.id] = record.id

        # Nested ids can also collide with records listed after their folder
        for nested_id in nested_parent:
            if nested_id in by_id:
                errors.append(f"duplicate item id '{nested_id}'")

        for record in by_id.values():
            if record.documents and record.is_document:
                errors.append(f"document '{record.id}' cannot contain documents")
            parent_id = record.effective_parent_id
            if parent_id is None:
                continue
            parent = by_id.get(parent_id)
            if parent is None:
                errors.append(f"item '{record.id}' references unknown parent '{parent_id}'")
            elif parent.is_document:
                errors.append(f"item '{record.id}' has document '{parent_id}' as parent")

        if errors:
            raise MalformedInputError(list(dict.fromkeys(errors)))

        folders_under: Dict[Optional[str], List[str]] = defaultdict(list)
        documents_under: Dict[Optional[str], List[str]] = defaultdict(list)
        for record in records:
            parent_id = record.effective_parent_id
            if record.is_document:
                documents_under[parent_id].append(record.id)
            else:
                folders_under[parent_id].append(record.id)

        def child_ids(parent_id: Optional[str]) -> Tuple[str, ...]:
            ids = folders_under.get(parent_id, []) + documents_under.get(parent_id, [])
            if parent_id is not None:
                ids = ids + [nested.id for nested in by_id[parent_id].documents]
            return tuple(ids)

        items: Dict[str, Item] = {}
        for record in records:
            if record.is_document:
                items[record.id] = Item(
                    id=record.id,
                    name=record.document.name,
                    item_type=ItemType.DATAROOM_DOCUMENT,
                    parent_id=record.effective_parent_id,
                    document_id=record.document.id,
                )
            else:
                items[record.id] = Item(
                    id=record.id,
                    name=record.name or "",
                    item_type=ItemType.DATAROOM_FOLDER,
                    parent_id=record.effective_parent_id,
                    children=child_ids(record.id),
                )
                for nested in record.documents:
                    items[nested.id] = Item(
                        id=nested.id,
                        name=nested.document.name,
                        item_type=ItemType.DATAROOM_DOCUMENT,
                        parent_id=record.id,
                        document_id=nested.document.id,
                    )

        roots = child_ids(None)
        reachable = set()
        stack = list(roots)
        while stack:
            current = stack.pop()
            reachable.add(current)
            stack.extend(items[current].children)
        unreachable = [item_id for item_id in items if item_id not in reachable]
        if unreachable:
            raise MalformedInputError(
                [f"items form a parent cycle: {', '.join(unreachable)}"]
            )

        return items, roots

    def _compute_states(
        self,
        items: Dict[str, Item],
        roots: Tuple[str, ...],
        grants: Dict[str, Tuple[bool, bool]],
    ) -> Dict[str, PermissionState]:
        # Pre-order list; walking it backwards visits children before parents
        order: List[str] = []
        stack = list(roots)
        while stack:
            current = stack.pop()
            order.append(current)
            stack.extend(items[current].children)

        states: Dict[str, PermissionState] = {}
        for item_id in reversed(order):
            item = items[item_id]
            view, download = grants.get(item_id, (False, False))
            if not item.is_folder:
                states[item_id] = PermissionState(view=view, download=download)
                continue

            child_views = [states[child].view for child in item.children]
            some_viewable = any(child_views)
            states[item_id] = PermissionState(
                view=view or some_viewable,
                partial_view=some_viewable and not all(child_views),
                download=download,
            )
        return states
