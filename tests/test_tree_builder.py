"""Tests for building permission trees from source records"""

import pytest

from dataroom_access.core.exceptions import MalformedInputError
from dataroom_access.core.permissions.models import (
    ItemType,
    PermissionOverride,
    PermissionState,
    SourceRecord,
)


def document(item_id, name):
    return {"id": item_id, "document": {"id": f"doc-{item_id}", "name": name}}


def grant(item_id, view=True, download=False):
    return {"itemId": item_id, "canView": view, "canDownload": download}


class TestTreeStructure:
    """Test linking of flat records into a rooted tree"""

    def test_roots_and_children_order(self, tree):
        """Sub-folders come before documents, input order is kept"""
        assert tree.roots == ("folder-a", "doc-root")
        assert tree.children("folder-a") == ("folder-b", "doc-1", "doc-2")
        assert tree.children("folder-b") == ("doc-3",)
        assert len(tree) == 6

    def test_item_metadata(self, tree):
        """Names, kinds and document references are carried over"""
        folder = tree.item("folder-a")
        assert folder.item_type == ItemType.DATAROOM_FOLDER
        assert folder.name == "Folder A"
        assert folder.parent_id is None

        doc = tree.item("doc-3")
        assert doc.item_type == ItemType.DATAROOM_DOCUMENT
        assert doc.name == "Doc 3"
        assert doc.document_id == "doc-doc-3"
        assert doc.parent_id == "folder-b"

        assert tree.item("doc-root").document_id == "doc-doc-root"

    def test_flat_documents_between_folders_and_nested(self, builder):
        """Documents pointing at a folder follow its sub-folders"""
        records = [
            {"id": "top", "name": "Top", "documents": [document("nested", "N")]},
            {"id": "flat", "parentId": "top", "document": {"id": "x", "name": "F"}},
            {"id": "sub", "name": "Sub", "parentId": "top"},
        ]
        tree = builder.build(records)

        assert tree.children("top") == ("sub", "flat", "nested")

    def test_folder_id_attaches_documents(self, builder):
        """A document without parentId uses its folderId"""
        records = [
            {"id": "top", "name": "Top"},
            {"id": "doc", "folderId": "top", "document": {"id": "x", "name": "D"}},
            {"id": "loose", "folderId": None, "document": {"id": "y", "name": "L"}},
        ]
        tree = builder.build(records)

        assert tree.children("top") == ("doc",)
        assert tree.roots == ("top", "loose")

    def test_accepts_parsed_models(self, builder):
        """Records and overrides may already be models"""
        tree = builder.build(
            [SourceRecord(id="top", name="Top")],
            [PermissionOverride(item_id="top", can_view=True)],
        )
        assert tree.state("top").view

    def test_build_is_deterministic(self, builder, records):
        """Same input gives the same tree"""
        overrides = [grant("doc-1")]
        assert builder.build(records, overrides).to_list() == builder.build(
            records, overrides
        ).to_list()

    def test_nested_representation(self, tree):
        """Tree serializes to nested dicts"""
        data = tree.to_list()

        assert [entry["id"] for entry in data] == ["folder-a", "doc-root"]
        folder = data[0]
        assert folder["itemType"] == "DATAROOM_FOLDER"
        assert [sub["id"] for sub in folder["subItems"]] == ["folder-b", "doc-1", "doc-2"]
        assert folder["permissions"] == {
            "view": False,
            "partialView": False,
            "download": False,
        }
        assert data[1]["documentId"] == "doc-doc-root"
        assert "subItems" not in data[1]

    def test_deep_tree(self, builder):
        """Depth is not limited by the interpreter recursion limit"""
        depth = 3000
        records = [{"id": "f0", "name": "f0"}]
        records += [
            {"id": f"f{i}", "name": f"f{i}", "parentId": f"f{i - 1}"}
            for i in range(1, depth)
        ]
        records.append(
            {"id": "leaf", "parentId": f"f{depth - 1}", "document": {"id": "x", "name": "L"}}
        )
        tree = builder.build(records, [grant("leaf")])

        assert len(tree.ancestors("leaf")) == depth
        assert tree.state("f0").view


class TestInitialPermissions:
    """Test bottom-up computation of the initial state"""

    def test_no_overrides(self, tree):
        """Absent overrides default to no access"""
        for item, _ in tree.walk():
            assert tree.state(item.id) == PermissionState()

    def test_document_override(self, builder, records):
        """Documents take view and download from their override"""
        tree = builder.build(records, [grant("doc-1", download=True)])

        assert tree.state("doc-1") == PermissionState(view=True, download=True)
        assert tree.state("doc-2") == PermissionState()

    def test_viewable_descendant_makes_folders_viewable(self, builder, records):
        """A viewable leaf makes every ancestor viewable"""
        tree = builder.build(records, [grant("doc-3")])

        # folder-b has a single child, all viewable
        assert tree.state("folder-b") == PermissionState(view=True, partial_view=False)
        # folder-a has folder-b viewable, doc-1 and doc-2 not
        assert tree.state("folder-a") == PermissionState(view=True, partial_view=True)

    def test_all_children_viewable(self, builder, records):
        tree = builder.build(
            records, [grant("folder-b"), grant("doc-1"), grant("doc-2")]
        )
        assert tree.state("folder-a") == PermissionState(view=True, partial_view=False)

    def test_explicit_folder_grant(self, builder, records):
        """An explicitly granted folder is viewable without viewable children"""
        tree = builder.build(records, [grant("folder-a")])

        assert tree.state("folder-a") == PermissionState(view=True, partial_view=False)
        assert not tree.state("doc-1").view
        assert not tree.state("folder-b").view

    def test_folder_download_is_explicit_only(self, builder, records):
        """Child downloads do not aggregate into the folder"""
        tree = builder.build(records, [grant("doc-3", download=True)])
        assert tree.state("folder-b").view
        assert not tree.state("folder-b").download

        tree = builder.build(records, [grant("folder-b", download=True)])
        assert tree.state("folder-b").download

    def test_download_without_view_grants_view(self, builder, records):
        """Download implies view for stored overrides as well"""
        tree = builder.build(records, [grant("doc-1", view=False, download=True)])
        assert tree.state("doc-1") == PermissionState(view=True, download=True)

    def test_last_override_wins(self, builder, records):
        tree = builder.build(records, [grant("doc-1"), grant("doc-1", view=False)])
        assert not tree.state("doc-1").view

    def test_empty_folder(self, builder):
        """A folder without children is not partially viewable"""
        tree = builder.build([{"id": "empty", "name": "Empty"}])
        assert tree.state("empty") == PermissionState()

    def test_invariants_hold_after_build(self, builder, records):
        tree = builder.build(
            records,
            [grant("doc-3", download=True), grant("folder-a", download=True)],
        )
        tree.check_invariants()


class TestMalformedInput:
    """Test rejection of records that cannot form a tree"""

    def test_nested_document_without_reference(self, builder):
        records = [{"id": "top", "name": "Top", "documents": [{"id": "broken"}]}]
        with pytest.raises(MalformedInputError) as exc_info:
            builder.build(records)
        assert "broken" in str(exc_info.value)

    def test_duplicate_ids(self, builder):
        records = [{"id": "a", "name": "A"}, {"id": "a", "name": "A again"}]
        with pytest.raises(MalformedInputError):
            builder.build(records)

    def test_nested_document_duplicates_record(self, builder):
        records = [
            {"id": "top", "name": "Top", "documents": [document("dup", "D")]},
            {"id": "dup", "name": "Folder"},
        ]
        with pytest.raises(MalformedInputError):
            builder.build(records)

    def test_unknown_parent(self, builder):
        records = [{"id": "orphan", "name": "O", "parentId": "missing"}]
        with pytest.raises(MalformedInputError) as exc_info:
            builder.build(records)
        assert exc_info.value.details["errors"]

    def test_document_as_parent(self, builder):
        records = [
            {"id": "doc", "document": {"id": "x", "name": "D"}},
            {"id": "child", "name": "C", "parentId": "doc"},
        ]
        with pytest.raises(MalformedInputError):
            builder.build(records)

    def test_parent_cycle(self, builder):
        records = [
            {"id": "root", "name": "Root"},
            {"id": "x", "name": "X", "parentId": "y"},
            {"id": "y", "name": "Y", "parentId": "x"},
        ]
        with pytest.raises(MalformedInputError) as exc_info:
            builder.build(records)
        assert "cycle" in str(exc_info.value)

    def test_record_without_id(self, builder):
        with pytest.raises(MalformedInputError):
            builder.build([{"name": "No id"}])
