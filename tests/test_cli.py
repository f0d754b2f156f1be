"""Tests for the command-line interface"""

import json

import pytest
import yaml
from typer.testing import CliRunner

from dataroom_access import __version__
from dataroom_access.cli.main import app, parse_edit
from dataroom_access.core.permissions.models import RequestedFlags

runner = CliRunner()


@pytest.fixture
def records_file(tmp_path, records):
    path = tmp_path / "folders.json"
    path.write_text(json.dumps({"folders": records}))
    return path


@pytest.fixture
def overrides_file(tmp_path):
    path = tmp_path / "permissions.yaml"
    path.write_text(
        yaml.safe_dump([{"itemId": "doc-3", "canView": True, "canDownload": False}])
    )
    return path


class TestParseEdit:
    """Test parsing of --set values"""

    def test_parse(self):
        assert parse_edit("doc-1=view,download") == (
            "doc-1",
            RequestedFlags(view=True, download=True),
        )
        assert parse_edit("doc-1=") == ("doc-1", RequestedFlags())
        assert parse_edit(" doc-1 = view ") == ("doc-1", RequestedFlags(view=True))


class TestTreeCommand:
    """Test the tree command"""

    def test_json_output(self, records_file, overrides_file):
        result = runner.invoke(
            app, ["-o", "json", "tree", str(records_file), str(overrides_file)]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [item["id"] for item in data] == ["folder-a", "doc-root"]
        assert data[0]["permissions"] == {
            "view": True,
            "partialView": True,
            "download": False,
        }

    def test_table_output(self, records_file, overrides_file):
        result = runner.invoke(app, ["tree", str(records_file), str(overrides_file)])

        assert result.exit_code == 0, result.output
        assert "Folder A" in result.output
        assert "view (partial)" in result.output
        assert "Readme" in result.output

    def test_malformed_records(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text(json.dumps([{"id": "x", "name": "X", "parentId": "nowhere"}]))

        result = runner.invoke(app, ["tree", str(path)])

        assert result.exit_code == 1
        assert "Malformed input" in result.output


class TestEditCommand:
    """Test the edit command"""

    def test_json_report(self, records_file):
        result = runner.invoke(
            app,
            ["-o", "json", "edit", str(records_file), "--set", "doc-3=view"],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        changed = [change["item_id"] for change in data["edits"][0]["changes"]]
        assert changed == ["doc-3", "folder-b", "folder-a"]
        assert {row["item_id"] for row in data["pending"]} == {
            "doc-3",
            "folder-b",
            "folder-a",
        }

    def test_edits_apply_in_order(self, records_file, overrides_file):
        result = runner.invoke(
            app,
            [
                "-o",
                "json",
                "edit",
                str(records_file),
                str(overrides_file),
                "-s",
                "doc-1=download",
                "-s",
                "doc-1=",
            ],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        pending = {row["item_id"]: row for row in data["pending"]}
        assert pending["doc-1"]["view"] is False
        assert pending["doc-1"]["download"] is False

    def test_table_report(self, records_file):
        result = runner.invoke(app, ["edit", str(records_file), "-s", "doc-root=view"])

        assert result.exit_code == 0, result.output
        assert "Pending changes" in result.output
        assert "doc-root" in result.output

    def test_unknown_item(self, records_file):
        result = runner.invoke(app, ["edit", str(records_file), "-s", "missing=view"])

        assert result.exit_code == 1
        assert "Item not found" in result.output

    def test_invalid_edit(self, records_file):
        result = runner.invoke(app, ["edit", str(records_file), "-s", "doc-1"])
        assert result.exit_code == 2

    def test_push_requires_target(self, records_file):
        result = runner.invoke(
            app, ["edit", str(records_file), "-s", "doc-1=view", "--push"]
        )
        assert result.exit_code == 2


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output
