"""Output formatting utilities for CLI."""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from dataroom_access.core.permissions.batcher import ChangeBatch
from dataroom_access.core.permissions.models import ItemType, PermissionDiff
from dataroom_access.core.permissions.tree import PermissionTree


class OutputFormat(Enum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


def diff_rows(diff: PermissionDiff) -> List[Dict[str, Any]]:
    return [
        {
            "item_id": entry.item_id,
            "item_type": entry.item_type.value,
            "view": entry.view,
            "partial_view": entry.partial_view,
            "download": entry.download,
        }
        for entry in diff
    ]


def batch_rows(batch: ChangeBatch) -> List[Dict[str, Any]]:
    return [
        {
            "item_id": item_id,
            "item_type": change.item_type.value,
            "view": change.view,
            "download": change.download,
        }
        for item_id, change in batch.changes.items()
    ]


class OutputFormatter:
    """Handle output formatting for different formats."""

    def __init__(self, format_type: str = "table", console: Optional[Console] = None):
        """
        Initialize output formatter.

        Args:
            format_type: Output format (table, json, yaml)
            console: Console to print to
        """
        self.console = console or Console()
        try:
            self.format = OutputFormat(format_type.lower())
        except ValueError:
            self.format = OutputFormat.TABLE

    def print_data(self, data: Any):
        """Print raw data as JSON or YAML."""
        if self.format == OutputFormat.JSON:
            text = json.dumps(data, indent=2, default=str)
        else:
            text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        self.console.print(text, markup=False, highlight=False, soft_wrap=True)

    def print_list(
        self,
        items: List[Dict[str, Any]],
        columns: Optional[List[str]] = None,
        title: Optional[str] = None,
    ):
        """
        Print a list of items.

        Args:
            items: List of items to print
            columns: Column names to display (for table format)
            title: Table title (for table format)
        """
        if self.format != OutputFormat.TABLE:
            self.print_data(items)
            return

        if not items:
            self.console.print("[dim]No items found[/dim]")
            return

        if not columns:
            columns = list(items[0].keys())

        table = Table(title=title)
        for col in columns:
            table.add_column(col.replace("_", " ").title())

        for item in items:
            row = []
            for col in columns:
                value = item.get(col, "")
                if value is None:
                    value = "[dim]-[/dim]"
                elif isinstance(value, bool):
                    value = "[green]✓[/green]" if value else "[red]✗[/red]"
                else:
                    value = str(value)
                row.append(value)
            table.add_row(*row)

        self.console.print(table)

    def print_tree(self, tree: PermissionTree, title: str = "Dataroom"):
        """Print the permission tree."""
        if self.format != OutputFormat.TABLE:
            self.print_data(tree.to_list())
            return

        root = Tree(f"[bold]{title}[/bold]")
        branches = {}
        for item, _ in tree.walk():
            parent = branches.get(item.parent_id, root)
            branches[item.id] = parent.add(self._tree_label(tree, item.id))
        self.console.print(root)

    def _tree_label(self, tree: PermissionTree, item_id: str) -> str:
        item = tree.item(item_id)
        state = tree.state(item_id)
        icon = "📁" if item.item_type == ItemType.DATAROOM_FOLDER else "📄"

        if state.view and state.partial_view:
            view = "[yellow]view (partial)[/yellow]"
        elif state.view:
            view = "[green]view[/green]"
        else:
            view = "[dim]hidden[/dim]"
        download = "[green]download[/green]" if state.download else "[dim]no download[/dim]"
        return f"{icon} {escape(item.name)} [dim]({escape(item.id)})[/dim]  {view}  {download}"

    def print_error(self, message: str):
        """Print error message."""
        if self.format == OutputFormat.TABLE:
            self.console.print(f"[red]✗[/red] {escape(message)}")
        else:
            self.print_data({"status": "error", "message": message})
