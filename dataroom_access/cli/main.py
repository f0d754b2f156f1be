"""Dataroom access management CLI."""

from pathlib import Path
from typing import Any, List, Optional, Tuple

import typer
import yaml
from rich.console import Console

from dataroom_access.application.notifications import ConsoleNotifier, LogNotifier
from dataroom_access.application.session import PermissionEditingSession
from dataroom_access.cli import __version__
from dataroom_access.cli.output import OutputFormat, OutputFormatter, batch_rows, diff_rows
from dataroom_access.core.config import get_settings
from dataroom_access.core.exceptions import DataroomAccessError, PersistenceFailedError
from dataroom_access.core.permissions.builder import TreeBuilder
from dataroom_access.core.permissions.models import RequestedFlags
from dataroom_access.infrastructure.logging import setup_logging
from dataroom_access.infrastructure.persistence import (
    HttpPersistenceGateway,
    InMemoryPersistenceGateway,
)

app = typer.Typer(
    name="dataroom-access",
    help="Inspect and edit viewer group permissions of a dataroom",
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
    pretty_exceptions_enable=False,
)

console = Console()


def version_callback(value: bool):
    """Display version and exit."""
    if value:
        console.print(f"dataroom-access v{__version__}")
        raise typer.Exit()


def load_document(path: Path, key: str) -> List[Any]:
    """Load a JSON or YAML list, optionally wrapped in a ``{key: [...]}`` object."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise typer.BadParameter(f"Cannot read {path}: {e}") from e

    if data is None:
        return []
    if isinstance(data, dict) and key in data:
        data = data[key]
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must contain a list of {key}")
    return data


def parse_edit(value: str) -> Tuple[str, RequestedFlags]:
    """Parse ``ITEM=view,download`` (an empty right side clears both)."""
    item_id, sep, toggles = value.partition("=")
    if not sep or not item_id:
        raise typer.BadParameter(f"Expected ITEM=view,download, got '{value}'")
    names = [name.strip() for name in toggles.split(",") if name.strip()]
    try:
        return item_id.strip(), RequestedFlags.from_toggles(names)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
    output_format: str = typer.Option(
        "table",
        "--output",
        "-o",
        help="Output format: table, json, yaml",
    ),
):
    """
    Dataroom access CLI

    Build a group's permission tree from exported records and try edits on it.
    """
    setup_logging("DEBUG" if debug else "WARNING")
    ctx.obj = OutputFormatter(output_format, console=console)


@app.command("tree")
def show_tree(
    ctx: typer.Context,
    records: Path = typer.Argument(..., help="Folder/document records (JSON or YAML)"),
    overrides: Optional[Path] = typer.Argument(
        None, help="Group access controls (JSON or YAML)"
    ),
):
    """
    Show the permission tree of a group.

    Example:
        dataroom-access tree folders.json permissions.json
    """
    formatter: OutputFormatter = ctx.obj
    grants = load_document(overrides, "permissions") if overrides else []

    try:
        tree = TreeBuilder().build(load_document(records, "folders"), grants)
    except DataroomAccessError as e:
        formatter.print_error(e.message)
        raise typer.Exit(1)

    formatter.print_tree(tree)


@app.command("edit")
def edit(
    ctx: typer.Context,
    records: Path = typer.Argument(..., help="Folder/document records (JSON or YAML)"),
    overrides: Optional[Path] = typer.Argument(
        None, help="Group access controls (JSON or YAML)"
    ),
    edits: List[str] = typer.Option(
        ...,
        "--set",
        "-s",
        help="Edit as ITEM=view,download (can be used multiple times)",
    ),
    push: bool = typer.Option(
        False, "--push", help="Send the resulting batch to the permissions API"
    ),
    dataroom: Optional[str] = typer.Option(None, "--dataroom", help="Dataroom id"),
    group: Optional[str] = typer.Option(None, "--group", help="Viewer group id"),
    team: Optional[str] = typer.Option(
        None, "--team", help="Team id (defaults to DATAROOM_ACCESS_TEAM_ID)"
    ),
):
    """
    Apply edits in order and show what changed.

    Example:
        dataroom-access edit folders.json permissions.json -s doc-1=view
    """
    formatter: OutputFormatter = ctx.obj
    parsed = [parse_edit(value) for value in edits]

    if push and not (dataroom and group):
        raise typer.BadParameter("--push requires --dataroom and --group")

    settings = get_settings()
    try:
        if push:
            gateway = HttpPersistenceGateway(
                team_id=team or settings.team_id,
                base_url=settings.api_base_url,
                auth_token=settings.api_token,
                timeout=settings.request_timeout_seconds,
            )
        else:
            gateway = InMemoryPersistenceGateway()
    except DataroomAccessError as e:
        formatter.print_error(e.message)
        raise typer.Exit(1)

    table_output = formatter.format == OutputFormat.TABLE
    session = PermissionEditingSession(
        dataroom_id=dataroom or "local",
        group_id=group or "local",
        gateway=gateway,
        notifier=ConsoleNotifier(console) if table_output else LogNotifier(),
        settings=settings.model_copy(update={"flush_on_teardown": False}),
    )
    try:
        session.load(
            load_document(records, "folders"),
            load_document(overrides, "permissions") if overrides else [],
        )
        report = []
        for item_id, flags in parsed:
            diff = session.apply(item_id, flags)
            report.append({"item_id": item_id, "changes": diff_rows(diff)})
            if table_output:
                formatter.print_list(
                    diff_rows(diff),
                    columns=["item_id", "item_type", "view", "partial_view", "download"],
                    title=f"Set {item_id}: view={flags.view} download={flags.download}",
                )

        if push:
            pending = session.flush()
        else:
            pending = session.batcher.flush()

        if table_output:
            formatter.print_list(batch_rows(pending), title="Pending changes")
        else:
            formatter.print_data({"edits": report, "pending": batch_rows(pending)})
    except PersistenceFailedError:
        # The notifier has already reported the failure
        raise typer.Exit(1)
    except DataroomAccessError as e:
        formatter.print_error(e.message)
        raise typer.Exit(1)
    finally:
        session.close()
        gateway.close()


if __name__ == "__main__":
    app()
