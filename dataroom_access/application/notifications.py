"""User-facing notices for permission saves"""

from typing import Optional

from rich.console import Console

from dataroom_access.infrastructure.logging import get_logger

logger = get_logger(__name__)

SUCCESS_TITLE = "Permissions updated"
SUCCESS_DESCRIPTION = "The permissions have been successfully updated."
FAILURE_TITLE = "Failed to update permissions"
FAILURE_DESCRIPTION = "Please try again."


class Notifier:
    """Abstract sink for save notices"""

    def success(self, title: str, description: str) -> None:
        raise NotImplementedError

    def failure(self, title: str, description: str) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Reports notices as structured log events"""

    def success(self, title: str, description: str) -> None:
        logger.info("notice_success", title=title, description=description)

    def failure(self, title: str, description: str) -> None:
        logger.error("notice_failure", title=title, description=description)


class ConsoleNotifier(Notifier):
    """Prints notices to a rich console"""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def success(self, title: str, description: str) -> None:
        self.console.print(f"[green]✓[/green] [bold]{title}[/bold] {description}")

    def failure(self, title: str, description: str) -> None:
        self.console.print(f"[red]✗[/red] [bold]{title}[/bold] {description}")
