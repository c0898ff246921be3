"""Boundary to the host editor: notices, progress and text insertion."""

from dataclasses import dataclass, field
from typing import Optional, Protocol

from rich.console import Console


class EditorHost(Protocol):
    """What the engine needs from the editor it runs in."""

    def show_info(self, message: str) -> None:
        ...

    def show_warning(self, message: str) -> None:
        ...

    def show_error(self, message: str) -> None:
        ...

    def set_busy(self, busy: bool) -> None:
        """Show or hide the progress indicator."""
        ...

    def insert_text(self, text: str) -> None:
        """Insert a completion at the cursor."""
        ...


class ConsoleHost:
    """EditorHost for the command line: notices go to a Rich console."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self.inserted: list[str] = []

    def show_info(self, message: str) -> None:
        self.console.print(f"[blue]{message}[/blue]")

    def show_warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠ {message}[/yellow]")

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]✗ {message}[/red]")

    def set_busy(self, busy: bool) -> None:
        if busy:
            self.console.print("[dim]Completing verse...[/dim]")

    def insert_text(self, text: str) -> None:
        self.inserted.append(text)


@dataclass
class RecordingHost:
    """EditorHost that keeps every call, for the HTTP API and tests."""

    infos: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    inserted: list[str] = field(default_factory=list)
    busy: bool = False
    busy_changes: int = 0

    def show_info(self, message: str) -> None:
        self.infos.append(message)

    def show_warning(self, message: str) -> None:
        self.warnings.append(message)

    def show_error(self, message: str) -> None:
        self.errors.append(message)

    def set_busy(self, busy: bool) -> None:
        self.busy = busy
        self.busy_changes += 1

    def insert_text(self, text: str) -> None:
        self.inserted.append(text)

    def drain(self) -> dict[str, list[str]]:
        """Return and clear the collected notices."""
        notices = {"info": self.infos, "warning": self.warnings, "error": self.errors}
        self.infos, self.warnings, self.errors = [], [], []
        return notices
