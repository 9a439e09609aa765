"""Terminal output for command handlers: rich text or a single JSON document."""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from rich.console import Console
from rich.table import Table
from rich.text import Text

from ..orchestrator.models import StatusClass, StatusSnapshot, TerminalOutcome

OUTCOME_STYLES = {
    TerminalOutcome.SUCCEEDED: ("✅", "green"),
    TerminalOutcome.FAILED: ("❌", "red"),
    TerminalOutcome.TIMED_OUT: ("⏱️ ", "yellow"),
    TerminalOutcome.CANCELLED: ("🛑", "yellow"),
}


class OutputWriter:
    """
    Writes command results to stdout.

    In ``json`` mode stdout carries exactly one JSON document per command and
    human-oriented messages go to stderr. In ``text`` mode everything is
    rendered with a rich console.
    """

    def __init__(
        self,
        fmt: str = "text",
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ) -> None:
        if fmt not in ("text", "json"):
            raise ValueError(f"Unsupported output format: {fmt}")
        self.format = fmt
        self.console = console or Console()
        self.err_console = err_console or Console(stderr=True)

    @property
    def is_json(self) -> bool:
        return self.format == "json"

    def emit(self, data: Dict[str, Any], render: Optional[Callable[[], None]] = None) -> None:
        """Write the final result of a command."""
        if self.is_json:
            self.console.out(json.dumps(data, indent=2, default=str), highlight=False)
        elif render is not None:
            render()
        else:
            for key, value in data.items():
                self.line(f"{key}: {value}")

    def json_line(self, data: Dict[str, Any]) -> None:
        """One compact JSON document per line, for streaming output."""
        self.console.out(json.dumps(data, default=str), highlight=False)

    def line(self, message: str, style: Optional[str] = None) -> None:
        target = self.err_console if self.is_json else self.console
        target.print(message, style=style, highlight=False, markup=False)

    def info(self, message: str) -> None:
        self.line(f"ℹ️  {message}")

    def success(self, message: str) -> None:
        self.line(f"✅ {message}", style="green")

    def warning(self, message: str) -> None:
        self.line(f"⚠️  {message}", style="yellow")

    def error(self, message: str) -> None:
        self.err_console.print(f"❌ {message}", style="red", highlight=False, markup=False)

    def outcome(self, label: str, outcome: TerminalOutcome, detail: Optional[str] = None) -> None:
        icon, style = OUTCOME_STYLES[outcome]
        text = f"{icon} {label}: {outcome.value}"
        if detail:
            text += f" ({detail})"
        self.line(text, style=style)

    def progress(self, snapshot: StatusSnapshot, state: StatusClass) -> None:
        """Snapshot callback printing one line per poll."""
        text = f"   [{snapshot.timestamp:%H:%M:%S}] {snapshot.handle} {snapshot.raw_status}"
        if snapshot.message:
            text += f" - {snapshot.message}"
        self.line(text, style="dim" if not state.is_terminal else None)

    def table(self, title: str, columns: Sequence[str], rows: Iterable[Sequence[Any]]) -> None:
        table = Table(title=title)
        for column in columns:
            table.add_column(column)
        for row in rows:
            table.add_row(*(Text("" if cell is None else str(cell)) for cell in row))
        self.console.print(table)
