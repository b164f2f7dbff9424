"""Terminal output helpers for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .notices import Notice, NoticeLevel
from .utils import format_size


class OutputFormatter:
    """Formats CLI output as styled text or JSON.

    Informational output is suppressed in quiet mode; errors always go to
    stderr.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self._console = Console(highlight=False, soft_wrap=True)
        self._err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def print(self, message: str = "") -> None:
        self._console.print(message, markup=False)

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self._console.print(message, markup=False)

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self._console.print(message, style="green", markup=False)

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self._err_console.print(f"Warning: {message}", style="yellow", markup=False)

    def error(self, message: str) -> None:
        self._err_console.print(f"Error: {message}", style="bold red", markup=False)

    def notice(self, notice: Optional[Notice]) -> None:
        """Show a session notice at the matching level."""
        if notice is None:
            return
        if notice.level is NoticeLevel.ERROR:
            self.error(notice.message)
        else:
            self.success(notice.message)

    def output_json(self, data: Any) -> None:
        # Plain stdout so the output can be piped to other tools
        self._console.file.write(json.dumps(data, indent=2, default=str) + "\n")

    def output_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        headers: Optional[dict[str, str]] = None,
    ) -> None:
        """Render rows as a table.

        Args:
            rows: One dict per row
            columns: Keys to show, in order
            headers: Optional display names for the columns
        """
        headers = headers or {}
        table = Table(show_edge=False, box=None, pad_edge=False)
        for column in columns:
            table.add_column(headers.get(column, column), overflow="fold")
        for row in rows:
            table.add_row(*(str(row.get(column, "")) for column in columns))
        self._console.print(table)

    @staticmethod
    def format_size(size_bytes: int) -> str:
        return format_size(size_bytes)
