"""Terminal status reporting."""
from datetime import datetime
from typing import Callable

import typer


class Reporter:
    """Formats progress lines for the user.

    ``announce`` leaves the line open so that ``complete`` can finish it
    with a check mark once the step is done. Any other message printed
    while the line is open starts on a fresh line.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self.line_open = False

    def _end_line(self) -> None:
        if self.line_open:
            typer.echo()
            self.line_open = False

    def announce(self, label: str) -> None:
        self._end_line()
        stamp = self.clock().strftime("%H:%M:%S")
        typer.echo(f"[{stamp}] {label}... ", nl=False)
        self.line_open = True

    def complete(self) -> None:
        typer.secho("✓", fg=typer.colors.GREEN)
        self.line_open = False

    def pending(self) -> None:
        typer.secho("would change", fg=typer.colors.YELLOW)
        self.line_open = False

    def info(self, message: str) -> None:
        self._end_line()
        typer.echo(message)

    def warn(self, message: str) -> None:
        self._end_line()
        typer.secho(f"Warning: {message}", fg=typer.colors.YELLOW, bold=True)

    def fail(self, message: str) -> None:
        self._end_line()
        typer.secho(message, fg=typer.colors.RED, bold=True, err=True)

    def dump(self, text: str) -> None:
        """Echo raw captured output to stderr."""
        self._end_line()
        typer.echo(text.rstrip("\n"), err=True)
