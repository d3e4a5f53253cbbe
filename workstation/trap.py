"""Last-chance diagnostics for a failed run."""
from typing import Optional

import typer

from workstation import config
from workstation.context import RunContext
from workstation.errors import ProvisionError


def exit_code_for(exc: Optional[BaseException]) -> int:
    """The status the process is about to exit with, given what is propagating."""
    if exc is None:
        return 0
    if isinstance(exc, typer.Exit):
        return exc.exit_code
    if isinstance(exc, SystemExit):
        if exc.code is None:
            return 0
        return exc.code if isinstance(exc.code, int) else 1
    if isinstance(exc, ProvisionError):
        return exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return 130
    return 1


class FailureTrap:
    """Wraps a whole run.

    On a non-zero exit it dumps the output of the last command and points
    the user at help. The capture file is deleted on every exit. A
    ``ProvisionError`` leaves as ``typer.Exit`` with the same code; any
    other exception propagates untouched.
    """

    def __init__(self, ctx: RunContext):
        self.ctx = ctx

    def __enter__(self) -> "FailureTrap":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        code = exit_code_for(exc)
        try:
            if code != 0:
                self.fire()
        finally:
            self.ctx.cleanup()
        if isinstance(exc, ProvisionError):
            raise typer.Exit(code) from exc
        return False

    def captured_output(self) -> str:
        try:
            return self.ctx.capture_path.read_text()
        except FileNotFoundError:
            return ""

    def fire(self) -> None:
        reporter = self.ctx.reporter
        output = self.captured_output()
        if output.strip():
            reporter.fail("Output of the last command:")
            reporter.dump(output)
        reporter.fail("Something went wrong while setting up this machine.")
        reporter.fail("Running workstation again is safe and often gets past one-off failures.")
        reporter.fail(f"If it keeps failing, ask in {config.HELP_CHANNEL} and paste the output above.")
