"""CLI interface for the workstation setup tool."""
from pathlib import Path
from typing import Optional

import typer

from . import config
from . import manifest
from . import preconditions
from . import steps
from . import utils
from .context import RunContext
from .errors import PreconditionFailed, ProvisionError
from .trap import FailureTrap


def setup(
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would change without changing it"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    manifest_path: Optional[Path] = typer.Option(
        None, "--manifest", exists=True, dir_okay=False, help="Brewfile to install instead of the built-in package list"),
    skip_docker: bool = typer.Option(False, "--skip-docker", help=f"Same as setting {config.SKIP_DOCKER}"),
    skip_proxy: bool = typer.Option(False, "--skip-proxy", help=f"Same as setting {config.SKIP_PROXY}"),
):
    """Set up this Mac as a developer workstation."""
    utils.setup_logging(verbose)

    overrides = {}
    if skip_docker:
        overrides[config.SKIP_DOCKER] = "1"
    if skip_proxy:
        overrides[config.SKIP_PROXY] = "1"

    entries = manifest.DEFAULT_MANIFEST
    if manifest_path is not None:
        try:
            entries = manifest.parse_brewfile(manifest_path.read_text())
        except ValueError as e:
            typer.echo(f"❗ {manifest_path}: {e}", err=True)
            raise typer.Exit(2)

    ctx = RunContext.create(overrides=overrides, dry_run=dry_run, manifest=entries)

    with FailureTrap(ctx):
        try:
            preconditions.check_preconditions(ctx)
        except PreconditionFailed as e:
            ctx.reporter.fail(str(e))
            raise

        report = steps.run_steps(steps.build_steps(), ctx)
        if report.failure:
            raise ProvisionError(report.failure.detail, report.exit_code)

    if dry_run:
        utils.log_info("Dry run finished; nothing was changed.")
    elif not ctx.flag(config.SKIP_BANNER):
        typer.echo("✅ Workstation setup complete! Open a new terminal to pick up the shell changes.")


app = typer.Typer(
    name="workstation",
    help="Idempotent developer workstation setup for macOS.",
    add_completion=False,
    invoke_without_command=True,
    callback=setup,
)


if __name__ == "__main__":
    app()
