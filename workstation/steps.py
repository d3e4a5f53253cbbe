"""Provisioning steps and the runner that reconciles them in order."""
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from workstation import config
from workstation.context import RunContext
from workstation.errors import ProvisionError

logger = logging.getLogger(__name__)


class Outcome(enum.Enum):
    SKIPPED = "skipped"
    ALREADY_SATISFIED = "already satisfied"
    CONVERGED = "converged"
    PENDING = "pending"  # dry run: would converge
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    """One idempotent check-then-act unit.

    ``is_satisfied=None`` means the action runs on every invocation; such
    actions must be safe to repeat (file rewrites, agent reloads).
    """

    name: str
    converge: Callable[[RunContext], None]
    is_satisfied: Optional[Callable[[RunContext], bool]] = None
    skip_flag: Optional[str] = None
    applies: Optional[Callable[[RunContext], bool]] = None


@dataclass(frozen=True)
class StepResult:
    name: str
    outcome: Outcome
    detail: str = ""
    exit_code: int = 0


@dataclass
class RunReport:
    results: List[StepResult] = field(default_factory=list)

    @property
    def failure(self) -> Optional[StepResult]:
        for result in self.results:
            if result.outcome is Outcome.FAILED:
                return result
        return None

    @property
    def exit_code(self) -> int:
        failure = self.failure
        return failure.exit_code if failure else 0

    @property
    def converged(self) -> List[str]:
        return [r.name for r in self.results if r.outcome is Outcome.CONVERGED]


def run_step(step: Step, ctx: RunContext) -> StepResult:
    """Evaluate guards, detect, and converge a single step."""
    if step.skip_flag and ctx.flag(step.skip_flag):
        ctx.reporter.info(f"Skipping {step.name} ({step.skip_flag} is set)")
        return StepResult(step.name, Outcome.SKIPPED, f"{step.skip_flag} is set")
    if step.applies is not None and not step.applies(ctx):
        return StepResult(step.name, Outcome.SKIPPED, "not applicable")

    ctx.reporter.announce(step.name)
    ctx.reset_capture()
    try:
        if step.is_satisfied is not None and step.is_satisfied(ctx):
            ctx.reporter.complete()
            return StepResult(step.name, Outcome.ALREADY_SATISFIED)

        if ctx.dry_run:
            ctx.reporter.pending()
            logger.debug("[DRY RUN] Would converge %s", step.name)
            return StepResult(step.name, Outcome.PENDING)

        step.converge(ctx)
    except ProvisionError as e:
        ctx.reporter.fail(f"{step.name} failed: {e}")
        return StepResult(step.name, Outcome.FAILED, str(e), e.exit_code)
    except OSError as e:
        ctx.reporter.fail(f"{step.name} failed: {e}")
        return StepResult(step.name, Outcome.FAILED, str(e), 1)
    ctx.reporter.complete()
    return StepResult(step.name, Outcome.CONVERGED)


def run_steps(steps: Sequence[Step], ctx: RunContext) -> RunReport:
    """Run steps in order, stopping at the first failure."""
    report = RunReport()
    for step in steps:
        result = run_step(step, ctx)
        report.results.append(result)
        if result.outcome is Outcome.FAILED:
            break
    return report


def build_steps() -> List[Step]:
    """The fixed step order; later steps rely on earlier postconditions."""
    from workstation import macos, shell

    return [
        Step("Command line tools", macos.install_command_line_tools,
             is_satisfied=macos.check_command_line_tools),
        Step("FileVault", macos.require_filevault, is_satisfied=macos.check_filevault),
        Step("Homebrew", macos.install_homebrew, is_satisfied=macos.check_homebrew),
        Step("Homebrew freshness", macos.update_homebrew, is_satisfied=macos.is_homebrew_fresh),
        Step("Conflicting packages", macos.uninstall_denied_packages,
             is_satisfied=macos.check_no_denied_packages),
        Step("Homebrew bundle", macos.install_bundle, is_satisfied=macos.check_bundle),
        Step("Docker", macos.install_docker, is_satisfied=macos.check_docker,
             skip_flag=config.SKIP_DOCKER),
        Step("Git credential helper", macos.configure_credential_helper,
             is_satisfied=macos.check_credential_helper),
        Step("Shell init files", shell.write_init_files, applies=shell.warn_if_unsupported),
        Step("Shell profile", shell.append_source_line, is_satisfied=shell.check_source_line,
             applies=shell.shell_supported),
        Step("Login agent", shell.install_login_agent),
        Step("Local proxy", macos.configure_proxy, is_satisfied=macos.check_proxy,
             skip_flag=config.SKIP_PROXY),
    ]
