"""Tests for the step runner."""
from unittest.mock import MagicMock, call, patch

import pytest

from workstation import config
from workstation.errors import ProvisionError, StepFailed
from workstation.steps import Outcome, RunReport, Step, StepResult, build_steps, run_step, run_steps


def make_state_step(name, state, actions):
    """A step that converges ``state[name]`` to True and records destructive work."""
    def converge(ctx):
        actions.append(name)
        state[name] = True
    return Step(name, converge, is_satisfied=lambda ctx: state.get(name, False))


class TestRunStep:
    """Tests for a single step."""

    def test_already_satisfied(self, ctx):
        """Test a satisfied step does not run its action."""
        converge = MagicMock()
        result = run_step(Step("tool", converge, is_satisfied=lambda c: True), ctx)

        assert result.outcome is Outcome.ALREADY_SATISFIED
        converge.assert_not_called()
        ctx.reporter.announce.assert_called_once_with("tool")
        ctx.reporter.complete.assert_called_once_with()

    def test_converged(self, ctx):
        """Test an unsatisfied step runs its action."""
        converge = MagicMock()
        result = run_step(Step("tool", converge, is_satisfied=lambda c: False), ctx)

        assert result.outcome is Outcome.CONVERGED
        converge.assert_called_once_with(ctx)

    def test_no_predicate_always_converges(self, ctx):
        """Test steps without a predicate run every time."""
        converge = MagicMock()
        run_step(Step("files", converge), ctx)
        run_step(Step("files", converge), ctx)

        assert converge.call_count == 2

    def test_skip_flag_prevents_detection_and_action(self, ctx):
        """Test a set skip flag short-circuits the step entirely."""
        ctx.env = {config.SKIP_DOCKER: '1'}
        detect = MagicMock()
        converge = MagicMock()

        result = run_step(Step("Docker", converge, is_satisfied=detect, skip_flag=config.SKIP_DOCKER), ctx)

        assert result.outcome is Outcome.SKIPPED
        detect.assert_not_called()
        converge.assert_not_called()

    def test_not_applicable(self, ctx):
        """Test the applies guard skips without announcing."""
        converge = MagicMock()
        result = run_step(Step("Shell", converge, applies=lambda c: False), ctx)

        assert result.outcome is Outcome.SKIPPED
        converge.assert_not_called()
        ctx.reporter.announce.assert_not_called()

    def test_dry_run_does_not_converge(self, ctx):
        """Test dry runs report pending work without acting."""
        ctx.dry_run = True
        converge = MagicMock()

        result = run_step(Step("tool", converge, is_satisfied=lambda c: False), ctx)

        assert result.outcome is Outcome.PENDING
        converge.assert_not_called()

    def test_failure_keeps_exit_code(self, ctx):
        """Test a failing action becomes a FAILED result with its exit code."""
        def converge(c):
            raise StepFailed("brew bundle --file=-", 3)

        result = run_step(Step("Homebrew bundle", converge), ctx)

        assert result.outcome is Outcome.FAILED
        assert result.exit_code == 3
        assert "brew bundle" in result.detail
        ctx.reporter.fail.assert_called_once()

    def test_os_error_is_a_failure(self, ctx):
        """Test filesystem errors fail the step with status 1."""
        def converge(c):
            raise PermissionError("read-only")

        result = run_step(Step("files", converge), ctx)

        assert result.outcome is Outcome.FAILED
        assert result.exit_code == 1

    def test_detection_error_is_a_failure(self, ctx):
        """Test an unreadable file during detection fails the step instead of escaping."""
        def detect(c):
            raise PermissionError("denied")
        converge = MagicMock()

        result = run_step(Step("Shell profile", converge, is_satisfied=detect), ctx)

        assert result.outcome is Outcome.FAILED
        assert result.exit_code == 1
        assert "denied" in result.detail
        converge.assert_not_called()
        ctx.reporter.fail.assert_called_once()

    def test_capture_is_emptied_before_each_step(self, ctx):
        """Test a step that fails without a command does not inherit older output."""
        ctx.capture_path.write_text("output of an earlier, successful command\n")

        def converge(c):
            raise ProvisionError("FileVault is off")

        result = run_step(Step("FileVault", converge, is_satisfied=lambda c: False), ctx)

        assert result.outcome is Outcome.FAILED
        assert ctx.capture_path.read_text() == ""


class TestRunSteps:
    """Tests for running the whole sequence."""

    def test_runs_in_order(self, ctx):
        """Test steps run in declaration order."""
        state, actions = {}, []
        steps = [make_state_step(name, state, actions) for name in ("a", "b", "c")]

        report = run_steps(steps, ctx)

        assert actions == ["a", "b", "c"]
        assert report.converged == ["a", "b", "c"]
        assert report.exit_code == 0

    def test_second_run_changes_nothing(self, ctx):
        """Test re-running the sequence with no external change is a no-op."""
        state, actions = {}, []
        steps = [make_state_step(name, state, actions) for name in ("a", "b", "c")]

        run_steps(steps, ctx)
        actions.clear()
        report = run_steps(steps, ctx)

        assert actions == []
        assert all(r.outcome is Outcome.ALREADY_SATISFIED for r in report.results)

    def test_stops_at_first_failure(self, ctx):
        """Test no step runs after a failure."""
        state, actions = {}, []

        def broken(c):
            raise ProvisionError("nope", exit_code=7)

        steps = [
            make_state_step("a", state, actions),
            Step("broken", broken),
            make_state_step("c", state, actions),
        ]

        report = run_steps(steps, ctx)

        assert actions == ["a"]
        assert [r.name for r in report.results] == ["a", "broken"]
        assert report.failure.name == "broken"
        assert report.exit_code == 7

    def test_skipped_step_does_not_stop_the_rest(self, ctx):
        """Test the sequence completes when a step is skipped by flag."""
        ctx.env = {config.SKIP_DOCKER: '1'}
        state, actions = {}, []
        docker = MagicMock()
        steps = [
            make_state_step("a", state, actions),
            Step("Docker", docker, is_satisfied=docker, skip_flag=config.SKIP_DOCKER),
            make_state_step("c", state, actions),
        ]

        report = run_steps(steps, ctx)

        docker.assert_not_called()
        assert actions == ["a", "c"]
        assert report.failure is None


class TestRunReport:
    """Tests for report aggregation."""

    def test_empty_report(self):
        """Test an empty report succeeded."""
        report = RunReport()
        assert report.failure is None
        assert report.exit_code == 0

    def test_converged_names(self):
        """Test converged lists only the steps that changed something."""
        report = RunReport([
            StepResult("a", Outcome.ALREADY_SATISFIED),
            StepResult("b", Outcome.CONVERGED),
            StepResult("c", Outcome.SKIPPED),
        ])
        assert report.converged == ["b"]


class TestBuildSteps:
    """Tests for the fixed step order."""

    def test_order(self):
        """Test prerequisites come before the steps that need them."""
        names = [step.name for step in build_steps()]

        assert names[0] == "Command line tools"
        assert names.index("Homebrew") < names.index("Homebrew freshness") < names.index("Homebrew bundle")
        assert names.index("Homebrew bundle") < names.index("Shell init files") < names.index("Shell profile")
        assert names[-1] == "Local proxy"

    def test_skip_flags(self):
        """Test Docker and the proxy can be skipped by flag."""
        flags = {step.name: step.skip_flag for step in build_steps()}

        assert flags["Docker"] == config.SKIP_DOCKER
        assert flags["Local proxy"] == config.SKIP_PROXY
        assert flags["Homebrew"] is None


BREW = "/opt/homebrew/bin/brew"


@pytest.fixture
def machine(ctx, tmp_path, monkeypatch):
    """A context whose probes describe an already provisioned Mac."""
    repository = tmp_path / "Homebrew"
    (repository / ".git").mkdir(parents=True)
    (repository / ".git" / "FETCH_HEAD").write_text("")
    prefix = tmp_path / "homebrew"
    docker_app = tmp_path / "Applications" / "Docker.app"
    docker_app.mkdir(parents=True)
    monkeypatch.setattr(config, "DOCKER_APP", str(docker_app))

    answers = {
        ("xcode-select", "-p"): "/Library/Developer/CommandLineTools\n",
        ("fdesetup", "status"): "FileVault is On.\n",
        (BREW, "--repository"): f"{repository}\n",
        (BREW, "--prefix"): f"{prefix}\n",
        (BREW, "list", "--formula", "-1"): "git\njq\nrbenv\n",
        (BREW, "bundle", "check", "--file=-"): "The Brewfile's dependencies are satisfied.\n",
        ("docker", "info"): "Server Version: 27.0.0\n",
        ("git", "config", "--global", "credential.helper"): "osxkeychain\n",
    }
    ctx.probe = MagicMock(side_effect=lambda command, *args, input=None: answers.get((command,) + args))
    ctx.run = MagicMock(return_value="")
    ctx.interactive = MagicMock()
    return ctx


@patch('workstation.shell.find_brew', return_value=BREW)
@patch('workstation.macos.find_brew', return_value=BREW)
class TestBuildStepsOnProvisionedMachine:
    """Tests for the real step list against a machine that needs nothing."""

    def test_second_run_only_repeats_unconditional_work(self, mock_find, mock_shell_find, machine):
        """Test a re-run only rewrites the init files and reloads the login agent."""
        first = run_steps(build_steps(), machine)
        assert first.failure is None

        machine.run.reset_mock()
        second = run_steps(build_steps(), machine)

        plist = str(machine.home / "Library" / "LaunchAgents" / f"{config.LAUNCH_AGENT_LABEL}.plist")
        assert second.failure is None
        assert machine.run.call_args_list == [call("launchctl", "load", "-w", plist)]
        machine.interactive.assert_not_called()
        assert second.converged == ["Shell init files", "Login agent"]
        assert all(
            r.outcome is Outcome.ALREADY_SATISFIED
            for r in second.results if r.name not in ("Shell init files", "Login agent"))

    def test_skip_docker_lets_the_rest_complete(self, mock_find, mock_shell_find, machine):
        """Test a set Docker skip flag bypasses Docker and every other step still runs."""
        machine.overrides = {config.SKIP_DOCKER: "1"}

        report = run_steps(build_steps(), machine)

        outcomes = {r.name: r.outcome for r in report.results}
        assert report.failure is None
        assert outcomes["Docker"] is Outcome.SKIPPED
        assert [r.name for r in report.results] == [step.name for step in build_steps()]
        assert call("docker", "info") not in machine.probe.call_args_list
