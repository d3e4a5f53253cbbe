"""Checks that must pass before anything is installed."""
import platform
from typing import Callable, List

from workstation import config
from workstation.context import RunContext
from workstation.errors import PreconditionFailed
from workstation.utils import command_exists, is_root


def macos_version() -> str:
    """Get the macOS product version, e.g. '15.1'."""
    return platform.mac_ver()[0]


def check_platform(ctx: RunContext) -> None:
    current_platform = platform.system()
    if current_platform != 'Darwin':
        raise PreconditionFailed(f"Platform {current_platform} is not supported")


def check_os_version(ctx: RunContext) -> None:
    """Only provision macOS releases we have tested against."""
    version = macos_version()
    major = version.split('.')[0]
    if major in config.ACCEPTED_MACOS_VERSIONS:
        return
    if ctx.flag(config.DANGER_ZONE):
        ctx.reporter.warn(
            f"macOS {version} is not supported; continuing because {config.DANGER_ZONE} is set.")
        return
    raise PreconditionFailed(
        f"macOS {version or 'unknown'} is not supported "
        f"(supported: {', '.join(config.ACCEPTED_MACOS_VERSIONS)}). "
        f"Set {config.DANGER_ZONE}=1 to try anyway.")


def check_not_root(ctx: RunContext) -> None:
    if is_root():
        raise PreconditionFailed("Run this as your own user, not root or sudo; Homebrew refuses to run as root.")


def check_no_legacy_version_manager(ctx: RunContext) -> None:
    """rvm and rbenv fight over the same shell hooks."""
    legacy = config.LEGACY_VERSION_MANAGER
    if command_exists(legacy) or (ctx.home / f".{legacy}").exists():
        raise PreconditionFailed(
            f"{legacy} is installed and conflicts with {config.RUNTIME_MANAGER}. "
            f"Uninstall it with `{legacy} implode`, remove its lines from your shell profile, "
            "open a new terminal and run this again.")


def check_tmux(ctx: RunContext) -> None:
    if ctx.env.get('TMUX'):
        ctx.reporter.warn(
            "Running inside tmux; some installers cannot open GUI prompts from a tmux session.")


def check_docker_host(ctx: RunContext) -> None:
    value = ctx.env.get(config.DOCKER_HOST, '')
    if value not in config.EXPECTED_DOCKER_HOSTS:
        ctx.reporter.warn(
            f"{config.DOCKER_HOST} is set to {value!r}; docker commands will not talk to Docker Desktop.")


PRECONDITIONS: List[Callable[[RunContext], None]] = [
    check_platform,
    check_os_version,
    check_not_root,
    check_no_legacy_version_manager,
    check_tmux,
    check_docker_host,
]


def check_preconditions(ctx: RunContext) -> None:
    """Run every precondition in order; the first hard failure raises."""
    for check in PRECONDITIONS:
        check(ctx)
