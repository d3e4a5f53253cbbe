"""macOS provisioning actions and their state checks."""
import platform
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from workstation import config
from workstation.context import RunContext
from workstation.errors import ProvisionError, StepFailed
from workstation.manifest import UNINSTALL, render_brewfile
from workstation.polling import RetryPolicy, wait_until
from workstation.utils import find_command

TEMPLATES = Path(__file__).parent / "configs"

CLT_POLICY = RetryPolicy(interval=config.CLT_POLL_INTERVAL)


def read_template(name: str) -> str:
    with open(TEMPLATES / name, 'r') as f:
        return f.read()


# Command line tools

def check_command_line_tools(ctx: RunContext) -> bool:
    """Check if the Xcode command line tools are installed."""
    return ctx.probe("xcode-select", "-p") is not None


def install_command_line_tools(ctx: RunContext, policy: RetryPolicy = CLT_POLICY) -> None:
    """Trigger the command line tools installer and wait for the user to finish it.

    The installer is a GUI popup, so the only thing we can do is poll.
    """
    try:
        ctx.run("xcode-select", "--install")
    except StepFailed as e:
        # 1: an install was already requested
        if e.exit_code != 1:
            raise
    wait_until(
        lambda: check_command_line_tools(ctx),
        policy,
        sleep=ctx.sleep,
        on_first_miss=lambda: ctx.reporter.warn(
            "Click \"Install\" in the command line tools popup; waiting for it to finish."),
    )


# FileVault

def check_filevault(ctx: RunContext) -> bool:
    """Check if FileVault disk encryption is on."""
    status = ctx.probe("fdesetup", "status")
    return status is not None and "FileVault is On" in status


def require_filevault(ctx: RunContext) -> None:
    raise ProvisionError(
        "FileVault is off. Turn it on in System Settings > Privacy & Security > FileVault, "
        "then run this again.")


# Homebrew

def find_brew() -> Optional[str]:
    """Get the path to the brew binary, which may not be on PATH yet."""
    return find_command("brew", config.BREW_FALLBACK_PATHS)


def check_homebrew(ctx: RunContext) -> bool:
    """Check if Homebrew is installed."""
    return find_brew() is not None


def install_homebrew(ctx: RunContext) -> None:
    """Install Homebrew with the official installer."""
    install_script = ctx.run("curl", "-fsSL", config.BREW_INSTALL_URL)
    # Non-interactive installs abort on macOS without a cached sudo credential.
    ctx.interactive("sudo", "-v")
    ctx.run("bash", "-c", install_script, env={"NONINTERACTIVE": "1"})


def require_brew() -> str:
    brew = find_brew()
    if brew is None:
        raise ProvisionError("brew not found")
    return brew


def brew_prefix(ctx: RunContext) -> Optional[Path]:
    brew = find_brew()
    if brew is None:
        return None
    output = ctx.probe(brew, "--prefix")
    return Path(output.strip()) if output else None


def homebrew_last_update(ctx: RunContext) -> Optional[datetime]:
    """When Homebrew last fetched its repository, if known."""
    brew = find_brew()
    if brew is None:
        return None
    repository = ctx.probe(brew, "--repository")
    if not repository:
        return None
    fetch_head = Path(repository.strip()) / ".git" / "FETCH_HEAD"
    try:
        return datetime.fromtimestamp(fetch_head.stat().st_mtime)
    except FileNotFoundError:
        return None


def is_homebrew_fresh(ctx: RunContext, now: Optional[datetime] = None) -> bool:
    """Check if Homebrew has been updated within ``BREW_MAX_AGE``."""
    last_update = homebrew_last_update(ctx)
    if last_update is None:
        return False
    now = now or datetime.now()
    return now - last_update < config.BREW_MAX_AGE


def update_homebrew(ctx: RunContext) -> None:
    ctx.run(require_brew(), "update", "--force")


def installed_formulae(ctx: RunContext) -> List[str]:
    brew = find_brew()
    if brew is None:
        return []
    output = ctx.probe(brew, "list", "--formula", "-1")
    return output.split() if output else []


def denied_packages(ctx: RunContext) -> List[str]:
    """Deny-listed formulae that are currently installed."""
    installed = set(installed_formulae(ctx))
    return [name for name in UNINSTALL if name in installed]


def check_no_denied_packages(ctx: RunContext) -> bool:
    return not denied_packages(ctx)


def uninstall_denied_packages(ctx: RunContext) -> None:
    packages = denied_packages(ctx)
    if packages:
        ctx.run(require_brew(), "uninstall", "--force", *packages)


def check_bundle(ctx: RunContext) -> bool:
    """Check if everything in the manifest is installed."""
    brew = find_brew()
    if brew is None:
        return False
    output = ctx.probe(brew, "bundle", "check", "--file=-", input=render_brewfile(ctx.manifest))
    return output is not None


def install_bundle(ctx: RunContext) -> None:
    """Install the manifest with ``brew bundle``, reading it from stdin."""
    ctx.run(require_brew(), "bundle", "--file=-", input=render_brewfile(ctx.manifest))


# Docker

def check_docker(ctx: RunContext) -> bool:
    """Check if Docker Desktop is installed and its daemon answers."""
    if not Path(config.DOCKER_APP).exists():
        return False
    return ctx.probe("docker", "info") is not None


def docker_dmg_url() -> str:
    arch = "arm64" if platform.machine() == "arm64" else "amd64"
    return config.DOCKER_DMG_URL.format(arch=arch)


def install_docker(ctx: RunContext) -> None:
    """Install Docker Desktop from its disk image if needed, then start it."""
    if not Path(config.DOCKER_APP).exists():
        download_dir = Path(tempfile.mkdtemp(prefix="workstation-docker-"))
        try:
            dmg = download_dir / "Docker.dmg"
            mountpoint = download_dir / "mount"
            ctx.run("curl", "-fsSL", "-o", str(dmg), docker_dmg_url())
            ctx.run("hdiutil", "attach", "-nobrowse", "-quiet",
                    "-mountpoint", str(mountpoint), str(dmg))
            try:
                ctx.run("cp", "-R", str(mountpoint / "Docker.app"), str(Path(config.DOCKER_APP).parent))
            except ProvisionError:
                ctx.probe("hdiutil", "detach", "-quiet", str(mountpoint))
                raise
            ctx.run("hdiutil", "detach", "-quiet", str(mountpoint))
        finally:
            shutil.rmtree(download_dir, ignore_errors=True)
    ctx.run("open", "-g", "-a", "Docker")


# Git

def check_credential_helper(ctx: RunContext) -> bool:
    output = ctx.probe("git", "config", "--global", "credential.helper")
    return output is not None and output.strip() == config.CREDENTIAL_HELPER


def configure_credential_helper(ctx: RunContext) -> None:
    ctx.run("git", "config", "--global", "credential.helper", config.CREDENTIAL_HELPER)


# Local proxy

def proxy_config_path(ctx: RunContext) -> Path:
    prefix = brew_prefix(ctx)
    if prefix is None:
        raise ProvisionError("Cannot locate the Homebrew prefix")
    return prefix / config.PROXY_CONFIG


def check_proxy(ctx: RunContext) -> bool:
    """Check if the proxy timeout config matches the template."""
    try:
        path = proxy_config_path(ctx)
    except ProvisionError:
        return False
    return path.exists() and path.read_text() == read_template("proxy_timeouts.conf")


def configure_proxy(ctx: RunContext) -> None:
    """Write the proxy timeout config and restart the proxy service."""
    path = proxy_config_path(ctx)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(read_template("proxy_timeouts.conf"))
    ctx.run(require_brew(), "services", "restart", config.PROXY_SERVICE)
