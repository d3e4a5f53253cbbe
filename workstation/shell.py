"""Shell init files, the profile hook, and the refresh login agent."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from workstation import config
from workstation.context import RunContext
from workstation.macos import find_brew, read_template

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShellProfile:
    """Where a shell reads its startup file and which env file it sources."""

    profile: str
    env_file: str

    def source_line(self, home: Path) -> str:
        return f"source {home / config.STATE_DIR / self.env_file}"


SHELLS: Dict[str, ShellProfile] = {
    "bash": ShellProfile(".bash_profile", "env.sh"),
    "zsh": ShellProfile(".zshrc", "env.sh"),
    "fish": ShellProfile(".config/fish/config.fish", "env.fish"),
}


def shell_profile(ctx: RunContext) -> Optional[ShellProfile]:
    return SHELLS.get(ctx.shell)


def shell_supported(ctx: RunContext) -> bool:
    return shell_profile(ctx) is not None


def warn_if_unsupported(ctx: RunContext) -> bool:
    """Like ``shell_supported``, but tells the user when we have to skip."""
    if shell_supported(ctx):
        return True
    ctx.reporter.warn(
        f"Unrecognized shell {ctx.shell or '(unset)'!r}; "
        f"set up your shell by hand (supported: {', '.join(SHELLS)}).")
    return False


def state_dir(ctx: RunContext) -> Path:
    return ctx.home / config.STATE_DIR


def brew_prefix_guess() -> str:
    brew = find_brew()
    if brew is None:
        return str(Path(config.BREW_FALLBACK_PATHS[0]).parent.parent)
    return str(Path(brew).parent.parent)


def render_env(ctx: RunContext, profile: ShellProfile) -> str:
    content = read_template(profile.env_file)
    content = content.replace("BREW_PREFIX_PLACEHOLDER", brew_prefix_guess())
    content = content.replace("SHELL_PLACEHOLDER", ctx.shell)
    content = content.replace("FUNCTIONS_PLACEHOLDER", str(state_dir(ctx) / "functions.sh"))
    return content


def write_init_files(ctx: RunContext) -> None:
    """Rewrite the init functions file and the shell env file.

    Both are overwritten on every run; they are generated, never edited.
    """
    profile = shell_profile(ctx)
    directory = state_dir(ctx)
    directory.mkdir(parents=True, exist_ok=True)

    functions_path = directory / "functions.sh"
    functions_path.write_text(read_template("functions.sh"))
    logger.debug("Wrote %s", functions_path)

    env_path = directory / profile.env_file
    env_path.write_text(render_env(ctx, profile))
    logger.debug("Wrote %s", env_path)


def profile_path(ctx: RunContext) -> Path:
    return ctx.home / shell_profile(ctx).profile


def check_source_line(ctx: RunContext) -> bool:
    """Check if the user's profile already sources our env file."""
    path = profile_path(ctx)
    if not path.exists():
        return False
    # Profiles are arbitrary user bytes; never decode them.
    return shell_profile(ctx).source_line(ctx.home).encode() in path.read_bytes()


def append_source_line(ctx: RunContext) -> None:
    """Append the source line to the profile, creating the file if needed."""
    path = profile_path(ctx)
    line = shell_profile(ctx).source_line(ctx.home).encode()
    path.parent.mkdir(parents=True, exist_ok=True)
    existing = path.read_bytes() if path.exists() else b""
    if line in existing:
        return
    prefix = b"" if not existing or existing.endswith(b"\n") else b"\n"
    with open(path, 'ab') as f:
        f.write(prefix + b"\n# Added by workstation\n" + line + b"\n")


def launch_agent_path(ctx: RunContext) -> Path:
    return ctx.home / "Library" / "LaunchAgents" / f"{config.LAUNCH_AGENT_LABEL}.plist"


def render_launch_agent(ctx: RunContext) -> str:
    brew = find_brew() or config.BREW_FALLBACK_PATHS[0]
    content = read_template(f"{config.LAUNCH_AGENT_LABEL}.plist")
    content = content.replace("LABEL_PLACEHOLDER", config.LAUNCH_AGENT_LABEL)
    content = content.replace("BREW_PATH_PLACEHOLDER", brew)
    content = content.replace("INTERVAL_PLACEHOLDER", str(config.LAUNCH_AGENT_INTERVAL))
    content = content.replace("LOG_PATH_PLACEHOLDER", str(ctx.home / config.REFRESH_LOG))
    return content


def install_login_agent(ctx: RunContext) -> None:
    """Write the refresh agent plist and reload it.

    The reload always happens because the plist may have changed.
    """
    plist_path = launch_agent_path(ctx)
    plist_path.parent.mkdir(parents=True, exist_ok=True)
    (ctx.home / config.REFRESH_LOG).parent.mkdir(parents=True, exist_ok=True)
    plist_path.write_text(render_launch_agent(ctx))

    # Fails harmlessly when the agent was never loaded.
    ctx.probe("launchctl", "unload", str(plist_path))
    ctx.run("launchctl", "load", "-w", str(plist_path))
