"""Per-run state shared by every provisioning step."""
import logging
import os
import shlex
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional, Sequence

import sh

from workstation.errors import StepFailed
from workstation.manifest import DEFAULT_MANIFEST, Entry
from workstation.report import Reporter

logger = logging.getLogger(__name__)


def detect_shell(env: Mapping[str, str]) -> str:
    """Return the basename of the user's login shell, or '' if unknown."""
    return os.path.basename(env.get('SHELL', ''))


@dataclass
class RunContext:
    """Everything a step may look at or touch during a single run."""

    env: Mapping[str, str]
    home: Path
    capture_path: Path
    shell: str = ''
    overrides: Dict[str, str] = field(default_factory=dict)
    dry_run: bool = False
    manifest: Sequence[Entry] = DEFAULT_MANIFEST
    reporter: Reporter = field(default_factory=Reporter)
    sleep: Callable[[float], None] = time.sleep

    @classmethod
    def create(cls, env: Optional[Mapping[str, str]] = None, home: Optional[Path] = None,
               **kwargs) -> "RunContext":
        """Snapshot the environment and allocate the output capture file."""
        env = dict(os.environ if env is None else env)
        if home is None:
            home = Path(env.get('HOME') or Path.home())
        fd, path = tempfile.mkstemp(prefix="workstation-", suffix=".log")
        os.close(fd)
        return cls(env=env, home=home, capture_path=Path(path),
                   shell=detect_shell(env), **kwargs)

    def flag(self, name: str) -> bool:
        """Presence-style flag: set to a non-empty value means on."""
        if name in self.overrides:
            return bool(self.overrides[name])
        return bool(self.env.get(name))

    def run(self, command: str, *args: str, input: Optional[str] = None,
            env: Optional[Mapping[str, str]] = None) -> str:
        """Run a command, capturing its combined output.

        The capture file is overwritten on every call so that it always
        holds the output of the last command. Raises ``StepFailed`` on a
        non-zero exit.
        """
        full_cmd = " ".join(shlex.quote(part) for part in (command,) + args)
        logger.debug("CMD %s", full_cmd)
        call_env = dict(os.environ)
        call_env.update(env or {})
        with open(self.capture_path, 'w') as out:
            try:
                sh.Command(command)(*args, _in=input, _out=out, _err_to_out=True, _env=call_env)
            except sh.CommandNotFound:
                out.write(f"{command}: command not found\n")
                raise StepFailed(full_cmd, 127)
            except sh.ErrorReturnCode as e:
                raise StepFailed(full_cmd, e.exit_code)
        return self.capture_path.read_text()

    def interactive(self, command: str, *args: str) -> None:
        """Run a command attached to the terminal, e.g. to prompt for a password.

        Nothing is captured. Raises ``StepFailed`` on a non-zero exit.
        """
        full_cmd = " ".join(shlex.quote(part) for part in (command,) + args)
        logger.debug("CMD (foreground) %s", full_cmd)
        try:
            sh.Command(command)(*args, _fg=True)
        except sh.CommandNotFound:
            raise StepFailed(full_cmd, 127)
        except sh.ErrorReturnCode as e:
            raise StepFailed(full_cmd, e.exit_code)

    def probe(self, command: str, *args: str, input: Optional[str] = None) -> Optional[str]:
        """Run a read-only query; return its stdout, or None if it failed."""
        try:
            return str(sh.Command(command)(*args, _in=input))
        except (sh.CommandNotFound, sh.ErrorReturnCode):
            return None

    def reset_capture(self) -> None:
        """Empty the capture file so stale output is never reported."""
        self.capture_path.write_text("")

    def cleanup(self) -> None:
        """Delete the capture file."""
        try:
            self.capture_path.unlink()
        except FileNotFoundError:
            pass
