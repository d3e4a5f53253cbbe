"""Utility functions for the workstation setup tool."""
import logging
import os
import shutil
from typing import Iterable, Optional


def command_exists(command: str) -> bool:
    """Check if a command exists in the system PATH."""
    return shutil.which(command) is not None


def find_command(command: str, fallbacks: Iterable[str] = ()) -> Optional[str]:
    """Return the path of a command, trying PATH first and then known locations."""
    found = shutil.which(command)
    if found:
        return found
    for candidate in fallbacks:
        if os.access(candidate, os.X_OK):
            return candidate
    return None


def is_root() -> bool:
    """Check if the script is running as root."""
    return os.geteuid() == 0


def log_info(message: str) -> None:
    """Log an informational message."""
    print(f"[INFO] {message}")


def setup_logging(verbose: bool = False) -> None:
    """Configure the ``workstation`` logger.

    Command lines and dry-run decisions are logged at DEBUG, so they only
    show up with ``--verbose``.
    """
    logger = logging.getLogger("workstation")
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("    %(levelname)s %(message)s"))
        logger.addHandler(handler)
