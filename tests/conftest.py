"""Shared fixtures."""
from unittest.mock import MagicMock

import pytest

from workstation.context import RunContext
from workstation.report import Reporter


@pytest.fixture
def ctx(tmp_path):
    """A RunContext rooted in a temporary home with a mock reporter."""
    home = tmp_path / "home"
    home.mkdir()
    capture = tmp_path / "capture.log"
    capture.write_text("")
    return RunContext(
        env={'HOME': str(home), 'SHELL': '/bin/zsh'},
        home=home,
        capture_path=capture,
        shell='zsh',
        reporter=MagicMock(spec=Reporter),
        sleep=MagicMock(),
    )
