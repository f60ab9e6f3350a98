from __future__ import annotations

import stat
from pathlib import Path
from typing import Callable

import pytest

from pkagent.core.events import PromptEventChannel


@pytest.fixture
def channel() -> PromptEventChannel:
    return PromptEventChannel()


@pytest.fixture
def make_helper(tmp_path: Path) -> Callable[[str], str]:
    """Write an executable /bin/sh script standing in for polkit-agent-helper-1.

    The script body runs with the username as ``$1``; stdin carries the
    cookie and replies exactly as the real helper would see them.
    """
    counter = iter(range(1000))

    def _make(body: str) -> str:
        path = tmp_path / f"helper-{next(counter)}.sh"
        path.write_text("#!/bin/sh\n" + body)
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    return _make
