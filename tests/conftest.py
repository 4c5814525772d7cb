"""Shared fixtures: a dispatcher running /bin/sh in a scratch directory."""

from __future__ import annotations

import os

import pytest

from tab_shells.config import TerminalSettings
from tab_shells.dispatcher import Dispatcher
from tab_shells.events import RecordingSink


@pytest.fixture
def workdir(tmp_path):
    path = tmp_path / "workdir"
    path.mkdir()
    return os.path.realpath(path)


@pytest.fixture
def settings(workdir) -> TerminalSettings:
    return TerminalSettings(
        command=["/bin/sh"],
        cwd=workdir,
        env={"PS1": "$ ", "ENV": ""},
        poll_interval=0.05,
        kill_timeout=0.5,
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def dispatcher(sink, settings):
    d = Dispatcher(sink, settings=settings)
    yield d
    d.close_all()
