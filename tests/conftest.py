"""
Shared fixtures: a scripted command runner, a fake filesystem root and a
reporter that records output instead of printing it.
"""

import io
import re
from typing import List, Optional

import pytest
from rich.console import Console

from ubuntu_optimize.config import Settings
from ubuntu_optimize.maintenance.runner import CommandResult, CommandRunner
from ubuntu_optimize.output import THEME, Reporter

ASSIGNMENT = re.compile(r'^[A-Z_][A-Z0-9_]*=')


def bare(cmd: List[str]) -> List[str]:
    """Command without its 'sudo'/'env' prefix and VAR=value assignments."""
    args = list(cmd)
    if args and args[0] in ('sudo', 'env'):
        args = args[1:]
    while args and ASSIGNMENT.match(args[0]):
        args = args[1:]
    return args


class FakeRunner(CommandRunner):
    """
    CommandRunner that never touches the system.

    Responses are matched on the command prefix (ignoring sudo and
    environment assignments); the most recently registered match wins.
    Unmatched commands succeed with empty output.
    """

    def __init__(self, available=()):
        super().__init__(timeout=10)
        self.available = set(available)
        self.responses = []
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []

    def on(self, *prefix, returncode=0, stdout='', stderr=''):
        self.responses.insert(0, (list(prefix), returncode, stdout, stderr))
        return self

    def which(self, name):
        return f"/usr/bin/{name}" if name in self.available else None

    def _execute(self, cmd, input_text, timeout):
        self.calls.append(cmd)
        self.inputs.append(input_text)
        args = bare(cmd)
        for prefix, returncode, stdout, stderr in self.responses:
            if args[:len(prefix)] == prefix:
                return CommandResult(cmd, returncode, stdout, stderr)
        return CommandResult(cmd, 0, '', '')

    @property
    def commands(self) -> List[List[str]]:
        return [bare(c) for c in self.calls]

    def ran(self, *prefix) -> bool:
        return any(c[:len(prefix)] == list(prefix) for c in self.commands)

    def input_for(self, *prefix) -> Optional[str]:
        for cmd, text in zip(self.commands, self.inputs):
            if cmd[:len(prefix)] == list(prefix):
                return text
        return None


class Answers:
    """Scripted replies to confirmations; falls back to default when exhausted."""

    def __init__(self, default=True):
        self.default = default
        self.queue: List[bool] = []
        self.asked: List[str] = []
        self.replies = {}

    def __call__(self, question):
        self.asked.append(question)
        if question in self.replies:
            return self.replies[question]
        if self.queue:
            return self.queue.pop(0)
        return self.default


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    home = tmp_path / 'home'
    root = tmp_path / 'root'
    home.mkdir()
    root.mkdir()
    return Settings(home=home, root=root, settle_seconds=0, reboot_delay=0)


@pytest.fixture
def answers():
    return Answers()


@pytest.fixture
def reporter(answers):
    console = Console(
        file=io.StringIO(), width=200, theme=THEME, color_system=None, highlight=False
    )
    return Reporter(console=console, ask=answers)


@pytest.fixture
def output(reporter):
    """Callable returning everything printed so far."""
    return lambda: reporter.console.file.getvalue()


@pytest.fixture
def make(runner, reporter, settings):
    """Build a janitor wired to the fakes, with sleeping disabled."""
    def factory(cls, **kwargs):
        janitor = cls(runner, reporter, settings, **kwargs)
        janitor.sleep = lambda seconds: None
        return janitor
    return factory


def write(path, content='', size=None):
    """Create a file (and its parents); size pads it with zero bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if size is not None:
        with open(path, 'wb') as f:
            f.truncate(size)
    else:
        path.write_text(content)
    return path
