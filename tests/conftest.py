"""
Shared test fixtures: a recording fake for subprocess.run, a scratch sysroot
and a ready-made Environment.
"""

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

from bastion_installer.config import Environment
from bastion_installer.lib.secrets import SecretPrompt
from bastion_installer.pipeline import StageContext


def _strip_sudo(argv: Sequence[str]) -> List[str]:
    argv = list(argv)
    return argv[1:] if argv and argv[0] == "sudo" else argv


class FakeRun:
    """Stands in for subprocess.run.

    Every call is recorded. Replies come from rules matched on an argv prefix
    (a leading sudo is ignored); the most recently added rule wins and
    anything unmatched exits 0 with no output.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self._rules: list = []

    def on(self, prefix: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        self._rules.append((list(prefix), returncode, stdout, stderr, False))

    def on_sequence(self, prefix: Sequence[str], returncodes: Sequence[int]) -> None:
        """Reply with each exit status in turn, repeating the last one."""
        self._rules.append((list(prefix), list(returncodes), "", "", False))

    def missing(self, name: str) -> None:
        self._rules.append(([name], 127, "", "", True))

    def __call__(self, argv, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(kwargs.get("input"))
        bare = _strip_sudo(argv)
        for prefix, rc, out, err, raise_missing in reversed(self._rules):
            if bare[: len(prefix)] == prefix:
                if raise_missing:
                    raise FileNotFoundError(prefix[0])
                if isinstance(rc, list):
                    rc = rc.pop(0) if len(rc) > 1 else rc[0]
                return subprocess.CompletedProcess(argv, rc, out, err)
        return subprocess.CompletedProcess(argv, 0, "", "")

    def commands(self) -> List[List[str]]:
        """Recorded argv lists without any sudo prefix."""
        return [_strip_sudo(c) for c in self.calls]

    def ran(self, *prefix: str) -> bool:
        return any(c[: len(prefix)] == list(prefix) for c in self.commands())


@pytest.fixture(autouse=True)
def regular_user(monkeypatch):
    """Tests run as an unprivileged user: no chown, sudo-prefixed commands."""
    monkeypatch.setattr("os.geteuid", lambda: 1000)


@pytest.fixture
def fake_run(monkeypatch) -> FakeRun:
    fake = FakeRun()
    monkeypatch.setattr("bastion_installer.lib.command.subprocess.run", fake)
    return fake


@pytest.fixture
def sysroot(tmp_path: Path) -> Path:
    """An empty directory standing in for / (or the mounted target)."""
    root = tmp_path / "root"
    (root / "etc").mkdir(parents=True)
    return root


@pytest.fixture
def env() -> Environment:
    return Environment(device="/dev/vda", hostname="bastion", username="alice")


@pytest.fixture
def make_ctx(env: Environment, sysroot: Path, tmp_path: Path):
    """Build a StageContext over the scratch sysroot."""

    def _make(**kwargs) -> StageContext:
        values = dict(
            env=env,
            secrets=SecretPrompt(ask=lambda prompt: "correct horse"),
            sysroot=str(sysroot),
            home=str(tmp_path / "home"),
        )
        values.update(kwargs)
        return StageContext(**values)

    return _make


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so each CLI test gets fresh handlers."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    root.setLevel(level)
    for attr in ("_bastion_configured", "_bastion_log_path"):
        if hasattr(root, attr):
            delattr(root, attr)
