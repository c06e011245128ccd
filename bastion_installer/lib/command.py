from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Mapping, Sequence

from ..errors import OperationFailed

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    interactive: bool = False,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command (never the stdin payload, which may be a secret).
    - Captures stdout/stderr unless interactive, in which case the terminal is
      inherited so a human can answer prompts.
    - check=True turns a non-zero exit into OperationFailed.
    - quiet keeps captured output out of the log.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("CMD %s", fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    try:
        if interactive:
            p = subprocess.run(
                argv_list,
                text=True,
                cwd=cwd,
                env=dict(os.environ, **(env or {})),
            )
        else:
            p = subprocess.run(
                argv_list,
                input=input_text,
                text=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=cwd,
                env=dict(os.environ, **(env or {})),
            )
    except FileNotFoundError:
        if check:
            raise OperationFailed(fmt_argv(argv_list), 127, f"{argv_list[0]}: command not found")
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=f"{argv_list[0]}: command not found")

    stdout = p.stdout or ""
    stderr = p.stderr or ""

    if not quiet:
        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())

    if check and p.returncode != 0:
        raise OperationFailed(fmt_argv(argv_list), p.returncode, stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=stdout, stderr=stderr)


def run_advisory(argv: Sequence[str], *, dry_run: bool = False, **kwargs) -> CmdResult:
    """Run a best-effort command: failures are logged as warnings, never raised."""

    r = run_cmd(argv, check=False, dry_run=dry_run, **kwargs)
    if not r.ok:
        logger.warning(
            "Advisory command failed (%s): %s %s",
            r.returncode,
            fmt_argv(r.argv),
            r.stderr.strip(),
        )
    return r


def as_root(argv: Sequence[str]) -> list[str]:
    """Prefix sudo when the current process is not already root."""

    if os.geteuid() == 0:
        return list(argv)
    return ["sudo", *argv]
