from __future__ import annotations

import grp
import logging
import os
import pwd
import shutil
import stat
import tempfile
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Any, Mapping, Optional, Tuple

from .command import run_cmd

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"


@dataclass(frozen=True)
class GeneratedArtifact:
    path: str
    content: str
    mode: int = 0o644
    owner: Optional[str] = "root"
    group: Optional[str] = None

    @property
    def effective_group(self) -> Optional[str]:
        return self.group or self.owner


def render(template_name: str, variables: Mapping[str, Any]) -> str:
    """Substitute $name placeholders in a shipped template.

    Only plain substitution is supported; a missing variable raises KeyError.
    """

    text = (TEMPLATE_DIR / template_name).read_text(encoding="utf-8")
    return Template(text).substitute({k: str(v) for k, v in variables.items()})


def from_template(
    path: str,
    template_name: str,
    variables: Mapping[str, Any],
    *,
    mode: int = 0o644,
    owner: Optional[str] = "root",
    group: Optional[str] = None,
) -> GeneratedArtifact:
    return GeneratedArtifact(
        path=path,
        content=render(template_name, variables),
        mode=mode,
        owner=owner,
        group=group,
    )


def _resolve(root: str, path: str) -> Path:
    return Path(root) / path.lstrip("/")


def _current_text(dest: Path) -> Optional[str]:
    try:
        return dest.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _owner_ids(artifact: GeneratedArtifact) -> Tuple[int, int]:
    return pwd.getpwnam(artifact.owner).pw_uid, grp.getgrnam(artifact.effective_group).gr_gid


def _needs_escalation(dest: Path) -> bool:
    if os.geteuid() == 0:
        return False
    if dest.exists() and not os.access(dest, os.W_OK):
        return True
    parent = dest.parent
    while not parent.exists():
        parent = parent.parent
    return not os.access(parent, os.W_OK)


def _write_atomic(dest: Path, artifact: GeneratedArtifact) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(dest.parent), prefix=f".{dest.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(artifact.content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, artifact.mode)
        if artifact.owner and os.geteuid() == 0:
            shutil.chown(tmp, artifact.owner, artifact.effective_group)
        os.replace(tmp, dest)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _install_with_sudo(dest: Path, artifact: GeneratedArtifact) -> None:
    """Stage next to dest with sudo install, then rename over it.

    install(1) truncates and rewrites its target in place, so it only ever
    writes the staging file; the final mv is a rename within one directory.
    """

    fd, tmp = tempfile.mkstemp(prefix="bastion-artifact.")
    staged = str(dest.parent / f".{dest.name}.bastion-tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(artifact.content)
        argv = ["sudo", "install", "-D", "-m", f"{artifact.mode:04o}"]
        if artifact.owner:
            argv += ["-o", artifact.owner, "-g", artifact.effective_group]
        run_cmd([*argv, tmp, staged])
        try:
            run_cmd(["sudo", "mv", "-f", staged, str(dest)])
        except BaseException:
            run_cmd(["sudo", "rm", "-f", staged], check=False)
            raise
    finally:
        os.unlink(tmp)


def _fix_metadata(dest: Path, artifact: GeneratedArtifact, *, escalate: bool, dry_run: bool) -> bool:
    """Bring mode and owner of an up-to-date file in line without rewriting it."""

    st = dest.stat()
    mode_off = stat.S_IMODE(st.st_mode) != artifact.mode
    owner_off = False
    # Ownership is only managed when we can actually change it.
    if artifact.owner and (escalate or os.geteuid() == 0):
        owner_off = (st.st_uid, st.st_gid) != _owner_ids(artifact)

    if not (mode_off or owner_off):
        logger.info("Unchanged %s", str(dest))
        return False
    if dry_run:
        logger.info("Would set mode %04o / owner %s on %s", artifact.mode, artifact.owner, str(dest))
        return True

    if escalate:
        if mode_off:
            run_cmd(["sudo", "chmod", f"{artifact.mode:04o}", str(dest)])
        if owner_off:
            run_cmd(["sudo", "chown", f"{artifact.owner}:{artifact.effective_group}", str(dest)])
    else:
        if mode_off:
            os.chmod(dest, artifact.mode)
        if owner_off:
            shutil.chown(dest, artifact.owner, artifact.effective_group)

    if mode_off and stat.S_IMODE(dest.stat().st_mode) != artifact.mode:
        # vfat and friends take permissions from the mount options.
        logger.info("Unchanged %s (mode fixed by its filesystem)", str(dest))
        return owner_off
    logger.info("Set mode %04o / owner %s on %s", artifact.mode, artifact.owner, str(dest))
    return True


def write_artifact(
    artifact: GeneratedArtifact,
    *,
    root: str = "/",
    dry_run: bool = False,
    use_sudo: Optional[bool] = None,
) -> bool:
    """Write an artifact all-or-nothing, overwriting prior content.

    When the file already holds exactly this content only its mode and owner
    are corrected, and False is returned if nothing needed correcting (or the
    filesystem ignores the requested mode, as the vfat ESP does).
    use_sudo=None decides automatically: a non-root process that cannot write
    the destination installs it through sudo.
    """

    dest = _resolve(root, artifact.path)
    escalate = _needs_escalation(dest) if use_sudo is None else use_sudo

    if _current_text(dest) == artifact.content:
        return _fix_metadata(dest, artifact, escalate=escalate, dry_run=dry_run)

    if dry_run:
        logger.info("Would write %s (mode %04o)", str(dest), artifact.mode)
        return True

    if escalate:
        _install_with_sudo(dest, artifact)
    else:
        _write_atomic(dest, artifact)

    logger.info("Wrote %s (mode %04o)", str(dest), artifact.mode)
    return True
