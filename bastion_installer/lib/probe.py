"""State probes: read-only questions about the machine.

A stage that owns an idempotency predicate asks a probe whether its effect is
already present and, if so, is skipped without side effects. Probes never
mutate anything and never raise for "no": a missing file or a failing query
command is simply an unsatisfied probe.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Sequence, Tuple

from . import block
from .command import as_root, run_cmd
from .pkg import missing_packages

logger = logging.getLogger(__name__)


class Probe(Protocol):
    def describe(self) -> str:
        ...

    def satisfied(self) -> bool:
        ...


def is_satisfied(probe: Probe) -> bool:
    ok = bool(probe.satisfied())
    logger.info("Probe %s: %s", probe.describe(), "satisfied" if ok else "not satisfied")
    return ok


def _under(root: str, path: str) -> Path:
    return Path(root) / path.lstrip("/")


@dataclass(frozen=True)
class AllOf:
    probes: Tuple[Probe, ...]

    def describe(self) -> str:
        return " and ".join(p.describe() for p in self.probes)

    def satisfied(self) -> bool:
        return all(p.satisfied() for p in self.probes)


def all_of(*probes: Probe) -> AllOf:
    return AllOf(probes=tuple(probes))


@dataclass(frozen=True)
class PathExists:
    path: str

    def describe(self) -> str:
        return f"{self.path} exists"

    def satisfied(self) -> bool:
        return os.path.lexists(self.path)


@dataclass(frozen=True)
class ConfigSectionEnabled:
    """An INI-style section header (e.g. [multilib]) is present and uncommented,
    and its first directive is uncommented too."""

    path: str
    section: str

    def describe(self) -> str:
        return f"[{self.section}] enabled in {self.path}"

    def satisfied(self) -> bool:
        try:
            lines = Path(self.path).read_text(encoding="utf-8").splitlines()
        except OSError:
            return False
        header = f"[{self.section}]"
        for i, ln in enumerate(lines):
            if ln.strip() != header:
                continue
            for follow in lines[i + 1 :]:
                s = follow.strip()
                if not s:
                    continue
                return not s.startswith("#") and not s.startswith("[")
            return False
        return False


@dataclass(frozen=True)
class FileContainsLine:
    path: str
    line: str

    def describe(self) -> str:
        return f"{self.path} contains {self.line!r}"

    def satisfied(self) -> bool:
        try:
            lines = Path(self.path).read_text(encoding="utf-8").splitlines()
        except OSError:
            return False
        return self.line.strip() in (ln.strip() for ln in lines)


def _passwd_field(root: str, db: str, name: str, index: int) -> Optional[str]:
    try:
        text = _under(root, f"/etc/{db}").read_text(encoding="utf-8")
    except OSError:
        return None
    for ln in text.splitlines():
        parts = ln.split(":")
        if parts and parts[0] == name and len(parts) > index:
            return parts[index]
    return None


@dataclass(frozen=True)
class AccountExists:
    root: str
    name: str

    def describe(self) -> str:
        return f"account {self.name} exists under {self.root}"

    def satisfied(self) -> bool:
        return _passwd_field(self.root, "passwd", self.name, 0) is not None


@dataclass(frozen=True)
class AccountHasPassword:
    root: str
    name: str

    def describe(self) -> str:
        return f"account {self.name} has a password under {self.root}"

    def satisfied(self) -> bool:
        pw = _passwd_field(self.root, "shadow", self.name, 1)
        if pw is None:
            return False
        return bool(pw) and not pw.startswith("!") and pw != "*"


@dataclass(frozen=True)
class SnapperConfigExists:
    root: str
    name: str

    def describe(self) -> str:
        return f"snapper config {self.name} exists"

    def satisfied(self) -> bool:
        return _under(self.root, f"/etc/snapper/configs/{self.name}").is_file()


@dataclass(frozen=True)
class IsMountPoint:
    path: str

    def describe(self) -> str:
        return f"{self.path} is mounted"

    def satisfied(self) -> bool:
        return run_cmd(["mountpoint", "-q", self.path], check=False, quiet=True).ok


@dataclass(frozen=True)
class IsLuksDevice:
    dev: str

    def describe(self) -> str:
        return f"{self.dev} is a LUKS container"

    def satisfied(self) -> bool:
        return run_cmd(["cryptsetup", "isLuks", self.dev], check=False, quiet=True).ok


@dataclass(frozen=True)
class IsBlockDevice:
    path: str

    def describe(self) -> str:
        return f"{self.path} is a block device"

    def satisfied(self) -> bool:
        return block.is_block_device(self.path)


@dataclass(frozen=True)
class FilesystemIs:
    dev: str
    fstype: str

    def describe(self) -> str:
        return f"{self.dev} holds {self.fstype}"

    def satisfied(self) -> bool:
        return block.fs_type(self.dev) == self.fstype


@dataclass(frozen=True)
class PartitionLabelsPresent:
    disk: str
    labels: Tuple[str, ...]

    def describe(self) -> str:
        return f"{self.disk} has partitions {','.join(self.labels)}"

    def satisfied(self) -> bool:
        present = block.partition_labels(self.disk)
        return all(label in present for label in self.labels)


@dataclass(frozen=True)
class PackagesInstalled:
    names: Tuple[str, ...]
    root: Optional[str] = None

    def describe(self) -> str:
        where = f" under {self.root}" if self.root else ""
        return f"{len(self.names)} packages installed{where}"

    def satisfied(self) -> bool:
        if self.root and not _under(self.root, "/var/lib/pacman/local").is_dir():
            return False
        return not missing_packages(self.names, root=self.root)


@dataclass(frozen=True)
class ServiceActive:
    unit: str

    def describe(self) -> str:
        return f"{self.unit} is active"

    def satisfied(self) -> bool:
        return run_cmd(["systemctl", "is-active", "--quiet", self.unit], check=False, quiet=True).ok


_UFW_ACTIVE = re.compile(r"^Status:\s+active\s*$", re.MULTILINE)


@dataclass(frozen=True)
class FirewallActive:
    def describe(self) -> str:
        return "ufw is active"

    def satisfied(self) -> bool:
        r = run_cmd(as_root(["ufw", "status"]), check=False, quiet=True)
        return r.ok and bool(_UFW_ACTIVE.search(r.stdout))


def packages_installed(names: Sequence[str], *, root: Optional[str] = None) -> PackagesInstalled:
    return PackagesInstalled(names=tuple(names), root=root)
