from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .errors import PreconditionNotMet
from .lib.block import is_block_device
from .lib.hwdetect import detect_firmware, memory_mib
from .lib.net import is_online

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Check:
    """A read-only boolean check tied to the message shown when it fails."""

    message: str
    predicate: Callable[[], bool]


def verify(checks: Sequence[Check]) -> None:
    """Evaluate checks in order; raise on the first failure, skip the rest."""

    for check in checks:
        if not check.predicate():
            logger.error("Precondition failed: %s", check.message)
            raise PreconditionNotMet(check.message)
    logger.info("Preconditions satisfied (%d checks)", len(checks))


def uefi_boot(efivars_path: str = "/sys/firmware/efi/efivars") -> Check:
    return Check(
        "System is not booted in UEFI mode",
        lambda: detect_firmware(efivars_path) == "uefi",
    )


def network_reachable(host: str, *, dry_run: bool = False) -> Check:
    return Check(f"No network connectivity ({host} unreachable)", lambda: is_online(host, dry_run=dry_run))


def device_exists(device: str) -> Check:
    return Check(f"{device} not found", lambda: os.path.exists(device))


def is_block(device: str) -> Check:
    return Check(f"{device} is not a block device", lambda: is_block_device(device))


def min_memory(mib: int, meminfo_path: str = "/proc/meminfo") -> Check:
    def _enough() -> bool:
        total = memory_mib(meminfo_path)
        return total is not None and total >= mib

    return Check(f"At least {mib} MiB of memory is required", _enough)


def is_superuser() -> Check:
    return Check("This installer must be run as root", lambda: os.geteuid() == 0)


def not_superuser() -> Check:
    return Check(
        "Do not run this as root; run it as the provisioned user",
        lambda: os.geteuid() != 0,
    )


def command_available(name: str) -> Check:
    return Check(f"Required command not found: {name}", lambda: shutil.which(name) is not None)


def file_exists(path: str, message: str) -> Check:
    return Check(message, lambda: Path(path).exists())
