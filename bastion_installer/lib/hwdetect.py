from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_CPU_VENDOR_MAP = {
    "genuineintel": "intel",
    "authenticamd": "amd",
}

_MICROCODE_BY_VENDOR = {
    "intel": "intel-ucode",
    "amd": "amd-ucode",
}


def detect_firmware(efivars_path: str = "/sys/firmware/efi/efivars") -> str:
    """Detect firmware type for the *currently running* environment.

    Returns: 'uefi' or 'bios'.
    """

    if Path(efivars_path).is_dir():
        return "uefi"
    return "bios"


def memory_mib(meminfo_path: str = "/proc/meminfo") -> Optional[int]:
    """Return MemTotal in MiB, or None when it cannot be read."""

    try:
        for line in Path(meminfo_path).read_text(encoding="utf-8").splitlines():
            if line.startswith("MemTotal:"):
                return int(line.split()[1]) // 1024
    except (OSError, ValueError, IndexError):
        logger.warning("Unable to read memory size from %s", meminfo_path)
    return None


def cpu_vendor(cpuinfo_path: str = "/proc/cpuinfo") -> str:
    try:
        for line in Path(cpuinfo_path).read_text(encoding="utf-8", errors="ignore").splitlines():
            if line.startswith("vendor_id"):
                raw = line.split(":", 1)[1].strip().lower()
                return _CPU_VENDOR_MAP.get(raw, "unknown")
    except OSError:
        pass
    return "unknown"


def microcode_package(vendor: str) -> Optional[str]:
    return _MICROCODE_BY_VENDOR.get(vendor)
