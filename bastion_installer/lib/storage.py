from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Set, Tuple

from .block import partition_path
from .command import run_cmd

logger = logging.getLogger(__name__)

ESP_LABEL = "EFI"
ROOT_LABEL = "CRYPTROOT"

BTRFS_MOUNT_OPTIONS = "noatime,compress=zstd"

# (subvolume, mountpoint relative to the target root)
SUBVOLUME_LAYOUT: Tuple[Tuple[str, str], ...] = (
    ("@", "/"),
    ("@home", "/home"),
    ("@snapshots", "/.snapshots"),
    ("@var_log", "/var/log"),
    ("@pkg", "/var/cache/pacman/pkg"),
)


@dataclass(frozen=True)
class PartitionPlan:
    disk: str
    esp_size_mib: int = 512


@dataclass(frozen=True)
class PartitionResult:
    esp_part: str
    root_part: str


def partition_disk(*, plan: PartitionPlan, dry_run: bool = False) -> PartitionResult:
    """Wipe the disk and lay out GPT: ESP (FAT32) + one LUKS container.

    Layout:
    - 1: ESP, mounted at /boot (systemd-boot keeps kernels on the ESP)
    - 2: rest of the disk, LUKS2 holding btrfs
    """

    disk = plan.disk
    logger.info("Partitioning disk=%s esp=%sMiB", disk, plan.esp_size_mib)

    run_cmd(["wipefs", "--all", disk], dry_run=dry_run)
    run_cmd(["sgdisk", "--zap-all", disk], dry_run=dry_run)
    run_cmd(["sgdisk", "--clear", disk], dry_run=dry_run)
    run_cmd(
        [
            "sgdisk",
            f"--new=1:0:+{plan.esp_size_mib}MiB",
            "--typecode=1:ef00",
            f"--change-name=1:{ESP_LABEL}",
            disk,
        ],
        dry_run=dry_run,
    )
    run_cmd(
        [
            "sgdisk",
            "--new=2:0:0",
            "--typecode=2:8309",
            f"--change-name=2:{ROOT_LABEL}",
            disk,
        ],
        dry_run=dry_run,
    )

    # Inform kernel; node creation is asynchronous and confirmed by the caller.
    run_cmd(["partprobe", disk], dry_run=dry_run)

    return PartitionResult(esp_part=partition_path(disk, 1), root_part=partition_path(disk, 2))


def luks_format(dev: str, passphrase: str, *, dry_run: bool = False) -> None:
    run_cmd(
        ["cryptsetup", "luksFormat", "--type", "luks2", "--batch-mode", "--key-file=-", dev],
        input_text=passphrase,
        dry_run=dry_run,
    )


def luks_open(dev: str, name: str, passphrase: str, *, dry_run: bool = False) -> None:
    run_cmd(["cryptsetup", "open", "--key-file=-", dev, name], input_text=passphrase, dry_run=dry_run)


def luks_close(name: str, *, dry_run: bool = False) -> None:
    run_cmd(["cryptsetup", "close", name], dry_run=dry_run)


def make_filesystems(*, esp_part: str, root_dev: str, dry_run: bool = False) -> None:
    run_cmd(["mkfs.fat", "-F", "32", "-n", ESP_LABEL, esp_part], dry_run=dry_run)
    run_cmd(["mkfs.btrfs", "-f", "-L", "root", root_dev], dry_run=dry_run)


def parse_subvolume_list(output: str) -> Set[str]:
    """Parse `btrfs subvolume list` lines: 'ID 256 gen 9 top level 5 path @home'."""

    names: Set[str] = set()
    for ln in output.splitlines():
        if " path " in ln:
            names.add(ln.split(" path ", 1)[1].strip())
    return names


def list_subvolumes(mountpoint: str) -> Set[str]:
    r = run_cmd(["btrfs", "subvolume", "list", mountpoint], quiet=True)
    return parse_subvolume_list(r.stdout)


def create_subvolumes(
    mountpoint: str,
    names: Iterable[str],
    *,
    existing: Set[str],
    dry_run: bool = False,
) -> List[str]:
    created: List[str] = []
    for name in names:
        if name in existing:
            logger.info("Subvolume %s already exists", name)
            continue
        run_cmd(["btrfs", "subvolume", "create", f"{mountpoint}/{name}"], dry_run=dry_run)
        created.append(name)
    return created


def mount(dev: str, mountpoint: str, *, options: Sequence[str] = (), dry_run: bool = False) -> None:
    run_cmd(["mkdir", "-p", mountpoint], dry_run=dry_run)
    argv = ["mount"]
    if options:
        argv += ["-o", ",".join(options)]
    run_cmd([*argv, dev, mountpoint], dry_run=dry_run)


def umount(mountpoint: str, *, recursive: bool = False, dry_run: bool = False) -> None:
    argv = ["umount"]
    if recursive:
        argv.append("-R")
    run_cmd([*argv, mountpoint], dry_run=dry_run)
