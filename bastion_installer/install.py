from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from . import preconditions as pre
from .cli import add_common_args, common_overrides, finish, print_stages, setup_logging
from .config import Environment, load_environment
from .errors import ConfigError
from .lib.secrets import SecretPrompt
from .pipeline import PipelineResult, Stage, StageContext, run_pipeline
from .preconditions import Check
from .steps.install import (
    ConfigureInitramfsStage,
    ConfigureSystemStage,
    CreateFilesystemsStage,
    CreateSubvolumesStage,
    CreateUserStage,
    EnableServicesStage,
    EncryptRootStage,
    FinalizeStage,
    GenerateFstabStage,
    InstallBaseStage,
    InstallBootloaderStage,
    MountFilesystemsStage,
    OpenEncryptedStage,
    PartitionDiskStage,
    PrepareLiveStage,
)
from .steps.install.step_30_encrypt_root import LUKS_SECRET

logger = logging.getLogger(__name__)

PIPELINE_NAME = "install"

REQUIRED_TOOLS = [
    "sgdisk",
    "partprobe",
    "cryptsetup",
    "mkfs.fat",
    "mkfs.btrfs",
    "btrfs",
    "pacstrap",
    "genfstab",
    "arch-chroot",
]


def build_stages() -> List[Stage]:
    """Fixed order: partition, encrypt, filesystems, mount, packages, config, services."""

    return [
        PrepareLiveStage(),
        PartitionDiskStage(),
        EncryptRootStage(),
        OpenEncryptedStage(),
        CreateFilesystemsStage(),
        CreateSubvolumesStage(),
        MountFilesystemsStage(),
        InstallBaseStage(),
        GenerateFstabStage(),
        ConfigureSystemStage(),
        ConfigureInitramfsStage(),
        InstallBootloaderStage(),
        CreateUserStage(),
        EnableServicesStage(),
        FinalizeStage(),
    ]


def entry_checks(env: Environment, *, dry_run: bool = False) -> List[Check]:
    return [
        pre.is_superuser(),
        pre.uefi_boot(),
        *[pre.command_available(t) for t in REQUIRED_TOOLS],
        pre.network_reachable(env.network_probe_host, dry_run=dry_run),
        pre.device_exists(env.device),
        pre.is_block(env.device),
        pre.min_memory(env.min_memory_mib),
    ]


def run(env: Environment, *, dry_run: bool = False, secrets: Optional[SecretPrompt] = None) -> PipelineResult:
    """Run the install pipeline against env.device."""

    if secrets is None:
        files = {LUKS_SECRET: env.luks_passphrase_file} if env.luks_passphrase_file else {}
        secrets = SecretPrompt(files=files, dry_run=dry_run)

    ctx = StageContext(env=env, secrets=secrets, sysroot=env.target_root, dry_run=dry_run)
    logger.info("=== Install: device=%s hostname=%s user=%s ===", env.device, env.hostname, env.username)
    return run_pipeline(
        name=PIPELINE_NAME,
        ctx=ctx,
        stages=build_stages(),
        checks=entry_checks(env, dry_run=dry_run),
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bastion-install",
        description="Wipe DEVICE and install an encrypted, snapshot-ready system onto it.",
    )
    p.add_argument("--device", default=None, help="Target block device (ALL DATA IS DESTROYED)")
    p.add_argument("--target-root", default=None, help="Mountpoint for the target (default /mnt)")
    p.add_argument("--luks-passphrase-file", default=None, help="Read the disk passphrase from a file")
    p.add_argument("--unmount", action="store_true", default=None, help="Unmount and close the target when done")
    p.add_argument("--reboot", action="store_true", default=None, help="Reboot when done")
    add_common_args(p)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.list_stages:
        print_stages(build_stages())
        return 0

    overrides = dict(
        common_overrides(args),
        device=args.device,
        target_root=args.target_root,
        luks_passphrase_file=args.luks_passphrase_file,
        unmount_on_finish=args.unmount,
        reboot_on_finish=args.reboot,
    )
    try:
        env = load_environment(args.config, overrides)
    except (ConfigError, FileNotFoundError) as e:
        print(f"bastion-install: configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(args)
    result = run(env, dry_run=bool(args.dry_run))
    return finish(result, report_path=args.report)


if __name__ == "__main__":
    raise SystemExit(main())
