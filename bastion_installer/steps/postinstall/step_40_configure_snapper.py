from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Sequence

from ... import preconditions as pre
from ...lib.command import as_root, run_cmd
from ...lib.probe import FileContainsLine, IsMountPoint, Probe, SnapperConfigExists, all_of, is_satisfied
from ...pipeline import StageContext
from ...preconditions import Check

logger = logging.getLogger(__name__)

SNAPSHOT_DIR = "/.snapshots"

# Hourly/daily timeline with a hard cap; weekly and older are not kept.
LIMITS: Dict[str, str] = {
    "TIMELINE_CREATE": "yes",
    "TIMELINE_CLEANUP": "yes",
    "TIMELINE_LIMIT_HOURLY": "5",
    "TIMELINE_LIMIT_DAILY": "7",
    "TIMELINE_LIMIT_WEEKLY": "0",
    "TIMELINE_LIMIT_MONTHLY": "0",
    "TIMELINE_LIMIT_YEARLY": "0",
    "NUMBER_LIMIT": "50",
    "ALLOW_GROUPS": "wheel",
}


def _limits_applied(ctx: StageContext, name: str) -> FileContainsLine:
    path = Path(ctx.sysroot) / "etc/snapper/configs" / name
    return FileContainsLine(str(path), f'NUMBER_LIMIT="{LIMITS["NUMBER_LIMIT"]}"')


def _create_root_config(ctx: StageContext) -> None:
    """snapper wants to create .snapshots itself, but the @snapshots subvolume
    is already mounted there from fstab. Let snapper create its nested
    subvolume, drop it, and remount ours in its place."""

    dry = ctx.dry_run
    if is_satisfied(IsMountPoint(SNAPSHOT_DIR)):
        run_cmd(as_root(["umount", SNAPSHOT_DIR]), dry_run=dry)
    run_cmd(as_root(["rm", "-rf", SNAPSHOT_DIR]), dry_run=dry)
    run_cmd(as_root(["snapper", "-c", "root", "create-config", "/"]), dry_run=dry)
    run_cmd(as_root(["btrfs", "subvolume", "delete", SNAPSHOT_DIR]), dry_run=dry)


def _mount_snapshots(ctx: StageContext) -> None:
    dry = ctx.dry_run
    if not dry and is_satisfied(IsMountPoint(SNAPSHOT_DIR)):
        return
    # An interrupted run can leave snapper's own nested subvolume behind.
    nested = run_cmd(as_root(["btrfs", "subvolume", "show", SNAPSHOT_DIR]), check=False, quiet=True, dry_run=dry)
    if nested.ok and not dry:
        run_cmd(as_root(["btrfs", "subvolume", "delete", SNAPSHOT_DIR]), dry_run=dry)
    run_cmd(as_root(["mkdir", "-p", SNAPSHOT_DIR]), dry_run=dry)
    run_cmd(as_root(["mount", "-a"]), dry_run=dry)
    run_cmd(as_root(["chmod", "750", SNAPSHOT_DIR]), dry_run=dry)


class ConfigureSnapperStage:
    stage_id = "40_configure_snapper"
    depends_on = ("30_install_packages",)

    def is_satisfied(self, ctx: StageContext) -> bool:
        probes: List[Probe] = []
        for name, path in ctx.env.snapper_configs:
            probes += [SnapperConfigExists(ctx.sysroot, name), _limits_applied(ctx, name)]
            if path == "/":
                probes.append(IsMountPoint(SNAPSHOT_DIR))
        return is_satisfied(all_of(*probes))

    def preconditions(self, ctx: StageContext) -> Sequence[Check]:
        return [pre.command_available("snapper"), pre.command_available("btrfs")]

    def run(self, ctx: StageContext) -> None:
        # Only create-config is skipped for an existing config; the mount and
        # limits are reapplied on every run.
        for name, path in ctx.env.snapper_configs:
            exists = is_satisfied(SnapperConfigExists(ctx.sysroot, name))
            if path == "/":
                if not exists:
                    _create_root_config(ctx)
                _mount_snapshots(ctx)
            elif not exists:
                run_cmd(as_root(["snapper", "-c", name, "create-config", path]), dry_run=ctx.dry_run)

            settings = [f"{k}={v}" for k, v in LIMITS.items()]
            run_cmd(as_root(["snapper", "-c", name, "set-config", *settings]), dry_run=ctx.dry_run)
            logger.info("snapper config %s ready for %s", name, path)
