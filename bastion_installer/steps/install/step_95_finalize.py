from __future__ import annotations

import logging

from ...config import DEFAULT_HANDOFF_PATH, dump_environment
from ...lib.command import run_cmd
from ...lib.emit import GeneratedArtifact, write_artifact
from ...lib.storage import luks_close, umount
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class FinalizeStage:
    stage_id = "95_finalize"
    depends_on = ("80_install_bootloader", "90_enable_services")

    def run(self, ctx: StageContext) -> None:
        env = ctx.env

        # Handoff for bastion-postinstall after the reboot.
        write_artifact(
            GeneratedArtifact(path=DEFAULT_HANDOFF_PATH, content=dump_environment(env), mode=0o644),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )

        # Unmounting and reboot are operational and must be explicitly enabled.
        if env.unmount_on_finish or env.reboot_on_finish:
            run_cmd(["sync"], dry_run=ctx.dry_run)
            umount(env.target_root, recursive=True, dry_run=ctx.dry_run)
            luks_close(env.mapper_name, dry_run=ctx.dry_run)
        if env.reboot_on_finish:
            run_cmd(["systemctl", "reboot"], dry_run=ctx.dry_run)

        logger.info("Installation finished. Reboot, log in as %s and run bastion-postinstall.", env.username)
