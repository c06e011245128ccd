from __future__ import annotations

import logging

from ...lib.chroot import chroot_cmd
from ...lib.emit import from_template, write_artifact
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class ConfigureInitramfsStage:
    stage_id = "75_configure_initramfs"
    depends_on = ("70_configure_system",)

    def run(self, ctx: StageContext) -> None:
        write_artifact(
            from_template("/etc/mkinitcpio.conf.d/bastion.conf", "mkinitcpio.conf.tmpl", ctx.env.substitutions),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        # Always regenerate: the image must contain the encrypt hook.
        chroot_cmd(ctx.env.target_root, ["mkinitcpio", "-P"], dry_run=ctx.dry_run)
        logger.info("Initramfs rebuilt with encrypt hook")
