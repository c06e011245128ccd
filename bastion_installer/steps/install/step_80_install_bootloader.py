from __future__ import annotations

import logging

from ...lib.block import get_uuid
from ...lib.chroot import chroot_cmd
from ...lib.emit import from_template, write_artifact
from ...lib.probe import PathExists, is_satisfied
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


class InstallBootloaderStage:
    stage_id = "80_install_bootloader"
    depends_on = ("75_configure_initramfs",)

    def run(self, ctx: StageContext) -> None:
        env = ctx.env

        efi_binary = env.target_path("/boot/EFI/systemd/systemd-bootx64.efi")
        if not is_satisfied(PathExists(efi_binary)):
            chroot_cmd(env.target_root, ["bootctl", "install"], dry_run=ctx.dry_run)

        luks_uuid = get_uuid(env.root_partition, dry_run=ctx.dry_run)
        variables = dict(env.substitutions, luks_uuid=luks_uuid)

        write_artifact(
            from_template("/boot/loader/loader.conf", "loader.conf.tmpl", variables, mode=0o600),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        write_artifact(
            from_template("/boot/loader/entries/arch.conf", "arch-entry.conf.tmpl", variables, mode=0o600),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        logger.info("systemd-boot configured (luks_uuid=%s)", luks_uuid)
