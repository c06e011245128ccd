from __future__ import annotations

import logging

from ...lib.chroot import chroot_cmd
from ...lib.emit import GeneratedArtifact, from_template, write_artifact
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


def locale_charset(locale: str) -> str:
    # en_US.UTF-8 -> UTF-8; a bare locale name falls back to ISO-8859-1
    if "." in locale:
        return locale.split(".", 1)[1].split("@", 1)[0]
    return "ISO-8859-1"


class ConfigureSystemStage:
    stage_id = "70_configure_system"
    depends_on = ("65_generate_fstab",)

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        variables = dict(env.substitutions, locale_charset=locale_charset(env.locale))

        artifacts = [
            GeneratedArtifact(path="/etc/hostname", content=env.hostname + "\n"),
            from_template("/etc/hosts", "hosts.tmpl", variables),
            from_template("/etc/locale.gen", "locale.gen.tmpl", variables),
            from_template("/etc/locale.conf", "locale.conf.tmpl", variables),
            from_template("/etc/vconsole.conf", "vconsole.conf.tmpl", variables),
        ]
        for artifact in artifacts:
            write_artifact(artifact, root=ctx.sysroot, dry_run=ctx.dry_run)

        root = env.target_root
        chroot_cmd(root, ["ln", "-sf", f"/usr/share/zoneinfo/{env.timezone}", "/etc/localtime"], dry_run=ctx.dry_run)
        chroot_cmd(root, ["hwclock", "--systohc"], dry_run=ctx.dry_run)
        chroot_cmd(root, ["locale-gen"], dry_run=ctx.dry_run)

        logger.info("Configured hostname=%s locale=%s timezone=%s", env.hostname, env.locale, env.timezone)
