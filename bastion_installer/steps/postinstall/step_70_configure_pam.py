from __future__ import annotations

from ...lib.emit import from_template, write_artifact
from ...pipeline import StageContext

FAILLOCK_CONF = "/etc/security/faillock.conf"


class ConfigurePamStage:
    stage_id = "70_configure_pam"
    depends_on = ("30_install_packages",)

    def run(self, ctx: StageContext) -> None:
        write_artifact(
            from_template(FAILLOCK_CONF, "faillock.conf.tmpl", ctx.env.substitutions),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
