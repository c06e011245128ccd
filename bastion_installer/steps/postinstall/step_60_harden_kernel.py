from __future__ import annotations

from ...lib.command import as_root, run_cmd
from ...lib.emit import from_template, write_artifact
from ...pipeline import StageContext

SYSCTL_DROPIN = "/etc/sysctl.d/99-bastion.conf"


class HardenKernelStage:
    stage_id = "60_harden_kernel"
    depends_on = ("30_install_packages",)

    def run(self, ctx: StageContext) -> None:
        write_artifact(
            from_template(SYSCTL_DROPIN, "sysctl-hardening.conf.tmpl", ctx.env.substitutions),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        run_cmd(as_root(["sysctl", "--system"]), quiet=True, dry_run=ctx.dry_run)
