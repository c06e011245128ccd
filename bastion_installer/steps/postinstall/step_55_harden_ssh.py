from __future__ import annotations

from ...lib.command import as_root, run_cmd
from ...lib.emit import from_template, write_artifact
from ...pipeline import StageContext

SSHD_DROPIN = "/etc/ssh/sshd_config.d/50-bastion.conf"


class HardenSshStage:
    stage_id = "55_harden_ssh"
    depends_on = ("30_install_packages",)

    def run(self, ctx: StageContext) -> None:
        write_artifact(
            from_template(SSHD_DROPIN, "sshd-hardening.conf.tmpl", ctx.env.substitutions, mode=0o600),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        # Fresh installs have no host keys yet and sshd -t rejects that.
        run_cmd(as_root(["ssh-keygen", "-A"]), dry_run=ctx.dry_run)
        # Refuse to leave a config behind that sshd would not start with.
        run_cmd(as_root(["sshd", "-t"]), dry_run=ctx.dry_run)
