from __future__ import annotations

import logging

from ...errors import OperationFailed
from ...lib.chroot import chroot_cmd
from ...lib.command import fmt_argv
from ...lib.emit import from_template, write_artifact
from ...lib.probe import AccountExists, AccountHasPassword, is_satisfied
from ...pipeline import StageContext

logger = logging.getLogger(__name__)


def _set_password(ctx: StageContext, user: str) -> None:
    """Ask for the password until passwd accepts it (mismatch, too weak, ...)."""

    root = ctx.env.target_root
    attempt = 1
    while True:
        print(f"Set the login password for {user}:")
        r = chroot_cmd(root, ["passwd", user], check=False, interactive=True, dry_run=ctx.dry_run)
        if r.ok:
            return
        if r.returncode == 127:
            raise OperationFailed(fmt_argv(r.argv), r.returncode, r.stderr)
        logger.warning("passwd for %s exited %d (attempt %d); asking again", user, r.returncode, attempt)
        attempt += 1


class CreateUserStage:
    stage_id = "85_create_user"
    depends_on = ("70_configure_system",)

    def run(self, ctx: StageContext) -> None:
        env = ctx.env
        root = env.target_root
        user = env.username

        if not is_satisfied(AccountExists(ctx.sysroot, user)):
            chroot_cmd(root, ["useradd", "-m", "-G", "wheel", "-s", "/bin/bash", user], dry_run=ctx.dry_run)

        if not is_satisfied(AccountHasPassword(ctx.sysroot, user)):
            _set_password(ctx, user)

        write_artifact(
            from_template("/etc/sudoers.d/10-wheel", "sudoers-wheel.tmpl", env.substitutions, mode=0o440),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        chroot_cmd(root, ["visudo", "-c", "-q"], dry_run=ctx.dry_run)

        # Root logs in only via sudo from the wheel user.
        chroot_cmd(root, ["passwd", "-l", "root"], dry_run=ctx.dry_run)
        logger.info("User %s ready (wheel, root locked)", user)
