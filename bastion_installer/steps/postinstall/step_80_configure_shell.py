from __future__ import annotations

import logging
import stat
from pathlib import Path

from ...lib.emit import GeneratedArtifact, from_template, write_artifact
from ...lib.probe import FileContainsLine, is_satisfied
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

PROFILE_REL = ".config/bastion/profile.sh"
SOURCE_LINE = f"[ -f ~/{PROFILE_REL} ] && . ~/{PROFILE_REL}"


class ConfigureShellStage:
    stage_id = "80_configure_shell"
    depends_on = ()

    def run(self, ctx: StageContext) -> None:
        home = Path(ctx.home).expanduser()
        user = ctx.env.username

        write_artifact(
            from_template(str(home / PROFILE_REL), "profile.sh.tmpl", ctx.env.substitutions, owner=user),
            root="/",
            dry_run=ctx.dry_run,
            use_sudo=False,
        )

        # dotfile managers often symlink it; write through to the real file
        bashrc = (home / ".bashrc").resolve()
        if is_satisfied(FileContainsLine(str(bashrc), SOURCE_LINE)):
            return
        try:
            current = bashrc.read_text(encoding="utf-8")
            mode = stat.S_IMODE(bashrc.stat().st_mode)
        except FileNotFoundError:
            current, mode = "", 0o644
        if current and not current.endswith("\n"):
            current += "\n"
        write_artifact(
            GeneratedArtifact(path=str(bashrc), content=f"{current}\n{SOURCE_LINE}\n", mode=mode, owner=user),
            root="/",
            dry_run=ctx.dry_run,
            use_sudo=False,
        )
        logger.info("Added profile hook to %s", str(bashrc))
