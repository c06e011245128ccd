from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from ...errors import OperationFailed
from ...lib.emit import GeneratedArtifact, write_artifact
from ...lib.probe import ConfigSectionEnabled, is_satisfied
from ...pipeline import StageContext

logger = logging.getLogger(__name__)

PACMAN_CONF = "/etc/pacman.conf"
SECTION = "multilib"


def enable_section(text: str, section: str) -> str:
    """Uncomment `#[section]` and the directives that belong to it.

    Raises KeyError when the section is not in the file at all.
    """

    lines: List[str] = text.splitlines()
    header = f"[{section}]"
    start = None
    for i, ln in enumerate(lines):
        if ln.strip().lstrip("#").strip() == header:
            start = i
            break
    if start is None:
        raise KeyError(section)

    lines[start] = header
    for i in range(start + 1, len(lines)):
        s = lines[i].strip()
        if not s:
            break
        body = s.lstrip("#").strip()
        if body.startswith("["):
            break
        # Only "#Key = value" lines; prose comments stay as they are.
        if s.startswith("#") and "=" in body:
            lines[i] = body
    return "\n".join(lines) + ("\n" if text.endswith("\n") else "")


class EnableMultilibStage:
    stage_id = "10_enable_multilib"
    depends_on = ()

    def _conf(self, ctx: StageContext) -> Path:
        return Path(ctx.sysroot) / PACMAN_CONF.lstrip("/")

    def is_satisfied(self, ctx: StageContext) -> bool:
        return is_satisfied(ConfigSectionEnabled(str(self._conf(ctx)), SECTION))

    def run(self, ctx: StageContext) -> None:
        conf = self._conf(ctx)
        text = conf.read_text(encoding="utf-8")
        try:
            updated = enable_section(text, SECTION)
        except KeyError:
            raise OperationFailed(f"enable [{SECTION}] in {conf}", stderr=f"no [{SECTION}] section found") from None

        write_artifact(
            GeneratedArtifact(path=PACMAN_CONF, content=updated, mode=0o644),
            root=ctx.sysroot,
            dry_run=ctx.dry_run,
        )
        logger.info("Enabled [%s] in %s", SECTION, conf)
