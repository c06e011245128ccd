from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import preconditions as pre
from .cli import add_common_args, common_overrides, finish, print_stages, setup_logging
from .config import DEFAULT_HANDOFF_PATH, Environment, load_environment
from .errors import ConfigError
from .pipeline import PipelineResult, Stage, StageContext, run_pipeline
from .preconditions import Check
from .steps.postinstall import (
    ConfigureAuditStage,
    ConfigureDnsStage,
    ConfigureFirewallStage,
    ConfigurePamStage,
    ConfigureShellStage,
    ConfigureSnapperStage,
    DiagnosticsStage,
    EnableMultilibStage,
    EnableServicesStage,
    HardenKernelStage,
    HardenSshStage,
    InstallPackagesStage,
    UpgradeSystemStage,
)

logger = logging.getLogger(__name__)

PIPELINE_NAME = "postinstall"


def build_stages() -> List[Stage]:
    return [
        EnableMultilibStage(),
        UpgradeSystemStage(),
        InstallPackagesStage(),
        ConfigureSnapperStage(),
        ConfigureFirewallStage(),
        HardenSshStage(),
        HardenKernelStage(),
        ConfigureAuditStage(),
        ConfigurePamStage(),
        ConfigureDnsStage(),
        ConfigureShellStage(),
        EnableServicesStage(),
        DiagnosticsStage(),
    ]


def entry_checks(env: Environment, *, dry_run: bool = False) -> List[Check]:
    # Runs as the login user; privileged steps go through sudo one at a time.
    return [
        pre.not_superuser(),
        pre.command_available("sudo"),
        pre.command_available("pacman"),
        pre.network_reachable(env.network_probe_host, dry_run=dry_run),
    ]


def run(env: Environment, *, dry_run: bool = False, home: Optional[str] = None) -> PipelineResult:
    """Harden the freshly booted system for env.username."""

    ctx = StageContext(
        env=env,
        sysroot="/",
        home=home or str(Path.home()),
        dry_run=dry_run,
    )
    logger.info("=== Post-install: user=%s ===", env.username)
    return run_pipeline(
        name=PIPELINE_NAME,
        ctx=ctx,
        stages=build_stages(),
        checks=entry_checks(env, dry_run=dry_run),
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bastion-postinstall",
        description="Harden an installed system: snapshots, firewall, ssh, kernel, audit, DNS.",
    )
    p.add_argument("--ssh-port", type=int, default=None)
    add_common_args(p, config_default=DEFAULT_HANDOFF_PATH)
    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    if args.list_stages:
        print_stages(build_stages())
        return 0

    overrides = dict(common_overrides(args), ssh_port=args.ssh_port)
    try:
        env = load_environment(args.config, overrides, require=("username",))
    except (ConfigError, FileNotFoundError) as e:
        print(f"bastion-postinstall: configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(args)
    result = run(env, dry_run=bool(args.dry_run))
    return finish(result, report_path=args.report)


if __name__ == "__main__":
    raise SystemExit(main())
