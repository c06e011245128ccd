from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, Optional, Sequence

from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .pipeline import PipelineResult, Stage, format_report
from .report import save_report


def add_common_args(p: argparse.ArgumentParser, *, config_default: Optional[str] = None) -> None:
    p.add_argument("--config", default=config_default, help="YAML configuration file")
    p.add_argument("--hostname", default=None)
    p.add_argument("--username", default=None, help="Primary (non-root) user")
    p.add_argument("--locale", default=None, help="e.g. en_US.UTF-8")
    p.add_argument("--timezone", default=None, help="e.g. Europe/Berlin")
    p.add_argument("--keymap", default=None, help="Console keymap, e.g. us")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--report", default=None, help="Write the final report here (.json or .yaml)")
    p.add_argument("--dry-run", action="store_true", help="Log commands and writes without executing them")
    p.add_argument("--verbose", action="store_true", help="Log command output (DEBUG)")
    p.add_argument("--list-stages", action="store_true", help="Print the stage order and exit")


def common_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "hostname": args.hostname,
        "username": args.username,
        "locale": args.locale,
        "timezone": args.timezone,
        "keymap": args.keymap,
    }


def setup_logging(args: argparse.Namespace) -> str:
    return configure_logging(log_path=args.log, level=logging.DEBUG if args.verbose else logging.INFO)


def print_stages(stages: Sequence[Stage]) -> None:
    width = max(len(s.stage_id) for s in stages)
    for s in stages:
        deps = ", ".join(s.depends_on) or "-"
        idem = "probe" if hasattr(s, "is_satisfied") else ""
        print(f"{s.stage_id.ljust(width)}  after: {deps}  {idem}".rstrip())


def finish(result: PipelineResult, *, report_path: Optional[str]) -> int:
    """Print the human report, persist it if asked, and map to an exit code."""

    if report_path:
        save_report(report_path, result)

    text = format_report(result)
    if result.ok:
        sys.stdout.write(text)
    else:
        sys.stderr.write(text)
    return result.exit_code
