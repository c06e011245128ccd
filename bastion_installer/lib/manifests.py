from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

import yaml

_MANIFEST_DIR = Path(__file__).resolve().parents[1] / "manifests"


def load_yaml_rel(rel_path: str) -> Dict[str, Any]:
    """Load a YAML file shipped under bastion_installer/manifests/."""

    p = _MANIFEST_DIR / rel_path.lstrip("/")
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Manifest must be a mapping/dict: {p}")
    return data


def package_group(name: str) -> List[str]:
    """Return the package list for a named group in packages.yaml."""

    groups = load_yaml_rel("packages.yaml").get("groups") or {}
    if not isinstance(groups, dict):
        raise ValueError("packages.yaml: groups must be a mapping")
    if name not in groups:
        raise KeyError(f"Unknown package group: {name}")
    pkgs = groups[name] or []
    if not isinstance(pkgs, list):
        raise ValueError(f"Package group {name} must be a list")
    return [str(p).strip() for p in pkgs if str(p).strip()]
