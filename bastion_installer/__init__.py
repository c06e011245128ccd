"""Bastion installer (Python-first, stage-driven).

Core design goals:
- Fail fast: the first fatal error halts the run
- Idempotent stages, so a failed run is simply restarted
- Explicit, dependency-annotated stage order
- Encrypted root, btrfs subvolumes, snapshot-ready
- Centralized logging
"""

__all__ = []
