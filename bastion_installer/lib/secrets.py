from __future__ import annotations

import getpass
import logging
from pathlib import Path
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


class SecretPrompt:
    """Collects credential material from a human, once per run.

    This is the one place the pipeline blocks on a person: the prompt repeats
    until a non-empty, confirmed value is entered. Values are cached by key so
    that e.g. the LUKS passphrase typed for luksFormat is reused for open.
    """

    def __init__(
        self,
        *,
        files: Optional[Dict[str, str]] = None,
        ask: Callable[[str], str] = getpass.getpass,
        dry_run: bool = False,
    ) -> None:
        self._files = dict(files or {})
        self._ask = ask
        self._dry_run = dry_run
        self._cache: Dict[str, str] = {}

    def get(self, key: str, label: str, *, confirm: bool = True) -> str:
        if key in self._cache:
            return self._cache[key]

        if self._dry_run:
            logger.info("Would prompt for %s", label)
            return ""

        path = self._files.get(key)
        if path:
            value = Path(path).read_text(encoding="utf-8").rstrip("\n")
            if not value:
                raise ValueError(f"{label} file is empty: {path}")
            logger.info("Read %s from %s", label, path)
            self._cache[key] = value
            return value

        while True:
            value = self._ask(f"{label}: ")
            if not value:
                print(f"{label} must not be empty")
                continue
            if confirm and self._ask(f"Confirm {label}: ") != value:
                print("Entries do not match, try again")
                continue
            break

        self._cache[key] = value
        return value
