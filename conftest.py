"""Seed the environment from .env.test so ``chattr_sync.config`` imports without a real .env."""
from __future__ import annotations

import os
from pathlib import Path

ENV_FILE = Path(__file__).resolve().parent / ".env.test"


def _load_env(path: Path) -> None:
    for raw in path.read_text().splitlines():
        entry = raw.strip()
        if entry and not entry.startswith("#"):
            name, _, value = entry.partition("=")
            os.environ.setdefault(name.strip(), value.strip())


if ENV_FILE.exists():
    _load_env(ENV_FILE)
