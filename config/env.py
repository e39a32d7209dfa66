"""Environment variable loading helpers.

Local configuration comes from dotenv-style files.

Load order (existing process env vars are never overridden):
- .env
- .env.dev (only when DJANGO_ENV=dev)

The typed readers below are what config/settings.py uses to turn the
resulting environment into settings values.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

TRUE_VALUES = {"1", "true", "yes", "on"}


def _should_load_dev_env() -> bool:
    return os.environ.get("DJANGO_ENV", "").lower() in {"dev", "development", "local"}


def load_env(base_dir: Path | None = None) -> None:
    """Load .env files into process environment.

    Safe to call multiple times.

    Args:
        base_dir: Project root directory. Defaults to config/.., the same
            BASE_DIR config/settings.py uses.
    """
    if base_dir is None:
        base_dir = Path(__file__).resolve().parent.parent

    load_dotenv(base_dir / ".env", override=False)

    if _should_load_dev_env():
        load_dotenv(base_dir / ".env.dev", override=False)


def env_str(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in TRUE_VALUES


def env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return int(raw)


def env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    return float(raw)


def env_list(name: str, default: list[str] | None = None) -> list[str]:
    """Comma-separated list, e.g. NOTIFY_SKIP=email,webhook."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return list(default or [])
    return [item.strip() for item in raw.split(",") if item.strip()]


def env_json(name: str, default: Any = None) -> Any:
    """JSON-encoded value, e.g. NOTIFY_CHANNELS='{"chat": {"webhook_url": "..."}}'."""
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return json.loads(raw)
