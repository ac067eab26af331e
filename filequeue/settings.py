from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    # Registry
    evict_idle: bool

    # Debug
    debug_log_operations: bool


def get_settings(env_file: str | None = None) -> Settings:
    if env_file is not None:
        load_dotenv(env_file)

    # Long-running processes over many paths should turn this on; the
    # default keeps one entry per path for the process lifetime.
    evict_idle = _env_bool("FILEQUEUE_EVICT_IDLE", False)

    debug_log_operations = _env_bool("FILEQUEUE_DEBUG_LOG_OPERATIONS", False)

    return Settings(
        evict_idle=evict_idle,
        debug_log_operations=debug_log_operations,
    )
