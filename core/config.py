from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional


DATA_DIR = Path(__file__).resolve().parents[1]
DATA_FILE_NAME = "budget_latest.json"
META_FILE_NAME = "budget_meta.json"


@dataclass(frozen=True)
class Settings:
    data_url: str = str(DATA_DIR / DATA_FILE_NAME)
    meta_url: str = str(DATA_DIR / META_FILE_NAME)
    debounce_ms: int = 150
    row_height: int = 36
    viewport_height: int = 560
    overscan: int = 10
    notification_ttl_s: float = 3.5
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])


def _as_int(value: Optional[str], default: int) -> int:
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: Optional[str], default: float) -> float:
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        return default


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from BUDGET_* environment variables; malformed numbers keep the defaults."""
    env = os.environ if env is None else env
    defaults = Settings()

    origins_raw = env.get("BUDGET_CORS_ORIGINS")
    origins = [o.strip() for o in origins_raw.split(",") if o.strip()] if origins_raw else list(defaults.cors_origins)

    return Settings(
        data_url=(env.get("BUDGET_DATA_URL") or defaults.data_url).strip(),
        meta_url=(env.get("BUDGET_META_URL") or defaults.meta_url).strip(),
        debounce_ms=max(0, _as_int(env.get("BUDGET_DEBOUNCE_MS"), defaults.debounce_ms)),
        row_height=max(1, _as_int(env.get("BUDGET_ROW_HEIGHT"), defaults.row_height)),
        viewport_height=max(1, _as_int(env.get("BUDGET_VIEWPORT_HEIGHT"), defaults.viewport_height)),
        overscan=max(0, _as_int(env.get("BUDGET_OVERSCAN"), defaults.overscan)),
        notification_ttl_s=max(0.0, _as_float(env.get("BUDGET_NOTIFICATION_TTL"), defaults.notification_ttl_s)),
        cors_origins=origins,
    )
