from __future__ import annotations

import os
from pathlib import Path


def repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def fetch_timeout_s() -> float:
    raw = (os.getenv("NARRATIVE_FETCH_TIMEOUT") or "").strip()
    try:
        v = float(raw) if raw else 15.0
    except ValueError:
        v = 15.0
    return v if v > 0 else 15.0


def fetch_user_agent() -> str:
    return (os.getenv("NARRATIVE_USER_AGENT") or "").strip() or "story-map-engine/0.1"
