from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from layers.config import repo_root
from stories.types import StoryConfig


def content_root() -> Path:
    override = (os.getenv("NARRATIVE_CONTENT_DIR") or "").strip()
    if override:
        return Path(override)
    return repo_root() / "content"


@dataclass(frozen=True)
class StoryEntry:
    config: StoryConfig
    # Absolute path to story.yaml on disk (useful for debugging).
    path: Path


def _iter_story_yaml_files() -> Iterable[Path]:
    root = content_root()
    if not root.exists():
        return []
    # Convention: content/*/story.yaml
    return root.glob("*/story.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid story yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_registry() -> dict[str, StoryEntry]:
    out: dict[str, StoryEntry] = {}
    for p in sorted(_iter_story_yaml_files(), key=lambda x: str(x)):
        cfg = StoryConfig.model_validate(_load_yaml(p))
        if cfg.enabled and not cfg.layers:
            raise ValueError(f"Enabled story is missing `layers`: {p}")
        if cfg.id in out:
            raise ValueError(f"Duplicate story id '{cfg.id}': {p}")
        out[cfg.id] = StoryEntry(config=cfg, path=p)
    return out


def default_story_id() -> str | None:
    reg = get_registry()
    preferred = (os.getenv("NARRATIVE_DEFAULT_STORY") or "").strip()
    if preferred and preferred in reg:
        return preferred
    enabled = [sid for sid, e in reg.items() if e.config.enabled]
    # Fall back to stable ordering.
    return next(iter(enabled), None)


def list_stories() -> list[StoryConfig]:
    return [e.config for e in get_registry().values() if e.config.enabled]


def get_story(story_id: str | None) -> StoryEntry:
    reg = get_registry()
    default_id = default_story_id()
    if default_id is None:
        raise RuntimeError("No stories discovered under `content/*/story.yaml`")
    sid = (story_id or "").strip() or default_id
    if sid not in reg or not reg[sid].config.enabled:
        # Unknown stories fall back to the default one.
        sid = default_id
    return reg[sid]


def resolve_story_location(entry: StoryEntry, location: str) -> str:
    """
    Story sources may be relative to the story directory ("data/x.geojson");
    URLs and repo-absolute paths ("/content/...") pass through unchanged.
    """
    loc = (location or "").strip()
    if loc.lower().startswith(("http://", "https://", "file://")) or loc.startswith("/"):
        return loc
    return str(entry.path.parent / loc)


def clear_registry_cache() -> None:
    """
    Clear in-memory story registry cache.

    Story YAML changes are otherwise not picked up until the process restarts.
    """
    get_registry.cache_clear()
