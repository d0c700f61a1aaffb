from __future__ import annotations

import pytest
from pydantic import ValidationError

from stories.registry import (
    clear_registry_cache,
    get_registry,
    get_story,
    list_stories,
    resolve_story_location,
)
from stories.types import StoryConfig

_STORY_YAML = """
id: {id}
title: "{id}"
enabled: {enabled}
defaultView:
  center: {{ lat: 32.73, lon: -117.16 }}
  zoom: 14
layers:
  - id: poi
    title: POI
    kind: points
    sources: ["data/poi.geojson", "https://mirror.example.test/poi.geojson"]
chapters:
  - id: intro
    layers: [poi]
"""


@pytest.fixture
def content_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("NARRATIVE_CONTENT_DIR", str(tmp_path))
    monkeypatch.delenv("NARRATIVE_DEFAULT_STORY", raising=False)
    clear_registry_cache()
    yield tmp_path
    clear_registry_cache()


def _write_story(root, story_id: str, *, enabled: bool = True, text: str | None = None):
    d = root / story_id
    d.mkdir()
    (d / "story.yaml").write_text(
        text or _STORY_YAML.format(id=story_id, enabled=str(enabled).lower()),
        encoding="utf-8",
    )
    return d


def test_bundled_story_is_discovered():
    clear_registry_cache()
    ids = [s.id for s in list_stories()]
    assert "park_walkthrough" in ids
    cfg = get_story("park_walkthrough").config
    assert [layer.id for layer in cfg.layers] == [
        "stadiums",
        "walkways",
        "nodes",
        "poi",
        "restrooms",
        "rides",
        "food",
    ]
    assert cfg.layer("poi").sources[0] == "data/poi_release.geojson"
    assert cfg.attributes.limit == 10
    assert "OBJECTID" in cfg.attributes.deny


def test_unknown_story_falls_back_to_default(content_dir):
    _write_story(content_dir, "alpha")
    _write_story(content_dir, "beta")
    assert get_story(None).config.id == "alpha"
    assert get_story("nope").config.id == "alpha"
    assert get_story("beta").config.id == "beta"


def test_default_story_env_override(content_dir, monkeypatch):
    _write_story(content_dir, "alpha")
    _write_story(content_dir, "beta")
    monkeypatch.setenv("NARRATIVE_DEFAULT_STORY", "beta")
    assert get_story(None).config.id == "beta"


def test_disabled_stories_are_hidden(content_dir):
    _write_story(content_dir, "alpha", enabled=False)
    _write_story(content_dir, "beta")
    assert [s.id for s in list_stories()] == ["beta"]
    assert get_story("alpha").config.id == "beta"


def test_no_stories_is_an_error(content_dir):
    with pytest.raises(RuntimeError):
        get_story(None)


def test_duplicate_story_ids_are_rejected(content_dir):
    _write_story(content_dir, "alpha")
    _write_story(content_dir, "alpha_copy", text=_STORY_YAML.format(id="alpha", enabled="true"))
    with pytest.raises(ValueError):
        get_registry()


def test_relative_sources_resolve_against_story_dir(content_dir):
    d = _write_story(content_dir, "alpha")
    entry = get_story("alpha")
    assert resolve_story_location(entry, "data/poi.geojson") == str(d / "data" / "poi.geojson")
    assert resolve_story_location(entry, "https://x.test/a.geojson") == "https://x.test/a.geojson"
    assert resolve_story_location(entry, "/content/shared/a.geojson") == "/content/shared/a.geojson"


def _cfg(**overrides) -> dict:
    base = {
        "id": "s",
        "title": "S",
        "defaultView": {"center": {"lat": 0, "lon": 0}, "zoom": 3},
        "layers": [{"id": "poi", "title": "POI", "kind": "points", "sources": ["a.geojson"]}],
    }
    base.update(overrides)
    return base


def test_chapter_referencing_unknown_layer_is_rejected():
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(_cfg(chapters=[{"id": "c", "layers": ["rides"]}]))
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(
            _cfg(chapters=[{"id": "c", "layers": ["poi"], "camera": {"fitLayers": ["rides"]}}])
        )
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(_cfg(fitLayers=["rides"]))


def test_duplicate_chapters_and_empty_sources_are_rejected():
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(
            _cfg(chapters=[{"id": "c", "layers": ["poi"]}, {"id": "c", "layers": []}])
        )
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(
            _cfg(layers=[{"id": "poi", "title": "POI", "kind": "points", "sources": []}])
        )


def test_projected_threshold_must_exceed_degree_range():
    with pytest.raises(ValidationError):
        StoryConfig.model_validate(_cfg(projectedThreshold=90))
