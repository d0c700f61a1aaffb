from __future__ import annotations

from narrative.controller import ExtentLookup, NarrativeController
from narrative.types import ChapterSpec, Renderer
from stories.types import StoryConfig


def controller_for_story(
    cfg: StoryConfig,
    renderer: Renderer,
    *,
    extent_for: ExtentLookup | None = None,
    viewport: dict[str, int] | None = None,
) -> NarrativeController:
    return NarrativeController(
        [ChapterSpec.from_config(c) for c in cfg.chapters],
        renderer,
        layer_keys=[layer.id for layer in cfg.layers],
        extent_for=extent_for,
        preferences={layer.id: list(layer.preferredAttributes) for layer in cfg.layers},
        deny=cfg.attributes.deny,
        attribute_limit=cfg.attributes.limit,
        viewport=viewport,
    )
