from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from geo.crs import normalize_collection
from geo.extent import Extent, extent, merge_all
from geo.view import fit_camera
from layers.errors import SourceUnavailable
from layers.resolver import SourceResolver
from layers.types import StoryLayerData
from stories.registry import StoryEntry, get_story, resolve_story_location
from symbology.classify import classify_collection
from symbology.rules import rule_set_from_config


@dataclass(frozen=True)
class StoryLayers:
    """
    Everything the presentation layer needs for a story, after ingestion.

    `layers` keeps story declaration (draw) order and only holds datasets that loaded;
    `failures` maps the remaining dataset keys to their error.
    """

    story_id: str
    layers: list[StoryLayerData]
    failures: dict[str, SourceUnavailable] = field(default_factory=dict)
    extents: dict[str, Extent | None] = field(default_factory=dict)
    fit_layer_ids: list[str] = field(default_factory=list)

    def get(self, layer_id: str) -> StoryLayerData | None:
        lid = (layer_id or "").strip()
        for layer in self.layers:
            if layer.id == lid:
                return layer
        return None

    def extent_for(self, layer_id: str) -> Extent | None:
        return self.extents.get(layer_id)

    @property
    def extent(self) -> Extent | None:
        return merge_all(self.extents.values())

    def initial_camera(
        self, *, viewport: dict[str, int] | None = None
    ) -> tuple[dict[str, float], float] | None:
        """
        Frame the configured fit layers when any of them loaded, otherwise everything.
        """
        preferred = [self.extents.get(k) for k in self.fit_layer_ids if k in self.extents]
        fitted = fit_camera(preferred, viewport=viewport) if preferred else None
        if fitted is not None:
            return fitted
        return fit_camera(self.extents.values(), viewport=viewport)


async def load_story_layers(
    story_id: str | None,
    *,
    resolver: SourceResolver | None = None,
) -> StoryLayers:
    """
    Resolve, normalize and classify every layer of a story.

    Datasets are fetched concurrently; a dataset that fails is reported in
    `failures` and the rest of the story still loads.
    """
    entry = get_story(story_id)
    return await load_entry_layers(entry, resolver=resolver)


async def load_entry_layers(
    entry: StoryEntry,
    *,
    resolver: SourceResolver | None = None,
) -> StoryLayers:
    cfg = entry.config
    resolver = resolver or SourceResolver()

    sources = {
        layer_cfg.id: [resolve_story_location(entry, s) for s in layer_cfg.sources]
        for layer_cfg in cfg.layers
    }
    results = await resolver.resolve_all(sources)

    out: list[StoryLayerData] = []
    failures: dict[str, SourceUnavailable] = {}
    extents: dict[str, Extent | None] = {}
    for layer_cfg in cfg.layers:
        res = results[layer_cfg.id]
        if res.collection is None:
            if res.error is not None:
                failures[layer_cfg.id] = res.error
            continue

        collection = normalize_collection(
            res.collection,
            threshold=cfg.projectedThreshold,
            source_crs=cfg.projectedCrs,
        )
        categories = classify_collection(
            collection, rule_set_from_config(layer_cfg.classification)
        )
        extents[layer_cfg.id] = extent(collection)
        out.append(
            StoryLayerData(
                id=layer_cfg.id,
                kind=layer_cfg.kind,
                title=layer_cfg.title,
                collection=collection,
                categories=categories,
                style=layer_cfg.style or {},
                category_styles=layer_cfg.categoryStyles or {},
            )
        )

    if failures:
        logger.warning(
            f"Story '{cfg.id}' loaded {len(out)}/{len(cfg.layers)} layers; "
            f"unavailable: {sorted(failures)}"
        )
    return StoryLayers(
        story_id=cfg.id,
        layers=out,
        failures=failures,
        extents=extents,
        fit_layer_ids=list(cfg.fitLayers),
    )
