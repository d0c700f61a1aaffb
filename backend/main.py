from __future__ import annotations

import os
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from loguru import logger
from pydantic import BaseModel, Field

from api.narrate_stream import narrate
from layers.load_story import StoryLayers, load_story_layers
from layers.query import build_hit_indexes, features_at
from narrative.recording import RecordingRenderer
from narrative.story import controller_for_story
from stories.registry import get_story, list_stories


def _cors_origins() -> list[str]:
    raw = os.getenv("NARRATIVE_CORS_ORIGINS") or "http://localhost:3000"
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiViewport(BaseModel):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ApiNarrateRequest(BaseModel):
    signals: list[str]
    current: str | None = None
    viewport: ApiViewport | None = None


class ApiInspectRequest(BaseModel):
    layerId: str | None = None
    properties: dict[str, Any] | None = None
    lon: float | None = None
    lat: float | None = None
    tolerance: float = Field(default=0.0002, gt=0.0, le=1.0)


_layers_cache: dict[str, StoryLayers] = {}


async def _story_layers(story_id: str) -> StoryLayers:
    cached = _layers_cache.get(story_id)
    if cached is not None:
        return cached
    loaded = await load_story_layers(story_id)
    # Partial loads are retried on the next request.
    if not loaded.failures:
        _layers_cache[loaded.story_id] = loaded
    return loaded


def clear_story_cache() -> None:
    _layers_cache.clear()


@app.get("/stories")
def get_stories():
    return [
        {
            "id": s.id,
            "title": s.title,
            "defaultView": s.defaultView.model_dump(),
            "layers": [layer.id for layer in s.layers],
            "chapters": [c.id for c in s.chapters],
        }
        for s in list_stories()
    ]


@app.get("/stories/{story_id}/layers")
async def get_story_layers(story_id: str):
    cfg = get_story(story_id).config
    loaded = await _story_layers(cfg.id)

    camera = loaded.initial_camera()
    return {
        "storyId": cfg.id,
        "layers": {
            layer.id: {
                "title": layer.title,
                "kind": layer.kind,
                "style": layer.style,
                "categoryStyles": layer.category_styles,
                "data": layer.collection.to_geojson(categories=layer.categories),
            }
            for layer in loaded.layers
        },
        "order": [layer.id for layer in loaded.layers],
        "failures": {
            key: {"message": str(err), "attempts": err.attempts}
            for key, err in loaded.failures.items()
        },
        "extent": None if loaded.extent is None else loaded.extent.as_list(),
        "camera": None
        if camera is None
        else {"center": camera[0], "zoom": camera[1]},
    }


@app.post("/stories/{story_id}/narrate")
async def post_narrate(story_id: str, body: ApiNarrateRequest):
    cfg = get_story(story_id).config
    extents = None
    if any(c.camera.fitLayers for c in cfg.chapters):
        extents = (await _story_layers(cfg.id)).extents
    viewport = body.viewport.model_dump() if body.viewport is not None else None
    return StreamingResponse(
        narrate(
            cfg,
            body.signals,
            current=body.current,
            extents=extents,
            viewport=viewport,
        ),
        media_type="text/event-stream",
    )


@app.post("/stories/{story_id}/inspect")
async def post_inspect(story_id: str, body: ApiInspectRequest):
    cfg = get_story(story_id).config

    layer_id = body.layerId
    props = body.properties
    if props is None:
        if body.lon is None or body.lat is None:
            raise HTTPException(
                status_code=422, detail="Provide `properties` or `lon`/`lat`"
            )
        loaded = await _story_layers(cfg.id)
        hit = features_at(
            build_hit_indexes(loaded.layers),
            body.lon,
            body.lat,
            tolerance=body.tolerance,
            layer_ids={layer_id} if layer_id else None,
        )
        if hit is None:
            return {"layerId": layer_id, "title": None, "rows": []}
        layer_id, feature = hit
        props = feature.properties

    if not layer_id or cfg.layer(layer_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}")

    renderer = RecordingRenderer()
    controller = controller_for_story(cfg, renderer)
    rows = await controller.inspect(layer_id, props)
    panel = renderer.drain()[-1]
    logger.debug(f"Inspect {cfg.id}/{layer_id}: {len(rows)} rows")
    return {"layerId": layer_id, "title": panel["title"], "rows": panel["rows"]}
