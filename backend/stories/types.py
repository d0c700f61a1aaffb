from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


class StoryCenter(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lon: float = Field(ge=-180.0, le=180.0)


class StoryDefaultView(BaseModel):
    center: StoryCenter
    zoom: float = Field(ge=0.0, le=24.0)


GeometryKind = Literal["points", "lines", "polygons"]


class ClassificationRule(BaseModel):
    """
    One ordered classification rule.

    Conditions are AND-ed:
    - `values`: the classification `field` must equal one of these
    - `props`: each listed attribute must equal one of its values
    - `matches`: each listed attribute must match its regex
    """

    label: str
    values: list[str] | None = None
    props: dict[str, list[str]] | None = None
    matches: dict[str, str] | None = None
    caseSensitive: bool = True

    @model_validator(mode="after")
    def _has_condition(self) -> "ClassificationRule":
        if not (self.values or self.props or self.matches):
            raise ValueError(f"Classification rule '{self.label}' has no condition")
        return self


class StoryClassification(BaseModel):
    # Attribute tested by rules that use `values`.
    field: str = "Name"
    default: str = "other"
    rules: list[ClassificationRule] = Field(default_factory=list)


class StoryLayer(BaseModel):
    """
    A dataset key with its candidate locations, presentation hints and inspection order.

    Declaration order in the story is draw order (first = bottom).
    """

    id: str
    title: str
    kind: GeometryKind
    # Ordered candidate locations: primary first, mirrors after.
    sources: list[str] = Field(min_length=1)
    preferredAttributes: list[str] = Field(default_factory=list)
    classification: StoryClassification | None = None
    # Plot styling hints (free-form, interpreted by the renderer).
    style: dict[str, Any] = Field(default_factory=dict)
    categoryStyles: dict[str, dict[str, Any]] = Field(default_factory=dict)


class StoryCamera(BaseModel):
    # Absent fields mean "keep the current value".
    center: StoryCenter | None = None
    zoom: float | None = Field(default=None, ge=0.0, le=24.0)
    pitch: float | None = Field(default=None, ge=0.0, le=85.0)
    bearing: float | None = None
    # Frame the camera to these layers' extent (applied before explicit fields).
    fitLayers: list[str] = Field(default_factory=list)


class StoryLegendItem(BaseModel):
    label: str
    swatch: str


class StoryChapter(BaseModel):
    id: str
    title: str | None = None
    layers: list[str] = Field(default_factory=list)
    camera: StoryCamera = Field(default_factory=StoryCamera)
    legend: list[StoryLegendItem] = Field(default_factory=list)


class StoryAttributes(BaseModel):
    deny: list[str] = Field(
        default_factory=lambda: ["Shape__Area", "Shape__Length", "Shape_Area", "Shape_Length"]
    )
    limit: int = Field(default=10, ge=1, le=200)


class StoryConfig(BaseModel):
    id: str
    title: str
    defaultView: StoryDefaultView
    enabled: bool = True

    layers: list[StoryLayer]
    chapters: list[StoryChapter] = Field(default_factory=list)
    attributes: StoryAttributes = Field(default_factory=StoryAttributes)

    # Coordinate heuristic: magnitudes above this are treated as projected meters.
    projectedThreshold: float = Field(default=400.0, gt=180.0)
    projectedCrs: str = "EPSG:3857"
    # Layers framed by the initial camera; empty means every loaded layer.
    fitLayers: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_references(self) -> "StoryConfig":
        layer_ids = [layer.id for layer in self.layers]
        if len(set(layer_ids)) != len(layer_ids):
            raise ValueError(f"Story '{self.id}' has duplicate layer ids")
        chapter_ids = [c.id for c in self.chapters]
        if len(set(chapter_ids)) != len(chapter_ids):
            raise ValueError(f"Story '{self.id}' has duplicate chapter ids")

        known = set(layer_ids)
        unknown_fit = [k for k in self.fitLayers if k not in known]
        if unknown_fit:
            raise ValueError(f"Story '{self.id}' fitLayers references unknown layers: {unknown_fit}")
        for chapter in self.chapters:
            unknown = [k for k in [*chapter.layers, *chapter.camera.fitLayers] if k not in known]
            if unknown:
                raise ValueError(
                    f"Story '{self.id}' chapter '{chapter.id}' references unknown layers: {unknown}"
                )
        return self

    def layer(self, layer_id: str) -> StoryLayer | None:
        lid = (layer_id or "").strip()
        for layer in self.layers:
            if layer.id == lid:
                return layer
        return None
