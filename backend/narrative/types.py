from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from stories.types import StoryChapter


@dataclass(frozen=True)
class CameraDirective:
    """
    Partial camera update. `None` fields keep the renderer's current value.
    """

    center: tuple[float, float] | None = None  # (lon, lat)
    zoom: float | None = None
    pitch: float | None = None
    bearing: float | None = None

    def is_empty(self) -> bool:
        return (
            self.center is None
            and self.zoom is None
            and self.pitch is None
            and self.bearing is None
        )

    def merged_over(self, base: "CameraDirective | None") -> "CameraDirective":
        if base is None:
            return self
        return CameraDirective(
            center=self.center if self.center is not None else base.center,
            zoom=self.zoom if self.zoom is not None else base.zoom,
            pitch=self.pitch if self.pitch is not None else base.pitch,
            bearing=self.bearing if self.bearing is not None else base.bearing,
        )

    def to_payload(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.center is not None:
            out["center"] = {"lon": self.center[0], "lat": self.center[1]}
        if self.zoom is not None:
            out["zoom"] = self.zoom
        if self.pitch is not None:
            out["pitch"] = self.pitch
        if self.bearing is not None:
            out["bearing"] = self.bearing
        return out


@dataclass(frozen=True)
class LegendItem:
    label: str
    swatch: str


@dataclass(frozen=True)
class ChapterSpec:
    name: str
    visible: tuple[str, ...]
    camera: CameraDirective = field(default_factory=CameraDirective)
    legend: tuple[LegendItem, ...] = ()
    # Layers whose combined extent frames the camera before explicit camera fields apply.
    fit_layers: tuple[str, ...] = ()

    @classmethod
    def from_config(cls, cfg: StoryChapter) -> "ChapterSpec":
        cam = cfg.camera
        return cls(
            name=cfg.id,
            visible=tuple(dict.fromkeys(cfg.layers)),
            camera=CameraDirective(
                center=(cam.center.lon, cam.center.lat) if cam.center is not None else None,
                zoom=cam.zoom,
                pitch=cam.pitch,
                bearing=cam.bearing,
            ),
            legend=tuple(LegendItem(label=i.label, swatch=i.swatch) for i in cfg.legend),
            fit_layers=tuple(cam.fitLayers),
        )


class Renderer(Protocol):
    """
    Output side of the narrative engine (implemented by the map front end).

    Methods are coroutines so a renderer can hold the transition until, e.g.,
    a camera animation finishes.
    """

    async def set_layer_visibility(self, layer_key: str, visible: bool) -> None: ...

    async def set_camera(self, camera: CameraDirective) -> None: ...

    async def set_legend(self, items: list[LegendItem]) -> None: ...

    async def show_attribute_panel(self, title: str, rows: list[tuple[str, Any]]) -> None: ...

    async def hide_attribute_panel(self) -> None: ...
