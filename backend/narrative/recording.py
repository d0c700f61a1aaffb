from __future__ import annotations

from typing import Any

from narrative.types import CameraDirective, LegendItem


class RecordingRenderer:
    """
    Renderer that records every command as a JSON-ready dict.

    Used by the HTTP stream (commands are forwarded to the browser map) and by tests.
    """

    def __init__(self) -> None:
        self.commands: list[dict[str, Any]] = []

    async def set_layer_visibility(self, layer_key: str, visible: bool) -> None:
        self.commands.append(
            {"op": "setLayerVisibility", "layer": layer_key, "visible": bool(visible)}
        )

    async def set_camera(self, camera: CameraDirective) -> None:
        self.commands.append({"op": "setCamera", "camera": camera.to_payload()})

    async def set_legend(self, items: list[LegendItem]) -> None:
        self.commands.append(
            {
                "op": "setLegend",
                "items": [{"label": i.label, "swatch": i.swatch} for i in items],
            }
        )

    async def show_attribute_panel(self, title: str, rows: list[tuple[str, Any]]) -> None:
        self.commands.append(
            {"op": "showAttributePanel", "title": title, "rows": [[k, v] for k, v in rows]}
        )

    async def hide_attribute_panel(self) -> None:
        self.commands.append({"op": "hideAttributePanel"})

    def drain(self) -> list[dict[str, Any]]:
        out = self.commands
        self.commands = []
        return out
