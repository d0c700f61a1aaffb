from __future__ import annotations

import math
from typing import Iterable

from geo.extent import Extent, merge_all

TILE_PX = 256
# Web Mercator is square: latitudes beyond this project outside the world tile.
_MERCATOR_LAT_LIMIT = 85.05112878
# Smallest world fraction an extent is allowed to span (a single point has none).
_MIN_SPAN = 1e-9


def fit_camera(
    extents: Iterable[Extent | None],
    *,
    viewport: dict[str, int] | None = None,
    padding_px: int = 50,
    max_zoom: float = 20.0,
) -> tuple[dict[str, float], float] | None:
    """
    Camera center/zoom framing the union of `extents`.

    Returns None when every extent is absent: the caller keeps its current camera.
    """
    merged = merge_all(extents)
    if merged is None:
        return None

    lon, lat = merged.center
    width = int((viewport or {}).get("width") or 900)
    height = int((viewport or {}).get("height") or 600)
    zoom = zoom_to_fit(
        merged,
        width_px=max(1, width - 2 * padding_px),
        height_px=max(1, height - 2 * padding_px),
    )
    return {"lon": lon, "lat": lat}, float(min(zoom, max_zoom))


def zoom_to_fit(extent: Extent, *, width_px: int, height_px: int) -> float:
    """
    Largest Web Mercator zoom at which `extent` fits inside the given pixel box.

    At zoom z the whole world is `TILE_PX * 2**z` pixels on each side, so the zoom
    follows from the share of the world the extent covers on each axis.
    """
    x_share = max((extent.max_x - extent.min_x) / 360.0, _MIN_SPAN)
    y_share = max(
        (_mercator_y(extent.max_y) - _mercator_y(extent.min_y)) / (2.0 * math.pi),
        _MIN_SPAN,
    )
    world_px = min(width_px / x_share, height_px / y_share)
    return max(0.0, math.log2(world_px / TILE_PX))


def _mercator_y(lat: float) -> float:
    lat = max(-_MERCATOR_LAT_LIMIT, min(_MERCATOR_LAT_LIMIT, lat))
    return math.log(math.tan(math.pi / 4.0 + math.radians(lat) / 2.0))
