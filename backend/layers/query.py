from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Sequence

from shapely.geometry import Point, shape
from shapely.strtree import STRtree

from layers.types import Feature, StoryLayerData


@dataclass
class LayerHitIndex:
    """
    STRtree over one layer's geometries for pointer hit-testing (EPSG:4326).
    """

    layer: StoryLayerData
    _tree: STRtree | None = field(default=None, repr=False)
    _geoms: list[Any] = field(default_factory=list, repr=False)
    _feature_idx: list[int] = field(default_factory=list, repr=False)

    def __post_init__(self) -> None:
        for i, f in enumerate(self.layer.collection.features):
            if f.geometry is None:
                continue
            try:
                g = shape(f.geometry.to_geojson())
                if g.is_empty:
                    continue
            except Exception:
                # Degenerate geometries (e.g. one-vertex lines) are not hittable.
                continue
            self._geoms.append(g)
            self._feature_idx.append(i)
        self._tree = STRtree(self._geoms) if self._geoms else None

    def hit(self, lon: float, lat: float, *, tolerance: float) -> Feature | None:
        """
        Nearest feature within `tolerance` degrees of the point; ties keep the later
        (top-drawn) feature.
        """
        if self._tree is None:
            return None
        pt = Point(lon, lat)
        idxs = _to_int_list(self._tree.query(pt.buffer(tolerance)))
        best: tuple[float, int] | None = None
        for i in idxs:
            d = float(self._geoms[i].distance(pt))
            if d > tolerance:
                continue
            if best is None or d < best[0] or (d == best[0] and i > best[1]):
                best = (d, i)
        if best is None:
            return None
        return self.layer.collection.features[self._feature_idx[best[1]]]


def build_hit_indexes(layers: Sequence[StoryLayerData]) -> list[LayerHitIndex]:
    return [LayerHitIndex(layer=layer) for layer in layers]


def features_at(
    indexes: Sequence[LayerHitIndex],
    lon: float,
    lat: float,
    *,
    tolerance: float = 0.0002,
    layer_ids: set[str] | None = None,
) -> tuple[str, Feature] | None:
    """
    Top-most hit across layers. `indexes` is in draw order, so later layers win.
    """
    for idx in reversed(indexes):
        if layer_ids is not None and idx.layer.id not in layer_ids:
            continue
        f = idx.hit(lon, lat, tolerance=tolerance)
        if f is not None:
            return idx.layer.id, f
    return None


def _to_int_list(arr) -> list[int]:
    # Shapely STRtree returns numpy.ndarray of indices.
    try:
        return [int(x) for x in arr.tolist()]
    except Exception:
        return [int(x) for x in arr]
