from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, TypeAlias, Union


GeometryKind = Literal["points", "lines", "polygons"]

GeometryType = Literal[
    "Point",
    "MultiPoint",
    "LineString",
    "MultiLineString",
    "Polygon",
    "MultiPolygon",
    "GeometryCollection",
]

GEOMETRY_TYPES: frozenset[str] = frozenset(
    {
        "Point",
        "MultiPoint",
        "LineString",
        "MultiLineString",
        "Polygon",
        "MultiPolygon",
        "GeometryCollection",
    }
)

# Nested coordinate arrays: a position is (x, y); lines/rings/multi-forms nest tuples of those.
Position: TypeAlias = tuple[float, float]
Coordinates: TypeAlias = Union[Position, tuple[Any, ...]]

AttributeValue: TypeAlias = Union[str, int, float, bool, None]


@dataclass(frozen=True)
class Geometry:
    """
    A GeoJSON-style geometry.

    `coordinates` is the nested tuple structure for the tagged type
    (Point -> position, LineString -> positions, Polygon -> rings, Multi* -> one more level).
    `geometries` is only used by GeometryCollection.
    """

    type: GeometryType
    coordinates: Coordinates | None = None
    geometries: tuple["Geometry", ...] = ()

    def to_geojson(self) -> dict[str, Any]:
        if self.type == "GeometryCollection":
            return {
                "type": self.type,
                "geometries": [g.to_geojson() for g in self.geometries],
            }
        return {"type": self.type, "coordinates": _to_lists(self.coordinates)}


@dataclass(frozen=True)
class Feature:
    geometry: Geometry | None
    properties: dict[str, AttributeValue] = field(default_factory=dict)
    id: str | int | None = None

    def to_geojson(self, *, extra_props: dict[str, Any] | None = None) -> dict[str, Any]:
        out: dict[str, Any] = {
            "type": "Feature",
            "geometry": None if self.geometry is None else self.geometry.to_geojson(),
            "properties": {**self.properties, **(extra_props or {})},
        }
        if self.id is not None:
            out["id"] = self.id
        return out


@dataclass(frozen=True)
class FeatureCollection:
    """
    An ordered, immutable sequence of features.

    Collections are handed to the renderer as read-only references, so every
    transformation in this repo returns a new collection.
    """

    features: tuple[Feature, ...] = ()
    name: str | None = None

    def __len__(self) -> int:
        return len(self.features)

    def __iter__(self):
        return iter(self.features)

    def to_geojson(self, *, categories: list[str] | None = None) -> dict[str, Any]:
        feats = []
        for i, f in enumerate(self.features):
            extra = {"category": categories[i]} if categories is not None else None
            feats.append(f.to_geojson(extra_props=extra))
        out: dict[str, Any] = {"type": "FeatureCollection", "features": feats}
        if self.name:
            out["name"] = self.name
        return out


@dataclass(frozen=True)
class StoryLayerData:
    """
    A loaded, presentation-ready layer: normalized data plus per-feature categories.

    `categories[i]` is the category of `collection.features[i]`.
    """

    id: str
    kind: GeometryKind
    title: str
    collection: FeatureCollection
    categories: list[str] = field(default_factory=list)
    # Free-form paint hints consumed by the rendering collaborator.
    style: dict[str, Any] = field(default_factory=dict)
    category_styles: dict[str, dict[str, Any]] = field(default_factory=dict)


def _to_lists(coords: Any) -> Any:
    if isinstance(coords, tuple):
        return [_to_lists(c) for c in coords]
    return coords
