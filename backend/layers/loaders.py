from __future__ import annotations

import json
import math
from typing import Any

from layers.errors import MalformedCollection
from layers.types import (
    GEOMETRY_TYPES,
    AttributeValue,
    Feature,
    FeatureCollection,
    Geometry,
)

# Nesting depth of `coordinates` per geometry type (0 = a single position).
_DEPTH: dict[str, int] = {
    "Point": 0,
    "MultiPoint": 1,
    "LineString": 1,
    "MultiLineString": 2,
    "Polygon": 2,
    "MultiPolygon": 3,
}


def looks_like_markup(text: str) -> bool:
    """
    True for HTML error pages served in place of data (e.g. a hosting 404 page).
    """
    head = text.lstrip()[:512].lower()
    return head.startswith("<") or "<html" in text[:4096].lower()


def parse_feature_collection(text: str, *, location: str = "<memory>") -> FeatureCollection:
    """
    Parse and validate a GeoJSON FeatureCollection.

    Only the collection shape is mandatory (type tag + features array). Individual
    features with a missing or malformed geometry are kept with `geometry=None`
    so their attributes stay inspectable; extent and reprojection skip them.
    """
    if looks_like_markup(text):
        raise MalformedCollection(location, "looks like HTML")
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        raise MalformedCollection(location, f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise MalformedCollection(location, "JSON nested too deeply") from e
    return collection_from_geojson(data, location=location)


def collection_from_geojson(data: Any, *, location: str = "<memory>") -> FeatureCollection:
    if not isinstance(data, dict) or data.get("type") != "FeatureCollection":
        raise MalformedCollection(location, "missing FeatureCollection type tag")
    raw_features = data.get("features")
    if not isinstance(raw_features, list):
        raise MalformedCollection(location, "`features` is not an array")

    out: list[Feature] = []
    for raw in raw_features:
        if not isinstance(raw, dict):
            continue
        props = raw.get("properties") or {}
        if not isinstance(props, dict):
            props = {}
        out.append(
            Feature(
                geometry=parse_geometry(raw.get("geometry")),
                properties=_scalar_props(props),
                id=_feature_id(raw.get("id")),
            )
        )

    name = data.get("name")
    return FeatureCollection(features=tuple(out), name=name if isinstance(name, str) else None)


def parse_geometry(raw: Any) -> Geometry | None:
    if not isinstance(raw, dict):
        return None
    gtype = raw.get("type")
    if gtype not in GEOMETRY_TYPES:
        return None

    if gtype == "GeometryCollection":
        members = [parse_geometry(g) for g in (raw.get("geometries") or [])]
        kept = tuple(g for g in members if g is not None)
        return Geometry(type="GeometryCollection", geometries=kept) if kept else None

    coords = _coords(raw.get("coordinates"), _DEPTH[gtype])
    if coords is None:
        return None
    return Geometry(type=gtype, coordinates=coords)


def _coords(raw: Any, depth: int) -> Any:
    if depth == 0:
        return _position(raw)
    if not isinstance(raw, list) or not raw:
        return None
    out = []
    for item in raw:
        c = _coords(item, depth - 1)
        if c is None:
            return None
        out.append(c)
    return tuple(out)


def _position(raw: Any) -> tuple[float, float] | None:
    if not isinstance(raw, list) or len(raw) < 2:
        return None
    x, y = raw[0], raw[1]
    if not _is_number(x) or not _is_number(y):
        return None
    # Altitude (3rd value) is dropped.
    return (float(x), float(y))


def _is_number(v: Any) -> bool:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return False
    try:
        return math.isfinite(float(v))
    except OverflowError:
        # Integers too large for a float.
        return False


def _scalar_props(props: dict[str, Any]) -> dict[str, AttributeValue]:
    out: dict[str, AttributeValue] = {}
    for k, v in props.items():
        if v is None or isinstance(v, (str, int, float, bool)):
            out[str(k)] = v
        else:
            # Nested objects/arrays are flattened to their JSON text.
            out[str(k)] = json.dumps(v, ensure_ascii=False)
    return out


def _feature_id(raw: Any) -> str | int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (str, int)):
        return raw
    return None
